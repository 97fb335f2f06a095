# pylint: disable=redefined-outer-name

import pytest
from botocore.exceptions import EndpointConnectionError

from conftest import REGION, client_error, make_instance
from controller import EC2Manager


def _by_id(result):
    return {view["id"]: view for view in result["instances"]}


def test_manager_needs_a_region(monkeypatch):
    monkeypatch.delenv("AWS_REGION", raising=False)
    with pytest.raises(ValueError):
        EC2Manager()


def test_manager_reads_environment(monkeypatch):
    monkeypatch.setenv("AWS_REGION", "eu-west-1")
    manager = EC2Manager(access_key="AKIAEXAMPLE", secret_key="x" * 40)
    assert manager.region == "eu-west-1"
    assert manager.ec2_client.meta.region_name == "eu-west-1"


def test_list_instances_derives_status(manager, ec2_client):
    result = manager.list_instances()

    assert result["success"] is True
    views = _by_id(result)
    assert set(views) == {"i-running", "i-stopped", "i-pending"}
    assert views["i-running"]["status"] == "active"
    assert views["i-stopped"]["status"] == "inactive"
    assert views["i-pending"]["status"] == "pending"
    assert views["i-running"]["name"] == "web"

    # Status checks are only fetched for running instances
    assert ec2_client.called("describe_instance_status") == [["i-running"]]


def test_failed_status_check_isolated_to_one_instance(manager, ec2_client):
    ec2_client.instances["i-other"] = make_instance("i-other", "running", name="db")
    ec2_client.status_checks["i-other"] = ("ok", "ok")
    ec2_client.status_checks["i-running"] = client_error("RequestLimitExceeded", operation="DescribeInstanceStatus")

    result = manager.list_instances()

    assert result["success"] is True
    views = _by_id(result)
    assert views["i-running"]["status"] == "initializing"
    assert views["i-running"]["instance_status"] == "unknown"
    assert views["i-other"]["status"] == "active"
    assert views["i-stopped"]["status"] == "inactive"


def test_running_without_status_answer_is_initializing(manager, ec2_client):
    ec2_client.status_checks["i-running"] = None
    assert _by_id(manager.list_instances())["i-running"]["status"] == "initializing"


def test_running_with_impaired_checks_is_initializing(manager, ec2_client):
    ec2_client.status_checks["i-running"] = ("impaired", "ok")
    view = _by_id(manager.list_instances())["i-running"]
    assert view["status"] == "initializing"
    assert view["instance_status"] == "impaired"


def test_list_instances_failure(manager, ec2_client):
    ec2_client.listing_error = client_error("UnauthorizedOperation", "You are not authorized")

    result = manager.list_instances()

    assert result["success"] is False
    assert result["message"] == "Failed to fetch EC2 instances"
    assert result["error"] == "AWS Error: You are not authorized"
    assert result["instances"] == []


def test_get_instance(manager):
    result = manager.get_instance("i-stopped")
    assert result["success"] is True
    assert result["instance"]["name"] == "worker"
    assert result["instance"]["instance_type"] == "t3.large"


def test_get_instance_not_found(manager):
    result = manager.get_instance("i-missing")
    assert result["success"] is False
    assert result["not_found"] is True
    assert result["message"] == "Instance i-missing not found"


def test_get_status_checks(manager, ec2_client):
    assert manager.get_status_checks("i-running") == {"instance_status": "ok", "system_status": "ok"}
    assert manager.get_status_checks("i-stopped") is None


def test_get_status_checks_raises(manager, ec2_client):
    ec2_client.status_checks["i-running"] = EndpointConnectionError(endpoint_url="https://ec2.example")
    with pytest.raises(EndpointConnectionError):
        manager.get_status_checks("i-running")


def test_start(manager, ec2_client):
    result = manager.start("i-stopped")

    assert result["success"] is True
    assert result["new_state"] == "pending"
    assert result["message"] == "Instance i-stopped is starting. Current state: Starting"
    assert ec2_client.called("start_instances") == [["i-stopped"]]


def test_start_reports_aws_error(manager):
    result = manager.start("i-missing")
    assert result["success"] is False
    assert result["message"] == "AWS Error: The instance ID 'i-missing' does not exist"


def test_stop(manager, ec2_client):
    result = manager.stop("i-running")

    assert result["success"] is True
    assert result["new_state"] == "stopping"
    assert result["message"] == "Instance i-running is stopping. Current state: Stopping"


def test_stop_with_empty_answer(manager, ec2_client, monkeypatch):
    monkeypatch.setattr(ec2_client, "stop_instances", lambda InstanceIds: {"StoppingInstances": []})
    result = manager.stop("i-running")
    assert result == {"success": False, "message": "No instance found to stop", "instance_id": "i-running"}


def test_cancel_pending_instance(manager, ec2_client):
    result = manager.cancel_start("i-pending")

    assert result["success"] is True
    assert result["new_state"] == "stopping"
    assert result["message"] == (
        "Start operation canceled successfully. Instance is still in pending state. Current state: Stopping"
    )
    assert ec2_client.called("stop_instances") == [["i-pending"]]


def test_start_then_cancel(manager):
    assert manager.start("i-stopped")["new_state"] == "pending"

    result = manager.cancel_start("i-stopped")

    assert result["success"] is True
    assert result["new_state"] == "stopping"
    assert manager.get_instance("i-stopped")["instance"]["status"] == "stopping"


def test_cancel_initializing_instance(manager, ec2_client):
    ec2_client.status_checks["i-running"] = ("initializing", "initializing")
    result = manager.cancel_start("i-running")
    assert result["success"] is True
    assert "still initializing" in result["message"]


def test_cancel_when_status_check_fails(manager, ec2_client):
    ec2_client.status_checks["i-running"] = client_error("InternalError", operation="DescribeInstanceStatus")
    result = manager.cancel_start("i-running")
    assert result["success"] is True
    assert "status check failed" in result["message"]


def test_cannot_cancel_ready_instance(manager, ec2_client):
    result = manager.cancel_start("i-running")

    assert result["success"] is False
    assert result["message"] == (
        "Cannot cancel start operation: Instance is fully running and ready. Current state: Running"
    )
    assert ec2_client.called("stop_instances") == []


def test_cannot_cancel_stopped_instance(manager, ec2_client):
    result = manager.cancel_start("i-stopped")
    assert result["success"] is False
    assert result["message"] == "Cannot cancel start operation: Instance is stopped. Current state: Stopped"
    assert ec2_client.called("stop_instances") == []


def test_cancel_unknown_instance(manager):
    result = manager.cancel_start("i-missing")
    assert result["success"] is False
    assert result["message"].startswith("AWS Error:")


def test_cancel_with_empty_describe(manager, ec2_client, monkeypatch):
    monkeypatch.setattr(ec2_client, "describe_instances", lambda InstanceIds: {"Reservations": []})
    result = manager.cancel_start("i-pending")
    assert result["success"] is False
    assert result["message"] == "Instance not found"


def test_region_is_used_for_client():
    manager = EC2Manager(access_key="AKIAEXAMPLE", secret_key="x" * 40, region=REGION)
    assert manager.ec2_client.meta.region_name == REGION


def test_explicit_arguments_skip_dotenv(monkeypatch):
    loads = []
    monkeypatch.setattr("controller.load_dotenv", lambda: loads.append(True))

    EC2Manager(access_key="AKIAEXAMPLE", secret_key="x" * 40, region=REGION)
    assert loads == []

    EC2Manager(region=REGION)
    assert loads == [True]
