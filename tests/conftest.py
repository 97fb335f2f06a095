# pylint: disable=redefined-outer-name
# pylint: disable=unused-argument

import datetime

import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

import settings_actions
from app import create_app
from config import load_config
from controller import EC2Manager
from store import SettingsStore

TABLE_NAME = "ec2-manager-test"
REGION = "us-east-1"

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "Sup3r$ecret"
EC2_SECRET = "a1b2c3"


def client_error(code, message="boom", operation="DescribeInstances"):
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def make_instance(instance_id, state, name=None, instance_type="t3.micro", **extra):
    instance = {
        "InstanceId": instance_id,
        "State": {"Name": state},
        "InstanceType": instance_type,
        "LaunchTime": datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc),
        "PrivateIpAddress": "10.0.0.10",
        "Tags": [{"Key": "Name", "Value": name}] if name else [],
    }
    instance.update(extra)
    return instance


class FakePaginator:
    def __init__(self, client):
        self.client = client

    def paginate(self):
        if self.client.listing_error:
            raise self.client.listing_error
        instances = list(self.client.instances.values())
        # Two pages, like a real multi-reservation response
        middle = len(instances) // 2
        yield {"Reservations": [{"Instances": instances[:middle]}]}
        yield {"Reservations": [{"Instances": instances[middle:]}]}


class FakeEC2Client:
    """
    In-memory stand-in for the boto3 EC2 client.

    status_checks maps an instance id to ("ok", "ok") style tuples, to an
    exception that describe_instance_status should raise, or to None for an
    empty answer.
    """

    def __init__(self, instances=()):
        self.instances = {instance["InstanceId"]: instance for instance in instances}
        self.status_checks = {}
        self.listing_error = None
        self.calls = []

    def get_paginator(self, operation_name):
        assert operation_name == "describe_instances"
        return FakePaginator(self)

    def _lookup(self, instance_id, operation):
        if instance_id not in self.instances:
            raise client_error(
                "InvalidInstanceID.NotFound",
                f"The instance ID '{instance_id}' does not exist",
                operation
            )
        return self.instances[instance_id]

    def describe_instances(self, InstanceIds):
        self.calls.append(("describe_instances", InstanceIds))
        instances = [self._lookup(instance_id, "DescribeInstances") for instance_id in InstanceIds]
        return {"Reservations": [{"Instances": instances}]}

    def describe_instance_status(self, InstanceIds, IncludeAllInstances=False):
        instance_id = InstanceIds[0]
        self.calls.append(("describe_instance_status", InstanceIds))
        checks = self.status_checks.get(instance_id)
        if isinstance(checks, Exception):
            raise checks
        if checks is None:
            return {"InstanceStatuses": []}
        return {
            "InstanceStatuses": [{
                "InstanceId": instance_id,
                "InstanceStatus": {"Status": checks[0]},
                "SystemStatus": {"Status": checks[1]},
            }]
        }

    def _transition(self, instance_id, new_state, operation):
        instance = self._lookup(instance_id, operation)
        previous = instance["State"]["Name"]
        instance["State"] = {"Name": new_state}
        return {
            "InstanceId": instance_id,
            "CurrentState": {"Name": new_state},
            "PreviousState": {"Name": previous},
        }

    def start_instances(self, InstanceIds):
        self.calls.append(("start_instances", InstanceIds))
        return {"StartingInstances": [self._transition(i, "pending", "StartInstances") for i in InstanceIds]}

    def stop_instances(self, InstanceIds):
        self.calls.append(("stop_instances", InstanceIds))
        return {"StoppingInstances": [self._transition(i, "stopping", "StopInstances") for i in InstanceIds]}

    def called(self, operation_name):
        return [args for name, args in self.calls if name == operation_name]


@pytest.fixture
def aws_credentials(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)
    monkeypatch.setenv("AWS_REGION", REGION)


@pytest.fixture
def store(aws_credentials):
    with mock_aws():
        settings_store = SettingsStore(TABLE_NAME, region=REGION)
        settings_store.create_table()
        yield settings_store


@pytest.fixture
def ec2_client():
    client = FakeEC2Client([
        make_instance("i-running", "running", name="web"),
        make_instance("i-stopped", "stopped", name="worker", instance_type="t3.large"),
        make_instance("i-pending", "pending", name="batch"),
    ])
    client.status_checks["i-running"] = ("ok", "ok")
    return client


@pytest.fixture
def manager(ec2_client):
    return EC2Manager(region=REGION, ec2_client=ec2_client)


@pytest.fixture
def admin(store):
    result = settings_actions.save_settings_action(store, {
        "username": ADMIN_USERNAME,
        "password": ADMIN_PASSWORD,
        "ec2_secret_enabled": "false",
    })
    assert result["success"], result
    return result["data"]


@pytest.fixture
def admin_with_secret(store):
    result = settings_actions.save_settings_action(store, {
        "username": ADMIN_USERNAME,
        "password": ADMIN_PASSWORD,
        "ec2_secret_enabled": "true",
        "ec2_secret": EC2_SECRET,
    })
    assert result["success"], result
    return result["data"]


@pytest.fixture
def app(store, manager):
    config = load_config(
        SECRET_KEY="test-secret-key",
        DYNAMODB_TABLE=TABLE_NAME,
        AWS_REGION=REGION,
        DISPLAY_TIMEZONE="UTC",
    )
    flask_app = create_app(config, ec2_manager=manager, store=store)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def logged_in(client, admin):
    with client.session_transaction() as flask_session:
        flask_session["username"] = ADMIN_USERNAME
    return client


@pytest.fixture
def logged_in_with_secret(client, admin_with_secret):
    with client.session_transaction() as flask_session:
        flask_session["username"] = ADMIN_USERNAME
    return client
