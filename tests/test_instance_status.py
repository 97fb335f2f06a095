import datetime

import pytest

from instance_status import (
    build_view,
    cancel_eligibility,
    checks_passed,
    derive_status,
    readable_state,
    summarize,
)


@pytest.mark.parametrize(
    "state, checks, expected",
    [
        ("pending", None, "pending"),
        ("stopping", None, "stopping"),
        ("stopped", None, "inactive"),
        ("shutting-down", None, "inactive"),
        ("terminated", None, "inactive"),
        ("running", {"instance_status": "ok", "system_status": "ok"}, "active"),
        ("running", {"instance_status": "initializing", "system_status": "ok"}, "initializing"),
        ("running", {"instance_status": "ok", "system_status": "impaired"}, "initializing"),
        ("running", {"instance_status": "ok"}, "initializing"),
        ("running", None, "initializing"),
        ("running", {}, "initializing"),
    ],
)
def test_derive_status(state, checks, expected):
    assert derive_status(state, checks) == expected


def test_status_checks_ignored_when_not_running():
    assert derive_status("stopped", {"instance_status": "ok", "system_status": "ok"}) == "inactive"


def test_checks_passed_needs_both_ok():
    assert checks_passed({"instance_status": "ok", "system_status": "ok"})
    assert not checks_passed({"instance_status": "ok", "system_status": "unknown"})
    assert not checks_passed(None)


def test_readable_state():
    assert readable_state("pending") == "Starting"
    assert readable_state("shutting-down") == "Shutting Down"
    assert readable_state("rebooting") == "rebooting"
    assert readable_state(None) == "unknown"


@pytest.mark.parametrize(
    "state, checks, failed, can_cancel, reason_fragment",
    [
        ("pending", None, False, True, "pending state"),
        ("running", None, True, True, "status check failed"),
        ("running", None, False, True, "status is unknown"),
        ("running", {"instance_status": "initializing", "system_status": "ok"}, False, True, "still initializing"),
        ("running", {"instance_status": "ok", "system_status": "ok"}, False, False, "fully running and ready"),
        ("stopped", None, False, False, "Instance is stopped"),
        ("stopping", None, False, False, "Instance is stopping"),
    ],
)
def test_cancel_eligibility(state, checks, failed, can_cancel, reason_fragment):
    allowed, reason = cancel_eligibility(state, checks, failed)
    assert allowed is can_cancel
    assert reason_fragment in reason


def test_build_view_uses_tags_and_checks():
    now = datetime.datetime(2024, 5, 1, 10, 30, tzinfo=datetime.timezone.utc)
    instance = {
        "InstanceId": "i-0abc",
        "State": {"Name": "running"},
        "InstanceType": "t3.small",
        "PublicIpAddress": "54.1.2.3",
        "PrivateIpAddress": "10.0.0.5",
        "LaunchTime": datetime.datetime(2024, 5, 1, 9, 0, tzinfo=datetime.timezone.utc),
        "Tags": [
            {"Key": "Name", "Value": "api"},
            {"Key": "Description", "Value": "Public API"},
            {"Key": "Empty", "Value": ""},
        ],
    }

    view = build_view(instance, {"instance_status": "ok", "system_status": "ok"}, now=now)

    assert view == {
        "id": "i-0abc",
        "name": "api",
        "description": "Public API",
        "status": "active",
        "current_state": "running",
        "instance_status": "ok",
        "system_status": "ok",
        "instance_type": "t3.small",
        "public_ip": "54.1.2.3",
        "private_ip": "10.0.0.5",
        "launch_time": "2024-05-01T09:00:00+00:00",
        "tags": {"Name": "api", "Description": "Public API"},
        "last_updated": "2024-05-01T10:30:00+00:00",
    }


def test_build_view_defaults_without_tags():
    view = build_view({"InstanceId": "i-0def", "State": {"Name": "stopped"}, "InstanceType": "m5.large"})

    assert view["name"] == "Instance i-0def"
    assert view["description"] == "m5.large instance"
    assert view["status"] == "inactive"
    assert view["instance_status"] == "unknown"
    assert view["system_status"] == "unknown"
    assert view["public_ip"] is None
    assert view["launch_time"] is None


def test_summarize():
    views = [
        {"status": "active", "instance_type": "t3.micro", "last_updated": f"2024-01-0{day}T00:00:00+00:00"}
        for day in range(1, 8)
    ]
    views.append({"status": "inactive", "instance_type": None, "last_updated": "2023-12-31T00:00:00+00:00"})

    summary = summarize(views)

    assert summary["total"] == 8
    assert summary["counts"] == {"active": 7, "initializing": 0, "pending": 0, "stopping": 0, "inactive": 1}
    assert summary["instance_types"] == {"t3.micro": 7, "Unknown": 1}
    assert [view["last_updated"][:10] for view in summary["recent"]] == [
        "2024-01-07", "2024-01-06", "2024-01-05", "2024-01-04", "2024-01-03",
    ]


def test_summarize_empty():
    summary = summarize([])
    assert summary["total"] == 0
    assert summary["recent"] == []
    assert sum(summary["counts"].values()) == 0
