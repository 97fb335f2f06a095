import datetime

# UI-facing status values
ACTIVE = "active"
INACTIVE = "inactive"
PENDING = "pending"
STOPPING = "stopping"
INITIALIZING = "initializing"

STATUSES = (ACTIVE, INITIALIZING, PENDING, STOPPING, INACTIVE)

# Readable names for raw EC2 lifecycle states
READABLE_STATES = {
    "pending": "Starting",
    "running": "Running",
    "stopping": "Stopping",
    "stopped": "Stopped",
    "shutting-down": "Shutting Down",
    "terminated": "Terminated",
}

STATUS_LABELS = {
    ACTIVE: "Running",
    INITIALIZING: "Initializing",
    PENDING: "Starting",
    STOPPING: "Stopping",
    INACTIVE: "Stopped",
}


def readable_state(state):
    return READABLE_STATES.get(state or "unknown", state or "unknown")


def checks_passed(status_checks):
    """True only when both the instance and the system status check report 'ok'."""
    if not status_checks:
        return False
    return status_checks.get("instance_status") == "ok" and status_checks.get("system_status") == "ok"


def derive_status(lifecycle_state, status_checks=None):
    """
    Map an EC2 lifecycle state and its status checks to a UI status.

    Args:
        lifecycle_state (str): EC2 State.Name value
        status_checks (dict): {'instance_status': ..., 'system_status': ...} as returned by
            EC2Manager.get_status_checks(), or None when the checks were unavailable or the
            fetch failed. Only consulted for running instances.

    Returns:
        str: One of active, initializing, pending, stopping, inactive
    """
    if lifecycle_state == "pending":
        return PENDING
    if lifecycle_state == "stopping":
        return STOPPING
    if lifecycle_state == "running":
        # A running instance is never reported active on missing or partial data
        return ACTIVE if checks_passed(status_checks) else INITIALIZING
    return INACTIVE


def cancel_eligibility(lifecycle_state, status_checks=None, checks_failed=False):
    """
    Decide whether an in-progress start can be cancelled.

    Args:
        lifecycle_state (str): EC2 State.Name value
        status_checks (dict): Status checks for a running instance, None if none were returned
        checks_failed (bool): True when the status-check call itself raised

    Returns:
        tuple: (can_cancel, reason)
    """
    if lifecycle_state == "pending":
        return True, "Instance is still in pending state"

    if lifecycle_state == "running":
        if checks_failed:
            return True, "Instance is running but status check failed (allowing cancellation)"
        if not status_checks:
            return True, "Instance is running but status is unknown (assuming still initializing)"
        if not checks_passed(status_checks):
            return True, "Instance is running but still initializing (status checks not passed)"
        return False, "Instance is fully running and ready"

    return False, f"Instance is {readable_state(lifecycle_state).lower()}"


def _iso(value):
    if value is None:
        return None
    if isinstance(value, datetime.datetime):
        return value.isoformat()
    return str(value)


def build_view(instance, status_checks=None, now=None):
    """
    Shape a DescribeInstances entry into the record shown by the dashboard.

    Args:
        instance (dict): One entry of Reservations[].Instances[]
        status_checks (dict): Status checks for the instance, None if unavailable
        now (datetime): Derivation time, defaults to the current UTC time

    Returns:
        dict: Instance view record
    """
    instance_id = instance["InstanceId"]
    state = instance["State"]["Name"]
    instance_type = instance.get("InstanceType")

    tags = {}
    for tag in instance.get("Tags") or []:
        if tag.get("Key") and tag.get("Value"):
            tags[tag["Key"]] = tag["Value"]

    now = now or datetime.datetime.now(datetime.timezone.utc)
    checks = status_checks or {}

    return {
        "id": instance_id,
        "name": tags.get("Name") or f"Instance {instance_id}",
        "description": tags.get("Description") or f"{instance_type or 'Unknown'} instance",
        "status": derive_status(state, status_checks),
        "current_state": state,
        "instance_status": checks.get("instance_status") or "unknown",
        "system_status": checks.get("system_status") or "unknown",
        "instance_type": instance_type,
        "public_ip": instance.get("PublicIpAddress"),
        "private_ip": instance.get("PrivateIpAddress"),
        "launch_time": _iso(instance.get("LaunchTime")),
        "tags": tags,
        "last_updated": now.isoformat(),
    }


def summarize(views):
    """Counts per status, counts per instance type and the five most recently updated instances."""
    counts = {status: 0 for status in STATUSES}
    instance_types = {}
    for view in views:
        counts[view["status"]] = counts.get(view["status"], 0) + 1
        instance_type = view.get("instance_type") or "Unknown"
        instance_types[instance_type] = instance_types.get(instance_type, 0) + 1

    recent = sorted(views, key=lambda view: view["last_updated"], reverse=True)[:5]
    return {
        "total": len(views),
        "counts": counts,
        "instance_types": instance_types,
        "recent": recent,
    }
