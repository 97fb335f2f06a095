import os
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from dotenv import load_dotenv

from instance_status import build_view, cancel_eligibility, readable_state
from logger import get_logger

logger = get_logger("controller")

AWS_ERRORS = (ClientError, BotoCoreError)


def _error_message(error):
    if isinstance(error, ClientError):
        return f"AWS Error: {error.response.get('Error', {}).get('Message', str(error))}"
    return str(error)


class EC2Manager:
    """
    A class to monitor and control EC2 instances: listing, status checks, starting,
    stopping and cancelling an in-progress start.

    Every public operation returns a result dict with at least 'success' and 'message'.
    AWS errors are caught here and never propagate to the caller.
    """

    def __init__(self, access_key=None, secret_key=None, region=None, ec2_client=None):
        """
        Initialize the EC2Manager with credentials and configuration.

        If any parameters are None, it will attempt to load them from environment variables.
        Missing credentials fall back to the default boto3 credential chain.

        Args:
            access_key (str): AWS Access Key ID
            secret_key (str): AWS Secret Access Key
            region (str): AWS region
            ec2_client: Pre-built EC2 client (used instead of creating one)
        """
        if not (access_key and secret_key and region):
            load_dotenv()

        self.access_key = access_key or os.getenv("AWS_ACCESS_KEY_ID")
        self.secret_key = secret_key or os.getenv("AWS_SECRET_ACCESS_KEY")
        self.region = region or os.getenv("AWS_REGION")

        if ec2_client is not None:
            self.ec2_client = ec2_client
            return

        if not self.region:
            raise ValueError("Missing required parameters: region")

        client_kwargs = {"region_name": self.region}
        if self.access_key and self.secret_key:
            client_kwargs["aws_access_key_id"] = self.access_key
            client_kwargs["aws_secret_access_key"] = self.secret_key

        self.ec2_client = boto3.client("ec2", **client_kwargs)

    def get_status_checks(self, instance_id):
        """
        Fetch the instance and system status checks of one instance.

        Returns:
            dict: {'instance_status': str, 'system_status': str}, or None when AWS
                  returned no status for the instance

        Raises:
            ClientError, BotoCoreError: The call failed. Callers decide how to degrade.
        """
        response = self.ec2_client.describe_instance_status(
            InstanceIds=[instance_id],
            IncludeAllInstances=True
        )
        statuses = response.get("InstanceStatuses") or []
        if not statuses:
            return None

        info = statuses[0]
        return {
            "instance_status": (info.get("InstanceStatus") or {}).get("Status", "unknown"),
            "system_status": (info.get("SystemStatus") or {}).get("Status", "unknown"),
        }

    def _safe_status_checks(self, instance_id):
        try:
            return self.get_status_checks(instance_id), False
        except AWS_ERRORS as e:
            logger.warning(f"Could not get status for instance {instance_id}: {e}")
            return None, True

    def _view(self, instance):
        status_checks = None
        if instance["State"]["Name"] == "running":
            status_checks, _ = self._safe_status_checks(instance["InstanceId"])
        return build_view(instance, status_checks)

    def list_instances(self):
        """
        List all EC2 instances with their derived status.

        A failed status check on one instance marks only that instance as initializing.

        Returns:
            dict: {'success': True, 'instances': [view, ...]} or a failure result
        """
        try:
            instances = []
            paginator = self.ec2_client.get_paginator("describe_instances")
            for page in paginator.paginate():
                for reservation in page.get("Reservations", []):
                    for instance in reservation.get("Instances", []):
                        if instance.get("InstanceId") and (instance.get("State") or {}).get("Name"):
                            instances.append(self._view(instance))

            return {
                "success": True,
                "message": f"Retrieved {len(instances)} instances",
                "instances": instances
            }

        except AWS_ERRORS as e:
            logger.exception("Error fetching EC2 instances")
            return {
                "success": False,
                "message": "Failed to fetch EC2 instances",
                "error": _error_message(e),
                "instances": []
            }

    def _describe_one(self, instance_id):
        response = self.ec2_client.describe_instances(InstanceIds=[instance_id])
        for reservation in response.get("Reservations", []):
            for instance in reservation.get("Instances", []):
                if instance.get("InstanceId") and (instance.get("State") or {}).get("Name"):
                    return instance
        return None

    def get_instance(self, instance_id):
        """
        Get one instance by id.

        Returns:
            dict: {'success': True, 'instance': view}, or a failure result with
                  'not_found': True when AWS does not know the instance
        """
        try:
            instance = self._describe_one(instance_id)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "InvalidInstanceID.NotFound":
                return self._not_found(instance_id)
            logger.exception(f"Error fetching instance details for {instance_id}")
            return {
                "success": False,
                "message": "Failed to fetch instance details",
                "error": _error_message(e)
            }
        except BotoCoreError as e:
            logger.exception(f"Error fetching instance details for {instance_id}")
            return {
                "success": False,
                "message": "Failed to fetch instance details",
                "error": _error_message(e)
            }

        if instance is None:
            return self._not_found(instance_id)

        return {
            "success": True,
            "message": "Instance retrieved successfully",
            "instance": self._view(instance)
        }

    @staticmethod
    def _not_found(instance_id):
        return {
            "success": False,
            "not_found": True,
            "message": f"Instance {instance_id} not found"
        }

    def start(self, instance_id):
        """
        Start an EC2 instance without waiting for it to come up.

        Returns:
            dict: Result of the start operation with 'new_state' on success
        """
        logger.info(f"Starting EC2 instance: {instance_id}")
        try:
            response = self.ec2_client.start_instances(InstanceIds=[instance_id])
            starting = response.get("StartingInstances") or []
            if not starting:
                return {
                    "success": False,
                    "message": "No instance found to start",
                    "instance_id": instance_id
                }

            state = (starting[0].get("CurrentState") or {}).get("Name")
            logger.info(f"Instance {instance_id} starting. Current state: {state}")
            return {
                "success": True,
                "message": f"Instance {instance_id} is starting. Current state: {readable_state(state)}",
                "instance_id": instance_id,
                "new_state": state
            }

        except AWS_ERRORS as e:
            logger.exception(f"Error starting EC2 instance {instance_id}")
            return {
                "success": False,
                "message": _error_message(e),
                "instance_id": instance_id
            }

    def stop(self, instance_id):
        """
        Stop an EC2 instance without waiting for it to stop.

        Returns:
            dict: Result of the stop operation with 'new_state' on success
        """
        logger.info(f"Stopping EC2 instance: {instance_id}")
        try:
            response = self.ec2_client.stop_instances(InstanceIds=[instance_id])
            stopping = response.get("StoppingInstances") or []
            if not stopping:
                return {
                    "success": False,
                    "message": "No instance found to stop",
                    "instance_id": instance_id
                }

            state = (stopping[0].get("CurrentState") or {}).get("Name")
            logger.info(f"Instance {instance_id} stopping. Current state: {state}")
            return {
                "success": True,
                "message": f"Instance {instance_id} is stopping. Current state: {readable_state(state)}",
                "instance_id": instance_id,
                "new_state": state
            }

        except AWS_ERRORS as e:
            logger.exception(f"Error stopping EC2 instance {instance_id}")
            return {
                "success": False,
                "message": _error_message(e),
                "instance_id": instance_id
            }

    def cancel_start(self, instance_id):
        """
        Cancel an in-progress start by stopping an instance that is pending or
        still initializing.

        Returns:
            dict: Result of the cancellation with 'new_state' on success
        """
        logger.info(f"Canceling start operation for EC2 instance: {instance_id}")
        try:
            instance = self._describe_one(instance_id)
        except AWS_ERRORS as e:
            logger.exception(f"Error canceling start operation for {instance_id}")
            return {
                "success": False,
                "message": _error_message(e),
                "instance_id": instance_id
            }

        if instance is None:
            return {
                "success": False,
                "message": "Instance not found",
                "instance_id": instance_id
            }

        current_state = instance["State"]["Name"]
        status_checks, checks_failed = None, False
        if current_state == "running":
            status_checks, checks_failed = self._safe_status_checks(instance_id)

        can_cancel, reason = cancel_eligibility(current_state, status_checks, checks_failed)
        if not can_cancel:
            return {
                "success": False,
                "message": f"Cannot cancel start operation: {reason}. Current state: {readable_state(current_state)}",
                "instance_id": instance_id,
                "state": current_state
            }

        result = self.stop(instance_id)
        if not result["success"]:
            return result

        logger.info(f"Start operation canceled for instance {instance_id}. Reason: {reason}. New state: {result['new_state']}")
        return {
            "success": True,
            "message": f"Start operation canceled successfully. {reason}. Current state: {readable_state(result['new_state'])}",
            "instance_id": instance_id,
            "new_state": result["new_state"]
        }
