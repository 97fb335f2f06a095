import datetime
from decimal import Decimal

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

from logger import get_logger

logger = get_logger("store")

SETTINGS_PREFIX = "SETTINGS#"
CREDENTIALS_PREFIX = "CREDENTIALS#"
DEFAULT_ID = "default"

# Attributes a caller may never overwrite through an update
PROTECTED_FIELDS = {"PK", "SK", "id", "createdAt", "updatedAt", "revision"}


class StoreError(Exception):
    """A DynamoDB call failed."""


class RecordNotFound(StoreError):
    pass


class RevisionConflict(StoreError):
    """The record changed since the caller read it."""


def _now():
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def _key(prefix, record_id):
    return {"PK": f"{prefix}{record_id}", "SK": f"{prefix}{record_id}"}


def _clean(item):
    """Drop the table keys and turn DynamoDB numbers back into ints."""
    record = {}
    for name, value in item.items():
        if name in ("PK", "SK"):
            continue
        if isinstance(value, Decimal):
            value = int(value)
        record[name] = value
    return record


class SettingsStore:
    """
    Application settings and AWS credential profiles kept in one DynamoDB table.

    Items are keyed by PK == SK == "<KIND>#<id>":
        SETTINGS#default          the singleton application settings
        CREDENTIALS#<profile>     one item per saved credential profile
    """

    def __init__(self, table_name, region=None, access_key=None, secret_key=None, dynamodb=None):
        """
        Args:
            table_name (str): DynamoDB table name
            region (str): AWS region
            access_key (str): AWS Access Key ID, None for the default credential chain
            secret_key (str): AWS Secret Access Key
            dynamodb: Pre-built boto3 DynamoDB service resource
        """
        if dynamodb is None:
            resource_kwargs = {"region_name": region}
            if access_key and secret_key:
                resource_kwargs["aws_access_key_id"] = access_key
                resource_kwargs["aws_secret_access_key"] = secret_key
            dynamodb = boto3.resource("dynamodb", **resource_kwargs)

        self.dynamodb = dynamodb
        self.table_name = table_name
        self.table = dynamodb.Table(table_name)

    def create_table(self):
        """Create the table if it does not exist yet. Returns True when it was created."""
        try:
            table = self.dynamodb.create_table(
                TableName=self.table_name,
                KeySchema=[
                    {"AttributeName": "PK", "KeyType": "HASH"},
                    {"AttributeName": "SK", "KeyType": "RANGE"},
                ],
                AttributeDefinitions=[
                    {"AttributeName": "PK", "AttributeType": "S"},
                    {"AttributeName": "SK", "AttributeType": "S"},
                ],
                BillingMode="PAY_PER_REQUEST",
            )
            table.wait_until_exists()
            self.table = table
            logger.info(f"Created DynamoDB table {self.table_name}")
            return True
        except ClientError as e:
            if e.response["Error"]["Code"] == "ResourceInUseException":
                return False
            raise StoreError(f"Failed to create table {self.table_name}") from e

    def test_connection(self):
        """Attempt a one-item scan. Returns True if the table answered."""
        try:
            self.table.scan(Limit=1)
            return True
        except (ClientError, BotoCoreError) as e:
            logger.error(f"DynamoDB connection test failed: {e}")
            return False

    # Generic record operations

    def _put(self, prefix, record_id, fields, what):
        now = _now()
        item = {"id": record_id, **fields, "createdAt": now, "updatedAt": now, "revision": 1}
        try:
            self.table.put_item(Item={**_key(prefix, record_id), **item})
        except (ClientError, BotoCoreError) as e:
            logger.exception(f"Error saving {what}")
            raise StoreError(f"Failed to save {what}") from e
        return item

    def _get(self, prefix, record_id, what):
        try:
            response = self.table.get_item(Key=_key(prefix, record_id))
        except (ClientError, BotoCoreError) as e:
            logger.exception(f"Error getting {what}")
            raise StoreError(f"Failed to get {what}") from e

        item = response.get("Item")
        return _clean(item) if item else None

    def _update(self, prefix, record_id, updates, what, expected_revision=None):
        names = {"#updatedAt": "updatedAt", "#revision": "revision"}
        values = {":updatedAt": _now(), ":one": 1}
        assignments = []

        # boto3 names condition placeholders #n0 and :v0, so ours use other prefixes
        for index, (field, value) in enumerate(sorted(updates.items())):
            if field in PROTECTED_FIELDS:
                continue
            names[f"#attr{index}"] = field
            values[f":val{index}"] = value
            assignments.append(f"#attr{index} = :val{index}")
        assignments.append("#updatedAt = :updatedAt")

        condition = Attr("PK").exists()
        if expected_revision is not None:
            condition = condition & Attr("revision").eq(int(expected_revision))

        try:
            response = self.table.update_item(
                Key=_key(prefix, record_id),
                UpdateExpression=f"SET {', '.join(assignments)} ADD #revision :one",
                ConditionExpression=condition,
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] != "ConditionalCheckFailedException":
                logger.exception(f"Error updating {what}")
                raise StoreError(f"Failed to update {what}") from e
            if self._get(prefix, record_id, what) is None:
                raise RecordNotFound(f"No {what} found for {record_id}") from e
            raise RevisionConflict(f"The {what} were modified by another request. Reload and try again.") from e
        except BotoCoreError as e:
            logger.exception(f"Error updating {what}")
            raise StoreError(f"Failed to update {what}") from e

        return _clean(response["Attributes"])

    # AWS credential profiles

    def save_credentials(self, access_key_id, secret_access_key, region, profile_name=None, is_active=True):
        profile = profile_name or DEFAULT_ID
        return self._put(CREDENTIALS_PREFIX, profile, {
            "profileName": profile,
            "accessKeyId": access_key_id,
            "secretAccessKey": secret_access_key,
            "region": region,
            "isActive": is_active,
        }, "AWS credentials")

    def get_credentials(self, profile=DEFAULT_ID):
        return self._get(CREDENTIALS_PREFIX, profile, "AWS credentials")

    def list_credentials(self):
        scan_kwargs = {"FilterExpression": Attr("PK").begins_with(CREDENTIALS_PREFIX)}
        items = []
        try:
            while True:
                response = self.table.scan(**scan_kwargs)
                items.extend(response.get("Items", []))
                if "LastEvaluatedKey" not in response:
                    break
                scan_kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]
        except (ClientError, BotoCoreError) as e:
            logger.exception("Error getting all AWS credentials")
            raise StoreError("Failed to get AWS credentials") from e

        return sorted((_clean(item) for item in items), key=lambda record: record["id"])

    def update_credentials(self, profile, updates, expected_revision=None):
        return self._update(CREDENTIALS_PREFIX, profile, updates, "AWS credentials", expected_revision)

    def delete_credentials(self, profile):
        """Delete a profile. Deleting a profile that does not exist is not an error."""
        try:
            self.table.delete_item(Key=_key(CREDENTIALS_PREFIX, profile))
        except (ClientError, BotoCoreError) as e:
            logger.exception("Error deleting AWS credentials")
            raise StoreError("Failed to delete AWS credentials") from e

    # Application settings

    def save_settings(self, username, password_hash, ec2_secret, ec2_secret_enabled, settings_id=DEFAULT_ID):
        return self._put(SETTINGS_PREFIX, settings_id, {
            "username": username,
            "password": password_hash,
            "ec2Secret": ec2_secret,
            "ec2SecretEnabled": ec2_secret_enabled,
        }, "settings")

    def get_settings(self, settings_id=DEFAULT_ID):
        return self._get(SETTINGS_PREFIX, settings_id, "settings")

    def update_settings(self, updates, settings_id=DEFAULT_ID, expected_revision=None):
        return self._update(SETTINGS_PREFIX, settings_id, updates, "settings", expected_revision)
