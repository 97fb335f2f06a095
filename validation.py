"""
Validation helpers for settings and credential forms.

Each validator returns a list of human-readable error messages. An empty list
means the input is valid. Callers combine the lists so that every problem is
reported at once.
"""

import re

EC2_SECRET_LENGTH = 6
PASSWORD_MIN_LENGTH = 8
SPECIAL_CHARACTERS = r'[!@#$%^&*(),.?":{}|<>]'

VALID_REGIONS = [
    "us-east-1", "us-east-2", "us-west-1", "us-west-2",
    "af-south-1", "ap-east-1", "ap-south-1", "ap-northeast-1",
    "ap-northeast-2", "ap-northeast-3", "ap-southeast-1", "ap-southeast-2",
    "ca-central-1", "eu-central-1", "eu-west-1", "eu-west-2",
    "eu-west-3", "eu-north-1", "eu-south-1", "me-south-1",
    "sa-east-1",
]


def validate_username(username):
    errors = []
    username = username or ""

    if not username.strip():
        errors.append("Username is required")
        return errors

    if len(username) < 3:
        errors.append("Username must be at least 3 characters long")
    if len(username) > 50:
        errors.append("Username must be less than 50 characters")
    if not re.match(r"^[a-zA-Z0-9_-]+$", username):
        errors.append("Username can only contain letters, numbers, underscores, and hyphens")
    if re.match(r"^[0-9_-]", username):
        errors.append("Username must start with a letter")

    return errors


def validate_password(password, min_length=PASSWORD_MIN_LENGTH):
    errors = []

    if not password:
        errors.append("Password is required")
        return errors

    if len(password) < min_length:
        errors.append(f"Password must be at least {min_length} characters long")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        errors.append("Password must contain at least one number")
    if not re.search(SPECIAL_CHARACTERS, password):
        errors.append("Password must contain at least one special character")

    return errors


def validate_ec2_secret(secret):
    if not secret:
        return ["EC2 secret is required"]
    if len(secret) != EC2_SECRET_LENGTH:
        return [f"EC2 secret must be exactly {EC2_SECRET_LENGTH} characters long"]
    return []


def validate_settings(username=None, password=None, ec2_secret=None, ec2_secret_enabled=False,
                      creating=False):
    """
    Validate a settings submission.

    Args:
        username (str): New username, None when not being changed
        password (str): New plaintext password, None or empty when not being changed
        ec2_secret (str): Submitted EC2 secret
        ec2_secret_enabled (bool): Whether the secret requirement is being turned on
        creating (bool): True for the first save, which requires username and password

    Returns:
        list: Error messages
    """
    errors = []

    if creating or username is not None:
        errors.extend(validate_username(username))

    if creating or password:
        errors.extend(validate_password(password))

    if ec2_secret_enabled:
        errors.extend(validate_ec2_secret(ec2_secret))

    return errors


def validate_credentials(access_key_id=None, secret_access_key=None, region=None, profile_name=None,
                         partial=False):
    """
    Validate an AWS credential profile submission.

    Args:
        partial (bool): Update mode; only fields that were supplied are checked

    Returns:
        list: Error messages
    """
    errors = []

    if not partial or access_key_id:
        if not (access_key_id or "").strip():
            errors.append("AWS Access Key ID is required")
        elif not access_key_id.startswith("AKIA"):
            errors.append("Access Key ID should start with AKIA")

    if not partial or secret_access_key:
        if not (secret_access_key or "").strip():
            errors.append("AWS Secret Access Key is required")
        elif len(secret_access_key) < 20:
            errors.append("Secret Access Key should be at least 20 characters")

    if not partial or region:
        if not (region or "").strip():
            errors.append("AWS Region is required")
        elif region not in VALID_REGIONS:
            errors.append("Invalid AWS Region")

    if profile_name and len(profile_name) > 50:
        errors.append("Profile name must be less than 50 characters")

    return errors
