"""
Login gate and EC2 operation secret gate.

The login gate checks a username/password pair against the singleton settings
record. The EC2 secret gate is independent of the session: it is checked right
before every start/stop/cancel and the verified secret is never remembered.
"""

from functools import wraps

import bcrypt
from flask import redirect, request, session, url_for

from logger import get_logger
from store import StoreError
from validation import EC2_SECRET_LENGTH

logger = get_logger("auth")

INVALID_CREDENTIALS = "Invalid username or password"


def hash_password(password):
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password, password_hash):
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def authenticate(store, username, password):
    """
    Check a login attempt.

    Every failure produces the same message so the caller cannot tell which
    field was wrong.

    Returns:
        dict: {'success': True, 'username': ...} or {'success': False, 'message': ...}
    """
    failure = {"success": False, "message": INVALID_CREDENTIALS}

    if not username or not password:
        return failure

    try:
        settings = store.get_settings()
    except StoreError as e:
        logger.error(f"Auth error: {e}")
        return failure

    if not settings:
        logger.info("No settings found - account needs to be configured first")
        return failure

    if settings.get("username") != username:
        logger.info("Login rejected: username does not match")
        return failure

    if not verify_password(password, settings.get("password")):
        logger.info("Login rejected: password is invalid")
        return failure

    logger.info(f"User {username} logged in")
    return {"success": True, "username": settings["username"]}


def login_required(f):
    """Decorator for routes requiring an authenticated session."""

    @wraps(f)
    def decorated(*args, **kwargs):
        if not session.get("username"):
            return redirect(url_for("main.login", next=request.path))
        return f(*args, **kwargs)

    return decorated


def secret_required(settings):
    """The EC2 secret is required only when enabled and a full-length secret is stored."""
    if not settings:
        return False
    return bool(settings.get("ec2SecretEnabled")) and len(settings.get("ec2Secret") or "") == EC2_SECRET_LENGTH


def is_ec2_secret_required(store):
    """
    Returns:
        dict: {'success': bool, 'required': bool, 'message': str}
    """
    try:
        settings = store.get_settings()
    except StoreError as e:
        logger.error(f"Error checking EC2 secret requirement: {e}")
        return {"success": False, "required": False, "message": str(e)}

    if not settings:
        return {"success": True, "required": False, "message": "No settings found, EC2 secret not required"}

    required = secret_required(settings)
    return {
        "success": True,
        "required": required,
        "message": "EC2 secret is required" if required else "EC2 secret is not required"
    }


def verify_ec2_secret(store, secret):
    """
    Compare a submitted secret with the stored one.

    Returns:
        dict: {'success': bool, 'message': str}
    """
    try:
        settings = store.get_settings()
    except StoreError as e:
        logger.error(f"Error verifying EC2 secret: {e}")
        return {"success": False, "message": str(e)}

    if not settings:
        return {"success": False, "message": "Application settings not found"}

    if not settings.get("ec2SecretEnabled"):
        return {"success": False, "message": "EC2 secret protection is not enabled"}

    if settings.get("ec2Secret") != secret:
        return {"success": False, "message": "Invalid EC2 secret"}

    return {"success": True, "message": "EC2 secret verified successfully"}


def check_operation_secret(store, secret):
    """
    Gate a single start/stop/cancel action.

    Returns:
        dict: {'success': True} when the action may proceed, otherwise a failure result
    """
    requirement = is_ec2_secret_required(store)
    if not requirement["success"]:
        return {"success": False, "message": "Failed to check EC2 secret requirements. Please try again."}
    if not requirement["required"]:
        return {"success": True, "message": "EC2 secret not required"}
    if not secret:
        return {"success": False, "message": "EC2 secret is required for this operation"}
    return verify_ec2_secret(store, secret)
