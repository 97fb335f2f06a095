import os
from dotenv import load_dotenv

DEFAULT_TABLE_NAME = "ec2-manager"
DEFAULT_REGION = "us-east-1"
DEFAULT_TIMEZONE = "America/New_York"
DEFAULT_REFRESH_SECONDS = 30


def _as_bool(value, default=False):
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _as_int(value, default):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def load_config(**overrides):
    """
    Build the application configuration from the environment.

    Values are read from a .env file (if present) and the process environment.
    Keyword arguments override anything loaded.

    Returns:
        dict: Configuration keys used by create_app()
    """
    load_dotenv()

    config = {
        "AWS_REGION": os.getenv("AWS_REGION", DEFAULT_REGION),
        "AWS_ACCESS_KEY_ID": os.getenv("AWS_ACCESS_KEY_ID"),
        "AWS_SECRET_ACCESS_KEY": os.getenv("AWS_SECRET_ACCESS_KEY"),
        "DYNAMODB_TABLE": os.getenv("DYNAMODB_TABLE", DEFAULT_TABLE_NAME),
        "SECRET_KEY": os.getenv("SECRET_KEY") or os.urandom(24),
        "DISPLAY_TIMEZONE": os.getenv("DISPLAY_TIMEZONE", DEFAULT_TIMEZONE),
        "AUTO_REFRESH_SECONDS": _as_int(os.getenv("AUTO_REFRESH_SECONDS"), DEFAULT_REFRESH_SECONDS),
        "HOST": os.getenv("HOST", "0.0.0.0"),
        "PORT": _as_int(os.getenv("PORT"), 5000),
        "DEBUG": _as_bool(os.getenv("DEBUG")),
    }
    config.update(overrides)
    return config


def aws_client_kwargs(config):
    """Keyword arguments for boto3 clients; empty credentials fall back to the default chain."""
    kwargs = {"region_name": config["AWS_REGION"]}
    if config.get("AWS_ACCESS_KEY_ID") and config.get("AWS_SECRET_ACCESS_KEY"):
        kwargs["aws_access_key_id"] = config["AWS_ACCESS_KEY_ID"]
        kwargs["aws_secret_access_key"] = config["AWS_SECRET_ACCESS_KEY"]
    return kwargs
