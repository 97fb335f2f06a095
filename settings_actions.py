import auth
from logger import get_logger
from store import DEFAULT_ID, RecordNotFound, RevisionConflict, StoreError
from validation import validate_credentials, validate_settings

logger = get_logger("settings")


def _flag(value):
    return str(value).strip().lower() in ("true", "on", "1", "yes")


def _revision(form):
    value = (form.get("revision") or "").strip()
    return int(value) if value.isdigit() else None


def _invalid(errors):
    return {
        "success": False,
        "message": f"Validation failed: {', '.join(errors)}",
        "errors": errors
    }


def _store_failure(e, fallback):
    result = {"success": False, "message": str(e) or fallback}
    if isinstance(e, RecordNotFound):
        result["not_found"] = True
    elif isinstance(e, RevisionConflict):
        result["conflict"] = True
    return result


# AWS credential profiles

def save_credentials_action(store, form):
    """
    Save a credential profile. An existing profile with the same name is replaced.

    Args:
        store (SettingsStore): Record store
        form (Mapping): access_key_id, secret_access_key, region, profile_name

    Returns:
        dict: Result with the saved record under 'data'
    """
    access_key_id = (form.get("access_key_id") or "").strip()
    secret_access_key = (form.get("secret_access_key") or "").strip()
    region = (form.get("region") or "").strip()
    profile_name = (form.get("profile_name") or "").strip() or DEFAULT_ID

    errors = validate_credentials(access_key_id, secret_access_key, region, profile_name)
    if errors:
        return _invalid(errors)

    try:
        credentials = store.save_credentials(access_key_id, secret_access_key, region, profile_name, True)
    except StoreError as e:
        return _store_failure(e, "Failed to save AWS credentials")

    logger.info(f"AWS credentials saved for profile {profile_name}")
    return {
        "success": True,
        "message": f"AWS credentials saved successfully for profile: {profile_name}",
        "data": credentials
    }


def get_credentials_action(store, profile_name=DEFAULT_ID):
    try:
        credentials = store.get_credentials(profile_name)
    except StoreError as e:
        return _store_failure(e, "Failed to get AWS credentials")

    if not credentials:
        return {"success": False, "not_found": True, "message": f"No credentials found for profile: {profile_name}"}

    return {"success": True, "message": "Credentials retrieved successfully", "data": credentials}


def list_credentials_action(store):
    try:
        credentials = store.list_credentials()
    except StoreError as e:
        return _store_failure(e, "Failed to get AWS credentials")

    return {
        "success": True,
        "message": f"Retrieved {len(credentials)} credential profiles",
        "data": credentials
    }


def update_credentials_action(store, profile_name, form):
    """
    Update the supplied fields of a credential profile. Omitted fields keep their values.
    """
    if not profile_name:
        return {"success": False, "message": "Credential ID is required"}

    access_key_id = (form.get("access_key_id") or "").strip()
    secret_access_key = (form.get("secret_access_key") or "").strip()
    region = (form.get("region") or "").strip()

    errors = validate_credentials(access_key_id, secret_access_key, region, partial=True)
    if errors:
        return _invalid(errors)

    updates = {}
    if access_key_id:
        updates["accessKeyId"] = access_key_id
    if secret_access_key:
        updates["secretAccessKey"] = secret_access_key
    if region:
        updates["region"] = region
    if "is_active" in form:
        updates["isActive"] = _flag(form.get("is_active"))

    try:
        credentials = store.update_credentials(profile_name, updates, expected_revision=_revision(form))
    except StoreError as e:
        return _store_failure(e, "Failed to update AWS credentials")

    logger.info(f"AWS credentials updated for profile {profile_name}")
    return {
        "success": True,
        "message": f"AWS credentials updated successfully for profile: {profile_name}",
        "data": credentials
    }


def delete_credentials_action(store, profile_name):
    if not profile_name:
        return {"success": False, "message": "Credential ID is required"}

    try:
        store.delete_credentials(profile_name)
    except StoreError as e:
        return _store_failure(e, "Failed to delete AWS credentials")

    logger.info(f"AWS credentials deleted for profile {profile_name}")
    return {"success": True, "message": f"AWS credentials deleted successfully for profile: {profile_name}"}


# Application settings

def get_settings_action(store):
    try:
        settings = store.get_settings()
    except StoreError as e:
        return _store_failure(e, "Failed to get settings")

    if not settings:
        return {"success": False, "not_found": True, "message": "No settings found"}

    return {"success": True, "message": "Settings retrieved successfully", "data": settings}


def save_settings_action(store, form):
    """
    Save application settings. The first save creates the record; later saves
    only change the submitted fields.

    Args:
        form (Mapping): username, password, ec2_secret, ec2_secret_enabled and,
            when changing an enabled secret, current_ec2_secret
    """
    try:
        existing = store.get_settings()
    except StoreError as e:
        return _store_failure(e, "Failed to save settings")

    if existing:
        return update_settings_action(store, form, existing=existing)

    username = (form.get("username") or "").strip()
    password = form.get("password") or ""
    ec2_secret_enabled = _flag(form.get("ec2_secret_enabled"))
    ec2_secret = form.get("ec2_secret") or ""

    errors = validate_settings(username, password, ec2_secret, ec2_secret_enabled, creating=True)
    if errors:
        return _invalid(errors)

    try:
        settings = store.save_settings(
            username,
            auth.hash_password(password),
            ec2_secret if ec2_secret_enabled else "",
            ec2_secret_enabled
        )
    except StoreError as e:
        return _store_failure(e, "Failed to save settings")

    logger.info("Application settings created")
    return {"success": True, "message": "Application settings saved successfully", "data": settings}


def update_settings_action(store, form, existing=None):
    """
    Apply a partial settings update.

    Only keys present in the form are changed. The password is rehashed only when a
    new one is given. A blank secret while protection stays enabled keeps the stored
    secret. Changing or disabling an enabled EC2 secret needs the current one.
    """
    if existing is None:
        try:
            existing = store.get_settings()
        except StoreError as e:
            return _store_failure(e, "Failed to update settings")
        if not existing:
            return {"success": False, "not_found": True, "message": "No settings found"}

    username = form.get("username")
    if username is not None:
        username = username.strip()
    password = form.get("password") or ""
    secret_flag_given = "ec2_secret_enabled" in form
    ec2_secret_enabled = _flag(form.get("ec2_secret_enabled")) if secret_flag_given else False
    ec2_secret = form.get("ec2_secret") or ""

    stored_enabled = bool(existing.get("ec2SecretEnabled"))
    stored_secret = existing.get("ec2Secret") or ""
    # Enabled with a blank secret field leaves a stored secret as it is
    keep_secret = ec2_secret_enabled and not ec2_secret and stored_enabled and bool(stored_secret)
    if keep_secret:
        secret_flag_given = False

    errors = validate_settings(username, password, ec2_secret, ec2_secret_enabled and not keep_secret)

    updates = {}
    if username is not None:
        updates["username"] = username
    if password:
        updates["password"] = None  # hashed below, once validation passed

    if secret_flag_given:
        changing = stored_enabled and (not ec2_secret_enabled or ec2_secret != stored_secret)
        if changing and form.get("current_ec2_secret") != stored_secret:
            errors.append("Current secret is incorrect")
        updates["ec2SecretEnabled"] = ec2_secret_enabled
        updates["ec2Secret"] = ec2_secret if ec2_secret_enabled else ""

    if errors:
        return _invalid(errors)

    if password:
        updates["password"] = auth.hash_password(password)

    try:
        settings = store.update_settings(updates, settings_id=existing.get("id", DEFAULT_ID),
                                         expected_revision=_revision(form))
    except StoreError as e:
        return _store_failure(e, "Failed to update settings")

    logger.info(f"Application settings updated: {', '.join(sorted(updates)) or 'no fields'}")
    return {"success": True, "message": "Application settings updated successfully", "data": settings}


def test_connection_action(store):
    if store.test_connection():
        return {"success": True, "message": "DynamoDB connection successful"}
    return {"success": False, "message": "DynamoDB connection failed"}
