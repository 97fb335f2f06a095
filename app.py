import datetime

import pytz
from flask import (
    Blueprint,
    Flask,
    current_app,
    flash,
    jsonify,
    redirect,
    render_template_string,
    request,
    session,
    url_for,
)

import auth
import settings_actions
from auth import login_required
from config import aws_client_kwargs, load_config
from controller import EC2Manager
from instance_status import STATUS_LABELS, readable_state, summarize
from logger import get_logger, operations_log
from store import SettingsStore, StoreError
from validation import EC2_SECRET_LENGTH, VALID_REGIONS

logger = get_logger("app")

bp = Blueprint("main", __name__)


def create_app(config=None, ec2_manager=None, store=None):
    """
    Build the Flask application.

    Args:
        config (dict): Configuration, defaults to load_config()
        ec2_manager (EC2Manager): EC2 gateway, built from config when None
        store (SettingsStore): Settings/credentials store, built from config when None

    Returns:
        Flask: The configured application
    """
    config = config or load_config()

    app = Flask(__name__)
    app.config.update(config)
    app.secret_key = config["SECRET_KEY"]

    client_kwargs = aws_client_kwargs(config)
    if ec2_manager is None:
        ec2_manager = EC2Manager(
            access_key=client_kwargs.get("aws_access_key_id"),
            secret_key=client_kwargs.get("aws_secret_access_key"),
            region=client_kwargs["region_name"]
        )
    if store is None:
        store = SettingsStore(
            config["DYNAMODB_TABLE"],
            region=client_kwargs["region_name"],
            access_key=client_kwargs.get("aws_access_key_id"),
            secret_key=client_kwargs.get("aws_secret_access_key")
        )

    app.extensions["ec2_manager"] = ec2_manager
    app.extensions["settings_store"] = store

    display_tz = pytz.timezone(config.get("DISPLAY_TIMEZONE") or "UTC")

    @app.template_filter("localtime")
    def localtime(value):
        return format_timestamp(value, display_tz)

    app.register_blueprint(bp)
    return app


def format_timestamp(value, tz):
    """Render an ISO-8601 timestamp in the display time zone."""
    if not value:
        return "N/A"
    try:
        moment = datetime.datetime.fromisoformat(value)
    except ValueError:
        return value
    if moment.tzinfo is None:
        moment = pytz.utc.localize(moment)
    return moment.astimezone(tz).strftime("%Y-%m-%d %H:%M:%S %Z")


def _manager():
    return current_app.extensions["ec2_manager"]


def _store():
    return current_app.extensions["settings_store"]


def notify(title, message, category="info"):
    """Flash a title + message pair. 'error' messages stay until dismissed."""
    flash({"title": title, "message": message}, category)


def _settings_or_none():
    try:
        return _store().get_settings()
    except StoreError as e:
        logger.error(f"Could not load settings: {e}")
        return None


def _safe_next(default_endpoint):
    target = request.form.get("next") or request.args.get("next") or ""
    # Only same-site relative paths
    if target.startswith("/") and not target.startswith("//"):
        return target
    return url_for(default_endpoint)


def _render(body, **context):
    settings = _settings_or_none() if session.get("username") else None
    return render_template_string(
        PAGE_HEAD + body + PAGE_FOOT,
        current_user=session.get("username"),
        secret_required=auth.secret_required(settings),
        secret_length=EC2_SECRET_LENGTH,
        refresh_seconds=current_app.config.get("AUTO_REFRESH_SECONDS", 30),
        status_labels=STATUS_LABELS,
        readable_state=readable_state,
        **context
    )


# Session

@bp.route("/login", methods=["GET", "POST"])
def login():
    if session.get("username"):
        return redirect(url_for("main.index"))

    store = _store()
    if request.method == "GET":
        try:
            if store.get_settings() is None:
                notify("Welcome", "Create the administrator account to get started.", "info")
                return redirect(url_for("main.setup"))
        except StoreError as e:
            logger.error(f"Could not check for existing settings: {e}")
        return _render(LOGIN_TEMPLATE, next_url=request.args.get("next", ""))

    result = auth.authenticate(
        store,
        request.form.get("username", "").strip(),
        request.form.get("password", "")
    )
    if not result["success"]:
        notify("Login Failed", result["message"], "error")
        return _render(LOGIN_TEMPLATE, next_url=request.form.get("next", "")), 401

    session.clear()
    session["username"] = result["username"]
    return redirect(_safe_next("main.index"))


@bp.route("/logout")
def logout():
    username = session.get("username")
    session.clear()
    if username:
        logger.info(f"User {username} logged out")
    return redirect(url_for("main.login"))


@bp.route("/setup", methods=["GET", "POST"])
def setup():
    """First-run account creation, available only while no settings record exists."""
    store = _store()
    try:
        existing = store.get_settings()
    except StoreError as e:
        notify("Store Unavailable", str(e), "error")
        return _render(SETUP_TEMPLATE, form={}), 503

    if existing:
        return redirect(url_for("main.login"))

    if request.method == "GET":
        return _render(SETUP_TEMPLATE, form={})

    result = settings_actions.save_settings_action(store, request.form)
    if not result["success"]:
        notify("Validation Error", result["message"], "error")
        return _render(SETUP_TEMPLATE, form=request.form), 400

    notify("Account Created", "You can now sign in.", "success")
    return redirect(url_for("main.login"))


@bp.route("/health")
def health():
    connected = _store().test_connection()
    return jsonify({"status": "ok" if connected else "degraded", "dynamodb": connected}), (200 if connected else 503)


# Instances

@bp.route("/")
@login_required
def index():
    result = _manager().list_instances()
    if not result["success"]:
        notify("Error Loading Instances", result["message"], "error")

    return _render(
        DASHBOARD_TEMPLATE,
        summary=summarize(result["instances"]),
        operations_log=list(operations_log)
    )


@bp.route("/instances")
@login_required
def instances():
    result = _manager().list_instances()
    if not result["success"]:
        notify("Error Loading Instances", result["message"], "error")

    return _render(INSTANCES_TEMPLATE, instances=result["instances"], loaded=result["success"])


@bp.route("/instances/<instance_id>")
@login_required
def instance_detail(instance_id):
    result = _manager().get_instance(instance_id)
    if not result["success"]:
        notify("Instance Not Found" if result.get("not_found") else "Error", result["message"], "error")
        return redirect(url_for("main.instances"))

    return _render(INSTANCE_TEMPLATE, instance=result["instance"])


def _run_instance_operation(instance_id, operation, title):
    gate = auth.check_operation_secret(_store(), request.form.get("ec2_secret", ""))
    if not gate["success"]:
        notify("Invalid Secret", gate["message"], "error")
        return redirect(_safe_next("main.instances"))

    result = operation(instance_id)
    if result["success"]:
        notify(title, result["message"], "success")
    else:
        notify(f"{title} Failed", result["message"], "error")
    return redirect(_safe_next("main.instances"))


@bp.route("/instances/<instance_id>/start", methods=["POST"])
@login_required
def start_instance(instance_id):
    return _run_instance_operation(instance_id, _manager().start, "Instance Starting")


@bp.route("/instances/<instance_id>/stop", methods=["POST"])
@login_required
def stop_instance(instance_id):
    return _run_instance_operation(instance_id, _manager().stop, "Instance Stopping")


@bp.route("/instances/<instance_id>/cancel", methods=["POST"])
@login_required
def cancel_start(instance_id):
    return _run_instance_operation(instance_id, _manager().cancel_start, "Start Canceled")


@bp.route("/api/instances")
@login_required
def api_instances():
    result = _manager().list_instances()
    return jsonify(result), (200 if result["success"] else 502)


@bp.route("/api/ec2-secret/required")
@login_required
def api_secret_required():
    return jsonify(auth.is_ec2_secret_required(_store()))


@bp.route("/clear_logs", methods=["POST"])
@login_required
def clear_logs():
    operations_log.clear()
    notify("Logs Cleared", "Operation logs cleared", "info")
    return redirect(url_for("main.index"))


# Settings and credentials

@bp.route("/settings", methods=["GET", "POST"])
@login_required
def settings():
    store = _store()

    if request.method == "POST":
        result = settings_actions.save_settings_action(store, request.form)
        if result["success"]:
            # Keep the session in step with a renamed account
            session["username"] = result["data"]["username"]
            notify("Settings Saved", result["message"], "success")
        else:
            notify("Validation Error" if result.get("errors") else "Error", result["message"], "error")
        return redirect(url_for("main.settings"))

    credentials_result = settings_actions.list_credentials_action(store)
    settings_result = settings_actions.get_settings_action(store)
    connection_result = settings_actions.test_connection_action(store)

    return _render(
        SETTINGS_TEMPLATE,
        credentials=credentials_result.get("data", []),
        settings=settings_result.get("data"),
        connected=connection_result["success"],
        regions=VALID_REGIONS
    )


@bp.route("/settings/credentials", methods=["POST"])
@login_required
def save_credentials():
    result = settings_actions.save_credentials_action(_store(), request.form)
    if result["success"]:
        notify("Credentials Saved", result["message"], "success")
    else:
        notify("Validation Error" if result.get("errors") else "Error", result["message"], "error")
    return redirect(url_for("main.settings"))


@bp.route("/settings/credentials/<profile_name>/update", methods=["POST"])
@login_required
def update_credentials(profile_name):
    result = settings_actions.update_credentials_action(_store(), profile_name, request.form)
    if result["success"]:
        notify("Credentials Updated", result["message"], "success")
    else:
        notify("Update Failed", result["message"], "error")
    return redirect(url_for("main.settings"))


@bp.route("/settings/credentials/<profile_name>/delete", methods=["POST"])
@login_required
def delete_credentials(profile_name):
    result = settings_actions.delete_credentials_action(_store(), profile_name)
    if result["success"]:
        notify("Credentials Deleted", result["message"], "success")
    else:
        notify("Delete Failed", result["message"], "error")
    return redirect(url_for("main.settings"))


# HTML templates with modern styling
PAGE_HEAD = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>EC2 Manager</title>
    <link href="https://cdn.jsdelivr.net/npm/bootstrap@5.3.0/dist/css/bootstrap.min.css" rel="stylesheet">
    <link rel="stylesheet" href="https://cdnjs.cloudflare.com/ajax/libs/font-awesome/6.0.0/css/all.min.css">
    <style>
        :root {
            --primary: #2c9795;
            --primary-dark: #043b3d;
            --primary-light: #EEF2FF;
            --success: #10B981;
            --info: #0EA5E9;
            --warning: #F59E0B;
            --orange: #F97316;
            --danger: #EF4444;
            --dark: #1E293B;
            --bg: #F8FAFC;
            --border: #E2E8F0;
            --text-secondary: #64748B;
            --shadow: 0 4px 6px -1px rgba(0, 0, 0, 0.1), 0 2px 4px -1px rgba(0, 0, 0, 0.06);
        }

        body {
            background-color: var(--bg);
            font-family: 'Inter', -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            padding-bottom: 50px;
        }

        .navbar {
            background: linear-gradient(135deg, var(--primary), var(--primary-dark));
            box-shadow: var(--shadow);
        }

        .navbar-brand, .navbar .nav-link { color: white !important; }
        .navbar .nav-link.active { font-weight: 600; text-decoration: underline; }

        .card {
            border-radius: 16px;
            box-shadow: var(--shadow);
            margin-bottom: 24px;
            border: 1px solid var(--border);
        }

        .card-header {
            background: linear-gradient(135deg, var(--dark), #334155);
            color: white;
            border-radius: 16px 16px 0 0 !important;
            font-weight: 600;
            padding: 16px 20px;
        }

        .stat-value { font-size: 2rem; font-weight: 700; }

        .status-indicator {
            display: inline-block;
            width: 12px;
            height: 12px;
            border-radius: 50%;
            margin-right: 8px;
        }

        .status-active { background-color: var(--success); }
        .status-initializing { background-color: var(--info); }
        .status-pending { background-color: var(--warning); }
        .status-stopping { background-color: var(--orange); }
        .status-inactive { background-color: var(--danger); }

        .instance-card .card-body { padding: 16px; }
        .instance-name { font-weight: 600; font-size: 1.1rem; color: var(--dark); }
        .instance-id { font-size: 0.75rem; color: var(--text-secondary); }

        .log-container {
            background-color: #0F172A;
            color: #E2E8F0;
            border-radius: 0 0 12px 12px;
            padding: 16px;
            font-family: 'Cascadia Code', 'Fira Code', 'Courier New', monospace;
            max-height: 300px;
            overflow-y: auto;
        }

        .log-entry { margin: 0; padding: 3px 0; border-bottom: 1px solid rgba(255, 255, 255, 0.05); }

        .terminal-header {
            background-color: #1A1A1A;
            color: #E0E0E0;
            padding: 10px 16px;
            font-family: 'Cascadia Code', 'Fira Code', 'Courier New', monospace;
            font-size: 14px;
        }

        .flash-message { border-radius: 12px; box-shadow: var(--shadow); }

        .empty-state { text-align: center; padding: 32px 16px; color: var(--text-secondary); }

        .secret-input { letter-spacing: 0.6em; font-family: monospace; text-align: center; }
    </style>
</head>
<body>
    <nav class="navbar navbar-expand-lg navbar-dark mb-4">
        <div class="container">
            <a class="navbar-brand" href="{{ url_for('main.index') }}">
                <i class="fas fa-cloud me-2"></i> EC2 Manager
            </a>
            {% if current_user %}
            <div class="d-flex align-items-center">
                <a class="nav-link me-3 {% if request.endpoint == 'main.instances' %}active{% endif %}" href="{{ url_for('main.instances') }}">Instances</a>
                <a class="nav-link me-3 {% if request.endpoint == 'main.settings' %}active{% endif %}" href="{{ url_for('main.settings') }}">Settings</a>
                <span class="text-white-50 me-3"><i class="fas fa-user me-1"></i>{{ current_user }}</span>
                <a class="btn btn-sm btn-outline-light" href="{{ url_for('main.logout') }}">Sign out</a>
            </div>
            {% endif %}
        </div>
    </nav>

    <div class="container">
        {% with messages = get_flashed_messages(with_categories=true) %}
            {% for category, note in messages %}
                <div class="alert flash-message alert-dismissible {% if category == 'error' %}alert-danger{% elif category == 'success' %}alert-success auto-dismiss{% else %}alert-info auto-dismiss{% endif %}" role="alert">
                    <strong>{{ note.title }}</strong>
                    <div>{{ note.message }}</div>
                    <button type="button" class="btn-close" data-bs-dismiss="alert" aria-label="Close"></button>
                </div>
            {% endfor %}
        {% endwith %}
"""

PAGE_FOOT = """
    </div>

    {% if current_user %}
    <!-- EC2 Secret Modal -->
    <div class="modal fade" id="secretModal" tabindex="-1" aria-labelledby="secretModalLabel" aria-hidden="true">
        <div class="modal-dialog">
            <div class="modal-content">
                <div class="modal-header">
                    <h5 class="modal-title" id="secretModalLabel">EC2 Secret Required</h5>
                    <button type="button" class="btn-close" data-bs-dismiss="modal" aria-label="Close"></button>
                </div>
                <form id="secretForm" action="" method="post">
                    <div class="modal-body">
                        <p>Enter the {{ secret_length }}-character EC2 secret to <strong id="secretOperation"></strong> <span id="secretInstance"></span>.</p>
                        <input type="password" class="form-control secret-input" name="ec2_secret" maxlength="{{ secret_length }}" minlength="{{ secret_length }}" autocomplete="off" required>
                        <input type="hidden" name="next" value="{{ request.path }}">
                    </div>
                    <div class="modal-footer">
                        <button type="button" class="btn btn-secondary" data-bs-dismiss="modal">Cancel</button>
                        <button type="submit" class="btn btn-primary">Verify &amp; Continue</button>
                    </div>
                </form>
            </div>
        </div>
    </div>
    {% endif %}

    <script src="https://cdn.jsdelivr.net/npm/bootstrap@5.3.0/dist/js/bootstrap.bundle.min.js"></script>
    <script>
        // Informational messages dismiss themselves, errors wait for the user
        setTimeout(function() {
            document.querySelectorAll('.auto-dismiss').forEach(function(el) {
                bootstrap.Alert.getOrCreateInstance(el).close();
            });
        }, 5000);

        function showSecretModal(action, operation, instanceName) {
            document.getElementById('secretForm').action = action;
            document.getElementById('secretOperation').textContent = operation;
            document.getElementById('secretInstance').textContent = instanceName;
            new bootstrap.Modal(document.getElementById('secretModal')).show();
            return false;
        }
    </script>
</body>
</html>
"""

# Renders a start/stop/cancel button; expects `instance`, `endpoint`, `label`, `style`, `icon`
ACTION_BUTTON = """
<form action="{{ url_for(endpoint, instance_id=instance.id) }}" method="post" class="d-inline me-1"
      {% if secret_required %}onsubmit='return showSecretModal(this.action, {{ label|lower|tojson }}, {{ instance.name|tojson }})'{% endif %}>
    <input type="hidden" name="next" value="{{ request.path }}">
    <button class="btn btn-sm {{ style }}"><i class="fas {{ icon }} me-1"></i> {{ label }}</button>
</form>
"""

INSTANCE_ACTIONS = """
{% if instance.current_state == 'stopped' %}
    {% with endpoint='main.start_instance', label='Start', style='btn-success', icon='fa-play' %}""" + ACTION_BUTTON + """{% endwith %}
{% endif %}
{% if instance.current_state == 'running' %}
    {% with endpoint='main.stop_instance', label='Stop', style='btn-danger', icon='fa-stop' %}""" + ACTION_BUTTON + """{% endwith %}
{% endif %}
{% if instance.status in ('pending', 'initializing') %}
    {% with endpoint='main.cancel_start', label='Cancel Start', style='btn-outline-warning', icon='fa-ban' %}""" + ACTION_BUTTON + """{% endwith %}
{% endif %}
"""

LOGIN_TEMPLATE = """
<div class="row justify-content-center">
    <div class="col-md-5">
        <div class="card">
            <div class="card-header"><i class="fas fa-lock me-2"></i> Sign in</div>
            <div class="card-body">
                <form action="{{ url_for('main.login') }}" method="post">
                    <input type="hidden" name="next" value="{{ next_url }}">
                    <div class="mb-3">
                        <label for="username" class="form-label">Username</label>
                        <input type="text" class="form-control" id="username" name="username" required autofocus>
                    </div>
                    <div class="mb-3">
                        <label for="password" class="form-label">Password</label>
                        <input type="password" class="form-control" id="password" name="password" required>
                    </div>
                    <button type="submit" class="btn btn-primary w-100">Sign in</button>
                </form>
            </div>
        </div>
    </div>
</div>
"""

SETUP_TEMPLATE = """
<div class="row justify-content-center">
    <div class="col-md-6">
        <div class="card">
            <div class="card-header"><i class="fas fa-user-shield me-2"></i> Create administrator account</div>
            <div class="card-body">
                <form action="{{ url_for('main.setup') }}" method="post">
                    <div class="mb-3">
                        <label for="username" class="form-label">Username</label>
                        <input type="text" class="form-control" id="username" name="username" value="{{ form.get('username', '') }}" required>
                    </div>
                    <div class="mb-3">
                        <label for="password" class="form-label">Password</label>
                        <input type="password" class="form-control" id="password" name="password" required>
                        <div class="form-text">At least 8 characters with upper and lower case letters, a number and a special character.</div>
                    </div>
                    <div class="mb-3">
                        <label for="ec2_secret_enabled" class="form-label">EC2 secret protection</label>
                        <select class="form-select" id="ec2_secret_enabled" name="ec2_secret_enabled">
                            <option value="false">Disabled</option>
                            <option value="true">Enabled</option>
                        </select>
                    </div>
                    <div class="mb-3">
                        <label for="ec2_secret" class="form-label">EC2 secret ({{ secret_length }} characters)</label>
                        <input type="password" class="form-control secret-input" id="ec2_secret" name="ec2_secret" maxlength="{{ secret_length }}" autocomplete="off">
                    </div>
                    <button type="submit" class="btn btn-primary w-100">Create account</button>
                </form>
            </div>
        </div>
    </div>
</div>
"""

DASHBOARD_TEMPLATE = """
<div class="mb-4">
    <h2>Welcome to EC2 Manager</h2>
    <p class="text-muted">Monitor and manage your AWS EC2 instances from a single dashboard.</p>
</div>

<div class="row">
    <div class="col-md-2 col-6">
        <div class="card"><div class="card-body">
            <div class="text-muted small">Total</div>
            <div class="stat-value">{{ summary.total }}</div>
        </div></div>
    </div>
    {% for status in ['active', 'initializing', 'pending', 'stopping', 'inactive'] %}
    <div class="col-md-2 col-6">
        <div class="card"><div class="card-body">
            <div class="text-muted small"><span class="status-indicator status-{{ status }}"></span>{{ status_labels[status] }}</div>
            <div class="stat-value">{{ summary.counts[status] }}</div>
        </div></div>
    </div>
    {% endfor %}
</div>

<div class="row">
    <div class="col-md-8">
        <div class="card">
            <div class="card-header d-flex justify-content-between align-items-center">
                <span><i class="fas fa-server me-2"></i> Recent Instances</span>
                <a class="btn btn-sm btn-outline-light" href="{{ url_for('main.instances') }}">View all</a>
            </div>
            <div class="card-body">
                {% if summary.recent %}
                <ul class="list-group">
                    {% for instance in summary.recent %}
                    <li class="list-group-item d-flex justify-content-between align-items-center">
                        <div>
                            <span class="status-indicator status-{{ instance.status }}"></span>
                            <a href="{{ url_for('main.instance_detail', instance_id=instance.id) }}">{{ instance.name }}</a>
                            <span class="instance-id ms-2">{{ instance.id }}</span>
                        </div>
                        <small class="text-muted">{{ instance.last_updated|localtime }}</small>
                    </li>
                    {% endfor %}
                </ul>
                {% else %}
                <div class="empty-state">No instances found.</div>
                {% endif %}
            </div>
        </div>
    </div>
    <div class="col-md-4">
        <div class="card">
            <div class="card-header"><i class="fas fa-microchip me-2"></i> Instance Types</div>
            <div class="card-body">
                {% if summary.instance_types %}
                <ul class="list-group">
                    {% for instance_type, count in summary.instance_types|dictsort %}
                    <li class="list-group-item d-flex justify-content-between">
                        <span>{{ instance_type }}</span><span class="badge bg-secondary">{{ count }}</span>
                    </li>
                    {% endfor %}
                </ul>
                {% else %}
                <p class="text-muted">No instance types to show</p>
                {% endif %}
            </div>
        </div>
    </div>
</div>

<div class="card">
    <div class="card-header d-flex justify-content-between align-items-center">
        <span><i class="fas fa-terminal me-2"></i> Operations Log</span>
        <form action="{{ url_for('main.clear_logs') }}" method="post" class="m-0">
            <button type="submit" class="btn btn-sm btn-outline-light">Clear</button>
        </form>
    </div>
    <div class="card-body p-0">
        <div class="terminal-header">ec2manager@console</div>
        <div class="log-container" id="log-container">
            {% for entry in operations_log %}
                <p class="log-entry">$ {{ entry }}</p>
            {% else %}
                <p class="log-entry text-muted">No operations logged yet.</p>
            {% endfor %}
        </div>
    </div>
</div>
"""

INSTANCES_TEMPLATE = """
<div class="d-flex justify-content-between align-items-center mb-3">
    <h2>Instances <span class="badge bg-primary">{{ instances|length }}</span></h2>
    <div class="d-flex align-items-center">
        <div class="form-check form-switch me-3">
            <input type="checkbox" class="form-check-input" id="auto-refresh" checked>
            <label class="form-check-label" for="auto-refresh">Auto refresh in <span id="refresh-countdown">{{ refresh_seconds }}</span>s</label>
        </div>
        <button class="btn btn-sm btn-outline-primary" onclick="window.location.reload()"><i class="fas fa-sync-alt me-1"></i> Refresh now</button>
    </div>
</div>

{% if instances %}
<div class="row">
    {% for instance in instances %}
    <div class="col-md-6 mb-3">
        <div class="card instance-card">
            <div class="card-body">
                <div class="d-flex justify-content-between align-items-start mb-2">
                    <div>
                        <span class="status-indicator status-{{ instance.status }}"></span>
                        <a class="instance-name" href="{{ url_for('main.instance_detail', instance_id=instance.id) }}">{{ instance.name }}</a>
                        <div class="instance-id">{{ instance.id }}</div>
                    </div>
                    <span class="badge bg-secondary">{{ status_labels[instance.status] }}</span>
                </div>
                <p class="text-muted mb-2">{{ instance.description }}</p>
                <p class="small mb-2">
                    State: {{ readable_state(instance.current_state) }}
                    {% if instance.current_state == 'running' %}| Checks: {{ instance.instance_status }} / {{ instance.system_status }}{% endif %}
                    <br>Type: {{ instance.instance_type or 'Unknown' }}
                    {% if instance.public_ip %}| Public IP: {{ instance.public_ip }}{% endif %}
                    <br>Updated: {{ instance.last_updated|localtime }}
                </p>
                <div>""" + INSTANCE_ACTIONS + """</div>
            </div>
        </div>
    </div>
    {% endfor %}
</div>
{% elif loaded %}
<div class="empty-state">
    <i class="fas fa-cloud fa-3x mb-3"></i>
    <p>No EC2 instances found in this region.</p>
</div>
{% endif %}

<script>
    (function() {
        const seconds = {{ refresh_seconds }};
        const checkbox = document.getElementById('auto-refresh');
        const countdown = document.getElementById('refresh-countdown');
        let remaining = seconds;

        checkbox.checked = localStorage.getItem('autoRefresh') !== 'off';
        checkbox.addEventListener('change', function() {
            localStorage.setItem('autoRefresh', this.checked ? 'on' : 'off');
            remaining = seconds;
            countdown.textContent = remaining;
        });

        setInterval(function() {
            if (!checkbox.checked) return;
            remaining -= 1;
            if (remaining <= 0) {
                window.location.reload();
                return;
            }
            countdown.textContent = remaining;
        }, 1000);
    })();
</script>
"""

INSTANCE_TEMPLATE = """
<div class="card">
    <div class="card-header d-flex justify-content-between align-items-center">
        <span><span class="status-indicator status-{{ instance.status }}"></span>{{ instance.name }}</span>
        <span class="badge bg-secondary">{{ status_labels[instance.status] }}</span>
    </div>
    <div class="card-body">
        <p class="text-muted">{{ instance.description }}</p>
        <table class="table table-sm">
            <tr><th>Instance ID</th><td>{{ instance.id }}</td></tr>
            <tr><th>State</th><td>{{ readable_state(instance.current_state) }}</td></tr>
            <tr><th>Instance status check</th><td>{{ instance.instance_status }}</td></tr>
            <tr><th>System status check</th><td>{{ instance.system_status }}</td></tr>
            <tr><th>Instance type</th><td>{{ instance.instance_type or 'Unknown' }}</td></tr>
            <tr><th>Public IP</th><td>{{ instance.public_ip or 'N/A' }}</td></tr>
            <tr><th>Private IP</th><td>{{ instance.private_ip or 'N/A' }}</td></tr>
            <tr><th>Launch time</th><td>{{ instance.launch_time|localtime }}</td></tr>
            <tr><th>Last updated</th><td>{{ instance.last_updated|localtime }}</td></tr>
        </table>
        {% if instance.tags %}
        <h6>Tags</h6>
        <ul>
            {% for key, value in instance.tags|dictsort %}
            <li><strong>{{ key }}</strong>: {{ value }}</li>
            {% endfor %}
        </ul>
        {% endif %}
        <div>""" + INSTANCE_ACTIONS + """</div>
    </div>
</div>
"""

SETTINGS_TEMPLATE = """
<h2>Settings</h2>
<p class="text-muted">Manage AWS credentials and application preferences</p>

<div class="alert {% if connected %}alert-success{% else %}alert-danger{% endif %}">
    {% if connected %}
        <i class="fas fa-check-circle me-2"></i> DynamoDB connection successful
    {% else %}
        <i class="fas fa-times-circle me-2"></i> DynamoDB connection failed. Check the table name and AWS credentials.
    {% endif %}
</div>

<div class="row">
    <div class="col-md-6">
        <div class="card">
            <div class="card-header"><i class="fas fa-user-cog me-2"></i> Application Settings</div>
            <div class="card-body">
                <form action="{{ url_for('main.settings') }}" method="post">
                    {% if settings %}<input type="hidden" name="revision" value="{{ settings.revision }}">{% endif %}
                    <div class="mb-3">
                        <label for="username" class="form-label">Username</label>
                        <input type="text" class="form-control" id="username" name="username" value="{{ settings.username if settings else '' }}" required>
                    </div>
                    <div class="mb-3">
                        <label for="password" class="form-label">{% if settings %}New password (leave blank to keep){% else %}Password{% endif %}</label>
                        <input type="password" class="form-control" id="password" name="password" autocomplete="new-password" {% if not settings %}required{% endif %}>
                    </div>
                    <hr>
                    <div class="mb-3">
                        <label for="ec2_secret_enabled" class="form-label">EC2 secret protection</label>
                        <select class="form-select" id="ec2_secret_enabled" name="ec2_secret_enabled">
                            <option value="false" {% if not (settings and settings.ec2SecretEnabled) %}selected{% endif %}>Disabled</option>
                            <option value="true" {% if settings and settings.ec2SecretEnabled %}selected{% endif %}>Enabled</option>
                        </select>
                        <div class="form-text">When enabled, starting or stopping an instance asks for the secret every time.</div>
                    </div>
                    <div class="mb-3">
                        <label for="ec2_secret" class="form-label">EC2 secret ({{ secret_length }} characters{% if settings and settings.ec2SecretEnabled %}, leave blank to keep{% endif %})</label>
                        <input type="password" class="form-control secret-input" id="ec2_secret" name="ec2_secret" maxlength="{{ secret_length }}" autocomplete="off">
                    </div>
                    {% if settings and settings.ec2SecretEnabled %}
                    <div class="mb-3">
                        <label for="current_ec2_secret" class="form-label">Current EC2 secret (needed to change or disable it)</label>
                        <input type="password" class="form-control secret-input" id="current_ec2_secret" name="current_ec2_secret" maxlength="{{ secret_length }}" autocomplete="off">
                    </div>
                    {% endif %}
                    <button type="submit" class="btn btn-primary w-100">Save settings</button>
                </form>
            </div>
        </div>
    </div>

    <div class="col-md-6">
        <div class="card">
            <div class="card-header"><i class="fas fa-key me-2"></i> Add AWS Credentials</div>
            <div class="card-body">
                <form action="{{ url_for('main.save_credentials') }}" method="post">
                    <div class="mb-3">
                        <label for="profile_name" class="form-label">Profile name</label>
                        <input type="text" class="form-control" id="profile_name" name="profile_name" placeholder="default" maxlength="50">
                    </div>
                    <div class="mb-3">
                        <label for="access_key_id" class="form-label">Access Key ID</label>
                        <input type="text" class="form-control" id="access_key_id" name="access_key_id" maxlength="20" required>
                    </div>
                    <div class="mb-3">
                        <label for="secret_access_key" class="form-label">Secret Access Key</label>
                        <input type="password" class="form-control" id="secret_access_key" name="secret_access_key" required>
                    </div>
                    <div class="mb-3">
                        <label for="region" class="form-label">Region</label>
                        <select class="form-select" id="region" name="region" required>
                            <option value="">Select a region</option>
                            {% for region in regions %}<option value="{{ region }}">{{ region }}</option>{% endfor %}
                        </select>
                    </div>
                    <button type="submit" class="btn btn-outline-primary w-100">Save credentials</button>
                </form>
            </div>
        </div>
    </div>
</div>

<div class="card">
    <div class="card-header"><i class="fas fa-id-card me-2"></i> Saved Credential Profiles <span class="badge bg-primary">{{ credentials|length }}</span></div>
    <div class="card-body">
        {% for profile in credentials %}
        <div class="border rounded p-3 mb-3">
            <div class="d-flex justify-content-between align-items-center">
                <div>
                    <strong>{{ profile.profileName or profile.id }}</strong>
                    <span class="badge {% if profile.isActive %}bg-success{% else %}bg-secondary{% endif %} ms-2">{{ 'Active' if profile.isActive else 'Inactive' }}</span>
                    <div class="small text-muted">{{ profile.accessKeyId[:4] }}****{{ profile.accessKeyId[-4:] }} | {{ profile.region }} | updated {{ profile.updatedAt|localtime }}</div>
                </div>
                <div>
                    <button class="btn btn-sm btn-outline-info" data-bs-toggle="collapse" data-bs-target="#edit-{{ loop.index }}"><i class="fas fa-edit"></i></button>
                    <form action="{{ url_for('main.delete_credentials', profile_name=profile.id) }}" method="post" class="d-inline"
                          onsubmit="return confirm('Delete credentials for profile {{ profile.id|e }}?')">
                        <button class="btn btn-sm btn-outline-danger"><i class="fas fa-trash"></i></button>
                    </form>
                </div>
            </div>
            <div class="collapse mt-3" id="edit-{{ loop.index }}">
                <form action="{{ url_for('main.update_credentials', profile_name=profile.id) }}" method="post">
                    <input type="hidden" name="revision" value="{{ profile.revision }}">
                    <div class="row g-2">
                        <div class="col-md-4"><input type="text" class="form-control form-control-sm" name="access_key_id" placeholder="New Access Key ID" maxlength="20"></div>
                        <div class="col-md-4"><input type="password" class="form-control form-control-sm" name="secret_access_key" placeholder="New Secret Access Key"></div>
                        <div class="col-md-4">
                            <select class="form-select form-select-sm" name="region">
                                <option value="">Keep {{ profile.region }}</option>
                                {% for region in regions %}<option value="{{ region }}">{{ region }}</option>{% endfor %}
                            </select>
                        </div>
                        <div class="col-md-6">
                            <select class="form-select form-select-sm" name="is_active">
                                <option value="true" {% if profile.isActive %}selected{% endif %}>Active</option>
                                <option value="false" {% if not profile.isActive %}selected{% endif %}>Inactive</option>
                            </select>
                        </div>
                        <div class="col-md-6"><button type="submit" class="btn btn-sm btn-primary w-100">Update</button></div>
                    </div>
                </form>
            </div>
        </div>
        {% else %}
        <div class="empty-state">No AWS credentials saved yet.</div>
        {% endfor %}
    </div>
</div>
"""


if __name__ == '__main__':
    config = load_config()
    app = create_app(config)
    app.run(debug=config["DEBUG"], host=config["HOST"], port=config["PORT"])
