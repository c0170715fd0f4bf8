# app.py
import logging

from flask import Blueprint, Flask, current_app, jsonify, redirect, render_template, request, session, url_for
from flask_login import current_user, login_required
from sqlalchemy import text

# Local modules
import actions
import cli
import places
from aggregator import compute_chart_series, compute_impact_summary, fallback_report
from auth import auth_bp
from config import Config
from errors import InvalidField, PersistenceError, VerificationError, WasteTrackError
from extensions import db, login_manager
from identity import LocalAccountProvider
from verification import InFlightGuard, VisionClient, decode_image

logger = logging.getLogger("wastetrack")

main_bp = Blueprint("main", __name__)

DASHBOARD_TITLE = "Swachh Bharat Waste Management Report"
DASHBOARD_RANGE = "Last 6 Months"
LOAD_ERROR = "Failed to load report data. Please try again later."


# ---------------- SQLite schema repair ----------------
def _table_exists(conn, name: str) -> bool:
    row = conn.execute(text(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=:n"
    ), {"n": name}).fetchone()
    return row is not None

def _cols(conn, name: str) -> set[str]:
    rows = conn.execute(text(f"PRAGMA table_info({name})")).fetchall()
    return {r[1] for r in rows}  # r[1] = column name

def ensure_sqlite_schema(app: Flask) -> list[str]:
    """
    Make an existing SQLite database compatible with the models without losing data.
    - Create missing tables.
    - Add any missing columns on existing tables (as nullable columns).
    Returns the "table.column" names that were added.
    """
    added = []
    with app.app_context():
        db.create_all()
        if db.engine.dialect.name != "sqlite":
            return added
        with db.engine.begin() as conn:
            for table in db.metadata.sorted_tables:
                if not _table_exists(conn, table.name):
                    continue
                have = _cols(conn, table.name)
                for col in table.columns:
                    if col.name in have:
                        continue
                    col_type = col.type.compile(dialect=db.engine.dialect)
                    conn.execute(text(f"ALTER TABLE {table.name} ADD COLUMN {col.name} {col_type}"))
                    added.append(f"{table.name}.{col.name}")
    for name in added:
        logger.info("added missing column %s", name)
    return added


# ---------------- Serialization ----------------
def _day(dt) -> str | None:
    return dt.date().isoformat() if dt else None

def report_json(r) -> dict:
    return {
        "id": r.id,
        "location": r.location,
        "wasteType": r.waste_type,
        "amount": r.amount,
        "status": r.status,
        "createdAt": _day(r.created_at),
    }

def task_json(t) -> dict:
    return {
        "id": t.id,
        "location": t.location,
        "type": t.waste_type,
        "amount": t.amount,
        "status": t.status,
        "createdAt": _day(t.created_at),
    }

def notification_json(n) -> dict:
    return {
        "id": n.id,
        "message": n.message,
        "type": n.type,
        "createdAt": n.created_at.isoformat() if n.created_at else None,
    }


# ---------------- Request helpers ----------------
MAX_LIMIT = 100

def _limit(default: int) -> int:
    return max(1, min(request.args.get("limit", default, type=int), MAX_LIMIT))

def _text(data, key: str, fallback=None) -> str:
    """Stripped string field. Missing or empty values use ``fallback``; other JSON types are rejected."""
    value = data.get(key)
    if value is None or value == "":
        value = fallback
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidField(f"Field '{key}' must be a string")
    return value.strip()


def get_vision_client() -> VisionClient:
    client = current_app.extensions.get("vision_client")
    if client is None:
        client = VisionClient(
            api_key=current_app.config.get("GEMINI_API_KEY"),
            model=current_app.config.get("GEMINI_MODEL", "gemini-1.5-flash"),
        )
        current_app.extensions["vision_client"] = client
    return client


# ---------------- Pages ----------------
@main_bp.route("/", endpoint="index")
def home():
    return render_template("home.html")

@main_bp.route("/report")
@login_required
def report_page():
    return render_template("report.html", maps_enabled=bool(current_app.config.get("GOOGLE_MAPS_API_KEY")))

@main_bp.route("/dashboard")
def dashboard():
    return render_template("dashboard.html", title=DASHBOARD_TITLE, date_range=DASHBOARD_RANGE)


# ---------------- Health ----------------
@main_bp.route("/health")
def health():
    try:
        db.session.execute(text("SELECT 1"))
        database = "ok"
    except Exception as e:
        logger.error("health check database error: %s", e)
        database = "error"
    return jsonify({
        "status": "ok" if database == "ok" else "degraded",
        "database": database,
        "vision_configured": bool(current_app.extensions.get("vision_client")
                                  or current_app.config.get("GEMINI_API_KEY")),
        "places_configured": bool(current_app.config.get("GOOGLE_MAPS_API_KEY")),
    })


# ---------------- Verification ----------------
@main_bp.route("/api/verify", methods=["POST"])
@login_required
def api_verify():
    if "file" in request.files:
        payload = request.files["file"].read()
    else:
        data = request.get_json(silent=True) or {}
        payload = data.get("image_data")
    if not payload:
        return jsonify({"ok": False, "error": "No image data provided."}), 400

    session.pop("verification", None)
    guard = current_app.extensions["verification_guard"]
    with guard.hold(current_user.id):
        image = decode_image(payload)
        result = get_vision_client().verify(image)

    session["verification"] = result.to_dict()
    return jsonify({"ok": True, "status": "success", "result": result.to_dict()})


# ---------------- Reports ----------------
@main_bp.route("/api/reports", methods=["GET"])
def api_reports():
    limit = _limit(10)
    reports = actions.get_recent_reports(limit)
    return jsonify({"ok": True, "reports": [report_json(r) for r in reports]})

@main_bp.route("/api/reports", methods=["POST"])
@login_required
def api_create_report():
    verification = session.get("verification")
    if not verification:
        return jsonify({"ok": False, "error": "Please verify the waste before submitting."}), 400

    data = request.get_json(silent=True) or request.form
    location = _text(data, "location")
    waste_type = _text(data, "type", verification.get("wasteType"))
    amount = _text(data, "amount", verification.get("quantity"))
    if not location or not waste_type or not amount:
        return jsonify({"ok": False, "error": "Missing fields"}), 400

    report = actions.create_report(
        current_user.id,
        location,
        waste_type,
        amount,
        image_url=_text(data, "image_data") or None,
        verification_result=verification,
        points=current_app.config.get("REPORT_REWARD_POINTS", actions.REPORT_REWARD_POINTS),
    )
    session.pop("verification", None)
    return jsonify({
        "ok": True,
        "report": report_json(report),
        "balance": actions.get_user_balance(current_user.id),
    }), 201


# ---------------- Collection tasks ----------------
@main_bp.route("/api/tasks", methods=["GET"])
def api_tasks():
    limit = _limit(20)
    tasks = actions.get_waste_collection_tasks(limit)
    return jsonify({"ok": True, "tasks": [task_json(t) for t in tasks]})

@main_bp.route("/api/tasks", methods=["POST"])
@login_required
def api_create_task():
    data = request.get_json(silent=True) or request.form
    amount = _text(data, "amount")
    if not amount:
        return jsonify({"ok": False, "error": "Missing amount"}), 400
    task = actions.create_collection_task(
        _text(data, "location") or None, _text(data, "type") or None, amount,
        collector_id=current_user.id,
    )
    return jsonify({"ok": True, "task": task_json(task)}), 201


# ---------------- Impact dashboard ----------------
@main_bp.route("/api/impact", methods=["GET"])
def api_impact():
    cfg = current_app.config
    try:
        reports = actions.get_recent_reports(cfg.get("DASHBOARD_REPORT_LIMIT", 100))
        rewards = actions.get_all_rewards()
        tasks = actions.get_waste_collection_tasks(cfg.get("DASHBOARD_TASK_LIMIT", 100))
    except PersistenceError as e:
        logger.error("Error fetching impact data: %s", e)
        summary, charts = fallback_report()
        return jsonify({
            "ok": False,
            "error": LOAD_ERROR,
            "retry": True,
            "summary": summary.to_dict(),
            "charts": charts.to_dict(),
        }), 503

    summary = compute_impact_summary(reports, rewards, tasks)
    charts = compute_chart_series(reports, rewards, tasks, summary)
    return jsonify({"ok": True, "summary": summary.to_dict(), "charts": charts.to_dict()})


# ---------------- Balance & notifications ----------------
@main_bp.route("/api/balance", methods=["GET"])
@login_required
def api_balance():
    return jsonify({"ok": True, "balance": actions.get_user_balance(current_user.id)})

@main_bp.route("/api/notifications", methods=["GET"])
@login_required
def api_notifications():
    items = actions.get_unread_notifications(current_user.id)
    return jsonify({
        "ok": True,
        "notifications": [notification_json(n) for n in items],
        "poll_seconds": current_app.config.get("NOTIFICATION_POLL_SECONDS", 30),
    })

@main_bp.route("/api/notifications/<int:notification_id>/read", methods=["POST"])
@login_required
def api_mark_read(notification_id: int):
    if not actions.mark_notification_as_read(notification_id, user_id=current_user.id):
        return jsonify({"ok": False, "error": "Notification not found"}), 404
    return jsonify({"ok": True})


# ---------------- Places ----------------
@main_bp.route("/api/places", methods=["GET"])
def api_places():
    cfg = current_app.config
    if not cfg.get("GOOGLE_MAPS_API_KEY"):
        return jsonify({"ok": False, "error": "Place search is not configured"}), 503
    suggestions = places.autocomplete(
        request.args.get("q", ""),
        cfg["GOOGLE_MAPS_API_KEY"],
        timeout=cfg.get("PLACES_TIMEOUT", 10),
        session=current_app.extensions.get("places_session"),
    )
    return jsonify({"ok": True, "suggestions": suggestions})


# ---------------- Errors ----------------
def handle_app_error(e: WasteTrackError):
    if isinstance(e, (VerificationError, InvalidField)):
        logger.warning("%s: %s", type(e).__name__, e.message)
    else:
        logger.error("%s: %s", type(e).__name__, e.message)
    return jsonify({"ok": False, "error": e.message}), e.status_code

def handle_unauthorized():
    if request.path.startswith("/api/"):
        return jsonify({"ok": False, "error": "Not authenticated"}), 401
    return redirect(url_for("auth.login"))


# ---------------- App factory ----------------
def create_app(overrides: dict | None = None, vision_client=None, identity_provider=None,
               places_session=None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)
    logging.basicConfig(level=app.config.get("LOG_LEVEL", "INFO"))

    db.init_app(app)
    login_manager.init_app(app)
    login_manager.login_view = "auth.login"  # type: ignore[assignment]
    login_manager.unauthorized_handler(handle_unauthorized)

    app.extensions["identity_provider"] = identity_provider or LocalAccountProvider
    app.extensions["verification_guard"] = InFlightGuard()
    if vision_client is not None:
        app.extensions["vision_client"] = vision_client
    if places_session is not None:
        app.extensions["places_session"] = places_session

    app.register_blueprint(auth_bp)  # /login, /signup, /api/logout
    app.register_blueprint(main_bp)
    app.register_error_handler(WasteTrackError, handle_app_error)

    cli.register(app)

    with app.app_context():
        db.create_all()
    return app


# ---------------- Main ----------------
if __name__ == "__main__":
    application = create_app()
    ensure_sqlite_schema(application)   # repair/align existing DB
    application.run(debug=True)
