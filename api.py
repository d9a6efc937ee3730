import logging

import bcrypt
from flask import Blueprint, Flask, current_app, jsonify, request
from flask_cors import CORS
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError

import gemini_helper
import mailer
import results
from config import Config, STORE_MODE
from errors import (
    AptiLabError,
    AuthError,
    DuplicateUserError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from models import User, db
from question_bank import count_by_topic, ensure_question_bank, reset_usage_on_mode_switch
from selector import get_source, select_questions

logger = logging.getLogger(__name__)

bp = Blueprint("api", __name__, url_prefix="/api")

DEFAULT_TOPIC = "Maths"
DEFAULT_COUNT = 10
MAX_COUNT = 20
MAX_TUTOR_COUNT = 15

# ========== UTIL FUNCTIONS ==========


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _required(data, *fields):
    values = []
    for field in fields:
        value = data.get(field)
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"{field} must be a string")
        value = (value or "").strip()
        if not value:
            raise ValidationError(f"{field} is required")
        values.append(value)
    return values


def _clamp_count(raw, default, upper):
    try:
        count = int(raw)
    except (TypeError, ValueError):
        count = 0
    if count <= 0:
        count = default
    return max(1, min(count, upper))


# ========== ROUTES ==========


@bp.route("/register", methods=["POST"])
def register():
    name, email, password = _required(_json_body(), "name", "email", "password")
    if db.session.scalar(select(User).where(User.email == email)):
        raise DuplicateUserError("User already exists")

    hashed = bcrypt.hashpw(password.encode(), bcrypt.gensalt())
    user = User(name=name, email=email, password=hashed.decode())
    db.session.add(user)
    db.session.commit()
    return jsonify({"success": True, "message": "Registration successful", "userId": user.id})


@bp.route("/login", methods=["POST"])
def login():
    email, password = _required(_json_body(), "email", "password")
    user = db.session.scalar(select(User).where(User.email == email))
    if not user or not bcrypt.checkpw(password.encode(), user.password.encode()):
        raise AuthError("Invalid credentials")
    return jsonify({"success": True, "user": user.to_dict()})


@bp.route("/questions", methods=["GET"])
def questions():
    topic = (request.args.get("topic") or DEFAULT_TOPIC).strip() or DEFAULT_TOPIC
    count = _clamp_count(request.args.get("count"), DEFAULT_COUNT, MAX_COUNT)
    user_email = (request.args.get("user_email") or "anonymous").strip() or "anonymous"

    source = get_source(current_app.config["QUESTION_SOURCE"])
    selection = select_questions(user_email, topic, count, source=source)
    if not selection.questions:
        raise NotFoundError("Insufficient questions", f"No questions available for topic {topic}")
    return jsonify(selection.to_dict())


@bp.route("/submit-test", methods=["POST"])
def submit_test():
    result = results.save_result(_json_body())

    # Mail delivery never fails the submission
    email_sent = False
    try:
        mailer.send_report(result, intro=mailer.SUBMISSION_INTRO)
        email_sent = True
    except AptiLabError as e:
        logger.warning(f"Result email not sent to {result.user_email}: {e.message} {e.detail or ''}")

    return jsonify(
        {
            "success": True,
            "message": "Results saved successfully",
            "resultId": result.id,
            "score": result.score,
            "total": result.total_questions,
            "percentage": int(result.percentage),
            "emailSent": email_sent,
        }
    )


@bp.route("/user-results/<path:email>", methods=["GET"])
def user_results(email):
    return jsonify({"results": [r.to_dict() for r in results.recent_results(email)]})


@bp.route("/user-summary/<path:email>", methods=["GET"])
def user_summary(email):
    rows = results.recent_results(email, limit=None)
    averages = results.topic_averages(rows)
    return jsonify(
        {"averages": averages, "bestTopic": results.best_topic(averages), "count": len(rows)}
    )


@bp.route("/admin/results", methods=["GET"])
def admin_results():
    return jsonify({"results": [r.to_dict() for r in results.all_results()]})


@bp.route("/send-report", methods=["POST"])
def send_report():
    (email,) = _required(_json_body(), "email")
    mailer.smtp_settings()

    latest = results.latest_result(email)
    if latest is None:
        raise NotFoundError(
            "No test results found for this email",
            "Complete a test first, then try sending the report again.",
        )
    mailer.send_report(latest)
    return jsonify({"success": True, "message": "Report email sent."})


@bp.route("/chatbot", methods=["POST"])
def chatbot():
    data = _json_body()
    message = data.get("message")
    message = message.strip() if isinstance(message, str) else ""
    if not message:
        raise ValidationError("Message is required")

    topic = data.get("topic") if isinstance(data.get("topic"), str) else ""
    level = data.get("level") if isinstance(data.get("level"), str) else ""
    count = _clamp_count(data.get("questionCount"), 5, MAX_TUTOR_COUNT)

    model, reply = gemini_helper.tutor_reply(
        message, topic.strip() or "Aptitude", level.strip() or "intermediate", count
    )
    return jsonify({"success": True, "model": model, "reply": reply})


@bp.route("/health", methods=["GET"])
def health():
    try:
        db.session.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Database health check failed: {e}")
        database = "error"
    return jsonify(
        {
            "status": "running",
            "database": database,
            "gemini": "configured" if current_app.config.get("GEMINI_API_KEY") else "missing",
            "questionSource": current_app.config["QUESTION_SOURCE"],
        }
    )


@bp.route("/ai-health", methods=["GET"])
def ai_health():
    if not current_app.config.get("GEMINI_API_KEY"):
        return (
            jsonify(
                {"status": "running", "gemini": "missing", "error": "GEMINI_API_KEY is not configured"}
            ),
            400,
        )

    model, reply, tried = gemini_helper.health_check()
    if model is None:
        return (
            jsonify(
                {
                    "status": "running",
                    "gemini": "error",
                    "error": "All candidate Gemini models failed",
                    "tried": tried,
                }
            ),
            502,
        )
    return jsonify({"status": "running", "gemini": "ok", "model": model, "reply": reply or "OK"})


@bp.errorhandler(AptiLabError)
def handle_aptilab_error(e):
    if e.status_code >= 500:
        logger.error(f"{e.message}: {e.detail or ''}")
    return jsonify(e.to_dict()), e.status_code


@bp.errorhandler(SQLAlchemyError)
def handle_storage_error(e):
    db.session.rollback()
    logger.exception("Database error")
    err = StorageError("Database error")
    return jsonify(err.to_dict()), err.status_code


# ========== APP ==========


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)
    app.config.setdefault("SEED_QUESTION_BANK", True)

    CORS(app)
    db.init_app(app)
    app.register_blueprint(bp)

    # Fails fast on an unknown QUESTION_SOURCE
    get_source(app.config["QUESTION_SOURCE"])

    with app.app_context():
        db.create_all()
        reset_usage_on_mode_switch(app.config["QUESTION_SOURCE"])
        if app.config["QUESTION_SOURCE"] == STORE_MODE and app.config["SEED_QUESTION_BANK"]:
            ensure_question_bank()
            logger.info(f"Question bank ready: {count_by_topic()}")
    return app


# ========== RUN APP ==========

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = create_app()
    app.run(port=app.config["PORT"], debug=True)
