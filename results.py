"""Result store: saving attempts and reading them back for dashboards and reports."""
import logging
import math

from sqlalchemy import select

from errors import ValidationError
from models import TestResult, db
from scoring import percentage

logger = logging.getLogger(__name__)

RECENT_LIMIT = 10


def _as_int(data, field, required=True, default=None):
    value = data.get(field)
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} is required")
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")


def _as_text(data, field):
    value = data.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value.strip() or None


def save_result(data):
    email = _as_text(data, "user_email")
    if not email:
        raise ValidationError("user_email is required")
    score = _as_int(data, "score")
    total = _as_int(data, "total_questions")
    if total <= 0:
        raise ValidationError("total_questions must be greater than zero")
    if score < 0 or score > total:
        raise ValidationError("score must be between 0 and total_questions")

    result = TestResult(
        user_email=email,
        user_name=_as_text(data, "user_name"),
        score=score,
        total_questions=total,
        percentage=percentage(score, total),
        topic=_as_text(data, "topic") or "General",
        time_spent=_as_int(data, "time_spent", required=False, default=0),
    )
    db.session.add(result)
    db.session.commit()
    logger.info(f"Test result saved: {email} scored {score}/{total}")
    return result


def _newest_first(stmt):
    return stmt.order_by(TestResult.created_at.desc(), TestResult.id.desc())


def recent_results(email, limit=RECENT_LIMIT):
    stmt = _newest_first(select(TestResult).where(TestResult.user_email == email)).limit(limit)
    return db.session.scalars(stmt).all()


def latest_result(email):
    results = recent_results(email, limit=1)
    return results[0] if results else None


def all_results():
    return db.session.scalars(_newest_first(select(TestResult))).all()


def topic_averages(results):
    totals = {}
    counts = {}
    for row in results:
        value = row.percentage if isinstance(row, TestResult) else row.get("percentage")
        if value is None:
            continue
        topic = (row.topic if isinstance(row, TestResult) else row.get("topic")) or "General"
        totals[topic] = totals.get(topic, 0) + float(value)
        counts[topic] = counts.get(topic, 0) + 1
    return {topic: int(math.floor(totals[topic] / counts[topic] + 0.5)) for topic in totals}


def best_topic(averages):
    if not averages:
        return None
    return max(averages.items(), key=lambda item: item[1])[0]
