"""
Question selection with per-user, per-topic non-repetition.

Both question sources record what they serve in the usage ledger
(``question_usage``). A (user, topic) ledger is wiped in full once fewer
unused questions remain than a request asks for.
"""
import logging
import random

import sqlalchemy as sa
from sqlalchemy import select

import gemini_helper
from config import GENERATIVE_MODE, STORE_MODE
from models import Question, QuestionUsage, db

logger = logging.getLogger(__name__)


# ---------------- Usage ledger


def used_question_ids(user_email, topic):
    stmt = select(QuestionUsage.question_id).where(
        QuestionUsage.user_email == user_email, QuestionUsage.topic == topic
    )
    return set(db.session.scalars(stmt).all())


def reset_usage(user_email, topic):
    deleted = (
        db.session.query(QuestionUsage)
        .filter(QuestionUsage.user_email == user_email, QuestionUsage.topic == topic)
        .delete(synchronize_session=False)
    )
    db.session.commit()
    logger.info(f"Question pool exhausted for {user_email}/{topic}; cleared {deleted} usage records")
    return deleted


def _insert_ignore(table):
    dialect = db.engine.dialect.name
    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert

        return insert(table).on_conflict_do_nothing()
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert

        return insert(table).on_conflict_do_nothing()
    return sa.insert(table).prefix_with("IGNORE")


def record_usage(user_email, topic, question_ids):
    """Mark questions as served; rows that already exist are left alone."""
    if not question_ids:
        return
    rows = [
        {"user_email": user_email, "topic": topic, "question_id": qid} for qid in question_ids
    ]
    db.session.execute(_insert_ignore(QuestionUsage.__table__), rows)
    db.session.commit()


# ---------------- Sources


class QuestionSource:
    """Produces the questions served for one request. Subclasses set `mode`."""

    mode = None

    def select(self, user_email, topic, count):
        """Returns a Selection for (user_email, topic)."""
        raise NotImplementedError


class Selection:
    def __init__(self, questions, model=None, reset=False):
        self.questions = questions
        self.model = model
        self.reset = reset

    def to_dict(self):
        body = {"questions": [q.to_dict() for q in self.questions]}
        if self.model:
            body["model"] = self.model
        return body


class StoreBackedSource(QuestionSource):
    mode = STORE_MODE

    def __init__(self, rng=None):
        self.rng = rng or random.Random()

    def _pick_unused(self, user_email, topic, count):
        stmt = select(Question.id).where(Question.topic == topic, Question.source == "seed")
        used = used_question_ids(user_email, topic)
        unused = [qid for qid in db.session.scalars(stmt).all() if qid not in used]
        return self.rng.sample(unused, min(count, len(unused)))

    def select(self, user_email, topic, count):
        ids = self._pick_unused(user_email, topic, count)
        reset = False
        if len(ids) < count:
            reset_usage(user_email, topic)
            reset = True
            ids = self._pick_unused(user_email, topic, count)

        if not ids:
            return Selection([], reset=reset)

        by_id = {q.id: q for q in db.session.scalars(select(Question).where(Question.id.in_(ids)))}
        questions = [by_id[qid] for qid in ids if qid in by_id]
        record_usage(user_email, topic, [q.id for q in questions])
        return Selection(questions, reset=reset)


class GenerativeSource(QuestionSource):
    """Asks the generation backend for new questions, then stores and records them."""

    mode = GENERATIVE_MODE

    def __init__(self, generate=None):
        self.generate = generate or gemini_helper.generate_questions

    def select(self, user_email, topic, count):
        model, items = self.generate(topic, count)
        questions = [Question.from_item(topic, item, source="generated") for item in items]
        db.session.add_all(questions)
        db.session.commit()
        record_usage(user_email, topic, [q.id for q in questions])
        logger.info(f"Generated {len(questions)} {topic} questions for {user_email} with {model}")
        return Selection(questions, model=model)


SOURCES = {
    STORE_MODE: StoreBackedSource,
    GENERATIVE_MODE: GenerativeSource,
}


def get_source(mode):
    try:
        return SOURCES[mode]()
    except KeyError:
        raise ValueError(f"Unknown question source: {mode!r}")


def select_questions(user_email, topic, count, source=None):
    source = source or StoreBackedSource()
    return source.select(user_email, topic, count)
