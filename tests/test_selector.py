import random

import pytest
from sqlalchemy import select

from errors import GenerationError
from models import Question, QuestionUsage, db
from question_bank import QUESTIONS_PER_TOPIC, reset_usage_on_mode_switch, seed_topic
from selector import (
    GenerativeSource,
    StoreBackedSource,
    get_source,
    record_usage,
    select_questions,
    used_question_ids,
)

USER = "asha@example.com"


@pytest.fixture
def source():
    return StoreBackedSource(rng=random.Random(7))


def ids(selection):
    return [q.id for q in selection.questions]


def test_selection_returns_distinct_unused_questions(app, source):
    seed_topic("Maths")
    record_usage(USER, "Maths", [1, 2, 3])

    selection = select_questions(USER, "Maths", 10, source=source)

    assert len(ids(selection)) == 10
    assert len(set(ids(selection))) == 10
    assert not set(ids(selection)) & {1, 2, 3}
    assert all(q.topic == "Maths" for q in selection.questions)
    assert selection.reset is False


def test_selected_questions_are_recorded_before_returning(app, source):
    seed_topic("Maths")
    selection = select_questions(USER, "Maths", 5, source=source)
    assert used_question_ids(USER, "Maths") == set(ids(selection))


def test_forty_questions_cycle_then_reset(app, source):
    seed_topic("Maths")
    assert QUESTIONS_PER_TOPIC == 40

    served = []
    for _ in range(4):
        selection = select_questions(USER, "Maths", 10, source=source)
        assert selection.reset is False
        served.extend(ids(selection))

    assert len(served) == 40
    assert len(set(served)) == 40

    fifth = select_questions(USER, "Maths", 10, source=source)
    assert fifth.reset is True
    assert len(set(ids(fifth))) == 10
    # the ledger now holds only the fifth draw
    assert used_question_ids(USER, "Maths") == set(ids(fifth))


def test_reset_is_scoped_to_user_and_topic(app, source):
    seed_topic("Maths")
    seed_topic("Logic")
    record_usage("other@example.com", "Maths", [1, 2])
    logic_ids = db.session.scalars(select(Question.id).where(Question.topic == "Logic")).all()
    record_usage(USER, "Logic", logic_ids[:3])

    maths_ids = db.session.scalars(select(Question.id).where(Question.topic == "Maths")).all()
    record_usage(USER, "Maths", maths_ids[:35])
    select_questions(USER, "Maths", 10, source=source)

    assert used_question_ids("other@example.com", "Maths") == {1, 2}
    assert used_question_ids(USER, "Logic") == set(logic_ids[:3])


def test_small_pool_returns_what_exists(app, source):
    seed_topic("Security", size=4)
    first = select_questions(USER, "Security", 10, source=source)
    second = select_questions(USER, "Security", 10, source=source)
    assert len(ids(first)) == 4
    assert sorted(ids(first)) == sorted(ids(second))


def test_empty_topic_returns_no_questions(app, source):
    selection = select_questions(USER, "Astrology", 10, source=source)
    assert selection.questions == []
    assert selection.to_dict() == {"questions": []}


def test_record_usage_ignores_duplicates(app):
    seed_topic("Maths", size=3)
    record_usage(USER, "Maths", [1, 2])
    record_usage(USER, "Maths", [2, 3])
    assert db.session.query(QuestionUsage).count() == 3


def test_deleting_question_cascades_to_usage(app):
    seed_topic("Maths", size=3)
    record_usage(USER, "Maths", [1, 2, 3])

    db.session.delete(db.session.get(Question, 2))
    db.session.commit()

    assert used_question_ids(USER, "Maths") == {1, 3}


def test_generative_source_stores_and_records(app):
    items = [
        {"question": f"Generated {i}?", "options": ["w", "x", "y", "z"], "correct_option": "B"}
        for i in range(3)
    ]
    source = GenerativeSource(generate=lambda topic, count: ("gemini-test", items[:count]))

    selection = source.select(USER, "Cloud", 3)

    assert selection.model == "gemini-test"
    assert [q.question for q in selection.questions] == ["Generated 0?", "Generated 1?", "Generated 2?"]
    assert all(q.source == "generated" for q in selection.questions)
    assert used_question_ids(USER, "Cloud") == set(ids(selection))
    assert selection.to_dict()["model"] == "gemini-test"


def test_generative_source_failure_records_nothing(app):
    def failing(topic, count):
        raise GenerationError("Failed to generate AI questions", "boom")

    with pytest.raises(GenerationError):
        GenerativeSource(generate=failing).select(USER, "Cloud", 3)
    assert db.session.query(QuestionUsage).count() == 0
    assert db.session.query(Question).count() == 0


def test_mode_switch_wipes_ledger(app):
    seed_topic("Maths", size=5)
    record_usage(USER, "Maths", [1, 2])

    assert reset_usage_on_mode_switch("store") is False
    assert db.session.query(QuestionUsage).count() == 2

    assert reset_usage_on_mode_switch("generative") is True
    assert db.session.query(QuestionUsage).count() == 0


def test_unknown_source_is_rejected():
    with pytest.raises(ValueError):
        get_source("random")


def generated_items(n):
    return [
        {"question": f"Generated {i}?", "options": ["w", "x", "y", "z"], "correct_option": "C"}
        for i in range(n)
    ]


def test_store_pool_ignores_generated_questions(app, source):
    GenerativeSource(generate=lambda topic, count: ("gemini-test", generated_items(count))).select(
        USER, "Cloud", 20
    )

    assert seed_topic("Cloud") == QUESTIONS_PER_TOPIC
    seeded = db.session.query(Question).filter_by(topic="Cloud", source="seed").count()
    assert seeded == QUESTIONS_PER_TOPIC

    assert reset_usage_on_mode_switch("store") is True
    served = []
    for _ in range(4):
        selection = select_questions(USER, "Cloud", 10, source=source)
        assert selection.reset is False
        served.extend(selection.questions)
    assert len({q.id for q in served}) == QUESTIONS_PER_TOPIC
    assert all(q.source == "seed" for q in served)


def test_store_restart_after_generative_run_keeps_ledger(app, source):
    GenerativeSource(generate=lambda topic, count: ("gemini-test", generated_items(count))).select(
        USER, "Cloud", 5
    )

    # first store startup
    assert reset_usage_on_mode_switch("store") is True
    seed_topic("Cloud")
    selection = select_questions(USER, "Cloud", 10, source=source)

    # second store startup
    assert reset_usage_on_mode_switch("store") is False
    assert seed_topic("Cloud") == 0
    assert used_question_ids(USER, "Cloud") == set(ids(selection))
