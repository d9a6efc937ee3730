import math
from collections import namedtuple

from models import OPTION_LETTERS

ScoreResult = namedtuple("ScoreResult", ["score", "per_question_correctness"])


def percentage(score, total):
    """round(score / total * 100) with halves rounded up; 0 for an empty test."""
    if not total:
        return 0
    return int(math.floor(score / total * 100 + 0.5))


def answer_letter(answer):
    """Accept "b", "B", 1 or "1" for the second option; None for anything else."""
    if answer is None or isinstance(answer, bool):
        return None
    if isinstance(answer, int):
        return OPTION_LETTERS[answer] if 0 <= answer < len(OPTION_LETTERS) else None
    text = str(answer).strip()
    if text.isdigit():
        return answer_letter(int(text))
    text = text.upper()
    return text if text in OPTION_LETTERS else None


def _field(question, name):
    if isinstance(question, dict):
        return question.get(name)
    return getattr(question, name, None)


def score_answers(questions, answers):
    """
    Score a finished attempt.

    `answers` maps question id (int or str) to the chosen option; missing
    entries count as wrong.
    """
    answers = {str(k): v for k, v in (answers or {}).items()}
    correctness = []
    for question in questions:
        chosen = answer_letter(answers.get(str(_field(question, "id"))))
        correctness.append(chosen is not None and chosen == _field(question, "correct_option"))
    return ScoreResult(sum(correctness), correctness)
