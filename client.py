"""
Test-taking client for the AptiLab API.

A TestSession lives for exactly one attempt: it holds the questions, the
countdown and the chosen answers, and is thrown away after submission.
AptiLabClient talks to the server and degrades to local data whenever the
server cannot be reached.
"""
import logging
import time
from urllib.parse import quote

import requests

from config import API_URL
from question_bank import CURATED_QUESTIONS, placeholder_question
from scoring import answer_letter, percentage, score_answers

logger = logging.getLogger(__name__)

TEST_DURATION_MINUTES = 2
TOTAL_QUESTIONS = 10
OPTIONS_PER_QUESTION = 4


def offline_questions(topic, count=TOTAL_QUESTIONS):
    """Fixed question set used when the server is unavailable."""
    items = list(CURATED_QUESTIONS.get(topic, []))[:count]
    while len(items) < count:
        items.append(placeholder_question(topic, len(items) + 1))
    return [dict(item, id=i) for i, item in enumerate(items, start=1)]


def is_valid_question(question):
    return (
        isinstance(question, dict)
        and question.get("id") is not None
        and bool(question.get("question"))
        and isinstance(question.get("options"), list)
        and len(question["options"]) == OPTIONS_PER_QUESTION
    )


class SessionError(Exception):
    pass


class TestSession:
    __test__ = False  # not a pytest class

    def __init__(self, topic, questions, duration_seconds=TEST_DURATION_MINUTES * 60, clock=time.monotonic):
        if not all(is_valid_question(q) for q in questions):
            raise SessionError("Each question must have an id, a question and 4 options")
        self.topic = topic
        self.questions = list(questions)
        self.duration_seconds = duration_seconds
        self.answers = {}
        self.started_at = None
        self.finished_at = None
        self._clock = clock

    @property
    def total_questions(self):
        return len(self.questions)

    @property
    def is_active(self):
        return self.started_at is not None and self.finished_at is None

    def start(self):
        if self.started_at is not None:
            raise SessionError("Test already started")
        self.started_at = self._clock()

    def elapsed_seconds(self):
        if self.started_at is None:
            return 0
        end = self.finished_at if self.finished_at is not None else self._clock()
        return max(0, int(end - self.started_at))

    def remaining_seconds(self):
        return max(0, self.duration_seconds - self.elapsed_seconds())

    def is_expired(self):
        return self.started_at is not None and self.remaining_seconds() == 0

    def answer(self, question_id, option):
        if not self.is_active:
            raise SessionError("Test is not in progress")
        if self.is_expired():
            raise SessionError("Time is up")
        if str(question_id) not in {str(q["id"]) for q in self.questions}:
            raise SessionError(f"Unknown question {question_id}")
        letter = answer_letter(option)
        if letter is None:
            raise SessionError(f"Invalid option {option!r}")
        self.answers[str(question_id)] = letter

    def progress(self):
        return len(self.answers), self.total_questions

    def unanswered(self):
        return [q["id"] for q in self.questions if str(q["id"]) not in self.answers]

    def finish(self):
        if self.started_at is None:
            raise SessionError("Test was never started")
        if self.finished_at is None:
            self.finished_at = self._clock()

    def score(self):
        return score_answers(self.questions, self.answers).score

    def time_spent(self):
        return self.elapsed_seconds()

    def build_submission(self, user_email, user_name):
        return {
            "user_email": user_email,
            "user_name": user_name,
            "score": self.score(),
            "total_questions": self.total_questions,
            "topic": self.topic,
            "time_spent": self.time_spent(),
            "answers": dict(self.answers),
        }


class AptiLabClient:
    def __init__(self, base_url=API_URL, session=None, timeout=15):
        self.base_url = base_url.rstrip("/")
        self.http = session or requests.Session()
        self.timeout = timeout

    def _url(self, path):
        return f"{self.base_url}/api/{path.lstrip('/')}"

    def _get(self, path, **params):
        response = self.http.get(self._url(path), params=params or None, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def _post(self, path, payload):
        response = self.http.post(self._url(path), json=payload, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def register(self, name, email, password):
        return self._post("register", {"name": name, "email": email, "password": password})

    def login(self, email, password):
        return self._post("login", {"email": email, "password": password})["user"]

    def fetch_questions(self, topic, count=TOTAL_QUESTIONS, user_email="anonymous"):
        try:
            data = self._get("questions", topic=topic, count=count, user_email=user_email)
            questions = data.get("questions")
            if not isinstance(questions, list) or not questions:
                raise ValueError("No questions returned from API")
            return questions
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Could not fetch questions, using offline set: {e}")
            return offline_questions(topic, count)

    def start_test(self, topic, user_email="anonymous", count=TOTAL_QUESTIONS, **kwargs):
        session = TestSession(topic, self.fetch_questions(topic, count, user_email), **kwargs)
        session.start()
        return session

    def submit(self, session, user_email, user_name):
        """Finish the session and submit it; returns the server result or a local one."""
        session.finish()
        payload = session.build_submission(user_email, user_name)
        try:
            return self._post("submit-test", payload)
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Could not submit results, keeping local score: {e}")
            return {
                "success": False,
                "offline": True,
                "score": payload["score"],
                "total": payload["total_questions"],
                "percentage": percentage(payload["score"], payload["total_questions"]),
            }

    def user_results(self, email):
        try:
            return self._get("user-results/" + quote(email, safe=""))["results"]
        except (requests.RequestException, ValueError, KeyError) as e:
            logger.warning(f"Could not load previous results: {e}")
            return []

    def send_report(self, email):
        return self._post("send-report", {"email": email})
