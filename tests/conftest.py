import pytest
import requests

from api import create_app
from models import db

TEST_CONFIG = {
    "TESTING": True,
    "SQLALCHEMY_DATABASE_URI": "sqlite://",
    "QUESTION_SOURCE": "store",
    "SEED_QUESTION_BANK": False,
    "GEMINI_API_KEY": None,
    "GEMINI_MODEL": None,
    "SMTP_HOST": None,
    "SMTP_USER": None,
    "SMTP_PASS": None,
    "SMTP_FROM": None,
}


def make_app(**overrides):
    return create_app(dict(TEST_CONFIG, **overrides))


@pytest.fixture
def app():
    app = make_app()
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON")
        return self._payload


def gemini_payload(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


@pytest.fixture
def fake_gemini(monkeypatch):
    """
    Replace requests.post in gemini_helper. Give it a dict of model name ->
    text (or an exception instance); calls are recorded in `calls`.
    """
    import gemini_helper

    class Fake:
        def __init__(self):
            self.replies = {}
            self.default = None
            self.calls = []

        def __call__(self, url, params=None, json=None, timeout=None):
            model = url.rsplit("/", 1)[1].split(":")[0]
            self.calls.append({"model": model, "timeout": timeout, "prompt": json["contents"][0]["parts"][0]["text"]})
            reply = self.replies.get(model, self.default)
            if isinstance(reply, Exception):
                raise reply
            if reply is None:
                return FakeResponse(status_code=500)
            return FakeResponse(gemini_payload(reply))

    fake = Fake()
    monkeypatch.setattr(gemini_helper.requests, "post", fake)
    return fake
