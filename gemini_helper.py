import json
import logging
import re

import requests
from flask import current_app

from errors import GenerationError, InsufficientQuestions
from models import OPTION_LETTERS

logger = logging.getLogger(__name__)

API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
DEFAULT_MODEL = "gemini-2.5-flash"
FALLBACK_MODELS = [
    "gemini-2.5-flash",
    "gemini-2.5-pro",
    "gemini-2.5-flash-lite",
    "gemini-2.0-flash",
    "gemini-1.5-flash",
]

QUESTION_PROMPT = """
Generate exactly {count} multiple-choice aptitude questions for topic "{topic}".

Output rules:
- Return ONLY a JSON array (no markdown, no extra text).
- Each item must be:
  {{
    "question": "string",
    "options": ["option A", "option B", "option C", "option D"],
    "correct_option": "A|B|C|D"
  }}
- Keep difficulty moderate and interview-oriented.
- Make all questions unique.
"""

TUTOR_PROMPT = """
You are AptiLab AI tutor.
User request: "{message}"
Preferred topic: "{topic}"
Difficulty level: "{level}"

If the user asks for questions, generate exactly {count} aptitude MCQs with this format:
1) Question text
A) option
B) option
C) option
D) option
Answer: <A/B/C/D>
Explanation: <1-2 lines>

If the user asks normal doubts, answer clearly with short steps.
Keep responses classroom-safe and concise.
"""


def candidate_models(preferred=None):
    """Ordered, de-duplicated list of models to try: preferred, configured, default, fixed list."""
    configured = current_app.config.get("GEMINI_MODEL")
    models = []
    for name in [preferred, configured, DEFAULT_MODEL] + FALLBACK_MODELS:
        if name and name not in models:
            models.append(name)
    return models


def _call_model(model, prompt, api_key, timeout, allow_empty=False):
    payload = {"contents": [{"parts": [{"text": prompt}]}]}
    response = requests.post(
        API_URL.format(model=model), params={"key": api_key}, json=payload, timeout=timeout
    )
    response.raise_for_status()
    try:
        text = response.json()["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError, ValueError):
        raise GenerationError(f"Unexpected response shape from model {model}")
    text = (text or "").strip()
    if not text and not allow_empty:
        raise GenerationError(f"Empty response from model {model}")
    return text


def generate_text(
    prompt, preferred_model=None, parse=None, timeout=None, error_message="Failed to generate AI questions"
):
    """
    Send `prompt` to each candidate model in turn until one answers.

    `parse` post-processes the text; if it raises, that model counts as failed
    and the next one is tried. Returns (model, result); when every model fails
    the raised error carries `error_message`.
    """
    api_key = current_app.config.get("GEMINI_API_KEY")
    if not api_key:
        raise GenerationError("GEMINI_API_KEY is not configured")
    if timeout is None:
        timeout = current_app.config.get("GEMINI_TIMEOUT")

    last_error = None
    for model in candidate_models(preferred_model):
        try:
            text = _call_model(model, prompt, api_key, timeout)
            return model, (parse(text) if parse else text)
        except (requests.RequestException, GenerationError) as e:
            logger.warning(f"Gemini model {model} failed: {e}")
            last_error = e

    detail = str(last_error) if last_error else "All Gemini models failed"
    if isinstance(last_error, InsufficientQuestions):
        raise InsufficientQuestions(error_message, detail)
    raise GenerationError(error_message, detail)


def extract_json_array(text):
    """Locate the outermost JSON array in `text`, preferring a ```json fenced block."""
    if not text or not isinstance(text, str):
        return None
    fenced = re.search(r"```json\s*([\s\S]*?)\s*```", text, re.IGNORECASE)
    candidate = fenced.group(1) if fenced else text
    start = candidate.find("[")
    end = candidate.rfind("]")
    if start == -1 or end == -1 or end <= start:
        return None
    return candidate[start : end + 1]


def _as_text(value):
    if value is None:
        return ""
    return str(value).strip()


def normalize_ai_question(raw, index):
    if not isinstance(raw, dict):
        return None

    question = _as_text(raw.get("question"))
    options = raw.get("options")
    options = [_as_text(o) for o in options] if isinstance(options, list) else []
    correct = _as_text(raw.get("correct_option") or raw.get("correctOption")).upper()

    if not question or len(options) != 4 or not all(options):
        return None
    if correct not in OPTION_LETTERS:
        return None

    return {"id": index + 1, "question": question, "options": options, "correct_option": correct}


def parse_questions(text, count):
    """Turn raw model output into exactly `count` normalized questions or raise."""
    array_text = extract_json_array(text)
    if not array_text:
        raise GenerationError("AI response did not contain JSON array")
    try:
        parsed = json.loads(array_text)
    except ValueError:
        raise GenerationError("Failed to parse AI JSON")
    if not isinstance(parsed, list) or not parsed:
        raise GenerationError("AI returned empty question list")

    normalized = [normalize_ai_question(item, i) for i, item in enumerate(parsed)]
    normalized = [q for q in normalized if q][:count]
    if len(normalized) < count:
        raise InsufficientQuestions(f"AI returned only {len(normalized)}/{count} valid questions")
    return normalized


def generate_questions(topic, count):
    """Returns (model, questions) for `count` new questions on `topic`."""
    prompt = QUESTION_PROMPT.format(count=count, topic=topic).strip()
    return generate_text(prompt, parse=lambda text: parse_questions(text, count))


def tutor_reply(message, topic, level, count):
    prompt = TUTOR_PROMPT.format(message=message, topic=topic, level=level, count=count).strip()
    return generate_text(prompt, error_message="AI service failed")


def health_check():
    """
    Ask every candidate model for a trivial reply with a short timeout.

    Returns (model, reply, tried); model is None when all failed.
    """
    api_key = current_app.config.get("GEMINI_API_KEY")
    timeout = current_app.config.get("GEMINI_HEALTH_TIMEOUT")
    tried = []
    for model in candidate_models():
        try:
            reply = _call_model(model, "Reply only with: OK", api_key, timeout, allow_empty=True)
            return model, reply or "OK", tried
        except (requests.RequestException, GenerationError) as e:
            tried.append({"model": model, "error": str(e)})
    return None, None, tried
