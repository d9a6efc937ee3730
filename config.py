import os
from dotenv import load_dotenv

# Load .env
load_dotenv()

STORE_MODE = "store"
GENERATIVE_MODE = "generative"


class Config:
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///aptilab.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}
    SECRET_KEY = os.getenv("FLASK_SECRET_KEY", "dev-secret-change-me")

    # "store" serves the seeded bank, "generative" asks Gemini for new questions
    QUESTION_SOURCE = os.getenv("QUESTION_SOURCE", STORE_MODE).strip().lower()

    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
    GEMINI_MODEL = os.getenv("GEMINI_MODEL")
    GEMINI_TIMEOUT = float(os.getenv("GEMINI_TIMEOUT", "60"))
    GEMINI_HEALTH_TIMEOUT = float(os.getenv("GEMINI_HEALTH_TIMEOUT", "7"))

    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USER = os.getenv("SMTP_USER")
    SMTP_PASS = os.getenv("SMTP_PASS")
    SMTP_FROM = os.getenv("SMTP_FROM") or SMTP_USER

    PORT = int(os.getenv("PORT", "3307"))


API_URL = os.getenv("APTILAB_API_URL", "http://localhost:3307")
