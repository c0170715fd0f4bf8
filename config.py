# config.py
import os

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "change-me")  # set via env var in prod
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///wastetrack.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Vision verification (Gemini)
    GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", "")
    GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-1.5-flash")

    # Place autocomplete
    GOOGLE_MAPS_API_KEY = os.environ.get("GOOGLE_MAPS_API_KEY", "")
    PLACES_TIMEOUT = _int_env("PLACES_TIMEOUT", 10)

    REPORT_REWARD_POINTS = _int_env("REPORT_REWARD_POINTS", 10)
    NOTIFICATION_POLL_SECONDS = _int_env("NOTIFICATION_POLL_SECONDS", 30)

    # Dashboard fetch sizes
    DASHBOARD_REPORT_LIMIT = 100
    DASHBOARD_TASK_LIMIT = 100

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
