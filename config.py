import os
import logging.config
from typing import List, Set

from dotenv import load_dotenv

load_dotenv()

# --- Config ---
DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "health_community")

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret")
JWT_ALG = "HS256"
JWT_EXPIRE_MIN = int(os.getenv("JWT_EXPIRE_MIN", "1440"))

APP_TIMEZONE = os.getenv("APP_TIMEZONE", "Asia/Ho_Chi_Minh")
POST_EDIT_WINDOW_MIN = int(os.getenv("POST_EDIT_WINDOW_MIN", "15"))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
RATE_LIMIT_PER_MINUTE = int(os.getenv("RATE_LIMIT_PER_MINUTE", "120"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", "8000"))

DEFAULT_BANNED_WORDS = [
    "spam",
    "scam",
    "fuck",
    "shit",
    "bitch",
    "idiot",
    "stupid",
    "viagra",
    "casino",
]


def parse_word_list(raw: str) -> List[str]:
    return [w.strip().lower() for w in raw.split(",") if w.strip()]


BANNED_WORDS = frozenset(parse_word_list(os.getenv("BANNED_WORDS", "")) or DEFAULT_BANNED_WORDS)


def get_banned_words() -> Set[str]:
    """FastAPI dependency supplying the banned-word set to content routes."""
    return set(BANNED_WORDS)


LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {name} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": LOG_LEVEL,
    },
    "loggers": {
        "uvicorn.access": {
            "handlers": ["console"],
            "level": "WARNING",
            "propagate": False,
        },
    },
}


def configure_logging():
    logging.config.dictConfig(LOGGING)
