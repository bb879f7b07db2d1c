import os
from pathlib import Path
from dotenv import load_dotenv

_BACKEND_ROOT = Path(__file__).resolve().parents[1]
_BACKEND_ENV_PATH = _BACKEND_ROOT / ".env"
load_dotenv(dotenv_path=_BACKEND_ENV_PATH, override=True)


def _env_flag(name: str, default: str = "false") -> bool:
    return str(os.getenv(name, default)).strip().lower() in {"1", "true", "yes", "on"}


OPENAI_API_KEY = str(os.getenv("OPENAI_API_KEY") or "").strip()
MODEL_NAME = str(os.getenv("MODEL_NAME") or "gpt-4o-mini").strip()
QA_MODE = _env_flag("QA_MODE")

# "static" = scripted question bank, "generative" = resume-aware model questions
DIALOGUE_PROVIDER = str(os.getenv("DIALOGUE_PROVIDER") or "static").strip().lower()
STATIC_QUESTION_LIMIT = max(1, int(os.getenv("STATIC_QUESTION_LIMIT", "5")))
GENERATIVE_MAX_QUESTIONS = max(1, int(os.getenv("GENERATIVE_MAX_QUESTIONS", "8")))
GENERATION_TIMEOUT_SEC = max(1.0, float(os.getenv("GENERATION_TIMEOUT_SEC", "20")))

TIMER_TICK_SEC = max(0.001, float(os.getenv("TIMER_TICK_SEC", "1.0")))
DEFAULT_DURATION_MINUTES = max(1, int(os.getenv("DEFAULT_DURATION_MINUTES", "5")))
MAX_DURATION_MINUTES = max(1, int(os.getenv("MAX_DURATION_MINUTES", "60")))

MEDIA_ACQUIRE_TIMEOUT_SEC = max(1.0, float(os.getenv("MEDIA_ACQUIRE_TIMEOUT_SEC", "15")))
LISTEN_TIMEOUT_SEC = max(5.0, float(os.getenv("LISTEN_TIMEOUT_SEC", "60")))
SPEAK_TIMEOUT_SEC = max(5.0, float(os.getenv("SPEAK_TIMEOUT_SEC", "60")))

SESSION_CLEANUP_TTL_SEC = max(60, int(os.getenv("SESSION_CLEANUP_TTL_SEC", "1800")))
SESSION_CLEANUP_INTERVAL_SEC = max(30, int(os.getenv("SESSION_CLEANUP_INTERVAL_SEC", "120")))
