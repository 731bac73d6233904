import os
from dotenv import load_dotenv
from pathlib import Path

load_dotenv(override=False)


def _env(name: str, default: str | None = None) -> str | None:
    v = os.getenv(name)
    return v if v not in (None, "", "null", "None") else default


REPO_ROOT = Path(__file__).resolve().parents[2]


STORAGE_ROOT = Path(_env("STORAGE_ROOT", str(REPO_ROOT)))
UPLOAD_DIR = STORAGE_ROOT / _env("UPLOAD_DIR", "uploads")


SUPABASE_URL = _env("SUPABASE_URL")
SUPABASE_SERVICE_ROLE_KEY = _env("SUPABASE_SERVICE_ROLE_KEY")
SUBMISSIONS_BUCKET = _env("SUBMISSIONS_BUCKET", "submissions")
REFERENCE_BUCKET = _env("REFERENCE_BUCKET", "reference-images")
SIGNED_URL_TTL_S = int(_env("SIGNED_URL_TTL_S", "31536000") or "31536000")


VISION_API_URL = _env("VISION_API_URL", "https://api.openai.com/v1")
VISION_API_KEY = _env("VISION_API_KEY", _env("OPENAI_API_KEY"))
VISION_MODEL = _env("VISION_MODEL", "gpt-4o")
VISION_MAX_TOKENS = int(_env("VISION_MAX_TOKENS", "1000") or "1000")
VISION_TIMEOUT_S = float(_env("VISION_TIMEOUT_S", "120") or "120")


ALLOWED_MIME_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})
MAX_UPLOAD_BYTES = int(_env("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)) or "10485760")


MAX_BATCH_FILES = int(_env("MAX_BATCH_FILES", "30") or "30")
BATCH_CONCURRENCY = int(_env("BATCH_CONCURRENCY", "5") or "5")
REVIEW_API_URL = _env("REVIEW_API_URL", "http://localhost:8000")


ADMIN_API_KEY = _env("ADMIN_API_KEY")


HOST = _env("HOST", "0.0.0.0")
PORT = int(_env("PORT", "8000") or "8000")


def ensure_dirs():
    UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
