import os


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name, "").strip()
    return value or default


def _env_positive_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _env_port(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if 0 < value < 65536 else default


def parse_csv_env(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


SUPABASE_URL = _env_str("SUPABASE_URL", "http://localhost:54321").rstrip("/")
SUPABASE_ANON_KEY = _env_str("SUPABASE_ANON_KEY", "dev-anon-key")
PUBLIC_SITE_URL = _env_str("PUBLIC_SITE_URL", "http://localhost:3000").rstrip("/")
MAGIC_LINK_CALLBACK_PATH = "/api/auth/callback"

BACKEND_TIMEOUT_SECONDS = _env_positive_float("BACKEND_TIMEOUT_SECONDS", 10.0)

SESSION_COOKIE_NAME = _env_str("SESSION_COOKIE_NAME", "skilllink_sid")
SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() in {"1", "true", "yes"}

API_HOST = _env_str("API_HOST", "127.0.0.1")
API_PORT = _env_port("API_PORT", 8000)

LOG_LEVEL = _env_str("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", "").strip() or None


def magic_link_redirect_target() -> str:
    return f"{PUBLIC_SITE_URL}{MAGIC_LINK_CALLBACK_PATH}"
