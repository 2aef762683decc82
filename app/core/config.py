from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

# .env lives at the project root: app/core/config.py -> app/core -> app -> root
_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _ROOT / ".env"

OPENAI_KEY_PREFIX = "sk-"


class Settings(BaseSettings):
    openai_api_key: str = ""
    openai_base_url: str | None = None
    # Moderation is skipped entirely when this is empty
    openai_moderation_model: str = ""
    openai_timeout: float = 60.0
    default_video_model: str = "sora-2"
    secret_key: str = "change-me-in-production"
    database_url: str = "sqlite:///./videogen.db"
    # Comma separated origin list; "*" allows everything
    cors_origins: str = "*"
    # Public base URL of this service, used for generated download links
    backend_url: str = "http://localhost:8000"
    rate_limit_per_minute: int = 100
    rate_limit_auth_per_minute: int = 5
    rate_limit_video_per_minute: int = 10
    upload_max_mb: int = 10
    # Poll loop: delay = min(base + attempts * step, max), in milliseconds
    poll_max_attempts: int = 180
    poll_base_delay_ms: int = 10_000
    poll_step_ms: int = 1_000
    poll_max_delay_ms: int = 20_000
    log_level: str = "INFO"

    model_config = {
        "env_file": _ENV_FILE if _ENV_FILE.is_file() else ".env",
        "extra": "ignore",
    }

    @field_validator("openai_api_key", "openai_moderation_model", mode="before")
    @classmethod
    def strip_value(cls, v: str | None) -> str:
        return (v or "").strip()

    @field_validator("backend_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str:
        return (v or "").strip().rstrip("/") or "http://localhost:8000"


settings = Settings()


def is_openai_configured() -> bool:
    key = settings.openai_api_key
    return bool(key) and key.startswith(OPENAI_KEY_PREFIX)


def is_moderation_enabled() -> bool:
    return bool(settings.openai_moderation_model)
