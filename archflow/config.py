import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _resolve_database_url() -> str:
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return database_url

    environment = os.getenv("ENVIRONMENT", "").strip().lower()
    if environment == "development":
        return "postgresql+psycopg://localhost:5434/archflow"

    raise ValueError(
        "DATABASE_URL is not set. Set DATABASE_URL for non-development "
        "environments or set ENVIRONMENT=development for local defaults."
    )


def _as_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _as_list(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    database_url: str = _resolve_database_url()
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "5"))
    db_max_overflow: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    db_pool_timeout: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    db_pool_recycle: int = int(os.getenv("DB_POOL_RECYCLE", "1800"))

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Celery
    celery_broker_url: str = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    celery_result_backend: str = os.getenv(
        "CELERY_RESULT_BACKEND", "redis://localhost:6379/1"
    )
    celery_task_always_eager: bool = _as_bool(
        os.getenv("CELERY_TASK_ALWAYS_EAGER", "false")
    )
    expiry_sweep_interval_seconds: int = int(
        os.getenv("EXPIRY_SWEEP_INTERVAL_SECONDS", "3600")
    )

    # Outbound webhooks
    webhook_urls: tuple[str, ...] = _as_list(os.getenv("WEBHOOK_URLS", ""))
    webhook_secret: str | None = os.getenv("WEBHOOK_SECRET") or None
    webhook_timeout_seconds: float = float(os.getenv("WEBHOOK_TIMEOUT_SECONDS", "10"))

    # Submissions
    internal_reference_prefix: str = os.getenv("INTERNAL_REFERENCE_PREFIX", "SUB")
    default_currency: str = os.getenv("DEFAULT_CURRENCY", "MYR")
    authority_timeout_seconds: float = float(
        os.getenv("AUTHORITY_TIMEOUT_SECONDS", "15")
    )

    # Shares
    share_password_iterations: int = int(
        os.getenv("SHARE_PASSWORD_ITERATIONS", "210000")
    )


settings = Settings()
