import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./captionflow.db"
    DATABASE_ECHO: bool = False

    # Completion provider (Groq)
    GROQ_API_KEY: Optional[str] = None
    LLM_TEXT_MODEL: str = "llama-3.3-70b-versatile"
    LLM_VISION_MODEL: str = "meta-llama/llama-4-scout-17b-16e-instruct"
    LLM_TEMPERATURE: float = 0.8
    LLM_MAX_TOKENS: int = 500
    LLM_MAX_RETRIES: int = 2
    LLM_TIMEOUT_SECONDS: float = 30.0

    # Caption generation
    FREE_DAILY_LIMIT: int = 10
    REJECT_EMPTY_CAPTIONS: bool = False

    # Auth (session JWTs issued by the auth provider)
    AUTH_JWT_SECRET: Optional[str] = None
    AUTH_JWT_AUDIENCE: Optional[str] = None
    ALLOW_DEV_USER_HEADER: bool = False
    ADMIN_KEY: Optional[str] = None  # X-Admin-Key for admin listings

    # Stripe
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None

    # HTTP
    CORS_ORIGINS: str = "http://localhost:3000"  # comma-separated

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate required configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("captionflow")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    required_keys = [
        "GROQ_API_KEY",
        "AUTH_JWT_SECRET",
        "STRIPE_SECRET_KEY",
        "STRIPE_WEBHOOK_SECRET",
    ]

    missing = [key for key in required_keys if not getattr(cfg, key, None)]
    if missing:
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    if cfg.ENV.lower() == "production" and cfg.ALLOW_DEV_USER_HEADER:
        message = "ALLOW_DEV_USER_HEADER must not be enabled in production"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    if cfg.FREE_DAILY_LIMIT < 0:
        raise RuntimeError("FREE_DAILY_LIMIT must be >= 0")

    return True
