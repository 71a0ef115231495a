import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Database
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # Auth (JWT issued by the hosted auth provider)
    AUTH_JWT_SECRET: Optional[str] = None
    AUTH_JWT_AUDIENCE: Optional[str] = None  # e.g. "authenticated"
    AUTH_HEADER_FALLBACK: bool = True  # accept X-User-Id when no Bearer token

    # Usage accounting
    USAGE_AUTO_CREATE_SCHEMA: bool = True
    USAGE_WARNING_RATIO: float = 0.8  # approaching_limit threshold

    # HTTP
    CORS_ORIGINS: str = "http://localhost:3000"  # comma-separated

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


settings = Settings()


REQUIRED_KEYS = ("DATABASE_URL", "AUTH_JWT_SECRET")


def _config_problems(cfg: Settings) -> List[str]:
    problems = []
    missing = [key for key in REQUIRED_KEYS if not getattr(cfg, key, None)]
    if missing:
        problems.append(f"Missing required configuration: {', '.join(missing)}")
    if not 0 < cfg.USAGE_WARNING_RATIO <= 1:
        problems.append(f"USAGE_WARNING_RATIO must be in (0, 1], got {cfg.USAGE_WARNING_RATIO}")
    return problems


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Check configuration at startup.

    Strict mode raises RuntimeError listing every problem; otherwise each
    problem is logged as a warning. Only key names are reported, never values.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("mockupgen")
    strict_mode = cfg.CONFIG_STRICT if strict is None else strict

    problems = _config_problems(cfg)
    if problems and strict_mode:
        raise RuntimeError("; ".join(problems))
    for problem in problems:
        log.warning(problem)
    return True
