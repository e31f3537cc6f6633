from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def load_env() -> None:
    """Load ``.env`` then ``.env.<APP_ENV>`` from the working directory or the project root."""
    env_name = os.getenv("APP_ENV", "development")
    candidates = [Path.cwd(), PROJECT_ROOT]
    for name, override in ((".env", False), (f".env.{env_name}", True)):
        for base in candidates:
            env_path = base / name
            if env_path.exists():
                load_dotenv(env_path, override=override)
                break


@dataclass(frozen=True)
class Settings:
    database_url: str
    log_level: str = "INFO"
    log_dir: str = "logs"
    default_completed_by: str = "system"
    upcoming_preview_count: int = 5


def load_settings(environ: Mapping[str, str] = os.environ) -> Settings:
    database_url = environ.get("DATABASE_URL", "").strip()
    if not database_url:
        raise RuntimeError("DATABASE_URL is not set. Create a .env file with your connection string.")

    raw_count = environ.get("UPCOMING_PREVIEW_COUNT", "5")
    try:
        preview_count = int(raw_count)
    except ValueError:
        raise RuntimeError(f"UPCOMING_PREVIEW_COUNT must be an integer, got {raw_count!r}") from None
    if preview_count < 0:
        raise RuntimeError("UPCOMING_PREVIEW_COUNT must not be negative")

    return Settings(
        database_url=database_url,
        log_level=environ.get("LOG_LEVEL", "INFO"),
        log_dir=environ.get("LOG_DIR", "logs"),
        default_completed_by=environ.get("DEFAULT_COMPLETED_BY", "").strip() or "system",
        upcoming_preview_count=preview_count,
    )


load_env()
SETTINGS = load_settings()
