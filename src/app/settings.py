"""Configuration helpers for the mastery engine runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


DEFAULT_API_PORT = 8000
DEFAULT_MAX_RETRIES = 3
DEFAULT_IDLE_MINUTES = 120
APP_MODES = ("api", "bot")


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AppSettings:
    """Strongly typed application settings loaded from environment variables."""

    app_name: str
    app_env: str
    log_level: str
    app_mode: str
    api_host: str
    api_port: int
    telegram_bot_token: Optional[str]
    review_max_retries: int
    review_batch_limit: Optional[int]
    review_shuffle: bool
    review_idle_minutes: int = DEFAULT_IDLE_MINUTES

    @classmethod
    def from_env(cls) -> AppSettings:
        """Construct settings directly from environment variables."""
        app_name = os.getenv("APP_NAME", "Mastery Engine")
        app_env = os.getenv("APP_ENV", "development")
        log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        app_mode = os.getenv("APP_MODE", "api").strip().lower()
        api_host = os.getenv("API_HOST", "127.0.0.1")
        telegram_bot_token = os.getenv("TELEGRAM_BOT_TOKEN") or None

        if app_mode not in APP_MODES:
            raise RuntimeError(f"APP_MODE must be one of: {', '.join(APP_MODES)}.")

        if app_mode == "bot" and not telegram_bot_token:
            raise RuntimeError(
                "TELEGRAM_BOT_TOKEN environment variable is required to start the Telegram bot."
            )

        try:
            api_port = int(os.getenv("API_PORT", str(DEFAULT_API_PORT)))
        except ValueError as exc:
            raise RuntimeError("API_PORT must be an integer.") from exc
        if api_port < 1 or api_port > 65535:
            raise RuntimeError("API_PORT must be between 1 and 65535.")

        try:
            review_max_retries = int(os.getenv("REVIEW_MAX_RETRIES", str(DEFAULT_MAX_RETRIES)))
        except ValueError as exc:
            raise RuntimeError("REVIEW_MAX_RETRIES must be an integer.") from exc
        if review_max_retries < 1 or review_max_retries > 10:
            raise RuntimeError("REVIEW_MAX_RETRIES must be between 1 and 10.")

        raw_limit = os.getenv("REVIEW_BATCH_LIMIT")
        review_batch_limit: Optional[int] = None
        if raw_limit:
            try:
                review_batch_limit = int(raw_limit)
            except ValueError as exc:
                raise RuntimeError("REVIEW_BATCH_LIMIT must be an integer.") from exc
            if review_batch_limit < 1:
                raise RuntimeError("REVIEW_BATCH_LIMIT must be a positive integer.")

        review_shuffle = _parse_bool(os.getenv("REVIEW_SHUFFLE", "false"))

        try:
            review_idle_minutes = int(os.getenv("REVIEW_SESSION_IDLE_MINUTES", str(DEFAULT_IDLE_MINUTES)))
        except ValueError as exc:
            raise RuntimeError("REVIEW_SESSION_IDLE_MINUTES must be an integer.") from exc
        if review_idle_minutes < 1:
            raise RuntimeError("REVIEW_SESSION_IDLE_MINUTES must be a positive integer.")

        return cls(
            app_name=app_name,
            app_env=app_env,
            log_level=log_level,
            app_mode=app_mode,
            api_host=api_host,
            api_port=api_port,
            telegram_bot_token=telegram_bot_token,
            review_max_retries=review_max_retries,
            review_batch_limit=review_batch_limit,
            review_shuffle=review_shuffle,
            review_idle_minutes=review_idle_minutes,
        )
