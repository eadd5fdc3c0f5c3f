"""Bootstrap logic for running the HTTP API or the Telegram bot."""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

import uvicorn

from src.api import create_app
from src.app.settings import AppSettings
from src.bot import ReviewBot, build_application
from src.db import get_session_factory, run_migrations_if_needed
from src.services import ReviewApplier, SessionRegistry


LOGGER = logging.getLogger(__name__)


def _configure_logging(log_level: str) -> None:
    """Set up project-wide logging configuration."""
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        level=log_level,
    )


def _ensure_event_loop() -> None:
    """Guarantee that an asyncio event loop exists for the current thread."""
    try:
        asyncio.get_event_loop()
    except RuntimeError:
        asyncio.set_event_loop(asyncio.new_event_loop())


def _prepare(settings: AppSettings) -> SessionRegistry:
    _configure_logging(settings.log_level)
    print(f"{settings.app_name} is running in {settings.app_env} mode.")

    try:
        run_migrations_if_needed()
    except Exception:
        LOGGER.exception("Database migrations failed. Aborting startup.")
        raise

    session_factory = get_session_factory()
    applier = ReviewApplier(session_factory, max_retries=settings.review_max_retries)
    return SessionRegistry(
        session_factory,
        applier,
        batch_limit=settings.review_batch_limit,
        shuffle=settings.review_shuffle,
        idle_timeout=timedelta(minutes=settings.review_idle_minutes),
    )


def run_api(settings: AppSettings) -> None:
    """Serve the HTTP API with uvicorn."""
    registry = _prepare(settings)
    app = create_app(get_session_factory(), registry, title=settings.app_name)

    LOGGER.info("Starting HTTP API on %s:%s.", settings.api_host, settings.api_port)
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


def run_bot(settings: AppSettings) -> None:
    """Start the Telegram bot using the provided settings."""
    registry = _prepare(settings)
    bot = ReviewBot(get_session_factory(), registry)
    application = build_application(settings.telegram_bot_token, bot)

    _ensure_event_loop()

    LOGGER.info("Starting Telegram bot for %s in %s mode.", settings.app_name, settings.app_env)
    application.run_polling()


def run(settings: AppSettings) -> None:
    if settings.app_mode == "bot":
        run_bot(settings)
    else:
        run_api(settings)
