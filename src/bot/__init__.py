"""Telegram bot components for the mastery engine."""

from .review_bot import ReviewBot
from .telegram import build_application

__all__ = ["ReviewBot", "build_application"]
