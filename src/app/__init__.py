"""Application bootstrap helpers for the mastery engine."""

from .runtime import run, run_api, run_bot
from .settings import AppSettings

__all__ = ["run", "run_api", "run_bot", "AppSettings"]
