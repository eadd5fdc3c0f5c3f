"""HTTP presentation layer for the mastery engine."""

from .app import create_app

__all__ = ["create_app"]
