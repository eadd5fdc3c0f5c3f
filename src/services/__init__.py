"""Services coordinating the engine with durable storage."""

from .applier import AppliedOutcome, ReviewApplier
from .sessions import ActiveSession, SessionRegistry

__all__ = ["ActiveSession", "AppliedOutcome", "ReviewApplier", "SessionRegistry"]
