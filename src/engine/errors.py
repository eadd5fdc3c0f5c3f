"""Exception hierarchy shared by the scheduling engine and its adapters."""

from __future__ import annotations

from typing import Optional


class EngineError(Exception):
    """Base class for every error raised by the mastery engine."""

    code = "engine_error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.__class__.__doc__ or self.code)

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(EngineError):
    """Caller supplied a request the engine cannot accept."""

    code = "validation_error"


class InvalidJudgement(ValidationError):
    """Judgement is not part of the active review mode's vocabulary."""

    code = "invalid_judgement"


class EmptyDeck(ValidationError):
    """There are no items to build a review session from."""

    code = "empty_deck"


class CursorMismatch(ValidationError):
    """Outcome does not refer to the item at the current cursor."""

    code = "cursor_mismatch"

    def __init__(self, expected: object, received: object) -> None:
        super().__init__(f"Expected an outcome for item {expected!r}, received {received!r}.")
        self.expected = expected
        self.received = received


class SessionStateError(ValidationError):
    """Operation is not valid in the session's current state."""

    code = "invalid_session_state"


class DuplicateCollection(ValidationError):
    """A collection with the same name already exists for this learner."""

    code = "duplicate_collection"


class ConcurrencyError(EngineError):
    """Concurrent writers raced on the same item."""

    code = "concurrency_error"


class Conflict(ConcurrencyError):
    """Item changed since it was read; recompute from the fresh value."""

    code = "conflict"

    def __init__(self, item_id: int, expected_version: int) -> None:
        super().__init__(
            f"Item {item_id} no longer has version {expected_version}; re-read and retry."
        )
        self.item_id = item_id
        self.expected_version = expected_version


class RetriesExhausted(ConcurrencyError):
    """Update kept conflicting after the configured number of attempts."""

    code = "retries_exhausted"

    def __init__(self, item_id: int, attempts: int) -> None:
        super().__init__(f"Could not update item {item_id} after {attempts} attempts.")
        self.item_id = item_id
        self.attempts = attempts


class NotFoundError(EngineError):
    """Referenced entity does not exist."""

    code = "not_found"


class ItemNotFound(NotFoundError):
    code = "item_not_found"

    def __init__(self, item_id: object) -> None:
        super().__init__(f"Item {item_id} was not found.")
        self.item_id = item_id


class CollectionNotFound(NotFoundError):
    code = "collection_not_found"

    def __init__(self, collection_id: object) -> None:
        super().__init__(f"Collection {collection_id} was not found.")
        self.collection_id = collection_id


class SessionNotFound(NotFoundError):
    code = "session_not_found"

    def __init__(self, session_id: object) -> None:
        super().__init__(f"Review session {session_id} was not found.")
        self.session_id = session_id
