"""Exceptions raised by canonlink."""

from __future__ import annotations

from uuid import UUID


class CanonlinkError(Exception):
    """Base exception for canonlink operations."""


class EntityCreationError(CanonlinkError):
    """Raised when a new entity could not be stored together with its primary alias.

    The entity is rolled back before this is raised, so the store never holds
    an entity that exact matching cannot find.
    """

    def __init__(self, surface_form: str, attempts: int, message: str = "") -> None:
        self.surface_form = surface_form
        self.attempts = attempts
        super().__init__(
            message
            or f"Could not create primary alias for '{surface_form}' after {attempts} attempt(s)"
        )


class StateError(CanonlinkError):
    """Raised when a record is not in a state that allows the requested transition."""


class ReviewStateError(StateError):
    """Raised when resolving or dismissing an ambiguity item that cannot transition."""

    def __init__(self, item_id: UUID, reason: str) -> None:
        self.item_id = item_id
        self.reason = reason
        super().__init__(f"Ambiguity item {item_id}: {reason}")


class MentionStateError(StateError):
    """Raised when the resolver is handed a mention that was already decided."""

    def __init__(self, mention_id: UUID, status: str) -> None:
        self.mention_id = mention_id
        self.status = status
        super().__init__(f"Mention {mention_id} is already {status}")


class NotFoundError(CanonlinkError):
    """Raised when a referenced record does not exist."""

    kind = "record"

    def __init__(self, record_id: UUID) -> None:
        self.record_id = record_id
        super().__init__(f"{self.kind} {record_id} not found")


class AmbiguityItemNotFoundError(NotFoundError):
    kind = "Ambiguity item"


class EntityNotFoundError(NotFoundError):
    kind = "Entity"


class PipelineRunNotFoundError(NotFoundError):
    kind = "Pipeline run"


class TenantMismatchError(CanonlinkError):
    """Raised when records from different universes are combined."""

    def __init__(self, expected: UUID, actual: UUID, what: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"{what} belongs to universe {actual}, expected {expected}")
