"""Enumerations for the canonlink data model."""

from enum import Enum


class EntityType(str, Enum):
    """What kind of thing a canon entity is."""

    PERSON = "person"
    PLACE = "place"
    ORG = "org"
    OBJECT = "object"
    CONCEPT = "concept"
    EVENT_LIKE = "event_like"


class ResolutionStatus(str, Enum):
    """Where a mention stands in resolution.

    UNRESOLVED → no decision yet, or no candidate reached the ambiguity threshold
    CANDIDATE  → escalated to an ambiguity item for human review
    RESOLVED   → linked to an entity
    """

    UNRESOLVED = "unresolved"
    CANDIDATE = "candidate"
    RESOLVED = "resolved"


class MentionPattern(str, Enum):
    """Which detection pattern produced a mention."""

    CAPITALIZED = "capitalized"  # Run of capitalised words ("Alice Smith")
    ACRONYM = "acronym"  # Run of 3+ uppercase letters ("FBI")


class AmbiguityStatus(str, Enum):
    """Review status of an ambiguity item. RESOLVED and DISMISSED are terminal."""

    OPEN = "open"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class Severity(str, Enum):
    """Severity of a review item."""

    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class RunType(str, Enum):
    """Kind of pipeline run."""

    INGEST = "ingest"


class RunStatus(str, Enum):
    """Lifecycle status of a pipeline run. SUCCEEDED and FAILED are terminal."""

    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
