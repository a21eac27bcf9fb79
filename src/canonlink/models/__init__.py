"""Database models for canonlink."""

from canonlink.models.ambiguity_item import AmbiguityItem
from canonlink.models.base import Base
from canonlink.models.entity import Entity, EntityAlias
from canonlink.models.enums import (
    AmbiguityStatus,
    EntityType,
    MentionPattern,
    ResolutionStatus,
    RunStatus,
    RunType,
    Severity,
)
from canonlink.models.mention import EntityMention
from canonlink.models.pipeline_run import PipelineRun
from canonlink.models.segment import Segment

__all__ = [
    "AmbiguityItem",
    "AmbiguityStatus",
    "Base",
    "Entity",
    "EntityAlias",
    "EntityMention",
    "EntityType",
    "MentionPattern",
    "PipelineRun",
    "ResolutionStatus",
    "RunStatus",
    "RunType",
    "Segment",
    "Severity",
]
