"""Pydantic schemas for the HTTP API and the CLI's segment files.

The segment file format (also the body of ``POST /universes/{id}/ingest``):

    {
      "document_id": "…optional uuid…",
      "version_id": "…optional uuid…",
      "segments": [
        {"text": "Alice met Bob.", "chapter_label": "Chapter 1"},
        {"segment_id": "…", "ordinal": 1, "text": "…", "source_locator": {"offset": 15}}
      ]
    }

Segmentation itself happens upstream; these are already-cut segments.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from canonlink.models.enums import (
    AmbiguityStatus,
    EntityType,
    MentionPattern,
    ResolutionStatus,
    RunStatus,
    RunType,
    Severity,
)
from canonlink.models.segment import Segment


class SegmentIn(BaseModel):
    """One pre-segmented unit of text."""

    segment_id: UUID | None = None
    ordinal: int | None = Field(default=None, ge=0, description="Defaults to list position")
    text: str
    chapter_label: str | None = None
    source_locator: dict[str, Any] = Field(default_factory=dict)


class IngestRequest(BaseModel):
    """A document's segments in document order."""

    document_id: UUID | None = None
    version_id: UUID | None = Field(
        default=None, description="Defaults to document_id, or a fresh id"
    )
    segments: list[SegmentIn] = Field(default_factory=list)

    def to_segments(self) -> list[Segment]:
        """Build Segment rows, filling in ids and ordinals."""
        version_id = self.version_id or self.document_id or uuid4()
        return [
            Segment(
                segment_id=item.segment_id or uuid4(),
                version_id=version_id,
                ordinal=item.ordinal if item.ordinal is not None else position,
                text=item.text,
                chapter_label=item.chapter_label,
                source_locator=item.source_locator,
            )
            for position, item in enumerate(self.segments)
        ]


class ReviewResolveRequest(BaseModel):
    entity_id: UUID
    notes: str | None = None
    resolved_by: str = "author"


class ReviewDismissRequest(BaseModel):
    notes: str | None = None
    resolved_by: str = "author"


class AliasCreateRequest(BaseModel):
    """A hand-added alias for an existing entity."""

    model_config = ConfigDict(str_strip_whitespace=True)

    alias: str = Field(min_length=1, description="Display text as written in prose")
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)


class MentionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    mention_id: UUID
    universe_id: UUID
    segment_id: UUID
    entity_id: UUID | None
    surface_form: str
    span_start: int
    span_end: int
    confidence: float
    pattern: MentionPattern
    resolution_status: ResolutionStatus


class AliasRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    alias: str
    alias_norm: str
    confidence: float


class EntityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    entity_id: UUID
    universe_id: UUID
    entity_type: EntityType
    canonical_name: str
    created_at: datetime


class EntityDetail(EntityRead):
    aliases: list[AliasRead] = Field(default_factory=list)


class AmbiguityItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item_id: UUID
    universe_id: UUID
    mention_id: UUID | None
    subject_entity_id: UUID | None
    candidates: list[dict[str, Any]]
    status: AmbiguityStatus
    severity: Severity
    details: dict[str, Any]
    notes: str | None
    resolved_entity_id: UUID | None
    resolved_by: str | None
    created_at: datetime
    resolved_at: datetime | None


class PipelineRunRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    run_id: UUID
    universe_id: UUID
    document_id: UUID | None
    run_type: RunType
    status: RunStatus
    progress: dict[str, Any]
    error: str | None
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None
