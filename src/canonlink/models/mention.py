"""EntityMention model for detected in-text references."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, Float, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from canonlink.models.base import Base, utcnow
from canonlink.models.enums import MentionPattern, ResolutionStatus


class EntityMention(Base):
    """A detected occurrence of a possible entity reference within a segment.

    Spans are half-open character offsets into ``Segment.text``.
    ``entity_id`` is set exactly when ``resolution_status`` is RESOLVED; only the
    resolver and the review workflow change either field.
    """

    __tablename__ = "entity_mentions"
    __table_args__ = (
        CheckConstraint("span_start >= 0", name="ck_entity_mentions_span_start"),
        CheckConstraint("span_start < span_end", name="ck_entity_mentions_span_order"),
        CheckConstraint(
            "confidence >= 0 AND confidence <= 1", name="ck_entity_mentions_confidence"
        ),
    )

    mention_id: Mapped[UUID] = mapped_column(primary_key=True)
    universe_id: Mapped[UUID] = mapped_column(index=True)
    segment_id: Mapped[UUID] = mapped_column(ForeignKey("segments.segment_id"), index=True)
    entity_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("entities.entity_id"), index=True
    )

    surface_form: Mapped[str] = mapped_column(String(512))
    span_start: Mapped[int] = mapped_column(Integer)
    span_end: Mapped[int] = mapped_column(Integer)
    confidence: Mapped[float] = mapped_column(Float)
    pattern: Mapped[MentionPattern] = mapped_column(default=MentionPattern.CAPITALIZED)
    resolution_status: Mapped[ResolutionStatus] = mapped_column(
        default=ResolutionStatus.UNRESOLVED, index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    def link(self, entity_id: UUID) -> None:
        """Link to an entity and mark the mention resolved."""
        self.entity_id = entity_id
        self.resolution_status = ResolutionStatus.RESOLVED

    def __repr__(self) -> str:
        return (
            f"EntityMention({self.surface_form!r}, [{self.span_start},{self.span_end}), "
            f"{self.resolution_status.value if self.resolution_status else None})"
        )
