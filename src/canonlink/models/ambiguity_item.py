"""AmbiguityItem model for identity conflicts awaiting human review."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from canonlink.models.base import Base, JSONType, utcnow
from canonlink.models.enums import AmbiguityStatus, Severity


class AmbiguityItem(Base):
    """Records a mention that plausibly refers to more than one entity.

    Raised by the resolver when two or more candidates clear the ambiguity
    threshold. The mention stays CANDIDATE with no entity link until a human
    resolves the item (linking the mention) or dismisses it (leaving the
    mention alone). Open items never expire.
    """

    __tablename__ = "ambiguity_items"

    item_id: Mapped[UUID] = mapped_column(primary_key=True)
    universe_id: Mapped[UUID] = mapped_column(index=True)

    mention_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("entity_mentions.mention_id"), index=True
    )
    """The escalated mention."""

    subject_entity_id: Mapped[UUID | None] = mapped_column(ForeignKey("entities.entity_id"))
    """Top-ranked candidate at escalation time."""

    candidates: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list)
    """Ranked candidates, best first: [{entity_id, canonical_name, entity_type, score}]."""

    status: Mapped[AmbiguityStatus] = mapped_column(default=AmbiguityStatus.OPEN, index=True)
    severity: Mapped[Severity] = mapped_column(default=Severity.WARN)

    details: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    """Context for reviewers: surface form, segment id."""

    notes: Mapped[str | None] = mapped_column(Text)
    """Reviewer notes recorded on resolve/dismiss."""

    resolution: Mapped[dict[str, Any] | None] = mapped_column(JSONType)
    """How it was closed: {"action": "resolve" | "dismiss", "entity_id", "resolved_by"}."""

    resolved_entity_id: Mapped[UUID | None] = mapped_column(ForeignKey("entities.entity_id"))
    resolved_by: Mapped[str | None] = mapped_column(String(64))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    @property
    def ranked_candidates(self) -> list[tuple[UUID, float]]:
        """Candidate (entity_id, score) pairs, best first."""
        return [(UUID(str(c["entity_id"])), float(c["score"])) for c in self.candidates or []]

    @property
    def is_open(self) -> bool:
        return self.status == AmbiguityStatus.OPEN
