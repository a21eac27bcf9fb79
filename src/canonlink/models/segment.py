"""Segment model for externally produced units of source text."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from canonlink.models.base import Base, JSONType, utcnow


class Segment(Base):
    """An immutable unit of source text (paragraph or chapter-level).

    Segments are produced by the segmentation collaborator and handed to the
    pipeline in document order. The pipeline reads them; it never rewrites
    their text or offsets.
    """

    __tablename__ = "segments"

    segment_id: Mapped[UUID] = mapped_column(primary_key=True)
    version_id: Mapped[UUID] = mapped_column(index=True)
    """Document version the segment belongs to."""

    ordinal: Mapped[int] = mapped_column(Integer)
    """Position of the segment within its version."""

    text: Mapped[str] = mapped_column(Text)
    chapter_label: Mapped[str | None] = mapped_column(String(255))

    source_locator: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    """Stable locator within the version, e.g. {"offset": 120, "length": 64}."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
