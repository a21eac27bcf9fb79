"""PipelineRun model tracking one document ingestion."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import DateTime, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from canonlink.models.base import Base, JSONType, utcnow
from canonlink.models.enums import RunStatus, RunType


class PipelineRun(Base):
    """One execution of detect-then-resolve over a document's segments.

    Owned by the ingestion pipeline for its whole lifetime. A run always ends
    SUCCEEDED or FAILED; there is no retry or cancellation.
    """

    __tablename__ = "pipeline_runs"

    run_id: Mapped[UUID] = mapped_column(primary_key=True)
    universe_id: Mapped[UUID] = mapped_column(index=True)
    document_id: Mapped[UUID | None] = mapped_column(index=True)
    run_type: Mapped[RunType] = mapped_column(default=RunType.INGEST)
    status: Mapped[RunStatus] = mapped_column(default=RunStatus.QUEUED, index=True)

    progress: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    """Latest staged snapshot, always carrying a "stage" key."""

    error: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now()
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
