"""Entity and alias models for canonical knowledge-graph nodes."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from canonlink.models.base import Base, utcnow
from canonlink.models.enums import EntityType


class Entity(Base):
    """A canonical node in a universe: a character, place, organisation, etc.

    Every entity owns at least one alias whose normalised text equals its
    normalised canonical name. The resolver creates both in one savepoint.
    """

    __tablename__ = "entities"

    entity_id: Mapped[UUID] = mapped_column(primary_key=True)
    universe_id: Mapped[UUID] = mapped_column(index=True)
    entity_type: Mapped[EntityType] = mapped_column(default=EntityType.PERSON)
    canonical_name: Mapped[str] = mapped_column(String(512))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    # Relationships
    aliases: Mapped[list[EntityAlias]] = relationship(back_populates="entity")


class EntityAlias(Base):
    """An alternative surface string that maps to an entity."""

    __tablename__ = "entity_aliases"
    __table_args__ = (
        UniqueConstraint("entity_id", "alias_norm", name="uq_entity_aliases_entity_norm"),
        CheckConstraint("confidence >= 0 AND confidence <= 1", name="ck_entity_aliases_confidence"),
    )

    alias_id: Mapped[UUID] = mapped_column(primary_key=True)
    entity_id: Mapped[UUID] = mapped_column(ForeignKey("entities.entity_id"), index=True)

    alias: Mapped[str] = mapped_column(String(512))
    """Display text as it appeared in prose."""

    alias_norm: Mapped[str] = mapped_column(String(512), index=True)
    """Trimmed, case-folded text used for matching."""

    confidence: Mapped[float] = mapped_column(Float, default=0.8)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    # Relationships
    entity: Mapped[Entity] = relationship(back_populates="aliases")
