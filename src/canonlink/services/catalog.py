"""Read-side queries over mentions, entities, ambiguity items and runs."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from canonlink.errors import EntityNotFoundError, PipelineRunNotFoundError
from canonlink.models.ambiguity_item import AmbiguityItem
from canonlink.models.entity import Entity
from canonlink.models.enums import AmbiguityStatus, ResolutionStatus, RunStatus
from canonlink.models.mention import EntityMention
from canonlink.models.pipeline_run import PipelineRun
from canonlink.models.segment import Segment

DEFAULT_LIMIT = 100


class CatalogService:
    """Tenant-scoped lookups for the API and CLI.

    Usage:
        async with async_session_factory() as session:
            catalog = CatalogService(session)
            open_items = await catalog.list_ambiguity_items(universe_id)
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_mentions(
        self,
        universe_id: UUID,
        *,
        status: ResolutionStatus | None = None,
        limit: int = DEFAULT_LIMIT,
    ) -> list[EntityMention]:
        """Mentions in a universe, in document order (segment ordinal, then span)."""
        stmt = (
            select(EntityMention)
            .join(Segment, Segment.segment_id == EntityMention.segment_id)
            .where(EntityMention.universe_id == universe_id)
            .order_by(Segment.ordinal, EntityMention.span_start, EntityMention.span_end)
            .limit(limit)
        )
        if status is not None:
            stmt = stmt.where(EntityMention.resolution_status == status)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def mentions_for_segment(self, segment_id: UUID) -> list[EntityMention]:
        stmt = (
            select(EntityMention)
            .where(EntityMention.segment_id == segment_id)
            .order_by(EntityMention.span_start, EntityMention.span_end)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def mentions_for_entity(self, entity_id: UUID) -> list[EntityMention]:
        stmt = (
            select(EntityMention)
            .where(EntityMention.entity_id == entity_id)
            .order_by(EntityMention.created_at)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_ambiguity_items(
        self,
        universe_id: UUID,
        *,
        status: AmbiguityStatus | None = AmbiguityStatus.OPEN,
        limit: int = DEFAULT_LIMIT,
    ) -> list[AmbiguityItem]:
        """Ambiguity items in a universe, oldest first. Defaults to open items."""
        stmt = (
            select(AmbiguityItem)
            .where(AmbiguityItem.universe_id == universe_id)
            .order_by(AmbiguityItem.created_at, AmbiguityItem.item_id)
            .limit(limit)
        )
        if status is not None:
            stmt = stmt.where(AmbiguityItem.status == status)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def get_entity(self, entity_id: UUID) -> Entity:
        """An entity with its aliases loaded."""
        stmt = (
            select(Entity)
            .options(selectinload(Entity.aliases))
            .where(Entity.entity_id == entity_id)
        )
        entity = (await self._session.execute(stmt)).scalar_one_or_none()
        if entity is None:
            raise EntityNotFoundError(entity_id)
        return entity

    async def list_entities(
        self, universe_id: UUID, *, limit: int = DEFAULT_LIMIT
    ) -> list[Entity]:
        stmt = (
            select(Entity)
            .where(Entity.universe_id == universe_id)
            .order_by(Entity.canonical_name)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def get_pipeline_run(self, run_id: UUID) -> PipelineRun:
        run = await self._session.get(PipelineRun, run_id)
        if run is None:
            raise PipelineRunNotFoundError(run_id)
        return run

    async def list_runs(
        self,
        universe_id: UUID,
        *,
        status: RunStatus | None = None,
        limit: int = DEFAULT_LIMIT,
    ) -> list[PipelineRun]:
        """Most recent runs first."""
        stmt = (
            select(PipelineRun)
            .where(PipelineRun.universe_id == universe_id)
            .order_by(PipelineRun.created_at.desc())
            .limit(limit)
        )
        if status is not None:
            stmt = stmt.where(PipelineRun.status == status)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())
