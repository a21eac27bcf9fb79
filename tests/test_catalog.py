"""Tests for read-side catalog queries."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID, uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from canonlink.errors import EntityNotFoundError, PipelineRunNotFoundError
from canonlink.models import ResolutionStatus, RunStatus
from canonlink.resolution import EntityResolver, TenantLockRegistry
from canonlink.services import CatalogService, IngestionPipeline

if TYPE_CHECKING:
    from conftest import MakeSegment


@pytest.fixture
def catalog(db_session: AsyncSession) -> CatalogService:
    return CatalogService(db_session)


@pytest.fixture
async def ingested(
    db_session: AsyncSession, make_segment: MakeSegment, universe_id: UUID
) -> tuple[UUID, list[UUID]]:
    version_id = uuid4()
    segments = [
        make_segment("Then Bob met Alice Smith.", version_id=version_id, ordinal=1),
        make_segment("At dawn Bob woke.", version_id=version_id, ordinal=0),
    ]
    pipeline = IngestionPipeline(
        db_session, resolver=EntityResolver(db_session, locks=TenantLockRegistry())
    )
    run_id = await pipeline.ingest(universe_id, None, segments)
    return run_id, [s.segment_id for s in segments]


class TestMentions:
    @pytest.mark.asyncio
    async def test_document_order(
        self, catalog: CatalogService, ingested: tuple[UUID, list[UUID]], universe_id: UUID
    ) -> None:
        mentions = await catalog.list_mentions(universe_id)
        assert [m.surface_form for m in mentions] == ["Bob", "Bob", "Alice Smith"]

    @pytest.mark.asyncio
    async def test_status_filter_and_tenant_scope(
        self, catalog: CatalogService, ingested: tuple[UUID, list[UUID]], universe_id: UUID
    ) -> None:
        resolved = await catalog.list_mentions(universe_id, status=ResolutionStatus.RESOLVED)
        assert len(resolved) == 3
        assert await catalog.list_mentions(universe_id, status=ResolutionStatus.CANDIDATE) == []
        assert await catalog.list_mentions(uuid4()) == []

    @pytest.mark.asyncio
    async def test_by_segment_and_entity(
        self, catalog: CatalogService, ingested: tuple[UUID, list[UUID]]
    ) -> None:
        _, (first_segment, _) = ingested
        in_segment = await catalog.mentions_for_segment(first_segment)
        assert [m.surface_form for m in in_segment] == ["Bob", "Alice Smith"]

        bob_id = in_segment[0].entity_id
        assert bob_id is not None
        assert len(await catalog.mentions_for_entity(bob_id)) == 2


@pytest.mark.asyncio
async def test_entity_with_aliases(
    catalog: CatalogService, ingested: tuple[UUID, list[UUID]], universe_id: UUID
) -> None:
    entities = await catalog.list_entities(universe_id)
    assert [e.canonical_name for e in entities] == ["Alice Smith", "Bob"]

    entity = await catalog.get_entity(entities[0].entity_id)
    assert [a.alias_norm for a in entity.aliases] == ["alice smith"]

    with pytest.raises(EntityNotFoundError):
        await catalog.get_entity(uuid4())


@pytest.mark.asyncio
async def test_runs(
    catalog: CatalogService, ingested: tuple[UUID, list[UUID]], universe_id: UUID
) -> None:
    run_id, _ = ingested

    run = await catalog.get_pipeline_run(run_id)
    assert run.status == RunStatus.SUCCEEDED
    assert [r.run_id for r in await catalog.list_runs(universe_id)] == [run_id]
    assert await catalog.list_runs(universe_id, status=RunStatus.FAILED) == []

    with pytest.raises(PipelineRunNotFoundError):
        await catalog.get_pipeline_run(uuid4())
