"""Shared pytest fixtures for canonlink tests."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from canonlink.db import make_engine
from canonlink.models import (
    Base,
    Entity,
    EntityAlias,
    EntityMention,
    EntityType,
    MentionPattern,
    ResolutionStatus,
    Segment,
)
from canonlink.resolution.similarity import normalize

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


# In-memory SQLite by default; point at PostgreSQL to exercise asyncpg
TEST_DATABASE_URL = os.environ.get(
    "CANONLINK_TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:"
)


@pytest.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a test database engine with all tables, dropped afterwards."""
    kwargs = {"poolclass": StaticPool} if TEST_DATABASE_URL.startswith("sqlite") else {}
    engine = make_engine(TEST_DATABASE_URL, **kwargs)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """A session on a fresh schema.

    The pipeline commits, so tests get isolation from a per-test schema rather
    than an outer rolled-back transaction.
    """
    async with session_factory() as session:
        yield session


@pytest.fixture
def universe_id() -> UUID:
    return uuid4()


# Type aliases for factory fixtures
MakeSegment = Callable[..., Segment]
MakeMention = Callable[..., EntityMention]
CreateEntity = Callable[..., Awaitable[Entity]]


@pytest.fixture
def make_segment() -> MakeSegment:
    """Factory fixture for creating (transient) Segment instances."""

    def _make(
        text: str,
        *,
        segment_id: UUID | None = None,
        version_id: UUID | None = None,
        ordinal: int = 0,
        chapter_label: str | None = None,
    ) -> Segment:
        return Segment(
            segment_id=segment_id or uuid4(),
            version_id=version_id or uuid4(),
            ordinal=ordinal,
            text=text,
            chapter_label=chapter_label,
            source_locator={},
        )

    return _make


@pytest.fixture
def make_mention(universe_id: UUID) -> MakeMention:
    """Factory fixture for creating (transient) UNRESOLVED mentions."""

    def _make(
        surface_form: str,
        *,
        segment_id: UUID,
        universe: UUID | None = None,
        span_start: int = 0,
        confidence: float = 0.8,
        pattern: MentionPattern = MentionPattern.CAPITALIZED,
    ) -> EntityMention:
        return EntityMention(
            mention_id=uuid4(),
            universe_id=universe or universe_id,
            segment_id=segment_id,
            entity_id=None,
            surface_form=surface_form,
            span_start=span_start,
            span_end=span_start + len(surface_form),
            confidence=confidence,
            pattern=pattern,
            resolution_status=ResolutionStatus.UNRESOLVED,
        )

    return _make


@pytest.fixture
def create_entity(db_session: AsyncSession, universe_id: UUID) -> CreateEntity:
    """Factory fixture that persists an entity with its primary alias and extra aliases."""

    async def _create(
        canonical_name: str,
        *,
        universe: UUID | None = None,
        entity_type: EntityType = EntityType.PERSON,
        aliases: list[tuple[str, float]] | None = None,
    ) -> Entity:
        entity = Entity(
            entity_id=uuid4(),
            universe_id=universe or universe_id,
            entity_type=entity_type,
            canonical_name=canonical_name,
        )
        db_session.add(entity)
        for text, confidence in [(canonical_name, 1.0), *(aliases or [])]:
            db_session.add(
                EntityAlias(
                    alias_id=uuid4(),
                    entity_id=entity.entity_id,
                    alias=text,
                    alias_norm=normalize(text),
                    confidence=confidence,
                )
            )
        await db_session.flush()
        return entity

    return _create


@pytest.fixture
async def segment(db_session: AsyncSession, make_segment: MakeSegment) -> Segment:
    """A persisted segment that test mentions can point at."""
    seg = make_segment("Alice met Bob at the Shire.")
    db_session.add(seg)
    await db_session.flush()
    return seg
