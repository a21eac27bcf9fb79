"""Concurrent callers resolving the same surface form mint a single entity.

Each caller gets its own session, as concurrent API requests do, so an
entity minted by one is only visible to the others once committed.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from canonlink.models import Entity, EntityMention
from canonlink.resolution import (
    Decision,
    EntityResolver,
    ResolutionOutcome,
    TenantLockRegistry,
    default_lock_registry,
)

if TYPE_CHECKING:
    from conftest import MakeMention
    from canonlink.models import Segment


async def resolve_in_own_session(
    session_factory: async_sessionmaker[AsyncSession],
    mention: EntityMention,
    locks: TenantLockRegistry | None = None,
) -> ResolutionOutcome:
    async with session_factory() as session:
        resolver = EntityResolver(session, locks=locks)
        return await resolver.resolve(mention, commit=True)


async def count_entities(session_factory: async_sessionmaker[AsyncSession]) -> int:
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(Entity))).scalar_one()


@pytest.fixture
async def stored_segment(db_session: AsyncSession, segment: Segment) -> Segment:
    """The shared segment, committed so every session can see it."""
    await db_session.commit()
    return segment


@pytest.mark.asyncio
async def test_concurrent_sessions_share_one_entity(
    session_factory: async_sessionmaker[AsyncSession],
    make_mention: MakeMention,
    stored_segment: Segment,
) -> None:
    registry = TenantLockRegistry()
    mentions = [
        make_mention(form, segment_id=stored_segment.segment_id, span_start=n * 10)
        for n, form in enumerate(["Alice", "alice", "ALICE", " Alice", "Alice"])
    ]

    outcomes = await asyncio.gather(
        *(resolve_in_own_session(session_factory, mention, registry) for mention in mentions)
    )

    assert [o.decision for o in outcomes].count(Decision.MINTED) == 1
    assert await count_entities(session_factory) == 1
    assert len({m.entity_id for m in mentions}) == 1


@pytest.mark.asyncio
async def test_default_registry_is_shared_on_the_loop(
    session_factory: async_sessionmaker[AsyncSession],
    make_mention: MakeMention,
    stored_segment: Segment,
) -> None:
    outcomes = await asyncio.gather(
        resolve_in_own_session(
            session_factory, make_mention("Gandalf", segment_id=stored_segment.segment_id)
        ),
        resolve_in_own_session(
            session_factory,
            make_mention("Gandalf", segment_id=stored_segment.segment_id, span_start=30),
        ),
    )

    assert sorted(o.decision.value for o in outcomes) == ["linked", "minted"]
    assert await count_entities(session_factory) == 1
    assert default_lock_registry() is default_lock_registry()


@pytest.mark.asyncio
async def test_commit_happens_while_tenant_is_locked(
    session_factory: async_sessionmaker[AsyncSession],
    make_mention: MakeMention,
    stored_segment: Segment,
    universe_id: UUID,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    registry = TenantLockRegistry()
    lock_held: list[bool] = []

    async with session_factory() as session:
        original_commit = session.commit

        async def recording_commit() -> None:
            lock_held.append(registry.lock_for(universe_id).locked())
            await original_commit()

        monkeypatch.setattr(session, "commit", recording_commit)
        resolver = EntityResolver(session, locks=registry)
        await resolver.resolve(
            make_mention("Frodo", segment_id=stored_segment.segment_id), commit=True
        )

    assert lock_held == [True]
    assert not registry.lock_for(universe_id).locked()
    assert await count_entities(session_factory) == 1


@pytest.mark.asyncio
async def test_lock_per_universe() -> None:
    registry = TenantLockRegistry()
    universe_a, universe_b = uuid4(), uuid4()

    assert registry.lock_for(universe_a) is registry.lock_for(universe_a)
    assert registry.lock_for(universe_a) is not registry.lock_for(universe_b)
    assert len(registry) == 2
