"""Tests for exact and fuzzy alias lookup."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID, uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from canonlink.resolution.alias_index import (
    AliasIndex,
    PgTrigramAliasIndex,
    build_alias_index,
)
from canonlink.resolution.similarity import trigram_similarity

if TYPE_CHECKING:
    from conftest import CreateEntity


@pytest.fixture
def index(db_session: AsyncSession) -> AliasIndex:
    return AliasIndex(db_session)


class TestExactMatch:
    @pytest.mark.asyncio
    async def test_scores_one_regardless_of_alias_confidence(
        self, index: AliasIndex, create_entity: CreateEntity, universe_id: UUID
    ) -> None:
        alice = await create_entity("Alice Smith", aliases=[("Ally", 0.3)])

        matches = await index.exact_match("ally", universe_id)

        assert [(m.entity_id, m.score) for m in matches] == [(alice.entity_id, 1.0)]

    @pytest.mark.asyncio
    async def test_one_entry_per_entity(
        self, index: AliasIndex, create_entity: CreateEntity, universe_id: UUID
    ) -> None:
        first = await create_entity("Alice Smith", aliases=[("Alice", 0.9)])
        second = await create_entity("Alice Jones", aliases=[("Alice", 0.7)])

        matches = await index.exact_match("alice", universe_id)

        assert {m.entity_id for m in matches} == {first.entity_id, second.entity_id}
        assert all(m.score == 1.0 for m in matches)

    @pytest.mark.asyncio
    async def test_no_match(self, index: AliasIndex, universe_id: UUID) -> None:
        assert await index.exact_match("nobody", universe_id) == []


class TestFuzzyMatch:
    @pytest.mark.asyncio
    async def test_scores_similarity_times_confidence(
        self, index: AliasIndex, create_entity: CreateEntity, universe_id: UUID
    ) -> None:
        await create_entity("Bob", aliases=[("Bobby", 0.5)])

        matches = await index.fuzzy_match("Bobbi", universe_id, 0.75, 5)

        assert len(matches) == 1
        assert matches[0].score == pytest.approx(0.8 * 0.5)
        assert matches[0].alias is not None
        assert matches[0].alias.alias == "Bobby"

    @pytest.mark.asyncio
    async def test_below_min_similarity_excluded(
        self, index: AliasIndex, create_entity: CreateEntity, universe_id: UUID
    ) -> None:
        await create_entity("Gandalf")
        assert await index.fuzzy_match("Frodo", universe_id, 0.75, 5) == []

    @pytest.mark.asyncio
    @pytest.mark.filterwarnings("error::sqlalchemy.exc.SADeprecationWarning")
    async def test_best_alias_per_entity(
        self, index: AliasIndex, create_entity: CreateEntity, universe_id: UUID
    ) -> None:
        alice = await create_entity("Alice", aliases=[("Alicia", 1.0)])

        matches = await index.fuzzy_match("Alicea", universe_id, 0.75, 5)

        assert [m.entity_id for m in matches] == [alice.entity_id]
        assert matches[0].score == pytest.approx(1 - 1 / 6)

    @pytest.mark.asyncio
    async def test_ranked_and_truncated(
        self, index: AliasIndex, create_entity: CreateEntity, universe_id: UUID
    ) -> None:
        await create_entity("Alics")
        await create_entity("Alicx")
        await create_entity("Alicq")
        strong = await create_entity("Zed", aliases=[("Alicf", 1.0)])

        matches = await index.fuzzy_match("Alicf", universe_id, 0.75, 3)

        assert len(matches) == 3
        assert matches[0].entity_id == strong.entity_id
        assert matches[0].score == pytest.approx(1.0)
        # Ties broken by canonical name
        assert [m.entity.canonical_name for m in matches[1:]] == ["Alicq", "Alics"]

    @pytest.mark.asyncio
    async def test_blank_surface_form(self, index: AliasIndex, universe_id: UUID) -> None:
        assert await index.fuzzy_match("   ", universe_id, 0.75, 5) == []


@pytest.mark.asyncio
async def test_matches_never_cross_tenants(
    index: AliasIndex, create_entity: CreateEntity, universe_id: UUID
) -> None:
    other_universe = uuid4()
    await create_entity("Alice", universe=other_universe)

    assert await index.exact_match("alice", universe_id) == []
    assert await index.fuzzy_match("Alise", universe_id, 0.5, 5) == []
    assert len(await index.exact_match("alice", other_universe)) == 1


class TestAddAlias:
    @pytest.mark.asyncio
    async def test_add_and_find(
        self, index: AliasIndex, create_entity: CreateEntity, universe_id: UUID
    ) -> None:
        entity = await create_entity("Gandalf")

        alias = await index.add_alias(entity, "Mithrandir", 0.9)

        assert alias.alias_norm == "mithrandir"
        matches = await index.exact_match("mithrandir", universe_id)
        assert [m.entity_id for m in matches] == [entity.entity_id]

    @pytest.mark.asyncio
    async def test_idempotent_on_normalized_text(
        self, index: AliasIndex, create_entity: CreateEntity
    ) -> None:
        entity = await create_entity("Gandalf")

        first = await index.add_alias(entity, "Mithrandir")
        second = await index.add_alias(entity, "  MITHRANDIR ")

        assert first.alias_id == second.alias_id
        aliases = await index.aliases_for(entity.entity_id)
        assert [a.alias for a in aliases] == ["Gandalf", "Mithrandir"]

    @pytest.mark.asyncio
    async def test_rejects_blank_and_out_of_range(
        self, index: AliasIndex, create_entity: CreateEntity
    ) -> None:
        entity = await create_entity("Gandalf")
        with pytest.raises(ValueError):
            await index.add_alias(entity, "   ")
        with pytest.raises(ValueError):
            await index.add_alias(entity, "Grey", 1.5)


class TestBackends:
    @pytest.mark.asyncio
    async def test_trigram_backend_ignores_word_order(
        self, db_session: AsyncSession, create_entity: CreateEntity, universe_id: UUID
    ) -> None:
        entity = await create_entity("Alice Smith")
        index = build_alias_index(db_session, "trigram")

        matches = await index.fuzzy_match("Smith, Alice", universe_id, 0.75, 5)

        assert [m.entity_id for m in matches] == [entity.entity_id]

    def test_factory(self, db_session: AsyncSession) -> None:
        assert isinstance(build_alias_index(db_session, "pg_trgm"), PgTrigramAliasIndex)
        trigram = build_alias_index(db_session, "trigram")
        assert type(trigram) is AliasIndex
        assert trigram._similarity is trigram_similarity
