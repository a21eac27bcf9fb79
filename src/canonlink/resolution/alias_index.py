"""Alias lookup for entity resolution.

Exact lookups hit the normalised alias column directly. Fuzzy lookups score
every alias in the universe with a pluggable similarity function; the
PostgreSQL variant asks pg_trgm to prefilter first so only plausible aliases
come back over the wire.

Every query is scoped to one universe. Nothing here ever returns an entity
from another tenant.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from uuid import UUID, uuid4

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from canonlink.config import settings
from canonlink.models.entity import Entity, EntityAlias
from canonlink.resolution.similarity import (
    SimilarityFunction,
    get_similarity_function,
    levenshtein_similarity,
    normalize,
)

logger = logging.getLogger(__name__)

DEFAULT_ALIAS_CONFIDENCE = 0.8


@dataclass
class AliasMatch:
    """An entity that matched a surface form, with its match score."""

    entity: Entity
    score: float
    """Exact matches score 1.0; fuzzy matches score similarity x alias confidence."""

    alias: EntityAlias | None = None
    """The alias that produced the score (None for exact matches)."""

    @property
    def entity_id(self) -> UUID:
        return self.entity.entity_id


class AliasIndex:
    """Exact and fuzzy alias lookup over one session.

    Usage:
        async with async_session_factory() as session:
            index = AliasIndex(session)
            matches = await index.exact_match("alice", universe_id)
            if not matches:
                matches = await index.fuzzy_match("Alise", universe_id, 0.75, 5)
    """

    def __init__(
        self,
        session: AsyncSession,
        similarity: SimilarityFunction = levenshtein_similarity,
    ) -> None:
        self._session = session
        self._similarity = similarity

    async def exact_match(self, normalized_text: str, universe_id: UUID) -> list[AliasMatch]:
        """Entities owning an alias whose normalised text equals ``normalized_text``.

        Each entity appears once with score 1.0, whatever the stored alias
        confidence.
        """
        stmt = (
            select(Entity)
            .join(EntityAlias, EntityAlias.entity_id == Entity.entity_id)
            .where(
                Entity.universe_id == universe_id,
                EntityAlias.alias_norm == normalized_text,
            )
            .distinct()
            .order_by(Entity.canonical_name, Entity.entity_id)
        )
        result = await self._session.execute(stmt)
        return [AliasMatch(entity=entity, score=1.0) for entity in result.scalars().all()]

    async def fuzzy_match(
        self,
        surface_form: str,
        universe_id: UUID,
        min_similarity: float,
        max_results: int,
    ) -> list[AliasMatch]:
        """Entities with an alias similar to ``surface_form``, best first.

        ``min_similarity`` applies to the raw string similarity. The returned
        score also folds in the alias confidence, so it can fall below
        ``min_similarity``; callers apply their own score threshold.

        Args:
            surface_form: Text as it appeared in prose (normalised here).
            universe_id: Tenant to search.
            min_similarity: Minimum similarity for an alias to count.
            max_results: Maximum number of entities returned.

        Returns:
            One match per entity (its best-scoring alias), sorted by score
            descending, ties broken by canonical name.
        """
        normalized = normalize(surface_form)
        if not normalized or max_results <= 0:
            return []

        best: dict[UUID, AliasMatch] = {}
        rows = await self._load_aliases(normalized, universe_id, min_similarity)
        for alias, entity in rows:
            similarity = self._similarity(normalized, alias.alias_norm)
            if similarity < min_similarity:
                continue
            score = similarity * alias.confidence
            logger.debug(
                "Alias %r ~ %r: similarity=%.3f confidence=%.2f score=%.3f",
                normalized,
                alias.alias_norm,
                similarity,
                alias.confidence,
                score,
            )
            current = best.get(entity.entity_id)
            if current is None or score > current.score:
                best[entity.entity_id] = AliasMatch(entity=entity, score=score, alias=alias)

        ranked = sorted(best.values(), key=lambda m: (-m.score, m.entity.canonical_name))
        return ranked[:max_results]

    async def add_alias(
        self,
        entity: Entity,
        display_text: str,
        confidence: float = DEFAULT_ALIAS_CONFIDENCE,
    ) -> EntityAlias:
        """Attach an alias to an entity, returning the existing one if already present."""
        alias_norm = normalize(display_text)
        if not alias_norm:
            msg = "Alias text must not be empty"
            raise ValueError(msg)
        if not 0.0 <= confidence <= 1.0:
            msg = f"Alias confidence must be within [0, 1], got {confidence}"
            raise ValueError(msg)

        stmt = select(EntityAlias).where(
            EntityAlias.entity_id == entity.entity_id,
            EntityAlias.alias_norm == alias_norm,
        )
        existing = (await self._session.execute(stmt)).scalar_one_or_none()
        if existing is not None:
            return existing

        alias = EntityAlias(
            alias_id=uuid4(),
            entity_id=entity.entity_id,
            alias=display_text,
            alias_norm=alias_norm,
            confidence=confidence,
        )
        self._session.add(alias)
        await self._session.flush()
        logger.info("Added alias %r to entity %s", display_text, entity.entity_id)
        return alias

    async def aliases_for(self, entity_id: UUID) -> list[EntityAlias]:
        """All aliases of an entity, most confident first."""
        stmt = (
            select(EntityAlias)
            .where(EntityAlias.entity_id == entity_id)
            .order_by(EntityAlias.confidence.desc(), EntityAlias.alias)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    def _alias_query(self, universe_id: UUID) -> Select[tuple[EntityAlias, Entity]]:
        return (
            select(EntityAlias, Entity)
            .join(Entity, EntityAlias.entity_id == Entity.entity_id)
            .where(Entity.universe_id == universe_id)
        )

    async def _load_aliases(
        self,
        normalized: str,
        universe_id: UUID,
        min_similarity: float,
    ) -> Sequence[tuple[EntityAlias, Entity]]:
        result = await self._session.execute(self._alias_query(universe_id))
        return result.all()


class PgTrigramAliasIndex(AliasIndex):
    """AliasIndex that lets PostgreSQL's pg_trgm discard dissimilar aliases.

    Requires the ``pg_trgm`` extension (``init_db`` creates it when this
    backend is configured). The final score still comes from the Python
    similarity function, so results agree with ``AliasIndex`` for any alias
    that survives the prefilter.
    """

    async def _load_aliases(
        self,
        normalized: str,
        universe_id: UUID,
        min_similarity: float,
    ) -> Sequence[tuple[EntityAlias, Entity]]:
        trigram_score = func.similarity(EntityAlias.alias_norm, normalized)
        stmt = (
            self._alias_query(universe_id)
            .where(trigram_score >= min_similarity)
            .order_by(trigram_score.desc())
        )
        result = await self._session.execute(stmt)
        return result.all()


def build_alias_index(session: AsyncSession, backend: str | None = None) -> AliasIndex:
    """Create the alias index configured by ``similarity_backend``."""
    backend = backend or settings.similarity_backend
    if backend == "pg_trgm":
        return PgTrigramAliasIndex(session)
    return AliasIndex(session, similarity=get_similarity_function(backend))
