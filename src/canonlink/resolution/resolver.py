"""Entity resolution for detected mentions.

For each UNRESOLVED mention the resolver looks up candidate entities by alias
and takes exactly one of five decisions:

    no candidates at all               -> MINTED       new entity + primary alias, mention linked
    sole candidate, score >= high      -> LINKED       mention linked, confidence unchanged
    one qualifying otherwise           -> LINKED_WEAK  mention linked, confidence lowered to score
    two or more qualifying             -> ESCALATED    ambiguity item opened, mention CANDIDATE
    candidates, none qualifying        -> UNRESOLVED   nothing written

A candidate qualifies when its score is at least the ambiguity threshold.
Exact alias matches score 1.0; fuzzy matches score similarity x alias
confidence. A strong match that came back alongside weaker ones is linked
weakly.

Each mention's side effects run in their own savepoint, and resolution for a
universe is serialised through a per-tenant lock so concurrent callers cannot
mint duplicate entities. Callers with their own sessions must pass
``commit=True`` so the lock is held until the new rows are visible to others.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from canonlink.config import settings
from canonlink.errors import EntityCreationError, MentionStateError
from canonlink.models.ambiguity_item import AmbiguityItem
from canonlink.models.entity import Entity, EntityAlias
from canonlink.models.enums import AmbiguityStatus, EntityType, ResolutionStatus, Severity
from canonlink.models.mention import EntityMention
from canonlink.resolution.alias_index import AliasIndex, AliasMatch, build_alias_index
from canonlink.resolution.locks import TenantLockRegistry, default_lock_registry
from canonlink.resolution.similarity import normalize

logger = logging.getLogger(__name__)

PRIMARY_ALIAS_CONFIDENCE = 1.0
CORPORATE_MARKERS = ("Corp", "Inc", "LLC", "Ltd")


class Decision(str, Enum):
    """Which branch the resolver took for a mention."""

    MINTED = "minted"
    LINKED = "linked"
    LINKED_WEAK = "linked_weak"
    ESCALATED = "escalated"
    UNRESOLVED = "unresolved"


@dataclass
class ResolutionOutcome:
    """Result of resolving one mention."""

    mention: EntityMention
    decision: Decision

    candidates: list[AliasMatch] = field(default_factory=list)
    """Qualifying candidates, best first (empty for MINTED and UNRESOLVED)."""

    entity: Entity | None = None
    """The entity the mention now links to (MINTED, LINKED, LINKED_WEAK)."""

    alias: EntityAlias | None = None
    """Primary alias created alongside a minted entity."""

    ambiguity_item: AmbiguityItem | None = None

    @property
    def created_entity(self) -> Entity | None:
        return self.entity if self.decision == Decision.MINTED else None


def infer_entity_type(surface_form: str) -> EntityType:
    """Coarse type guess for a newly minted entity.

    Corporate suffixes and all-caps forms are organisations, "The <Name>"
    is a place, anything else a person. Suffixes match as substrings, so
    "Incy Wincy" is also an organisation.
    """
    if any(marker in surface_form for marker in CORPORATE_MARKERS):
        return EntityType.ORG
    if all(char.isupper() or char.isspace() for char in surface_form):
        return EntityType.ORG
    if surface_form.startswith("The ") and len(surface_form.split()) >= 2:
        return EntityType.PLACE
    return EntityType.PERSON


def choose_decision(
    candidates: Sequence[AliasMatch],
    *,
    ambiguity_threshold: float,
    high_confidence_threshold: float,
    max_candidates: int,
) -> tuple[Decision, list[AliasMatch]]:
    """Pick the decision branch for a candidate list.

    Returns:
        The decision and the qualifying candidates it was based on, best
        first and capped at ``max_candidates``.
    """
    if not candidates:
        return Decision.MINTED, []

    qualifying = sorted(
        (c for c in candidates if c.score >= ambiguity_threshold),
        key=lambda c: (-c.score, c.entity.canonical_name),
    )[:max_candidates]

    if len(qualifying) >= 2:
        return Decision.ESCALATED, qualifying
    if len(qualifying) == 1:
        if len(candidates) == 1 and qualifying[0].score >= high_confidence_threshold:
            return Decision.LINKED, qualifying
        return Decision.LINKED_WEAK, qualifying
    return Decision.UNRESOLVED, []


class EntityResolver:
    """Links mentions to canonical entities.

    Usage:
        async with async_session_factory() as session:
            resolver = EntityResolver(session)
            outcome = await resolver.resolve(mention)
            await session.commit()

    The resolver flushes and leaves the commit to the caller, unless asked to
    commit each mention (``resolve(mention, commit=True)``).
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        index: AliasIndex | None = None,
        ambiguity_threshold: float | None = None,
        high_confidence_threshold: float | None = None,
        max_candidates: int | None = None,
        alias_create_attempts: int | None = None,
        locks: TenantLockRegistry | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            session: Database session.
            index: Alias index (default built from ``similarity_backend``).
            ambiguity_threshold: Minimum score for a candidate to count.
            high_confidence_threshold: Score at which a lone candidate links
                without lowering mention confidence.
            max_candidates: Cap on candidates considered.
            alias_create_attempts: Tries at inserting a minted entity's
                primary alias before giving up.
            locks: Per-tenant lock registry (default shared per event loop).
        """
        self._session = session
        self._index = index if index is not None else build_alias_index(session)
        self._ambiguity_threshold = (
            ambiguity_threshold
            if ambiguity_threshold is not None
            else settings.resolution_ambiguity_threshold
        )
        self._high_confidence_threshold = (
            high_confidence_threshold
            if high_confidence_threshold is not None
            else settings.resolution_high_confidence_threshold
        )
        self._max_candidates = (
            max_candidates if max_candidates is not None else settings.resolution_max_candidates
        )
        self._alias_create_attempts = max(
            1,
            alias_create_attempts
            if alias_create_attempts is not None
            else settings.alias_create_attempts,
        )
        self._locks = locks

    async def find_candidates(self, universe_id: UUID, surface_form: str) -> list[AliasMatch]:
        """Exact alias matches if any, otherwise fuzzy matches."""
        normalized = normalize(surface_form)
        if not normalized:
            return []
        exact = await self._index.exact_match(normalized, universe_id)
        if exact:
            return exact
        return await self._index.fuzzy_match(
            surface_form,
            universe_id,
            self._ambiguity_threshold,
            self._max_candidates,
        )

    async def resolve(self, mention: EntityMention, *, commit: bool = False) -> ResolutionOutcome:
        """Resolve one UNRESOLVED mention.

        Args:
            mention: Mention to resolve (added to the session if needed).
            commit: Commit the session before releasing the tenant lock.
                Without it the caller must commit, and other sessions may
                not see an entity minted here until it does.

        Raises:
            MentionStateError: If the mention is RESOLVED or CANDIDATE.
            EntityCreationError: If a new entity's primary alias could not
                be stored. Nothing from this mention is kept.
        """
        if mention.resolution_status not in (None, ResolutionStatus.UNRESOLVED):
            raise MentionStateError(mention.mention_id, mention.resolution_status.value)

        async with self.tenant_lock(mention.universe_id):
            if mention not in self._session:
                self._session.add(mention)
            async with self._session.begin_nested():
                outcome = await self._resolve_locked(mention)
            if commit:
                await self._session.commit()

        logger.info(
            "Resolved %r in universe %s: %s (%d candidate(s))",
            mention.surface_form,
            mention.universe_id,
            outcome.decision.value,
            len(outcome.candidates),
        )
        return outcome

    async def resolve_batch(
        self, mentions: Sequence[EntityMention], *, commit: bool = False
    ) -> list[ResolutionOutcome]:
        """Resolve mentions one at a time, in order.

        Later mentions see entities minted for earlier ones, so repeated
        surface forms in a batch share one entity. With ``commit=True`` each
        mention is committed before the next starts, so a failure part way
        keeps what was already resolved.
        """
        return [await self.resolve(mention, commit=commit) for mention in mentions]

    def tenant_lock(self, universe_id: UUID) -> asyncio.Lock:
        registry = self._locks if self._locks is not None else default_lock_registry()
        return registry.lock_for(universe_id)

    async def _resolve_locked(self, mention: EntityMention) -> ResolutionOutcome:
        candidates = await self.find_candidates(mention.universe_id, mention.surface_form)
        decision, qualifying = choose_decision(
            candidates,
            ambiguity_threshold=self._ambiguity_threshold,
            high_confidence_threshold=self._high_confidence_threshold,
            max_candidates=self._max_candidates,
        )
        outcome = ResolutionOutcome(mention=mention, decision=decision, candidates=qualifying)

        if decision == Decision.MINTED:
            entity, alias = await self._mint_entity(mention)
            mention.link(entity.entity_id)
            outcome.entity = entity
            outcome.alias = alias
        elif decision in (Decision.LINKED, Decision.LINKED_WEAK):
            best = qualifying[0]
            mention.link(best.entity.entity_id)
            if decision == Decision.LINKED_WEAK:
                mention.confidence = min(mention.confidence, best.score)
            outcome.entity = best.entity
        elif decision == Decision.ESCALATED:
            mention.entity_id = None
            mention.resolution_status = ResolutionStatus.CANDIDATE
            outcome.ambiguity_item = self._escalate(mention, qualifying)
        else:
            mention.entity_id = None
            mention.resolution_status = ResolutionStatus.UNRESOLVED
            logger.debug(
                "No candidate for %r reached %.2f (best %.3f)",
                mention.surface_form,
                self._ambiguity_threshold,
                max(c.score for c in candidates),
            )

        await self._session.flush()
        return outcome

    async def _mint_entity(self, mention: EntityMention) -> tuple[Entity, EntityAlias]:
        """Create an entity and its primary alias, both or neither."""
        surface_form = mention.surface_form
        entity = Entity(
            entity_id=uuid4(),
            universe_id=mention.universe_id,
            entity_type=infer_entity_type(surface_form),
            canonical_name=surface_form,
        )
        async with self._session.begin_nested():
            self._session.add(entity)
            await self._session.flush()
            alias = await self._create_primary_alias(entity)

        logger.info(
            "Minted %s entity %s for %r", entity.entity_type.value, entity.entity_id, surface_form
        )
        return entity, alias

    async def _create_primary_alias(self, entity: Entity) -> EntityAlias:
        last_error: SQLAlchemyError | None = None
        for attempt in range(1, self._alias_create_attempts + 1):
            alias = self._build_primary_alias(entity)
            try:
                async with self._session.begin_nested():
                    self._session.add(alias)
                    await self._session.flush()
            except SQLAlchemyError as exc:
                last_error = exc
                logger.warning(
                    "Primary alias insert for %r failed (attempt %d/%d): %s",
                    entity.canonical_name,
                    attempt,
                    self._alias_create_attempts,
                    exc,
                )
                continue
            return alias

        raise EntityCreationError(
            entity.canonical_name, self._alias_create_attempts
        ) from last_error

    def _build_primary_alias(self, entity: Entity) -> EntityAlias:
        return EntityAlias(
            alias_id=uuid4(),
            entity_id=entity.entity_id,
            alias=entity.canonical_name,
            alias_norm=normalize(entity.canonical_name),
            confidence=PRIMARY_ALIAS_CONFIDENCE,
        )

    def _escalate(self, mention: EntityMention, qualifying: list[AliasMatch]) -> AmbiguityItem:
        item = AmbiguityItem(
            item_id=uuid4(),
            universe_id=mention.universe_id,
            mention_id=mention.mention_id,
            subject_entity_id=qualifying[0].entity.entity_id,
            candidates=[
                {
                    "entity_id": str(match.entity.entity_id),
                    "canonical_name": match.entity.canonical_name,
                    "entity_type": match.entity.entity_type.value,
                    "score": round(match.score, 4),
                }
                for match in qualifying
            ],
            status=AmbiguityStatus.OPEN,
            severity=Severity.WARN,
            details={
                "surface_form": mention.surface_form,
                "segment_id": str(mention.segment_id),
                "span": [mention.span_start, mention.span_end],
            },
        )
        self._session.add(item)
        logger.info(
            "Escalated %r: %d candidates, top %s (%.3f)",
            mention.surface_form,
            len(qualifying),
            qualifying[0].entity.canonical_name,
            qualifying[0].score,
        )
        return item
