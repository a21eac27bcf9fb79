"""Human review of ambiguity items.

An OPEN item is closed exactly once, either by resolving it to one entity
(which links the escalated mention) or by dismissing it (which leaves the
mention CANDIDATE). Open items never expire.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from canonlink.errors import (
    AmbiguityItemNotFoundError,
    EntityNotFoundError,
    ReviewStateError,
    TenantMismatchError,
)
from canonlink.models.ambiguity_item import AmbiguityItem
from canonlink.models.base import utcnow
from canonlink.models.entity import Entity
from canonlink.models.enums import AmbiguityStatus, ResolutionStatus
from canonlink.models.mention import EntityMention

logger = logging.getLogger(__name__)

DEFAULT_REVIEWER = "author"


class ReviewService:
    """Closes ambiguity items on behalf of a reviewer.

    Usage:
        async with async_session_factory() as session:
            review = ReviewService(session)
            await review.resolve(item_id, chosen_entity_id, notes="Same Alice")
            await session.commit()
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the service with a database session."""
        self._session = session

    async def get_item(self, item_id: UUID) -> AmbiguityItem:
        item = await self._session.get(AmbiguityItem, item_id)
        if item is None:
            raise AmbiguityItemNotFoundError(item_id)
        return item

    async def resolve(
        self,
        item_id: UUID,
        chosen_entity_id: UUID,
        notes: str | None = None,
        resolved_by: str = DEFAULT_REVIEWER,
    ) -> AmbiguityItem:
        """Resolve an open item to ``chosen_entity_id`` and link its mention.

        The chosen entity does not have to be one of the listed candidates,
        but it must belong to the item's universe.

        Raises:
            AmbiguityItemNotFoundError: Unknown item.
            ReviewStateError: Item not OPEN, or its mention already RESOLVED.
            EntityNotFoundError: Chosen entity does not exist.
            TenantMismatchError: Chosen entity is in another universe.
        """
        item = await self.get_item(item_id)
        self._require_open(item)

        entity = await self._session.get(Entity, chosen_entity_id)
        if entity is None:
            raise EntityNotFoundError(chosen_entity_id)
        if entity.universe_id != item.universe_id:
            raise TenantMismatchError(
                item.universe_id, entity.universe_id, f"Entity {entity.entity_id}"
            )

        mention = await self._get_mention(item)
        if mention is not None and mention.resolution_status == ResolutionStatus.RESOLVED:
            raise ReviewStateError(
                item.item_id, f"mention {mention.mention_id} is already resolved"
            )

        item.status = AmbiguityStatus.RESOLVED
        item.notes = notes
        item.resolved_entity_id = entity.entity_id
        item.resolved_by = resolved_by
        item.resolved_at = utcnow()
        item.resolution = self._resolution_record("resolve", resolved_by, entity.entity_id)

        if mention is not None:
            mention.link(entity.entity_id)

        await self._session.flush()
        logger.info(
            "Ambiguity item %s resolved to %s (%s) by %s",
            item.item_id,
            entity.canonical_name,
            entity.entity_id,
            resolved_by,
        )
        return item

    async def dismiss(
        self,
        item_id: UUID,
        notes: str | None = None,
        resolved_by: str = DEFAULT_REVIEWER,
    ) -> AmbiguityItem:
        """Dismiss an open item. The mention is left untouched.

        Raises:
            AmbiguityItemNotFoundError: Unknown item.
            ReviewStateError: Item not OPEN.
        """
        item = await self.get_item(item_id)
        self._require_open(item)

        item.status = AmbiguityStatus.DISMISSED
        item.notes = notes
        item.resolved_by = resolved_by
        item.resolved_at = utcnow()
        item.resolution = self._resolution_record("dismiss", resolved_by, None)

        await self._session.flush()
        logger.info("Ambiguity item %s dismissed by %s", item.item_id, resolved_by)
        return item

    async def _get_mention(self, item: AmbiguityItem) -> EntityMention | None:
        if item.mention_id is None:
            return None
        return await self._session.get(EntityMention, item.mention_id)

    @staticmethod
    def _require_open(item: AmbiguityItem) -> None:
        if not item.is_open:
            raise ReviewStateError(item.item_id, f"status is {item.status.value}, expected open")

    @staticmethod
    def _resolution_record(action: str, resolved_by: str, entity_id: UUID | None) -> dict[str, Any]:
        return {
            "action": action,
            "entity_id": str(entity_id) if entity_id is not None else None,
            "resolved_by": resolved_by,
        }
