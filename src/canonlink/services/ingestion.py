"""Ingestion pipeline: detect mentions in a document's segments, then resolve them.

A PipelineRun records each ingestion. Stages commit as they finish, and the
resolution stage commits after every mention, so work done before a failure
is kept:

    started -> mention_detection_complete -> entity_resolution_complete -> complete

Any exception turns the run FAILED (with the error text and the stage it
failed in) instead of propagating to the caller.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from canonlink.detection import MentionDetector
from canonlink.models.base import utcnow
from canonlink.models.enums import ResolutionStatus, RunStatus, RunType
from canonlink.models.mention import EntityMention
from canonlink.models.pipeline_run import PipelineRun
from canonlink.models.segment import Segment
from canonlink.resolution import Decision, EntityResolver, ResolutionOutcome

logger = logging.getLogger(__name__)

STAGE_STARTED = "started"
STAGE_DETECTION = "mention_detection"
STAGE_DETECTION_COMPLETE = "mention_detection_complete"
STAGE_RESOLUTION = "entity_resolution"
STAGE_RESOLUTION_COMPLETE = "entity_resolution_complete"
STAGE_COMPLETE = "complete"


class IngestionPipeline:
    """Runs detection and resolution over one document and tracks the run.

    Usage:
        async with async_session_factory() as session:
            pipeline = IngestionPipeline(session)
            run_id = await pipeline.ingest(universe_id, document_id, segments)

    Unlike the resolver, the pipeline commits: it owns the session's
    transaction for the duration of ``ingest``.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        detector: MentionDetector | None = None,
        resolver: EntityResolver | None = None,
    ) -> None:
        self._session = session
        self._detector = detector or MentionDetector()
        self._resolver = resolver or EntityResolver(session)

    async def ingest(
        self,
        universe_id: UUID,
        document_id: UUID | None,
        segments: Sequence[Segment],
    ) -> UUID:
        """Ingest a document's segments (in document order).

        Returns:
            The run id. Check the run's status for the outcome; failures are
            recorded on the run, not raised.
        """
        run = PipelineRun(
            run_id=uuid4(),
            universe_id=universe_id,
            document_id=document_id,
            run_type=RunType.INGEST,
            status=RunStatus.RUNNING,
            progress={"stage": STAGE_STARTED},
        )
        self._session.add(run)
        await self._session.commit()
        run_id = run.run_id
        logger.info(
            "Ingestion run %s started: universe=%s document=%s segments=%d",
            run_id,
            universe_id,
            document_id,
            len(segments),
        )

        stage = STAGE_DETECTION
        try:
            mentions = await self._detect(universe_id, segments)
            run.progress = {
                "stage": STAGE_DETECTION_COMPLETE,
                "segments": len(segments),
                "mentions_detected": len(mentions),
            }
            await self._session.commit()

            stage = STAGE_RESOLUTION
            # Each mention commits under the tenant lock, so a failure keeps earlier links
            outcomes = await self._resolver.resolve_batch(mentions, commit=True)
            counts = {**run.progress, **self._resolution_counts(outcomes)}
            run.progress = {**counts, "stage": STAGE_RESOLUTION_COMPLETE}
            await self._session.commit()

            run.status = RunStatus.SUCCEEDED
            run.progress = {**counts, "stage": STAGE_COMPLETE}
            run.completed_at = utcnow()
            await self._session.commit()
        except Exception as exc:
            logger.exception("Ingestion run %s failed during %s", run_id, stage)
            await self._record_failure(run_id, stage, exc)
            return run_id

        logger.info("Ingestion run %s complete: %s", run_id, run.progress)
        return run_id

    async def _detect(
        self, universe_id: UUID, segments: Sequence[Segment]
    ) -> list[EntityMention]:
        for segment in segments:
            if await self._session.get(Segment, segment.segment_id) is None:
                self._session.add(segment)

        mentions = self._detector.detect_batch(segments, universe_id)
        self._session.add_all(mentions)
        await self._session.flush()
        logger.debug("Detected %d mention(s) in %d segment(s)", len(mentions), len(segments))
        return mentions

    @staticmethod
    def _resolution_counts(outcomes: Sequence[ResolutionOutcome]) -> dict[str, int]:
        statuses = Counter(outcome.mention.resolution_status for outcome in outcomes)
        decisions = Counter(outcome.decision for outcome in outcomes)
        return {
            "mentions_resolved": statuses[ResolutionStatus.RESOLVED],
            "mentions_candidate": statuses[ResolutionStatus.CANDIDATE],
            "mentions_unresolved": statuses[ResolutionStatus.UNRESOLVED],
            "entities_created": decisions[Decision.MINTED],
            "ambiguity_items_created": decisions[Decision.ESCALATED],
        }

    async def _record_failure(self, run_id: UUID, stage: str, exc: Exception) -> None:
        # Discard uncommitted work from the failing step; everything before it is committed.
        await self._session.rollback()

        run = await self._session.get(PipelineRun, run_id, populate_existing=True)
        if run is None:
            msg = f"Pipeline run {run_id} disappeared while recording failure"
            raise RuntimeError(msg)

        progress: dict[str, Any] = dict(run.progress or {})
        progress["failed_stage"] = stage
        run.progress = progress
        run.status = RunStatus.FAILED
        run.error = str(exc) or type(exc).__name__
        run.completed_at = utcnow()
        await self._session.commit()
