"""FastAPI application for canonlink."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated
from uuid import UUID

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from canonlink import __version__
from canonlink.db import get_session, init_db
from canonlink.errors import NotFoundError, StateError, TenantMismatchError
from canonlink.models.enums import AmbiguityStatus, ResolutionStatus, RunStatus
from canonlink.resolution import AliasIndex
from canonlink.schemas import (
    AliasCreateRequest,
    AliasRead,
    AmbiguityItemRead,
    EntityDetail,
    EntityRead,
    IngestRequest,
    MentionRead,
    PipelineRunRead,
    ReviewDismissRequest,
    ReviewResolveRequest,
)
from canonlink.services import CatalogService, IngestionPipeline, ReviewService


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler."""
    await init_db()
    yield


app = FastAPI(
    title="canonlink",
    description="Entity mention detection and resolution for long-form narrative text",
    version=__version__,
    lifespan=lifespan,
)

SessionDep = Annotated[AsyncSession, Depends(get_session)]


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(StateError)
async def state_error_handler(request: Request, exc: StateError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(TenantMismatchError)
async def tenant_mismatch_handler(request: Request, exc: TenantMismatchError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


@app.get("/universes/{universe_id}/mentions", response_model=list[MentionRead])
async def list_mentions(
    universe_id: UUID,
    session: SessionDep,
    status: ResolutionStatus | None = None,
    limit: int = 100,
) -> list[MentionRead]:
    mentions = await CatalogService(session).list_mentions(universe_id, status=status, limit=limit)
    return [MentionRead.model_validate(m) for m in mentions]


@app.get("/universes/{universe_id}/entities", response_model=list[EntityRead])
async def list_entities(
    universe_id: UUID, session: SessionDep, limit: int = 100
) -> list[EntityRead]:
    entities = await CatalogService(session).list_entities(universe_id, limit=limit)
    return [EntityRead.model_validate(e) for e in entities]


@app.get("/entities/{entity_id}", response_model=EntityDetail)
async def get_entity(entity_id: UUID, session: SessionDep) -> EntityDetail:
    entity = await CatalogService(session).get_entity(entity_id)
    return EntityDetail.model_validate(entity)


@app.post("/entities/{entity_id}/aliases", response_model=AliasRead, status_code=201)
async def add_alias(entity_id: UUID, body: AliasCreateRequest, session: SessionDep) -> AliasRead:
    """Attach a hand-added alias to an entity (returns the existing one if present)."""
    entity = await CatalogService(session).get_entity(entity_id)
    alias = await AliasIndex(session).add_alias(entity, body.alias, body.confidence)
    await session.commit()
    return AliasRead.model_validate(alias)


@app.get("/universes/{universe_id}/ambiguities", response_model=list[AmbiguityItemRead])
async def list_ambiguities(
    universe_id: UUID,
    session: SessionDep,
    status: AmbiguityStatus | None = AmbiguityStatus.OPEN,
    limit: int = 100,
) -> list[AmbiguityItemRead]:
    items = await CatalogService(session).list_ambiguity_items(
        universe_id, status=status, limit=limit
    )
    return [AmbiguityItemRead.model_validate(item) for item in items]


@app.post("/ambiguities/{item_id}/resolve", response_model=AmbiguityItemRead)
async def resolve_ambiguity(
    item_id: UUID, body: ReviewResolveRequest, session: SessionDep
) -> AmbiguityItemRead:
    """Resolve an open ambiguity item to the chosen entity."""
    item = await ReviewService(session).resolve(
        item_id, body.entity_id, notes=body.notes, resolved_by=body.resolved_by
    )
    await session.commit()
    return AmbiguityItemRead.model_validate(item)


@app.post("/ambiguities/{item_id}/dismiss", response_model=AmbiguityItemRead)
async def dismiss_ambiguity(
    item_id: UUID, body: ReviewDismissRequest, session: SessionDep
) -> AmbiguityItemRead:
    """Dismiss an open ambiguity item, leaving its mention as a candidate."""
    item = await ReviewService(session).dismiss(
        item_id, notes=body.notes, resolved_by=body.resolved_by
    )
    await session.commit()
    return AmbiguityItemRead.model_validate(item)


@app.get("/runs/{run_id}", response_model=PipelineRunRead)
async def get_run(run_id: UUID, session: SessionDep) -> PipelineRunRead:
    run = await CatalogService(session).get_pipeline_run(run_id)
    return PipelineRunRead.model_validate(run)


@app.get("/universes/{universe_id}/runs", response_model=list[PipelineRunRead])
async def list_runs(
    universe_id: UUID,
    session: SessionDep,
    status: RunStatus | None = None,
    limit: int = 100,
) -> list[PipelineRunRead]:
    runs = await CatalogService(session).list_runs(universe_id, status=status, limit=limit)
    return [PipelineRunRead.model_validate(run) for run in runs]


@app.get("/segments/{segment_id}/mentions", response_model=list[MentionRead])
async def list_segment_mentions(segment_id: UUID, session: SessionDep) -> list[MentionRead]:
    mentions = await CatalogService(session).mentions_for_segment(segment_id)
    return [MentionRead.model_validate(m) for m in mentions]


@app.post("/universes/{universe_id}/ingest", response_model=PipelineRunRead, status_code=201)
async def ingest(universe_id: UUID, body: IngestRequest, session: SessionDep) -> PipelineRunRead:
    """Detect and resolve mentions in pre-segmented text.

    Runs synchronously; the returned run is terminal (SUCCEEDED or FAILED).
    """
    run_id = await IngestionPipeline(session).ingest(
        universe_id, body.document_id, body.to_segments()
    )
    run = await CatalogService(session).get_pipeline_run(run_id)
    return PipelineRunRead.model_validate(run)
