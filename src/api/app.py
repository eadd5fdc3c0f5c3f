"""FastAPI application exposing collections, review sessions and proficiency banding."""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, FastAPI, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.api.schemas import (
    AssessmentRequest,
    AssessmentResponse,
    BandResponse,
    CollectionCreate,
    CollectionProficiencyResponse,
    CollectionResponse,
    CollectionStatsResponse,
    CollectionSummaryResponse,
    ItemCreate,
    ItemResponse,
    OutcomeBody,
    OutcomeRequest,
    OutcomeResponse,
    SessionStartResponse,
    SummaryResponse,
)
from src.db.items import (
    ItemPayload,
    add_item,
    collection_stats,
    create_collection,
    delete_collection,
    delete_item,
    list_collections,
    load_items,
    toggle_star,
)
from src.engine.errors import (
    ConcurrencyError,
    CursorMismatch,
    DuplicateCollection,
    EmptyDeck,
    EngineError,
    NotFoundError,
    RetriesExhausted,
    SessionStateError,
)
from src.engine.proficiency import assess, band_for_mastery
from src.services.sessions import ActiveSession, SessionRegistry


LOGGER = logging.getLogger(__name__)

router = APIRouter()


def _status_for(error: EngineError) -> int:
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, RetriesExhausted):
        return 503
    if isinstance(error, (ConcurrencyError, CursorMismatch, SessionStateError, EmptyDeck, DuplicateCollection)):
        return 409
    return 422


async def _engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    status = _status_for(exc)
    if status >= 500:
        LOGGER.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        LOGGER.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status, content={"detail": {"error": exc.code, "message": exc.message}})


def _factory(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.session_factory


def _registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def _parse_selection(raw: Optional[str]) -> Optional[List[int]]:
    if not raw:
        return None
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError as exc:
        raise HTTPException(status_code=422, detail="selection must be a comma-separated list of item ids") from exc


def _current_item(active: ActiveSession) -> Optional[ItemResponse]:
    item = active.review.current_item
    return ItemResponse.from_model(item) if item is not None else None


def _start_response(active: ActiveSession) -> SessionStartResponse:
    return SessionStartResponse(
        session_id=active.session_id,
        collection_id=active.collection_id,
        mode=active.mode.value,
        source=active.source.value,
        total=len(active.review.items),
        item=_current_item(active),
    )


@router.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@router.post("/collections", response_model=CollectionResponse, status_code=201)
async def create_collection_endpoint(payload: CollectionCreate, request: Request) -> CollectionResponse:
    async with _factory(request)() as session:
        async with session.begin():
            try:
                collection = await create_collection(
                    session, payload.owner_id, payload.name, payload.kind, payload.color
                )
            except ValueError as exc:
                raise HTTPException(status_code=422, detail=str(exc)) from exc
            return CollectionResponse.from_model(collection)


@router.get("/learners/{learner_id}/collections", response_model=List[CollectionSummaryResponse])
async def list_collections_endpoint(learner_id: int, request: Request) -> List[CollectionSummaryResponse]:
    async with _factory(request)() as session:
        summaries = await list_collections(session, learner_id)
    return [CollectionSummaryResponse.from_summary(summary) for summary in summaries]


@router.delete("/collections/{collection_id}", status_code=204)
async def delete_collection_endpoint(collection_id: int, request: Request) -> Response:
    async with _factory(request)() as session:
        async with session.begin():
            await delete_collection(session, collection_id)
    _registry(request).discard_collection(collection_id)
    return Response(status_code=204)


@router.get("/collections/{collection_id}/items", response_model=List[ItemResponse])
async def list_items_endpoint(collection_id: int, request: Request) -> List[ItemResponse]:
    async with _factory(request)() as session:
        items = await load_items(session, collection_id)
    return [ItemResponse.from_model(item) for item in items]


@router.post("/collections/{collection_id}/items", response_model=ItemResponse, status_code=201)
async def add_item_endpoint(collection_id: int, payload: ItemCreate, request: Request) -> ItemResponse:
    async with _factory(request)() as session:
        async with session.begin():
            try:
                item = await add_item(session, collection_id, ItemPayload(**payload.model_dump()))
            except ValueError as exc:
                raise HTTPException(status_code=422, detail=str(exc)) from exc
            return ItemResponse.from_model(item)


@router.delete("/items/{item_id}", status_code=204)
async def delete_item_endpoint(item_id: int, request: Request) -> Response:
    async with _factory(request)() as session:
        async with session.begin():
            await delete_item(session, item_id)
    _registry(request).drop_item(item_id)
    return Response(status_code=204)


@router.post("/items/{item_id}/star", response_model=ItemResponse)
async def toggle_star_endpoint(item_id: int, request: Request) -> ItemResponse:
    async with _factory(request)() as session:
        async with session.begin():
            item = await toggle_star(session, item_id)
            return ItemResponse.from_model(item)


@router.get("/collections/{collection_id}/stats", response_model=CollectionStatsResponse)
async def collection_stats_endpoint(collection_id: int, request: Request) -> CollectionStatsResponse:
    async with _factory(request)() as session:
        stats = await collection_stats(session, collection_id)
    return CollectionStatsResponse.from_stats(stats)


@router.get("/collections/{collection_id}/proficiency", response_model=CollectionProficiencyResponse)
async def collection_proficiency_endpoint(collection_id: int, request: Request) -> CollectionProficiencyResponse:
    async with _factory(request)() as session:
        items = await load_items(session, collection_id)
    average, value = band_for_mastery(item.mastery_level for item in items)
    return CollectionProficiencyResponse(average_mastery=average, band=BandResponse.from_band(value))


@router.post("/assessments", response_model=AssessmentResponse)
async def assessment_endpoint(payload: AssessmentRequest) -> AssessmentResponse:
    result = assess([entry.model_dump() for entry in payload.scores])
    return AssessmentResponse.from_assessment(result)


@router.get("/sessions/start", response_model=SessionStartResponse)
async def start_session_endpoint(
    request: Request,
    collection_id: int = Query(..., alias="collectionId"),
    mode: str = Query("graded"),
    selection: Optional[str] = Query(None),
    shuffle: Optional[bool] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
) -> SessionStartResponse:
    active = await _registry(request).start(
        collection_id,
        mode,
        _parse_selection(selection),
        shuffle=shuffle,
        limit=limit,
    )
    return _start_response(active)


@router.post("/sessions/{session_id}/outcomes", response_model=OutcomeResponse)
async def record_outcome_endpoint(session_id: str, payload: OutcomeRequest, request: Request) -> OutcomeResponse:
    active = _registry(request).get(session_id)
    async with active.lock:
        result = await active.review.record_outcome(payload.item_id, payload.judgement)
        summary = SummaryResponse.from_summary(active.review.summary()) if result.completed else None
        return OutcomeResponse(
            outcome=OutcomeBody.from_result(result),
            completed=result.completed,
            remaining=active.review.remaining,
            next_item=_current_item(active),
            summary=summary,
        )


@router.get("/sessions/{session_id}/summary", response_model=SummaryResponse)
async def session_summary_endpoint(session_id: str, request: Request) -> SummaryResponse:
    active = _registry(request).get(session_id)
    return SummaryResponse.from_summary(active.review.summary())


@router.post("/sessions/{session_id}/restart", response_model=SessionStartResponse)
async def restart_session_endpoint(session_id: str, request: Request) -> SessionStartResponse:
    active = _registry(request).restart_with_negatives(session_id)
    return _start_response(active)


@router.delete("/sessions/{session_id}", status_code=204)
async def discard_session_endpoint(session_id: str, request: Request) -> Response:
    _registry(request).discard(session_id)
    return Response(status_code=204)


def create_app(
    session_factory: async_sessionmaker[AsyncSession],
    registry: SessionRegistry,
    title: str = "Mastery Engine",
) -> FastAPI:
    """Build the FastAPI application around an existing session factory and registry."""
    app = FastAPI(title=title)
    app.state.session_factory = session_factory
    app.state.registry = registry
    app.add_exception_handler(EngineError, _engine_error_handler)
    app.include_router(router)
    return app
