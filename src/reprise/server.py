import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel, ConfigDict

from reprise.application.config import resolve_config
from reprise.application.factory import Services, build_services
from reprise.consts import VERSION
from reprise.domain.errors import (
    AlreadyRevisitedTodayError,
    ItemNotFoundError,
    UserNotFoundError,
)

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("reprise.server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Reprise Server v{VERSION} starting up...")
    config = resolve_config()
    logging.getLogger().setLevel(config.log_level)
    services = getattr(app.state, "services", None)
    if services is None:
        services = build_services(config)
        app.state.services = services
    if config.ticker_enabled:
        services.ticker.start()
    yield
    # Shutdown
    await services.ticker.stop()
    await services.sender.close()
    logger.info("Reprise Server shutting down...")


app = FastAPI(
    title="Reprise Server",
    description="Spaced-repetition revisit scheduler and daily reminder dispatcher.",
    version=VERSION,
    lifespan=lifespan,
)


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        services = build_services(resolve_config())
        request.app.state.services = services
    return services


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class RevisitEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    revisited_at: datetime
    notes: str | None = None


class ItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    link: str
    added_at: datetime
    last_revisited_at: datetime | None
    times_revisited: int
    status: str
    topic: str | None = None
    difficulty: str | None = None
    history: list[RevisitEntryResponse] = []


class WeightResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item_id: str
    weight: float
    days_since_added: float
    days_since_last_revisit: float
    times_revisited: int
    revisit_decay: float
    is_eligible: bool
    priority: str


class ItemDetailResponse(ItemResponse):
    weight: WeightResponse
    revisited_today: bool


class ItemWeightResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item: ItemResponse
    weight: WeightResponse
    selected: bool


class FocusItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item: ItemResponse
    weight: WeightResponse
    revisited_today: bool


class FocusSummary(BaseModel):
    total: int
    completed: int
    remaining: int


class FocusResponse(BaseModel):
    user_id: str
    seed: int
    items: list[FocusItemResponse]
    summary: FocusSummary


class DryRunResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    email: str
    verdict: str
    problems_per_day: int
    min_revisit_days: int
    items: list[ItemWeightResponse]
    eligible_ids: list[str]
    selected_ids: list[str]


class SendNowResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    email: str
    status: str
    message: str | None = None
    problems_per_day: int
    min_revisit_days: int
    items: list[ItemWeightResponse]
    eligible_ids: list[str]
    selected_ids: list[str]


class UserOutcomeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    status: str
    selected_ids: list[str]
    message: str | None = None


class SweepResponse(BaseModel):
    started_at: datetime
    force: bool
    aborted: bool
    error: str | None
    sent: int
    failed: int
    skipped: int
    outcomes: list[UserOutcomeResponse]


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class ItemCreateRequest(BaseModel):
    title: str
    link: str = ""
    topic: str | None = None
    difficulty: str | None = None


class ItemUpdateRequest(BaseModel):
    title: str | None = None
    link: str | None = None
    topic: str | None = None
    difficulty: str | None = None


class RevisitRequest(BaseModel):
    notes: str | None = None


def _http_error(e: Exception, action: str) -> HTTPException:
    if isinstance(e, (UserNotFoundError, ItemNotFoundError)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, AlreadyRevisitedTodayError):
        return HTTPException(status_code=409, detail=str(e))
    logger.error(f"{action} failed: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=str(e))


start_time = time.time()


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Simple health check to verify server is reachable.
    """
    return HealthResponse(status="ok", version=VERSION, uptime_seconds=time.time() - start_time)


@app.get("/version")
async def get_version():
    return {"version": VERSION}


@app.post("/admin/dispatch", response_model=SweepResponse)
async def trigger_dispatch(services: Services = Depends(get_services)):
    """
    Manually run a dispatch sweep for all users.

    Forced: users already reminded today are reminded again. The time-of-day
    gate still applies.
    """
    logger.info("[Admin] Manually triggering dispatch sweep for all users...")
    report = await services.orchestrator.run_sweep(force=True)
    if report is None:
        raise HTTPException(status_code=409, detail="A dispatch sweep is already running")

    return SweepResponse(
        started_at=report.started_at,
        force=report.force,
        aborted=report.aborted,
        error=report.error,
        sent=report.sent_count,
        failed=report.failed_count,
        skipped=report.skipped_count,
        outcomes=[UserOutcomeResponse.model_validate(o) for o in report.outcomes],
    )


@app.get("/users/{user_id}/focus", response_model=FocusResponse)
async def get_todays_focus(user_id: str, services: Services = Depends(get_services)):
    """Today's recommended items. Stable across refreshes within the day."""
    try:
        report = await services.focus.get_todays_focus(user_id)
    except Exception as e:
        raise _http_error(e, "Focus") from e

    return FocusResponse(
        user_id=report.user_id,
        seed=report.seed,
        items=[FocusItemResponse.model_validate(e) for e in report.entries],
        summary=FocusSummary(
            total=report.total,
            completed=report.completed,
            remaining=report.remaining,
        ),
    )


@app.get("/users/{user_id}/weights", response_model=list[ItemWeightResponse])
async def get_weights(user_id: str, services: Services = Depends(get_services)):
    """All active items with their scheduling weights, highest first."""
    try:
        weights = await services.focus.list_weights(user_id)
    except Exception as e:
        raise _http_error(e, "Weights") from e
    return [ItemWeightResponse.model_validate(w) for w in weights]


@app.get("/users/{user_id}/dry-run", response_model=DryRunResponse)
async def dry_run(user_id: str, services: Services = Depends(get_services)):
    """
    Show what a scheduled sweep would do for this user right now.
    Nothing is sent and no state changes.
    """
    try:
        report = await services.orchestrator.dry_run(user_id)
    except Exception as e:
        raise _http_error(e, "Dry run") from e
    return DryRunResponse.model_validate(report)


@app.post("/users/{user_id}/send-now", response_model=SendNowResponse)
async def send_now(user_id: str, services: Services = Depends(get_services)):
    """
    Send this user a reminder immediately, ignoring the daily gates.
    The scheduled reminder is not affected.
    """
    try:
        report = await services.orchestrator.send_now(user_id)
    except Exception as e:
        raise _http_error(e, "Send now") from e
    return SendNowResponse.model_validate(report)


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


@app.get("/users/{user_id}/items", response_model=list[ItemResponse])
async def list_items(
    user_id: str, include_retired: bool = False, services: Services = Depends(get_services)
):
    """The user's items, newest first. Retired items only on request."""
    try:
        items = await services.items.list_items(user_id, include_retired=include_retired)
    except Exception as e:
        raise _http_error(e, "List items") from e
    return [ItemResponse.model_validate(i) for i in items]


@app.post("/users/{user_id}/items", response_model=ItemResponse, status_code=201)
async def create_item(
    user_id: str, req: ItemCreateRequest, services: Services = Depends(get_services)
):
    try:
        item = await services.items.add_item(
            user_id, req.title, link=req.link, topic=req.topic, difficulty=req.difficulty
        )
    except Exception as e:
        raise _http_error(e, "Create item") from e
    return ItemResponse.model_validate(item)


@app.get("/users/{user_id}/items/{item_id}", response_model=ItemDetailResponse)
async def get_item(user_id: str, item_id: str, services: Services = Depends(get_services)):
    """One item with its current weight and revisit history."""
    try:
        detail = await services.items.get_item_detail(user_id, item_id)
    except Exception as e:
        raise _http_error(e, "Get item") from e
    return ItemDetailResponse(
        **ItemResponse.model_validate(detail.item).model_dump(),
        weight=WeightResponse.model_validate(detail.weight),
        revisited_today=detail.revisited_today,
    )


@app.get("/users/{user_id}/items/{item_id}/weight", response_model=WeightResponse)
async def get_item_weight(user_id: str, item_id: str, services: Services = Depends(get_services)):
    try:
        weight = await services.items.get_item_weight(user_id, item_id)
    except Exception as e:
        raise _http_error(e, "Item weight") from e
    return WeightResponse.model_validate(weight)


@app.patch("/users/{user_id}/items/{item_id}", response_model=ItemResponse)
async def update_item(
    user_id: str, item_id: str, req: ItemUpdateRequest, services: Services = Depends(get_services)
):
    """Change title, link, topic or difficulty. Omitted fields are left alone."""
    try:
        item = await services.items.update_item(user_id, item_id, **req.model_dump())
    except Exception as e:
        raise _http_error(e, "Update item") from e
    return ItemResponse.model_validate(item)


@app.delete("/users/{user_id}/items/{item_id}")
async def delete_item(user_id: str, item_id: str, services: Services = Depends(get_services)):
    """Permanently remove an item and its revisit history."""
    try:
        await services.items.delete_item(user_id, item_id)
    except Exception as e:
        raise _http_error(e, "Delete item") from e
    return {"status": "deleted"}


@app.post("/users/{user_id}/items/{item_id}/revisit", response_model=ItemResponse)
async def revisit_item(
    user_id: str,
    item_id: str,
    req: RevisitRequest | None = None,
    services: Services = Depends(get_services),
):
    """Record a revisit with optional notes. At most once per local day."""
    notes = req.notes if req is not None else None
    try:
        item = await services.items.record_revisit(user_id, item_id, notes=notes)
    except Exception as e:
        raise _http_error(e, "Revisit") from e
    return ItemResponse.model_validate(item)


@app.post("/users/{user_id}/items/{item_id}/archive", response_model=ItemResponse)
async def archive_item(user_id: str, item_id: str, services: Services = Depends(get_services)):
    try:
        item = await services.items.archive_item(user_id, item_id)
    except Exception as e:
        raise _http_error(e, "Archive") from e
    return ItemResponse.model_validate(item)
