"""FastAPI router for the health gateway.

Endpoints:
- POST /api/v1/users/info                              (profile merge-upsert)
- POST /api/v1/users/{user_id}/timezone
- GET  /api/v1/users/{user_id}/info
- GET  /api/v1/health/{physical|sleep|body}/summary    (snapshot cache)
- GET  /api/v1/health/{physical|body}/events/{type}
- data-source and client pass-throughs, webhook, authorization callback
"""

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Body, Depends, Path, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from health.adapters.protocol import UpstreamClient
from health.adapters.rook_client import RookClient
from health.classifier import Outcome, OutcomeKind
from health.domain.models import USER_ID_PATTERN, HealthCategory
from health.passthrough import forward
from health.profiles import CachedProfile, FreshUpstreamPayload, ProfileService
from health.repository import HealthSnapshotRepository, UserProfileRepository
from health.snapshots import SnapshotCache
from shared.config import settings
from shared.database import get_session
from shared.metrics import api_requests_total
from shared.middleware import problem_response

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1")

UserId = Annotated[str, Path(pattern=USER_ID_PATTERN)]


# --- Dependencies ---


def get_upstream_client(request: Request) -> UpstreamClient:
    return RookClient(request.app.state.http_client)


def get_profile_service(
    session: AsyncSession = Depends(get_session),
    upstream: UpstreamClient = Depends(get_upstream_client),
) -> ProfileService:
    return ProfileService(UserProfileRepository(session), upstream)


def get_snapshot_cache(
    session: AsyncSession = Depends(get_session),
    upstream: UpstreamClient = Depends(get_upstream_client),
) -> SnapshotCache:
    return SnapshotCache(HealthSnapshotRepository(session), upstream)


# --- Response helpers ---


def _render(outcome: Outcome, request: Request, endpoint: str) -> Response:
    api_requests_total.labels(
        endpoint=endpoint, method=request.method, status_code=str(outcome.status)
    ).inc()

    if outcome.kind is OutcomeKind.NO_CONTENT:
        return Response(status_code=204)
    if outcome.kind is OutcomeKind.ERROR:
        return problem_response(outcome.error, str(request.url.path))

    body = outcome.body
    if isinstance(body, (CachedProfile, FreshUpstreamPayload)):
        body = body.to_response()
    return JSONResponse(status_code=outcome.status, content=body)


# --- Profile endpoints ---


@router.post("/users/info")
async def submit_user_info(
    request: Request,
    fields: dict[str, Any] = Body(...),
    service: ProfileService = Depends(get_profile_service),
):
    """Forward a partial profile to ROOK and merge the supplied fields locally."""
    return _render(await service.submit_profile(fields), request, "users_info")


@router.post("/users/{user_id}/timezone")
async def set_time_zone(
    request: Request,
    user_id: str,
    time_zone: str | None = Body(None, embed=True),
    offset: str | None = Body(None, embed=True),
    service: ProfileService = Depends(get_profile_service),
):
    outcome = await service.set_time_zone(user_id, time_zone, offset)
    return _render(outcome, request, "users_timezone")


@router.get("/users/{user_id}/info")
async def get_user_info(
    request: Request,
    user_id: str,
    date: str | None = Query(None),
    service: ProfileService = Depends(get_profile_service),
):
    """Stored profile when no date is given, otherwise ROOK's user info for that date."""
    return _render(await service.get_profile(user_id, date), request, "users_get_info")


# --- Health snapshot endpoints ---


async def _snapshot(
    request: Request,
    cache: SnapshotCache,
    category: HealthCategory,
    subtype: str | None,
    user_id: str | None,
    date: str | None,
) -> Response:
    outcome = await cache.get_snapshot(user_id, category, subtype, date)
    endpoint = f"{category.value}_{'events' if subtype else 'summary'}"
    return _render(outcome, request, endpoint)


@router.get("/health/physical/summary")
async def physical_summary(
    request: Request,
    user_id: str | None = Query(None),
    date: str | None = Query(None),
    cache: SnapshotCache = Depends(get_snapshot_cache),
):
    return await _snapshot(request, cache, HealthCategory.PHYSICAL, None, user_id, date)


@router.get("/health/physical/events/{event_type}")
async def physical_events(
    request: Request,
    event_type: str,
    user_id: str | None = Query(None),
    date: str | None = Query(None),
    cache: SnapshotCache = Depends(get_snapshot_cache),
):
    return await _snapshot(request, cache, HealthCategory.PHYSICAL, event_type, user_id, date)


@router.get("/health/sleep/summary")
async def sleep_summary(
    request: Request,
    user_id: str | None = Query(None),
    date: str | None = Query(None),
    cache: SnapshotCache = Depends(get_snapshot_cache),
):
    return await _snapshot(request, cache, HealthCategory.SLEEP, None, user_id, date)


@router.get("/health/body/summary")
async def body_summary(
    request: Request,
    user_id: str | None = Query(None),
    date: str | None = Query(None),
    cache: SnapshotCache = Depends(get_snapshot_cache),
):
    return await _snapshot(request, cache, HealthCategory.BODY, None, user_id, date)


@router.get("/health/body/events/{event_type}")
async def body_events(
    request: Request,
    event_type: str,
    user_id: str | None = Query(None),
    date: str | None = Query(None),
    cache: SnapshotCache = Depends(get_snapshot_cache),
):
    return await _snapshot(request, cache, HealthCategory.BODY, event_type, user_id, date)


# --- Data source pass-throughs ---


@router.get("/users/{user_id}/sources/{data_source}/authorizer")
async def data_source_authorizer(
    request: Request,
    user_id: UserId,
    data_source: str,
    redirect_url: str | None = Query(None),
    upstream: UpstreamClient = Depends(get_upstream_client),
):
    outcome = await forward(
        upstream,
        "GET",
        f"/api/v1/user_id/{user_id}/data_source/{data_source}/authorizer",
        params={"redirect_url": redirect_url},
    )
    return _render(outcome, request, "sources_authorizer")


@router.get("/users/{user_id}/sources/authorized")
async def authorized_sources(
    request: Request,
    user_id: UserId,
    upstream: UpstreamClient = Depends(get_upstream_client),
):
    outcome = await forward(
        upstream, "GET", f"/api/v2/user_id/{user_id}/data_sources/authorized"
    )
    return _render(outcome, request, "sources_authorized")


@router.post("/users/{user_id}/sources/revoke")
async def revoke_source(
    request: Request,
    user_id: UserId,
    data_source: str = Body(..., embed=True),
    upstream: UpstreamClient = Depends(get_upstream_client),
):
    outcome = await forward(
        upstream,
        "POST",
        f"/api/v1/user_id/{user_id}/data_sources/revoke_auth",
        json={"data_source": data_source},
    )
    return _render(outcome, request, "sources_revoke")


# --- Client-level pass-throughs ---


@router.post("/client/notifications/resend")
async def resend_notifications(
    request: Request,
    start: str = Body(..., embed=True),
    finish: str = Body(..., embed=True),
    upstream: UpstreamClient = Depends(get_upstream_client),
):
    outcome = await forward(
        upstream,
        "POST",
        "/api/v2/resend_rejected_notifications",
        json={"start": start, "finish": finish},
    )
    return _render(outcome, request, "client_resend")


@router.get("/client/users/status")
async def client_users_status(
    request: Request,
    up_to_date: str = Query(...),
    page: int | None = Query(None, ge=1),
    upstream: UpstreamClient = Depends(get_upstream_client),
):
    outcome = await forward(
        upstream,
        "GET",
        "/api/v1/client/users/status",
        params={"up_to_date": up_to_date, "page": page},
    )
    return _render(outcome, request, "client_users_status")


# --- Inbound callbacks ---


@router.post("/webhooks/rook")
async def rook_webhook(payload: dict[str, Any] = Body(...)):
    """Acknowledge a ROOK data notification. No signature check exists upstream."""
    logger.info(
        "webhook_received",
        user_id=payload.get("user_id"),
        data_structure=payload.get("data_structure"),
    )
    return {"received": True}


@router.get("/callback/client_uuid/{client_uuid}/user_id/{user_id}")
async def authorization_callback(client_uuid: str, user_id: str):
    logger.info("data_source_authorized", client_uuid=client_uuid, user_id=user_id)
    return RedirectResponse(
        f"{settings.authorization_redirect_url}?status=authorized", status_code=302
    )
