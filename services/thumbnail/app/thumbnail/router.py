"""
Thumbnail service — HTTP routes.

No endpoint is authenticated. CORS is applied app-wide in app.main.
"""
from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Request
from fastapi.responses import PlainTextResponse, StreamingResponse

from app.broadcaster import EventBroadcaster
from app.config import Settings
from app.s3 import ObjectStore
from app.thumbnail import controller
from app.thumbnail.constants import SNS_MESSAGE_TYPE_HEADER
from app.thumbnail.dependencies import (
    get_broadcaster,
    get_object_store,
    get_pipeline,
    get_settings,
)
from app.thumbnail.service import ThumbnailPipeline

router = APIRouter(tags=["thumbnails"])

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


# ── SNS webhook ──────────────────────────────────────────────────────────────

@router.post(
    "/new_image_notify",
    response_class=PlainTextResponse,
    summary="SNS delivery endpoint",
    description=(
        "Receives SNS SubscriptionConfirmation and Notification deliveries. "
        "Always answers 200 OK immediately; the subscription is confirmed or "
        "the thumbnail produced in the background."
    ),
)
async def new_image_notify(
    request: Request,
    background_tasks: BackgroundTasks,
    message_type: str | None = Header(default=None, alias=SNS_MESSAGE_TYPE_HEADER),
    pipeline: ThumbnailPipeline = Depends(get_pipeline),
) -> str:
    body = await request.body()
    return controller.accept_notification(message_type, body, pipeline, background_tasks)


# ── Upload URL ───────────────────────────────────────────────────────────────

@router.get(
    "/upload_url",
    response_class=PlainTextResponse,
    summary="Get a fresh upload URL",
    description="Returns a URL for a new, unique key in the input bucket.",
)
async def upload_url(store: ObjectStore = Depends(get_object_store)) -> str:
    return controller.new_upload_url(store)


# ── Gallery ──────────────────────────────────────────────────────────────────

@router.get(
    "/images",
    response_model=list[str],
    summary="List thumbnails",
    description="Public URLs of every thumbnail in the output bucket.",
)
async def images(
    store: ObjectStore = Depends(get_object_store),
    settings: Settings = Depends(get_settings),
) -> list[str]:
    return await controller.list_thumbnails(store, settings)


# ── Live completion stream ───────────────────────────────────────────────────

@router.get(
    "/image_uploaded",
    summary="Thumbnail completion stream (SSE)",
    description=(
        "Server-Sent Events stream. Each event's data is the URL of a "
        "thumbnail created while the client is connected."
    ),
    response_class=StreamingResponse,
)
async def image_uploaded(
    request: Request,
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
) -> StreamingResponse:
    return StreamingResponse(
        broadcaster.stream(request.is_disconnected),
        media_type="text/event-stream",
        headers=_SSE_HEADERS,
    )
