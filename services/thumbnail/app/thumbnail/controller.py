"""
Thumbnail service — controller layer.

Receives validated input from router, calls the pipeline or the object store,
composes the response. Thin glue layer between HTTP and business logic.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from app.exceptions import ThumbnailListingFailed, TransportError

if TYPE_CHECKING:
    from fastapi import BackgroundTasks

    from app.config import Settings
    from app.s3 import ObjectStore
    from app.thumbnail.service import ThumbnailPipeline

logger = logging.getLogger(__name__)

ACK_BODY = "OK"


def accept_notification(
    message_type: str | None,
    body: bytes,
    pipeline: ThumbnailPipeline,
    background_tasks: BackgroundTasks,
) -> str:
    """Acknowledge the delivery now; confirm or process it after the response."""
    background_tasks.add_task(pipeline.dispatch, message_type, body)
    return ACK_BODY


def new_upload_url(store: ObjectStore) -> str:
    return store.new_upload_url()


async def list_thumbnails(store: ObjectStore, settings: Settings) -> list[str]:
    """Public URLs of everything in the output bucket."""
    try:
        keys = await store.list_keys(settings.s3_output_bucket)
    except TransportError as exc:
        logger.error("Error listing thumbnails: %s", exc)
        raise ThumbnailListingFailed(str(exc))
    return [store.public_url(settings.s3_output_bucket, key) for key in keys]
