import logging
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.broadcaster import EventBroadcaster
from app.config import Settings, load_settings
from app.exceptions import ConfigError
from app.s3 import ObjectStore
from app.sns import NotificationBroker
from app.thumbnail.router import router as thumbnail_router
from app.thumbnail.schemas import HealthResponse
from app.thumbnail.service import ThumbnailPipeline
from shared.middleware import error_envelope_middleware, request_id_middleware

# Configure application logging so background task logs are visible
logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s: %(message)s")
logger = logging.getLogger("thumbnail")


# ── OpenAPI metadata ──────────────────────────────────────────────────────────

_DESCRIPTION = """
## Thumbnail Service

Turns images uploaded to the input S3 bucket into bounded-size thumbnails.

* **Upload** — `GET /upload_url` hands out a fresh key in the input bucket.
* **Notify** — S3 publishes ObjectCreated events to SNS, which delivers them to
  `POST /new_image_notify` (the subscription handshake is confirmed there too).
* **Thumbnail** — the original is fetched, resized to fit 640x480 by default
  (aspect ratio kept, same format) and written to the output bucket under the
  same key.
* **Live updates** — `GET /image_uploaded` streams the URL of every new
  thumbnail as Server-Sent Events.
* **Gallery** — `GET /images` lists the public URLs of all thumbnails.
"""

_TAGS_METADATA = [
    {
        "name": "thumbnails",
        "description": "SNS webhook, upload URLs, gallery listing and the completion stream.",
    },
]


# ── App factory ───────────────────────────────────────────────────────────────

def get_settings() -> Settings:
    return load_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info(
        "Thumbnail service ready: s3://%s -> s3://%s (max %dx%d)",
        settings.s3_input_bucket,
        settings.s3_output_bucket,
        settings.thumbnail_max_width,
        settings.thumbnail_max_height,
    )
    yield
    logger.info("Thumbnail service shutting down (%d live listeners)", app.state.broadcaster.listener_count)


def create_app(
    settings: Settings | None = None,
    *,
    store: ObjectStore | None = None,
    broker: NotificationBroker | None = None,
    broadcaster: EventBroadcaster | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.getLogger().setLevel(settings.log_level)

    app = FastAPI(
        title="Thumbnail Service",
        version="1.0.0",
        description=_DESCRIPTION,
        openapi_tags=_TAGS_METADATA,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    store = store or ObjectStore(settings)
    broker = broker or NotificationBroker(settings)
    broadcaster = broadcaster or EventBroadcaster(
        queue_size=settings.sse_queue_size,
        keepalive_seconds=settings.sse_keepalive_seconds,
    )
    app.state.settings = settings
    app.state.object_store = store
    app.state.broadcaster = broadcaster
    app.state.pipeline = ThumbnailPipeline(settings, store, broker, broadcaster)

    # Middleware (applied in reverse-registration order: last added = outermost)
    app.middleware("http")(request_id_middleware)
    app.middleware("http")(error_envelope_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        max_age=600,
    )

    app.include_router(thumbnail_router)

    @app.get("/health", response_model=HealthResponse, tags=["health"], include_in_schema=True)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", service="thumbnail")

    return app


def run() -> None:
    """Console entry point: serve on the configured port."""
    settings: Settings = app.state.settings
    logger.info("Running on port %d", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)


try:
    app = create_app()
except ConfigError as exc:
    logger.critical("%s", exc)
    sys.exit(1)
