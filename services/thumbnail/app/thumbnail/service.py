"""
Thumbnail pipeline — service layer.

One SNS delivery is dispatched here after the webhook has already answered
"OK".  A Notification fans out into one independent run per S3 key:

    FETCHING → DECODING → RESIZING → STORING → BROADCASTING → DONE

A run that fails stops at the stage where it failed; nothing after that stage
happens (no store after a failed fetch or decode, no broadcast after a failed
store).  Errors are logged with stage and key and never leave this module.
"""
from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from pydantic import ValidationError

from app import imaging
from app.exceptions import DecodeError, ParseError, TransportError
from app.thumbnail.constants import MessageType, PipelineStage
from app.thumbnail.schemas import S3EventMessage, SnsEnvelope
from shared.events.schemas import ThumbnailCreated

if TYPE_CHECKING:
    from app.broadcaster import EventBroadcaster
    from app.config import Settings
    from app.s3 import ObjectStore
    from app.sns import NotificationBroker

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class PipelineResult:
    key: str
    stage: PipelineStage
    url: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.stage == PipelineStage.DONE


class _StageFailed(Exception):
    def __init__(self, stage: PipelineStage, reason: str) -> None:
        super().__init__(reason)
        self.stage = stage
        self.reason = reason


# ── Payload parsing ──────────────────────────────────────────────────────────

def parse_envelope(body: bytes) -> SnsEnvelope:
    try:
        return SnsEnvelope.model_validate_json(body)
    except ValidationError as exc:
        raise ParseError(f"Malformed SNS envelope: {exc}") from exc


def parse_object_keys(message: str | None) -> list[str]:
    """Keys of the S3 event carried in a Notification's Message."""
    if not message:
        return []
    try:
        event = S3EventMessage.model_validate_json(message)
    except ValidationError as exc:
        raise ParseError(f"Malformed S3 event message: {exc}") from exc
    return event.object_keys()


def resolve_message_type(header_value: str | None, envelope: SnsEnvelope) -> MessageType:
    """The delivery header wins; the envelope's own Type is the fallback."""
    return MessageType.parse(header_value or envelope.type)


# ── Orchestrator ─────────────────────────────────────────────────────────────

class ThumbnailPipeline:
    """Turns SNS deliveries into stored thumbnails and completion events.

    Collaborators are injected so tests can swap the AWS adapters for fakes.
    At most ``settings.max_concurrent_jobs`` runs execute at once; the rest
    wait for a slot.
    """

    def __init__(
        self,
        settings: Settings,
        store: ObjectStore,
        broker: NotificationBroker,
        broadcaster: EventBroadcaster,
    ) -> None:
        self._settings = settings
        self._store = store
        self._broker = broker
        self._broadcaster = broadcaster
        self._slots = asyncio.Semaphore(settings.max_concurrent_jobs)

    async def dispatch(self, message_type: str | None, body: bytes) -> list[PipelineResult]:
        """Handle one SNS delivery. Never raises."""
        try:
            envelope = parse_envelope(body)
            kind = resolve_message_type(message_type, envelope)

            if kind == MessageType.SUBSCRIPTION_CONFIRMATION:
                await self.confirm_subscription(envelope)
                return []

            if kind != MessageType.NOTIFICATION:
                logger.info("Ignoring SNS %s message %s", kind.value, envelope.message_id)
                return []

            keys = parse_object_keys(envelope.message)
        except ParseError as exc:
            logger.warning("Discarding SNS delivery: %s", exc)
            return []

        if not keys:
            logger.info("Notification %s carries no object keys", envelope.message_id)
            return []

        return list(await asyncio.gather(*(self.run(key) for key in keys)))

    async def confirm_subscription(self, envelope: SnsEnvelope) -> None:
        if not envelope.token or not envelope.topic_arn:
            raise ParseError(f"Subscription confirmation {envelope.message_id} has no Token or TopicArn")
        logger.info("Confirming subscription to %s", envelope.topic_arn)
        try:
            arn = await self._broker.confirm_subscription(envelope.token, envelope.topic_arn)
        except TransportError as exc:
            logger.error("Error confirming subscription to %s: %s", envelope.topic_arn, exc)
            return
        logger.info("Subscription confirmed: %s", arn)

    async def run(self, key: str) -> PipelineResult:
        """Produce and announce the thumbnail for one source key. Never raises."""
        async with self._slots:
            logger.info("Processing new file %s", key)
            try:
                url = await self._run(key)
            except _StageFailed as exc:
                logger.error("Thumbnail for %s failed at %s: %s", key, exc.stage.value, exc.reason)
                return PipelineResult(key=key, stage=exc.stage, error=exc.reason)
            except Exception as exc:
                logger.exception("Thumbnail for %s failed unexpectedly", key)
                return PipelineResult(key=key, stage=PipelineStage.FAILED, error=str(exc))
        logger.info("Thumbnail for %s ready at %s", key, url)
        return PipelineResult(key=key, stage=PipelineStage.DONE, url=url)

    async def _run(self, key: str) -> str:
        settings = self._settings

        try:
            source = await self._store.fetch(settings.s3_input_bucket, key)
        except TransportError as exc:
            raise _StageFailed(PipelineStage.FETCHING, str(exc)) from exc

        try:
            raster = await self._offload(imaging.decode, source)
        except DecodeError as exc:
            raise _StageFailed(PipelineStage.DECODING, str(exc)) from exc
        finally:
            del source

        fmt = raster.format
        try:
            thumb = await self._offload(
                imaging.resize, raster, settings.thumbnail_max_width, settings.thumbnail_max_height,
            )
        finally:
            raster.close()

        try:
            body = await self._offload(imaging.encode, thumb, fmt, jpeg_quality=settings.jpeg_quality)
        except (OSError, ValueError) as exc:
            raise _StageFailed(PipelineStage.STORING, f"Cannot encode {fmt}: {exc}") from exc
        finally:
            thumb.close()

        try:
            await self._store.store(settings.s3_output_bucket, key, body, imaging.content_type(fmt))
        except TransportError as exc:
            raise _StageFailed(PipelineStage.STORING, str(exc)) from exc

        url = self._store.public_url(settings.s3_output_bucket, key)
        await self._broadcaster.publish(ThumbnailCreated(key=key, url=url))
        return url

    @staticmethod
    async def _offload(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        # Pillow work is CPU-bound → run it off the event loop
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))
