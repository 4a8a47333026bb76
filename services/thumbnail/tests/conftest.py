import io
import json
import os
from collections.abc import Generator

os.environ.setdefault("S3_INPUT_BUCKET", "uploads-test")
os.environ.setdefault("S3_OUTPUT_BUCKET", "thumbnails-test")
os.environ.setdefault("AWS_REGION", "us-west-2")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from app.broadcaster import EventBroadcaster
from app.config import Settings
from app.exceptions import ObjectNotFound
from app.main import create_app
from app.s3 import ObjectStore
from app.sns import NotificationBroker
from app.thumbnail.service import ThumbnailPipeline

TOPIC_ARN = "arn:aws:sns:us-west-2:123456789012:new-images"


class FakeObjectStore(ObjectStore):
    """In-memory buckets. URL helpers come from the real ObjectStore."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self.buckets: dict[str, dict[str, tuple[bytes, str]]] = {}
        self.fetch_calls: list[tuple[str, str]] = []
        self.store_calls: list[tuple[str, str, str]] = []
        self.fail_fetch: Exception | None = None
        self.fail_store: Exception | None = None
        self.fail_list: Exception | None = None

    def put(self, bucket: str, key: str, data: bytes, content_type: str = "image/jpeg") -> None:
        self.buckets.setdefault(bucket, {})[key] = (data, content_type)

    async def fetch(self, bucket: str, key: str) -> bytes:
        self.fetch_calls.append((bucket, key))
        if self.fail_fetch is not None:
            raise self.fail_fetch
        try:
            return self.buckets[bucket][key][0]
        except KeyError:
            raise ObjectNotFound(bucket, key)

    async def store(self, bucket: str, key: str, data: bytes, content_type: str) -> None:
        self.store_calls.append((bucket, key, content_type))
        if self.fail_store is not None:
            raise self.fail_store
        self.put(bucket, key, data, content_type)

    async def list_keys(self, bucket: str) -> list[str]:
        if self.fail_list is not None:
            raise self.fail_list
        return list(self.buckets.get(bucket, {}))


class FakeBroker(NotificationBroker):
    def __init__(self) -> None:
        self.confirmations: list[tuple[str, str]] = []
        self.fail: Exception | None = None

    async def confirm_subscription(self, token: str, topic_arn: str) -> str:
        self.confirmations.append((token, topic_arn))
        if self.fail is not None:
            raise self.fail
        return f"{topic_arn}:subscription-id"


def make_image(size: tuple[int, int], fmt: str = "JPEG", mode: str = "RGB") -> bytes:
    color = (200, 30, 30) if mode == "RGB" else 128
    if mode == "RGBA":
        color = (200, 30, 30, 128)
    image = Image.new(mode, size, color)
    buf = io.BytesIO()
    image.save(buf, format=fmt)
    return buf.getvalue()


def make_multi_picture_jpeg(size: tuple[int, int]) -> bytes:
    """JPEG with a second embedded picture, as phone cameras write them (Pillow reads MPO)."""
    primary = Image.new("RGB", size, (200, 30, 30))
    secondary = Image.new("RGB", (size[0] // 4, size[1] // 4), (30, 30, 200))
    buf = io.BytesIO()
    primary.save(buf, format="MPO", save_all=True, append_images=[secondary])
    return buf.getvalue()


def notification_body(*keys: str | None, message: str | None = None) -> bytes:
    """SNS Notification delivery wrapping an S3 ObjectCreated event."""
    if message is None:
        records = []
        for key in keys:
            obj = {} if key is None else {"key": key}
            records.append({"eventName": "ObjectCreated:Put", "s3": {"object": obj}})
        message = json.dumps({"Records": records})
    return json.dumps({
        "Type": "Notification",
        "MessageId": "msg-1",
        "TopicArn": TOPIC_ARN,
        "Message": message,
    }).encode()


def confirmation_body(token: str = "tok-123", topic_arn: str = TOPIC_ARN) -> bytes:
    return json.dumps({
        "Type": "SubscriptionConfirmation",
        "MessageId": "msg-0",
        "Token": token,
        "TopicArn": topic_arn,
        "SubscribeURL": "https://sns.us-west-2.amazonaws.com/?Action=ConfirmSubscription",
    }).encode()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        s3_input_bucket="uploads-test",
        s3_output_bucket="thumbnails-test",
        aws_region="us-west-2",
        sse_keepalive_seconds=0.05,
    )


@pytest.fixture
def store(settings: Settings) -> FakeObjectStore:
    return FakeObjectStore(settings)


@pytest.fixture
def broker() -> FakeBroker:
    return FakeBroker()


@pytest.fixture
def broadcaster() -> EventBroadcaster:
    return EventBroadcaster(queue_size=4, keepalive_seconds=0.05)


@pytest.fixture
def pipeline(
    settings: Settings,
    store: FakeObjectStore,
    broker: FakeBroker,
    broadcaster: EventBroadcaster,
) -> ThumbnailPipeline:
    return ThumbnailPipeline(settings, store, broker, broadcaster)


@pytest.fixture
def client(
    settings: Settings,
    store: FakeObjectStore,
    broker: FakeBroker,
    broadcaster: EventBroadcaster,
) -> Generator[TestClient, None, None]:
    app = create_app(settings, store=store, broker=broker, broadcaster=broadcaster)
    with TestClient(app) as c:
        yield c

