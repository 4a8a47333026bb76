"""
Thumbnail pipeline — Pydantic V2 schemas for SNS deliveries and S3 events.

Both payloads come from AWS and grow new fields over time, so unknown keys are
ignored instead of rejected.
"""
from __future__ import annotations

from urllib.parse import unquote_plus

from pydantic import BaseModel, ConfigDict, Field


class _AwsPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# ── SNS HTTP delivery ────────────────────────────────────────────────────────

class SnsEnvelope(_AwsPayload):
    """Body of an SNS HTTP(S) delivery (confirmation or notification)."""
    type: str | None = Field(default=None, alias="Type")
    message_id: str | None = Field(default=None, alias="MessageId")
    topic_arn: str | None = Field(default=None, alias="TopicArn")
    token: str | None = Field(default=None, alias="Token")
    message: str | None = Field(default=None, alias="Message")
    subscribe_url: str | None = Field(default=None, alias="SubscribeURL")
    timestamp: str | None = Field(default=None, alias="Timestamp")


# ── S3 event notification (the SNS Message of a Notification) ────────────────

class S3Object(_AwsPayload):
    key: str | None = None


class S3Entity(_AwsPayload):
    obj: S3Object | None = Field(default=None, alias="object")


class S3EventRecord(_AwsPayload):
    event_name: str | None = Field(default=None, alias="eventName")
    s3: S3Entity | None = None

    @property
    def object_key(self) -> str:
        if self.s3 is None or self.s3.obj is None or not self.s3.obj.key:
            return ""
        return unquote_plus(self.s3.obj.key)


class S3EventMessage(_AwsPayload):
    """S3 ObjectCreated event. A test event has no Records and yields no keys."""
    records: list[S3EventRecord] = Field(default_factory=list, alias="Records")

    def object_keys(self) -> list[str]:
        """Decoded keys of all records; records without a key are skipped."""
        keys = []
        for record in self.records:
            if record.object_key:
                keys.append(record.object_key)
        return keys


# ── Responses ────────────────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    status: str
    service: str
