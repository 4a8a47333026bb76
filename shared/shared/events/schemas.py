from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class ThumbnailCreated(BaseModel):
    """Push event: a thumbnail was written to the output bucket."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    event_type: str = "thumbnail.created"
    key: str
    url: str
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_sse(self) -> bytes:
        """Server-Sent Events frame. Listeners only receive the thumbnail URL."""
        return f"data: {self.url}\n\n".encode("utf-8")
