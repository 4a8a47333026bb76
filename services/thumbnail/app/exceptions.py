"""
Thumbnail service — exception taxonomy.

Domain errors (transport, decode, parse, config) are raised by the adapters and
the pipeline and never reach an HTTP response: the webhook has already been
acknowledged when they happen.  The HTTP exceptions at the bottom use preset
status codes so that controllers never need to specify these at the call site.
"""
from fastapi import HTTPException, status


class ThumbnailServiceError(Exception):
    """Base class for thumbnail service domain errors."""


# ── Startup ──────────────────────────────────────────────────────────────────

class ConfigError(ThumbnailServiceError):
    """Configuration is missing or invalid. The process must not start."""


# ── External systems (S3 / SNS) ──────────────────────────────────────────────

class TransportError(ThumbnailServiceError):
    """A call to the object store or the notification broker failed."""


class ObjectNotFound(TransportError):
    def __init__(self, bucket: str, key: str) -> None:
        super().__init__(f"Object s3://{bucket}/{key} does not exist.")
        self.bucket = bucket
        self.key = key


# ── Payloads ─────────────────────────────────────────────────────────────────

class DecodeError(ThumbnailServiceError):
    """The fetched object is not an image we can read and re-encode."""


class ParseError(ThumbnailServiceError):
    """A notification envelope or its inner message could not be parsed."""


# ── HTTP ─────────────────────────────────────────────────────────────────────

class ThumbnailListingFailed(HTTPException):
    def __init__(self, reason: str) -> None:
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=reason,
        )
