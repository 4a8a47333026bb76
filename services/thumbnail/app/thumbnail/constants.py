"""
Thumbnail pipeline — static constants and enum types.
"""
import enum

# SNS puts the message type in this header on every delivery
SNS_MESSAGE_TYPE_HEADER = "x-amz-sns-message-type"


class MessageType(str, enum.Enum):
    SUBSCRIPTION_CONFIRMATION = "SubscriptionConfirmation"
    NOTIFICATION = "Notification"
    UNSUBSCRIBE_CONFIRMATION = "UnsubscribeConfirmation"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: str | None) -> "MessageType":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class PipelineStage(str, enum.Enum):
    """Where a single thumbnail run is, or where it stopped."""
    RECEIVED = "RECEIVED"
    FETCHING = "FETCHING"
    DECODING = "DECODING"
    RESIZING = "RESIZING"
    STORING = "STORING"
    BROADCASTING = "BROADCASTING"
    DONE = "DONE"
    FAILED = "FAILED"
