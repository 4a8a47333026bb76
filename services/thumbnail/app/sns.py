"""
AWS SNS adapter — the subscription handshake.

SNS sends a SubscriptionConfirmation message to the webhook before it starts
delivering notifications.  Confirming it with the token (rather than visiting
SubscribeURL) lets us require authentication for unsubscribe requests.
"""
from __future__ import annotations

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from app.config import Settings
from app.exceptions import TransportError


def _sns_session(settings: Settings) -> aioboto3.Session:
    return aioboto3.Session(
        aws_access_key_id=settings.aws_access_key_id or None,
        aws_secret_access_key=settings.aws_secret_access_key or None,
        region_name=settings.aws_region,
    )


class NotificationBroker:
    def __init__(self, settings: Settings, session: aioboto3.Session | None = None) -> None:
        self._session = session or _sns_session(settings)

    async def confirm_subscription(self, token: str, topic_arn: str) -> str:
        """Confirm a pending subscription and return its ARN. Raises TransportError."""
        try:
            async with self._session.client("sns") as sns:
                response = await sns.confirm_subscription(
                    TopicArn=topic_arn,
                    Token=token,
                    AuthenticateOnUnsubscribe="true",
                )
        except (BotoCoreError, ClientError) as exc:
            raise TransportError(f"SNS confirm_subscription failed for {topic_arn}: {exc}") from exc
        return response.get("SubscriptionArn", "")
