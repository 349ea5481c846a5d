"""NAPWATCH — Notification Sinks.

Alert events leave the engine through a NotificationSink. Delivery is
fire-and-forget: the engine never consumes a return value.
"""

import hashlib
import hmac
from abc import ABC, abstractmethod
from typing import List, Optional

import httpx

from app.config import settings
from app.core.logging import get_logger
from app.models.audit_models import AlertEvent

logger = get_logger("notify")


class NotificationSink(ABC):
    """Abstract destination for alert events."""

    @abstractmethod
    async def emit(self, event: AlertEvent) -> None: ...

    async def close(self) -> None:
        return None


class LogNotificationSink(NotificationSink):
    """Writes each alert as a WARNING log line."""

    async def emit(self, event: AlertEvent) -> None:
        logger.warning(
            f"NAP alert: {event.type.value} {event.payload}",
            extra={"alert_type": event.type.value},
        )


def sign_payload(secret: str, body: bytes) -> str:
    """HMAC-SHA256 signature in the form 'sha256=<hex>'."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


class WebhookNotificationSink(NotificationSink):
    """POSTs the event JSON to a webhook (chat, incident tooling, ...).

    When a secret is configured the body is signed in ``X-Signature``.
    """

    def __init__(
        self,
        url: str,
        secret: Optional[str] = None,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self.secret = secret
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def emit(self, event: AlertEvent) -> None:
        body = event.model_dump_json().encode("utf-8")
        headers = {"Content-Type": "application/json"}
        if self.secret:
            headers["X-Signature"] = sign_payload(self.secret, body)
        try:
            resp = await self._client.post(self.url, content=body, headers=headers)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(
                f"Webhook delivery failed: {e}", extra={"alert_type": event.type.value}
            )

    async def close(self) -> None:
        if not self._client.is_closed:
            await self._client.aclose()


class CompositeNotificationSink(NotificationSink):
    """Fans an event out to several sinks; one failing sink does not stop others."""

    def __init__(self, sinks: List[NotificationSink]):
        self.sinks = sinks

    async def emit(self, event: AlertEvent) -> None:
        for sink in self.sinks:
            try:
                await sink.emit(event)
            except Exception as e:
                logger.error(f"{type(sink).__name__} failed: {e}")

    async def close(self) -> None:
        for sink in self.sinks:
            await sink.close()


def build_default_sink() -> NotificationSink:
    """Log sink, plus a webhook sink when NAPWATCH_ALERT_WEBHOOK_URL is set."""
    sinks: List[NotificationSink] = [LogNotificationSink()]
    if settings.alert_webhook_url:
        sinks.append(
            WebhookNotificationSink(
                settings.alert_webhook_url, secret=settings.alert_webhook_secret
            )
        )
    return CompositeNotificationSink(sinks)
