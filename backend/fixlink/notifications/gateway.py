"""
backend/fixlink/notifications/gateway.py

Notification Gateway

Push/email/SMS delivery lives in a separate service. This module only hands
events over to it:
- NotificationGateway: the interface the engine depends on
- RedisNotificationGateway: publishes JSON events on a Redis channel
- NotificationDispatcher: fire-and-forget wrapper used by the services;
  delivery failures are logged as `ExternalServiceDegraded` and never
  reach the operation that triggered them
"""

import asyncio
import json
import logging
from typing import Any, Protocol
from uuid import UUID

import redis.asyncio as redis

from fixlink.core.clock import utcnow
from fixlink.core.exceptions import ExternalServiceDegraded
from fixlink.notifications.events import NotificationEvent

# ---------------------------------------------------
# Logger Configuration
# ---------------------------------------------------
logger = logging.getLogger(__name__)


# ---------------------------------------------------
# Gateway Interface
# ---------------------------------------------------
class NotificationGateway(Protocol):
    async def notify(
        self, recipient_id: UUID, event_type: NotificationEvent, payload: dict[str, Any]
    ) -> None: ...


# ---------------------------------------------------
# Redis Implementation
# ---------------------------------------------------
class RedisNotificationGateway:
    """Publishes notification events to a Redis pub/sub channel."""

    def __init__(self, client: redis.Redis, channel: str) -> None:
        self.client = client
        self.channel = channel

    async def notify(
        self, recipient_id: UUID, event_type: NotificationEvent, payload: dict[str, Any]
    ) -> None:
        message = json.dumps(
            {
                "recipient_id": str(recipient_id),
                "event_type": event_type.value,
                "payload": payload,
                "emitted_at": utcnow().isoformat(),
            },
            default=str,
        )
        receivers = await self.client.publish(self.channel, message)
        logger.debug(
            f"[NOTIFY] Published {event_type.value} for {recipient_id} to {self.channel} ({receivers} receivers)"
        )


# ---------------------------------------------------
# Fire-and-forget Dispatcher
# ---------------------------------------------------
class NotificationDispatcher:
    """
    Schedules gateway deliveries as background tasks.

    Services call `dispatch` only after their transaction has committed, so a
    slow or failing gateway can neither block nor roll back a transition.
    """

    def __init__(self, gateway: NotificationGateway) -> None:
        self.gateway = gateway
        self._pending: set[asyncio.Task[None]] = set()

    def dispatch(
        self,
        recipient_id: UUID | None,
        event_type: NotificationEvent,
        payload: dict[str, Any] | None = None,
    ) -> None:
        if recipient_id is None:
            return
        task = asyncio.create_task(self._deliver(recipient_id, event_type, payload or {}))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(
        self, recipient_id: UUID, event_type: NotificationEvent, payload: dict[str, Any]
    ) -> None:
        try:
            await self.gateway.notify(recipient_id, event_type, payload)
        except Exception as e:
            degraded = ExternalServiceDegraded(
                f"Delivery of {event_type.value} to {recipient_id} failed: {e}"
            )
            logger.warning(f"[NOTIFY] {degraded}")

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Waits for in-flight deliveries (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
