"""Broadcast notification channel for turn progress events."""
import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# Event names (wire format matches the web client)
SPEECH_PROGRESS = "speech-progress"
SPEECH_READY = "speech-ready"
SPEECH_STOPPED = "speech-stopped"
STOP_SPEECH = "stop-speech"

DEFAULT_QUEUE_SIZE = 100


@dataclass
class Subscription:
    """A connected client's mailbox."""
    client_id: str
    queue: "asyncio.Queue[Dict[str, Any]]" = field(repr=False)


class Notifier:
    """
    Topic-less publish/subscribe fan-out.

    Every subscriber receives every published event; there is no per-client
    targeting other than excluding the publisher of a relayed event.
    """

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE):
        self.queue_size = queue_size
        self._subscribers: Dict[str, Subscription] = {}

    def subscribe(self, client_id: Optional[str] = None) -> Subscription:
        """Register a client and return its subscription."""
        client_id = client_id or uuid.uuid4().hex
        subscription = Subscription(client_id=client_id, queue=asyncio.Queue(maxsize=self.queue_size))
        self._subscribers[client_id] = subscription
        logger.info(f"Client connected: {client_id} (total={len(self._subscribers)})")
        return subscription

    def unsubscribe(self, client_id: str) -> None:
        if self._subscribers.pop(client_id, None) is not None:
            logger.info(f"Client disconnected: {client_id} (total={len(self._subscribers)})")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def publish(
        self,
        event: str,
        data: Optional[Dict[str, Any]] = None,
        exclude: Optional[str] = None
    ) -> int:
        """
        Deliver an event to all subscribers.

        Args:
            event: Event name
            data: JSON-serializable payload
            exclude: Client id that should not receive the event

        Returns:
            Number of subscribers the event was queued for
        """
        message = {"event": event, "data": data or {}}
        delivered = 0
        for subscription in list(self._subscribers.values()):
            if subscription.client_id == exclude:
                continue
            try:
                subscription.queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(f"Dropping {event} for slow client {subscription.client_id}")

        logger.debug(f"Published {event} to {delivered} client(s)", extra={"event_data": data})
        return delivered

    async def stop_speech(self, client_id: str) -> int:
        """Relay a client's stop request to every other client. Advisory only."""
        logger.info(f"Stop speech requested: {client_id}")
        return await self.publish(SPEECH_STOPPED, exclude=client_id)
