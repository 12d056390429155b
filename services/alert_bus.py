"""
Alert Bus and Delivery

A lightweight publish/subscribe utility built on asyncio queues, plus the
delivery collaborator the notification scheduler hands alerts and reports to.

Each subscriber id maps to its own topic; WebSocket handlers subscribe to that
topic and forward whatever the scheduler publishes.
"""

import asyncio
from collections import defaultdict
from typing import Any, DefaultDict, Dict, Protocol, Set

from core.logging import get_logger
from core.schemas import AlertEvent, PriceMover


def subscriber_topic(subscriber_id: str) -> str:
    return f"alerts:{subscriber_id}"


class AlertBus:
    """
    Async event bus with topic-based pub/sub.

    - Each subscriber gets its own asyncio.Queue and will not block publishers.
    - Unsubscribing is important to avoid queue leaks when clients disconnect.
    """

    def __init__(self, max_queue_size: int = 100) -> None:
        self._topics: DefaultDict[str, Set[asyncio.Queue]] = defaultdict(set)
        self._max_queue_size = max_queue_size
        self._logger = get_logger(__name__)

    def subscribe(self, topic: str) -> asyncio.Queue:
        """Subscribe to a topic. Returns an asyncio.Queue for receiving events."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_queue_size)
        self._topics[topic].add(queue)
        self._logger.debug(f"Subscriber added to topic '{topic}'. total={len(self._topics[topic])}")
        return queue

    def unsubscribe(self, topic: str, queue: asyncio.Queue) -> None:
        """Unsubscribe a queue from a topic."""
        queues = self._topics.get(topic)
        if queues is None or queue not in queues:
            return
        queues.remove(queue)
        if not queues:
            del self._topics[topic]
        # Drain so pending events can be collected
        while not queue.empty():
            queue.get_nowait()
        self._logger.debug(f"Subscriber removed from topic '{topic}'")

    def subscriber_count(self, topic: str) -> int:
        return len(self._topics.get(topic, ()))

    async def publish(self, topic: str, event: Dict[str, Any]) -> int:
        """
        Publish an event to a topic. Drops events if a subscriber queue is full.

        Returns:
            int: Number of queues the event was put on
        """
        subscribers = list(self._topics.get(topic, ()))
        delivered = 0
        for q in subscribers:
            try:
                q.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                # Drop event to avoid backpressure blocking
                self._logger.warning(f"Dropping event for topic '{topic}' due to full queue")
        return delivered


class AlertDelivery(Protocol):
    """Collaborator that gets alerts and reports to subscribers."""

    async def deliver_alert(self, event: AlertEvent, text: str) -> None:
        ...

    async def deliver_report(self, subscriber_id: str, text: str, top_n: int) -> None:
        ...

    async def deliver_mover(self, subscriber_id: str, mover: PriceMover, text: str) -> None:
        ...


class BusDelivery:
    """AlertDelivery that publishes onto an AlertBus, one topic per subscriber."""

    def __init__(self, bus: AlertBus) -> None:
        self.bus = bus
        self._logger = get_logger(__name__)

    async def deliver_alert(self, event: AlertEvent, text: str) -> None:
        payload = {
            "type": "funding_alert",
            "subscriber_id": event.subscriber_id,
            "text": text,
            "event": event.model_dump(mode="json"),
        }
        receivers = await self.bus.publish(subscriber_topic(event.subscriber_id), payload)
        if receivers == 0:
            self._logger.info(f"No listener for {event.subscriber_id}; alert for {event.spread.base_asset} not delivered")

    async def deliver_report(self, subscriber_id: str, text: str, top_n: int) -> None:
        payload = {
            "type": "funding_report",
            "subscriber_id": subscriber_id,
            "top_n": top_n,
            "text": text,
        }
        await self.bus.publish(subscriber_topic(subscriber_id), payload)

    async def deliver_mover(self, subscriber_id: str, mover: PriceMover, text: str) -> None:
        payload = {
            "type": "price_mover",
            "subscriber_id": subscriber_id,
            "text": text,
            "mover": mover.model_dump(mode="json"),
        }
        await self.bus.publish(subscriber_topic(subscriber_id), payload)


# Singleton alert bus for the application
bus = AlertBus()
