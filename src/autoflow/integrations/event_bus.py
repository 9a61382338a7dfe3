"""
In-process event bus for run and schedule events
"""
import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List


logger = logging.getLogger(__name__)


@dataclass
class Event:
    """Published event"""
    topic: str
    payload: Any
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    headers: Dict[str, str] = field(default_factory=dict)


class EventBus:
    """Topic based pub/sub; subscriber errors are logged and never reach the publisher"""

    def __init__(self):
        self.subscribers: Dict[str, List[Callable]] = {}
        self._lock = asyncio.Lock()

    async def publish(self, topic: str, payload: Any, headers: Dict[str, str] = None):
        """Publish an event to every subscriber of ``topic`` and of ``*``"""
        event = Event(topic=topic, payload=payload, headers=headers or {})

        async with self._lock:
            subscribers = list(self.subscribers.get(topic, [])) + list(self.subscribers.get("*", []))

        tasks = [asyncio.create_task(self._notify_subscriber(s, event)) for s in subscribers]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        logger.debug(f"Published event to topic '{topic}' with {len(subscribers)} subscribers")

    async def subscribe(self, topic: str, handler: Callable):
        async with self._lock:
            self.subscribers.setdefault(topic, []).append(handler)
        logger.info(f"Subscribed to topic '{topic}'")

    async def unsubscribe(self, topic: str, handler: Callable):
        async with self._lock:
            if topic in self.subscribers and handler in self.subscribers[topic]:
                self.subscribers[topic].remove(handler)
                if not self.subscribers[topic]:
                    del self.subscribers[topic]
        logger.info(f"Unsubscribed from topic '{topic}'")

    async def _notify_subscriber(self, subscriber: Callable, event: Event):
        try:
            if inspect.iscoroutinefunction(subscriber):
                await subscriber(event)
            else:
                subscriber(event)
        except Exception as e:
            logger.error(f"Error notifying subscriber for topic '{event.topic}': {e}", exc_info=True)
