"""In-process topic pub/sub for live gallery updates"""
import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List

from snapmatch.core.metrics import realtime_subscriptions_gauge

logger = logging.getLogger("realtime")

Listener = Callable[[Dict[str, Any]], None]


class PhotoUpdateType(str, Enum):
    UPLOADED = "photo.uploaded"
    PUBLISHED = "photo.published"
    UNPUBLISHED = "photo.unpublished"


@dataclass(frozen=True)
class PhotoUpdate:
    type: PhotoUpdateType
    event_id: str
    photo_id: str
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": PhotoUpdateType(self.type).value,
            "eventId": self.event_id,
            "photoId": self.photo_id,
            "timestamp": self.timestamp,
        }


def topic_for_event(event_id: str) -> str:
    return f"event:{event_id}"


class Subscription:
    """Handle returned by ``EventBus.subscribe``"""

    def __init__(self, bus: "EventBus", topic: str, listener: Listener):
        self._bus = bus
        self.topic = topic
        self.listener = listener
        self.active = True

    def cancel(self) -> None:
        """Stop delivery; once this returns the listener is never called again"""
        self._bus._remove(self)


class EventBus:
    """Thread-safe topic fan-out

    Publishing and cancellation share one re-entrant lock, so a cancelled
    listener cannot receive a message from a publish that raced the cancel.
    Listeners run on the publisher's thread and must not block.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._subscriptions: Dict[str, List[Subscription]] = defaultdict(list)
        self._closed = False

    def subscribe(self, topic: str, listener: Listener) -> Subscription:
        subscription = Subscription(self, topic, listener)
        with self._lock:
            if self._closed:
                raise RuntimeError("Event bus is closed")
            self._subscriptions[topic].append(subscription)
        realtime_subscriptions_gauge.inc()
        logger.debug(f"Subscribed to {topic} ({self.subscriber_count(topic)} listener(s))")
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if not subscription.active:
                return
            subscription.active = False
            listeners = self._subscriptions.get(subscription.topic, [])
            if subscription in listeners:
                listeners.remove(subscription)
            if not listeners:
                self._subscriptions.pop(subscription.topic, None)
        realtime_subscriptions_gauge.dec()
        logger.debug(f"Unsubscribed from {subscription.topic}")

    def publish(self, topic: str, message: Dict[str, Any]) -> int:
        """Deliver ``message`` to every current listener of ``topic``

        Returns the number of listeners that received it. Messages for a topic
        with no listeners are dropped.
        """
        delivered = 0
        with self._lock:
            for subscription in list(self._subscriptions.get(topic, [])):
                if not subscription.active:
                    continue
                try:
                    subscription.listener(message)
                    delivered += 1
                except Exception as e:
                    logger.error(f"Realtime listener failed on {topic}: {e}", exc_info=True)

        logger.debug(f"Published {message.get('type')} to {topic}: {delivered} listener(s)")
        return delivered

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(topic, []))

    def close(self) -> None:
        """Cancel every subscription and refuse new ones"""
        with self._lock:
            self._closed = True
            subscriptions = [s for listeners in self._subscriptions.values() for s in listeners]
        for subscription in subscriptions:
            subscription.cancel()
        logger.info(f"Event bus closed ({len(subscriptions)} subscription(s) cancelled)")
