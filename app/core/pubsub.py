# app/core/pubsub.py
"""
In-process topic registry used to tell connected clients to refetch data.

One registry is created per process in the application lifespan and handed
to whatever publishes (services, background jobs) or subscribes (websocket
connections). Publishing never raises: a failing subscriber is logged and
skipped.
"""
import logging
import threading
import uuid
from typing import Any, Callable, Dict, Tuple

logger = logging.getLogger(__name__)

# Topics published by the engine
SLOTS_TOPIC = "slots"
TICKETS_TOPIC = "tickets"

Subscriber = Callable[[str, Dict[str, Any]], None]


class TopicRegistry:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: Dict[str, Tuple[str, Subscriber]] = {}

    def subscribe(self, topic: str, callback: Subscriber) -> str:
        """Register ``callback`` for ``topic`` and return an unsubscribe token."""
        token = str(uuid.uuid4())
        with self._lock:
            self._subscribers[token] = (topic, callback)
        logger.debug(f"Subscriber {token} joined topic '{topic}'")
        return token

    def unsubscribe(self, token: str) -> None:
        with self._lock:
            removed = self._subscribers.pop(token, None)
        if removed:
            logger.debug(f"Subscriber {token} left topic '{removed[0]}'")

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return sum(1 for t, _ in self._subscribers.values() if t == topic)

    def publish(self, topic: str, message: Dict[str, Any] | None = None) -> int:
        """Deliver ``message`` to every subscriber of ``topic``.

        Returns the number of subscribers that received it.
        """
        payload = message if message is not None else {"type": "refetch"}
        with self._lock:
            targets = [cb for t, cb in self._subscribers.values() if t == topic]

        delivered = 0
        for callback in targets:
            try:
                callback(topic, payload)
                delivered += 1
            except Exception as e:
                logger.warning(f"Subscriber on topic '{topic}' failed: {e}")
        return delivered
