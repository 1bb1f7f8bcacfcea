from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List


logger = logging.getLogger("ledger")

Listener = Callable[[Any], None]

TOPIC_ACTIVE_CHECK_INS = "active_check_ins"
TOPIC_CUSTOMERS = "customers"
TOPIC_SETTINGS = "settings"


class Subscription:
    """Handle returned by ``subscribe``; call ``unsubscribe()`` on teardown."""

    def __init__(self, hub: "SubscriptionHub", topic: str, listener: Listener) -> None:
        self._hub = hub
        self.topic = topic
        self.listener = listener
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._hub._remove(self)
            self.active = False

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc) -> None:
        self.unsubscribe()


class SubscriptionHub:
    """In-process observer registry keyed by topic."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: Dict[str, List[Subscription]] = {}

    def subscribe(self, topic: str, listener: Listener) -> Subscription:
        sub = Subscription(self, topic, listener)
        with self._lock:
            self._listeners.setdefault(topic, []).append(sub)
        return sub

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._listeners.get(sub.topic, [])
            if sub in subs:
                subs.remove(sub)

    def listener_count(self, topic: str) -> int:
        with self._lock:
            return len(self._listeners.get(topic, []))

    def publish(self, topic: str, payload: Any) -> None:
        with self._lock:
            subs = list(self._listeners.get(topic, []))
        for sub in subs:
            try:
                sub.listener(payload)
            except Exception:
                logger.exception("Listener failed for topic=%s", topic)
