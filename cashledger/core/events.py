# cashledger/core/events.py
import logging
import threading
from collections import defaultdict

logger = logging.getLogger(__name__)

TRANSACTION_STATE_CHANGED = "cash_transaction.state_changed"
OPENING_BALANCE_UPDATED = "opening_balance.updated"
LOW_BALANCE = "cash_balance.low"


class EventBus:
    """
    In-process publish/subscribe channel.

    Created once at application startup and handed to whoever needs to
    announce or react to ledger changes. Handlers run synchronously in the
    publisher's thread; a failing handler is logged and counted, never
    re-raised to the publisher.
    """

    def __init__(self):
        self._handlers = defaultdict(list)
        self._lock = threading.Lock()
        self._closed = False
        self.failed_deliveries = 0

    def subscribe(self, topic: str, handler):
        with self._lock:
            self._handlers[topic].append(handler)

        def unsubscribe():
            with self._lock:
                if handler in self._handlers[topic]:
                    self._handlers[topic].remove(handler)

        return unsubscribe

    def publish(self, topic: str, payload: dict) -> list:
        """Deliver ``payload`` to every handler of ``topic`` and collect their results."""
        if self._closed:
            logger.warning("Event bus closed, dropping %s event %s", topic, payload)
            return []

        with self._lock:
            handlers = list(self._handlers[topic])

        results = []
        for handler in handlers:
            try:
                results.append(handler(payload))
            except Exception:
                with self._lock:
                    self.failed_deliveries += 1
                logger.error("Event handler failed for %s: %s", topic, payload, exc_info=True)
        return results

    def close(self):
        with self._lock:
            self._closed = True
            self._handlers.clear()

    @property
    def closed(self) -> bool:
        return self._closed
