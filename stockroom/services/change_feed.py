"""
Change Feed
In-process notifications for inserts, updates and deletes on a named entity
"""

import logging
import threading
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)


class Subscription:
    """Handle returned by ChangeFeed.subscribe"""

    def __init__(self, feed, entity, callback):
        self._feed = feed
        self.entity = entity
        self.callback = callback
        self.active = True

    def unsubscribe(self):
        if self.active:
            self._feed._remove(self)
            self.active = False


class ChangeFeed:
    """Fan-out of record changes to subscribers, keyed by entity name"""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: Dict[str, List[Subscription]] = {}

    def subscribe(self, entity: str, callback: Callable[[dict], None]) -> Subscription:
        subscription = Subscription(self, entity, callback)
        with self._lock:
            self._subscribers.setdefault(entity, []).append(subscription)
        return subscription

    def _remove(self, subscription):
        with self._lock:
            subscribers = self._subscribers.get(subscription.entity, [])
            if subscription in subscribers:
                subscribers.remove(subscription)

    def subscriber_count(self, entity: str) -> int:
        with self._lock:
            return len(self._subscribers.get(entity, []))

    def publish(self, entity: str, event: str, record: dict = None):
        """
        Notify every subscriber of an entity

        Args:
            entity: Entity (table) name
            event: 'insert', 'update' or 'delete'
            record: The record after the change (before it, for deletes)
        """
        with self._lock:
            subscribers = list(self._subscribers.get(entity, []))

        change = {'entity': entity, 'event': event, 'record': record}
        for subscription in subscribers:
            try:
                subscription.callback(change)
            except Exception as e:
                logger.exception(f"Change subscriber for {entity} failed: {e}")
