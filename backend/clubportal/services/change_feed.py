"""In-process change feed backing live views"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Set

logger = logging.getLogger(__name__)


class ChangeOperation:
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass
class ChangeEvent:
    """A committed change to one document"""
    collection: str
    document_id: str
    operation: str
    data: Optional[Dict[str, Any]] = None
    version: Optional[int] = None
    published_at: datetime = field(default_factory=datetime.utcnow)

    def to_message(self) -> Dict[str, Any]:
        return {
            "type": "change",
            "collection": self.collection,
            "document_id": self.document_id,
            "operation": self.operation,
            "version": self.version,
            "data": self.data,
            "published_at": self.published_at.isoformat() + "Z",
        }


class Subscription:
    """
    Cancelable handle on a change feed.

    Iterate with ``async for`` to receive events; iteration ends once the
    subscription is cancelled.
    """

    def __init__(self, feed: "ChangeFeed", collections: Optional[Set[str]] = None):
        self._feed = feed
        self.collections = None if collections is None else set(collections)
        self._queue: asyncio.Queue = asyncio.Queue()
        self.cancelled = False

    def matches(self, event: ChangeEvent) -> bool:
        return self.collections is None or event.collection in self.collections

    def deliver(self, event: ChangeEvent) -> None:
        if not self.cancelled and self.matches(event):
            self._queue.put_nowait(event)

    def add_collections(self, collections: Iterable[str]) -> None:
        if self.collections is not None:
            self.collections.update(collections)

    def remove_collections(self, collections: Iterable[str]) -> None:
        if self.collections is not None:
            self.collections.difference_update(collections)

    async def get(self) -> Optional[ChangeEvent]:
        """Wait for the next event, None once cancelled"""
        if self.cancelled and self._queue.empty():
            return None
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        self._feed.unsubscribe(self)
        # Wake up any consumer blocked in get()
        self._queue.put_nowait(None)

    def __aiter__(self) -> AsyncIterator[ChangeEvent]:
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.cancel()


class ChangeFeed:
    """
    Fan-out of committed changes to live subscribers.

    Publishing happens after a transaction commits, never inside a
    transaction body. Delivery is at-least-once from the consumer's point of
    view: consumers reconcile by document id (see ``LiveView``).
    """

    def __init__(self):
        self._subscriptions: Set[Subscription] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, collections: Optional[Iterable[str]] = None) -> Subscription:
        subscription = Subscription(self, None if collections is None else set(collections))
        self._subscriptions.add(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        self._subscriptions.discard(subscription)

    def publish(self, event: ChangeEvent) -> None:
        for subscription in list(self._subscriptions):
            subscription.deliver(event)
        logger.debug(
            f"Published {event.operation} {event.collection}/{event.document_id} "
            f"to {len(self._subscriptions)} subscribers"
        )

    def publish_document(
        self,
        collection: str,
        document_id: Any,
        data: Optional[Dict[str, Any]],
        operation: str = ChangeOperation.MODIFIED,
        version: Optional[int] = None,
    ) -> None:
        self.publish(
            ChangeEvent(
                collection=collection,
                document_id=str(document_id),
                operation=operation,
                data=data,
                version=version,
            )
        )


class LiveView:
    """
    Consumer-side snapshot of one collection, merged by document id.

    Applying the same event twice, or an older version after a newer one,
    leaves the view unchanged.
    """

    def __init__(self, collection: str):
        self.collection = collection
        self._documents: Dict[str, Dict[str, Any]] = {}
        self._versions: Dict[str, int] = {}

    def load(self, documents: Iterable[Dict[str, Any]], id_field: str = "id") -> None:
        """Replace the view with a fresh query snapshot"""
        self._documents = {}
        self._versions = {}
        for document in documents:
            key = str(document[id_field])
            self._documents[key] = document
            if document.get("version") is not None:
                self._versions[key] = document["version"]

    def apply(self, event: ChangeEvent) -> bool:
        """Merge an event into the view; returns True if the view changed"""
        if event.collection != self.collection:
            return False

        key = event.document_id
        if event.operation == ChangeOperation.REMOVED:
            self._versions.pop(key, None)
            return self._documents.pop(key, None) is not None

        known = self._versions.get(key)
        if known is not None and event.version is not None and event.version <= known:
            return False

        self._documents[key] = event.data or {}
        if event.version is not None:
            self._versions[key] = event.version
        return True

    def get(self, document_id: Any) -> Optional[Dict[str, Any]]:
        return self._documents.get(str(document_id))

    def values(self) -> List[Dict[str, Any]]:
        return list(self._documents.values())

    def __len__(self) -> int:
        return len(self._documents)


# Global change feed
change_feed = ChangeFeed()
