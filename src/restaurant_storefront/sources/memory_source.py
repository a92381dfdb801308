"""In-process document source.

Holds documents in dictionaries and publishes snapshots synchronously on every
write. Used for local development without a database and throughout the test
suite, where snapshot delivery and failures need to be driven explicitly.
"""

import copy
import logging
from dataclasses import dataclass
from typing import Any

from restaurant_storefront.sources.document_source import (
    CollectionCallback,
    CollectionSnapshot,
    DocumentCallback,
    DocumentSnapshot,
    DocumentSource,
    ErrorCallback,
    Subscription,
)

logger = logging.getLogger(__name__)


@dataclass
class _Listener:
    subscription: Subscription
    on_snapshot: Any
    on_error: ErrorCallback
    doc_id: str | None = None


class MemoryDocumentSource(DocumentSource):
    """Dictionary-backed document source with synchronous delivery."""

    def __init__(self, deliver_initial: bool = True) -> None:
        """Initialize an empty source.

        Args:
            deliver_initial: Deliver the current state immediately on subscribe.
                Disable to control the first delivery with publish().
        """
        self.deliver_initial = deliver_initial
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._listeners: dict[str, list[_Listener]] = {}

    def subscribe_collection(
        self,
        path: str,
        on_snapshot: CollectionCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        listener = self._register(path, on_snapshot, on_error)
        if self.deliver_initial:
            on_snapshot(self.collection_snapshot(path))
        return listener.subscription

    def subscribe_document(
        self,
        collection: str,
        doc_id: str,
        on_snapshot: DocumentCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        listener = self._register(collection, on_snapshot, on_error, doc_id=doc_id)
        if self.deliver_initial:
            on_snapshot(self.document_snapshot(collection, doc_id))
        return listener.subscription

    def set_document(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        merge: bool = False,
    ) -> None:
        """Create or replace a document and publish the change.

        Args:
            collection: Collection path
            doc_id: Document identifier
            data: Document body
            merge: Merge into the existing body instead of replacing it
        """
        documents = self._collections.setdefault(collection, {})
        if merge and doc_id in documents:
            documents[doc_id] = {**documents[doc_id], **data}
        else:
            documents[doc_id] = dict(data)
        self.publish(collection)

    def delete_document(self, collection: str, doc_id: str) -> None:
        """Delete a document (if present) and publish the change."""
        self._collections.get(collection, {}).pop(doc_id, None)
        self.publish(collection)

    def collection_snapshot(self, path: str) -> CollectionSnapshot:
        """Build the current snapshot of a collection."""
        documents = self._collections.get(path, {})
        return CollectionSnapshot(
            path=path,
            documents=[
                DocumentSnapshot(id=doc_id, data=copy.deepcopy(data))
                for doc_id, data in documents.items()
            ],
        )

    def document_snapshot(self, collection: str, doc_id: str) -> DocumentSnapshot:
        """Build the current snapshot of a single document."""
        data = self._collections.get(collection, {}).get(doc_id)
        if data is None:
            return DocumentSnapshot(id=doc_id, exists=False)
        return DocumentSnapshot(id=doc_id, data=copy.deepcopy(data))

    def publish(self, path: str) -> None:
        """Deliver the current state of a collection to every active listener."""
        for listener in list(self._listeners.get(path, [])):
            if not listener.subscription.active:
                continue
            if listener.doc_id is None:
                listener.on_snapshot(self.collection_snapshot(path))
            else:
                listener.on_snapshot(self.document_snapshot(path, listener.doc_id))

    def fail(self, path: str, error: Exception) -> None:
        """Deliver a transport error to every active listener on a path."""
        for listener in list(self._listeners.get(path, [])):
            if listener.subscription.active:
                listener.on_error(error)

    def listener_count(self, path: str) -> int:
        """Number of active subscriptions on a path."""
        return sum(1 for lst in self._listeners.get(path, []) if lst.subscription.active)

    def _register(
        self,
        path: str,
        on_snapshot: Any,
        on_error: ErrorCallback,
        doc_id: str | None = None,
    ) -> _Listener:
        subscription = Subscription(path, on_cancel=lambda: self._unregister(path, subscription))
        listener = _Listener(subscription, on_snapshot, on_error, doc_id)
        self._listeners.setdefault(path, []).append(listener)
        return listener

    def _unregister(self, path: str, subscription: Subscription) -> None:
        self._listeners[path] = [
            lst for lst in self._listeners.get(path, []) if lst.subscription is not subscription
        ]
