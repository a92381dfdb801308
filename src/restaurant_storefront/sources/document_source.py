"""Base abstractions for realtime document sources.

A document source exposes collections of documents (``categories``,
``categories/{id}/products``, ``settings``) as streams of full snapshots.
Every subscription returns a cancellable handle; once cancelled, no further
snapshot or error is delivered through it.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

CATEGORIES_COLLECTION = "categories"
SETTINGS_COLLECTION = "settings"


def products_collection(category_id: str) -> str:
    """Path of the product sub-collection for a category."""
    return f"{CATEGORIES_COLLECTION}/{category_id}/products"


@dataclass(frozen=True)
class DocumentSnapshot:
    """State of a single document at delivery time.

    Attributes:
        id: Document identifier
        data: Raw document body (empty when the document does not exist)
        exists: Whether the document exists
    """

    id: str
    data: dict[str, Any] = field(default_factory=dict)
    exists: bool = True


@dataclass(frozen=True)
class CollectionSnapshot:
    """Full state of a collection at delivery time.

    Attributes:
        path: Collection path
        documents: Every document currently in the collection
    """

    path: str
    documents: list[DocumentSnapshot] = field(default_factory=list)


CollectionCallback = Callable[[CollectionSnapshot], None]
DocumentCallback = Callable[[DocumentSnapshot], None]
ErrorCallback = Callable[[Exception], None]


class Subscription:
    """Cancellable handle for a realtime subscription."""

    def __init__(self, path: str, on_cancel: Callable[[], None] | None = None) -> None:
        """Initialize the handle.

        Args:
            path: Collection or document path this handle listens to
            on_cancel: Source hook run once when the handle is cancelled
        """
        self.path = path
        self._on_cancel = on_cancel
        self._active = True

    @property
    def active(self) -> bool:
        """Whether the subscription may still deliver events."""
        return self._active

    def cancel(self) -> None:
        """Stop delivery. Safe to call more than once."""
        if not self._active:
            return
        self._active = False
        if self._on_cancel is not None:
            on_cancel, self._on_cancel = self._on_cancel, None
            on_cancel()
        logger.debug(f"Subscription to {self.path} cancelled")


class DocumentSource(ABC):
    """Abstract base class for realtime document sources.

    Implementations must deliver snapshots and errors only while the returned
    Subscription is active, and must run callbacks one at a time.
    """

    @abstractmethod
    def subscribe_collection(
        self,
        path: str,
        on_snapshot: CollectionCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        """Subscribe to full snapshots of a collection.

        Args:
            path: Collection path
            on_snapshot: Called with each full snapshot
            on_error: Called with transport errors; the subscription stays open

        Returns:
            Subscription: Handle used to stop delivery
        """
        pass

    @abstractmethod
    def subscribe_document(
        self,
        collection: str,
        doc_id: str,
        on_snapshot: DocumentCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        """Subscribe to a single document.

        Args:
            collection: Collection path holding the document
            doc_id: Document identifier
            on_snapshot: Called with each document state, including non-existence
            on_error: Called with transport errors; the subscription stays open

        Returns:
            Subscription: Handle used to stop delivery
        """
        pass
