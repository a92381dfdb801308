"""Catalog read-model synchronization.

Keeps a local, continuously updated copy of the category list and of each
category's products by following realtime subscriptions on a document source.
One product subscription is held per category currently in the category list;
categories that disappear have their subscription cancelled before their
state is dropped.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from pydantic import ValidationError

from restaurant_storefront.errors import SyncTransportError
from restaurant_storefront.models.catalog_models import (
    Category,
    DietFilter,
    Product,
    normalize_category,
    normalize_product,
    sort_newest_first,
)
from restaurant_storefront.observability.metrics import (
    record_snapshot,
    record_subscription_change,
    record_sync_error,
)
from restaurant_storefront.sources.document_source import (
    CATEGORIES_COLLECTION,
    CollectionSnapshot,
    DocumentSource,
    Subscription,
    products_collection,
)

logger = logging.getLogger(__name__)

ErrorListener = Callable[[SyncTransportError], None]


@dataclass
class _ProductFeed:
    """Product subscription owned by one category.

    The feed object, not the source, decides whether a snapshot is still
    wanted: once closed it ignores anything the source delivers late.
    """

    category_id: str
    subscription: Subscription | None = None
    open: bool = True

    def close(self) -> None:
        self.open = False
        if self.subscription is not None:
            self.subscription.cancel()


class CatalogSync:
    """Read-model of categories and their products.

    State is exposed through plain attributes so the presentation layer (and
    tests) can read it without a rendering context:

    - categories: categories ordered newest first
    - categories_loading: True until the first category snapshot
    - products_by_category: category id -> products ordered newest first
    - loading_by_category: category id -> True until its first product snapshot
    """

    def __init__(
        self,
        source: DocumentSource,
        error_listener: ErrorListener | None = None,
    ) -> None:
        """Initialize the sync.

        Args:
            source: Realtime document source to follow
            error_listener: Optional callback receiving non-fatal transport errors
        """
        self.source = source
        self.error_listener = error_listener

        self.categories: list[Category] = []
        self.categories_loading = True
        self.products_by_category: dict[str, list[Product]] = {}
        self.loading_by_category: dict[str, bool] = {}

        self._running = False
        self._category_subscription: Subscription | None = None
        self._product_feeds: dict[str, _ProductFeed] = {}

    @property
    def running(self) -> bool:
        """Whether the sync is currently subscribed."""
        return self._running

    @property
    def subscribed_category_ids(self) -> list[str]:
        """Categories with an open product subscription."""
        return list(self._product_feeds)

    def start(self) -> None:
        """Subscribe to the category collection. No-op if already running."""
        if self._running:
            return

        self._running = True
        logger.info("Starting catalog sync")
        self._category_subscription = self.source.subscribe_collection(
            CATEGORIES_COLLECTION,
            self._apply_categories,
            self._on_categories_error,
        )

    def stop(self) -> None:
        """Release the category subscription and every product subscription.

        The last synced state is kept.
        """
        if not self._running:
            return

        self._running = False
        if self._category_subscription is not None:
            self._category_subscription.cancel()
            self._category_subscription = None

        for category_id in list(self._product_feeds):
            self._close_product_feed(category_id)

        logger.info("Catalog sync stopped")

    def products_for(self, category_id: str, diet: DietFilter = DietFilter.ALL) -> list[Product]:
        """Products of a category, optionally filtered by diet."""
        return [p for p in self.products_by_category.get(category_id, []) if p.matches_diet(diet)]

    def is_loading(self, category_id: str) -> bool:
        """Whether a category is still waiting for its first product snapshot."""
        return self.loading_by_category.get(category_id, self.categories_loading)

    def find_product(self, category_id: str, product_id: str) -> Product | None:
        """Look up a synced product."""
        for product in self.products_by_category.get(category_id, []):
            if product.id == product_id:
                return product
        return None

    def all_products(self) -> list[Product]:
        """Every synced product, in category display order."""
        return [
            product
            for category in self.categories
            for product in self.products_by_category.get(category.id, [])
        ]

    def search_products(self, text: str) -> list[Product]:
        """Case-insensitive search on product name and description.

        An empty or blank query matches nothing.
        """
        query = text.strip().lower()
        if not query:
            return []
        return [
            p
            for p in self.all_products()
            if query in p.name.lower() or (p.description and query in p.description.lower())
        ]

    def _apply_categories(self, snapshot: CollectionSnapshot) -> None:
        if not self._running:
            return

        categories: list[Category] = []
        for doc in snapshot.documents:
            if not doc.exists:
                continue
            try:
                categories.append(normalize_category(doc.id, doc.data))
            except ValidationError as e:
                logger.warning(f"Skipping malformed category {doc.id}: {e}")

        self.categories = sort_newest_first(categories)
        self.categories_loading = False
        record_snapshot("categories")
        logger.debug(f"Applied category snapshot with {len(self.categories)} categories")

        self._reconcile_product_feeds([c.id for c in self.categories])

    def _reconcile_product_feeds(self, category_ids: list[str]) -> None:
        wanted = set(category_ids)

        for category_id in list(self._product_feeds):
            if category_id not in wanted:
                self._close_product_feed(category_id)
                self.products_by_category.pop(category_id, None)
                self.loading_by_category.pop(category_id, None)

        for category_id in category_ids:
            if category_id not in self._product_feeds:
                self._open_product_feed(category_id)

    def _open_product_feed(self, category_id: str) -> None:
        feed = _ProductFeed(category_id=category_id)
        self._product_feeds[category_id] = feed
        self.loading_by_category[category_id] = True

        feed.subscription = self.source.subscribe_collection(
            products_collection(category_id),
            lambda snapshot: self._apply_products(feed, snapshot),
            lambda error: self._on_products_error(feed, error),
        )
        record_subscription_change(1)

    def _close_product_feed(self, category_id: str) -> None:
        feed = self._product_feeds.pop(category_id, None)
        if feed is None:
            return
        feed.close()
        record_subscription_change(-1)

    def _apply_products(self, feed: _ProductFeed, snapshot: CollectionSnapshot) -> None:
        if not feed.open or self._product_feeds.get(feed.category_id) is not feed:
            logger.debug(f"Ignoring late product snapshot for category {feed.category_id}")
            return

        products: list[Product] = []
        for doc in snapshot.documents:
            if not doc.exists:
                continue
            try:
                products.append(normalize_product(doc.id, feed.category_id, doc.data))
            except ValidationError as e:
                logger.warning(f"Skipping malformed product {doc.id} in {feed.category_id}: {e}")

        self.products_by_category[feed.category_id] = sort_newest_first(products)
        self.loading_by_category[feed.category_id] = False
        record_snapshot("products")

    def _on_categories_error(self, error: Exception) -> None:
        if self._running:
            self._report_error(CATEGORIES_COLLECTION, "categories", error)

    def _on_products_error(self, feed: _ProductFeed, error: Exception) -> None:
        if feed.open:
            self._report_error(products_collection(feed.category_id), "products", error)

    def _report_error(self, path: str, collection: str, error: Exception) -> None:
        # Synced state and loading flags are left exactly as they were
        logger.error(f"Error fetching {path}: {error}")
        record_sync_error(collection, type(error).__name__)
        if self.error_listener is not None:
            self.error_listener(SyncTransportError(path, error))
