"""Storefront settings read-model (delivery charge and page views)."""

import logging
from decimal import Decimal

from restaurant_storefront.observability.metrics import record_snapshot, record_sync_error
from restaurant_storefront.sources.document_source import (
    SETTINGS_COLLECTION,
    DocumentSnapshot,
    DocumentSource,
    Subscription,
)

logger = logging.getLogger(__name__)

DELIVERY_CHARGE_DOC = "deliveryCharge"
PAGE_VIEWS_DOC = "pageViews"
DEFAULT_DELIVERY_CHARGE = Decimal("50")


def parse_delivery_charge(snapshot: DocumentSnapshot) -> Decimal:
    """Read the delivery charge from its settings document.

    Falls back to DEFAULT_DELIVERY_CHARGE when the document is missing or its
    ``amount`` is not a non-negative number.
    """
    amount = snapshot.data.get("amount") if snapshot.exists else None
    if isinstance(amount, bool) or not isinstance(amount, int | float | Decimal):
        logger.warning(
            f"Delivery charge setting unavailable ({amount!r}), using {DEFAULT_DELIVERY_CHARGE}"
        )
        return DEFAULT_DELIVERY_CHARGE

    value = Decimal(str(amount))
    if not value.is_finite() or value < 0:
        logger.warning(f"Delivery charge setting invalid ({amount!r}), using {DEFAULT_DELIVERY_CHARGE}")
        return DEFAULT_DELIVERY_CHARGE
    return value


def parse_page_views(snapshot: DocumentSnapshot) -> int:
    """Read the page-view counter, defaulting to 0."""
    count = snapshot.data.get("count") if snapshot.exists else None
    if isinstance(count, bool) or not isinstance(count, int | Decimal):
        return 0
    return int(count)


class SettingsSync:
    """Follows the delivery-charge and page-view settings documents."""

    def __init__(self, source: DocumentSource) -> None:
        """Initialize the sync with fallback values.

        Args:
            source: Realtime document source to follow
        """
        self.source = source
        self.delivery_charge: Decimal = DEFAULT_DELIVERY_CHARGE
        self.page_views: int = 0
        self._subscriptions: list[Subscription] = []

    def start(self) -> None:
        """Subscribe to both settings documents. No-op if already running."""
        if self._subscriptions:
            return

        self._subscriptions = [
            self.source.subscribe_document(
                SETTINGS_COLLECTION,
                DELIVERY_CHARGE_DOC,
                self._apply_delivery_charge,
                self._on_error,
            ),
            self.source.subscribe_document(
                SETTINGS_COLLECTION,
                PAGE_VIEWS_DOC,
                self._apply_page_views,
                self._on_error,
            ),
        ]

    def stop(self) -> None:
        """Release both subscriptions, keeping the last known values."""
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []

    def get_delivery_charge(self) -> Decimal:
        """Current delivery surcharge; usable as a provider callable."""
        return self.delivery_charge

    def _apply_delivery_charge(self, snapshot: DocumentSnapshot) -> None:
        self.delivery_charge = parse_delivery_charge(snapshot)
        record_snapshot("settings")

    def _apply_page_views(self, snapshot: DocumentSnapshot) -> None:
        self.page_views = parse_page_views(snapshot)
        record_snapshot("settings")

    def _on_error(self, error: Exception) -> None:
        logger.error(f"Error fetching settings: {error}")
        record_sync_error("settings", type(error).__name__)
