"""Custom metrics for the restaurant storefront."""

from opentelemetry import metrics

meter = metrics.get_meter("storefront-svc")

snapshot_counter = meter.create_counter(
    name="catalog_snapshots_total",
    description="Total number of realtime snapshots applied by collection kind",
    unit="1",
)

sync_error_counter = meter.create_counter(
    name="catalog_sync_errors_total",
    description="Total number of realtime subscription errors by collection kind",
    unit="1",
)

active_subscriptions = meter.create_up_down_counter(
    name="catalog_active_subscriptions",
    description="Current number of open product subscriptions",
    unit="1",
)

cart_mutation_counter = meter.create_counter(
    name="cart_mutations_total",
    description="Total number of cart mutations by operation",
    unit="1",
)

corrupt_cart_counter = meter.create_counter(
    name="cart_corrupt_state_total",
    description="Total number of stored carts discarded as unreadable",
    unit="1",
)

checkout_counter = meter.create_counter(
    name="checkouts_total",
    description="Total number of composed checkout messages by order mode",
    unit="1",
)

order_value_histogram = meter.create_histogram(
    name="checkout_order_value",
    description="Grand total of composed orders",
    unit="INR",
)


def record_snapshot(collection: str) -> None:
    """Record an applied snapshot.

    Args:
        collection: Collection kind ("categories", "products", "settings")
    """
    snapshot_counter.add(1, {"collection": collection})


def record_sync_error(collection: str, error_type: str) -> None:
    """Record a subscription error.

    Args:
        collection: Collection kind that failed
        error_type: Type of error that occurred
    """
    sync_error_counter.add(1, {"collection": collection, "error_type": error_type})


def record_subscription_change(change: int) -> None:
    """Record product subscriptions opened (positive) or closed (negative)."""
    active_subscriptions.add(change)


def record_cart_mutation(operation: str) -> None:
    """Record a cart mutation.

    Args:
        operation: Mutation performed (e.g., "add", "decrease", "clear")
    """
    cart_mutation_counter.add(1, {"operation": operation})


def record_corrupt_cart() -> None:
    """Record a stored cart that could not be rehydrated."""
    corrupt_cart_counter.add(1)


def record_checkout(mode: str, total: float) -> None:
    """Record a composed checkout.

    Args:
        mode: Order mode ("pickup" or "delivery")
        total: Grand total of the order
    """
    checkout_counter.add(1, {"mode": mode})
    order_value_histogram.record(total, {"mode": mode})
