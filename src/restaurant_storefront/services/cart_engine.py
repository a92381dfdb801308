"""Cart engine: cart reducers, pricing and the durable cart mirror.

The reducers are pure functions from a cart (list of CartItem) to a new cart.
CartEngine owns the current cart, applies reducers, and mirrors the result to
a LocalStore after every mutation. The store entry is read exactly once, when
the engine is created.
"""

import json
import logging
from collections.abc import Callable
from decimal import Decimal

from pydantic import TypeAdapter, ValidationError

from restaurant_storefront.errors import CorruptLocalStateError
from restaurant_storefront.models.cart_models import CartItem, OrderMode, Portion
from restaurant_storefront.models.catalog_models import Product
from restaurant_storefront.observability.metrics import record_cart_mutation, record_corrupt_cart
from restaurant_storefront.services.settings_sync import DEFAULT_DELIVERY_CHARGE
from restaurant_storefront.storage.local_store import LocalStore

logger = logging.getLogger(__name__)

CART_STORAGE_KEY = "fastfood_cart"

_cart_adapter = TypeAdapter(list[CartItem])


def resolve_unit_price(product: Product, portion: Portion) -> Decimal:
    """Unit price of a product for a portion.

    Half portions use the explicit half price when one is set, otherwise
    exactly half the full price (not rounded).
    """
    if portion is Portion.HALF:
        return product.half_price if product.half_price else product.price / 2
    return product.price


def add_item(items: list[CartItem], product: Product, portion: Portion, quantity: int = 1) -> list[CartItem]:
    """Add a product to the cart, merging with an existing (id, portion) line."""
    if any(item.key == (product.id, portion) for item in items):
        return [
            item.model_copy(update={"quantity": item.quantity + quantity})
            if item.key == (product.id, portion)
            else item
            for item in items
        ]

    line = CartItem(
        id=product.id,
        name=product.name,
        price=resolve_unit_price(product, portion),
        half_price=product.half_price,
        quantity=quantity,
        portion=portion,
        description=product.description,
        image_url=product.image_url,
        image_urls=product.image_urls,
        is_veg=product.is_veg,
        serves=product.serves,
    )
    return [*items, line]


def increase_item(items: list[CartItem], product_id: str, portion: Portion) -> list[CartItem]:
    """Increment the quantity of a line. No-op if the line does not exist."""
    return [
        item.model_copy(update={"quantity": item.quantity + 1})
        if item.key == (product_id, portion)
        else item
        for item in items
    ]


def decrease_item(items: list[CartItem], product_id: str, portion: Portion) -> list[CartItem]:
    """Decrement the quantity of a line, removing it when it would reach zero."""
    result: list[CartItem] = []
    for item in items:
        if item.key != (product_id, portion):
            result.append(item)
        elif item.quantity > 1:
            result.append(item.model_copy(update={"quantity": item.quantity - 1}))
    return result


def remove_item(items: list[CartItem], product_id: str, portion: Portion) -> list[CartItem]:
    """Delete a line unconditionally."""
    return [item for item in items if item.key != (product_id, portion)]


def cart_subtotal(items: list[CartItem]) -> Decimal:
    """Sum of unit price times quantity over all lines."""
    return sum((item.line_total for item in items), Decimal("0"))


def cart_total(items: list[CartItem], mode: OrderMode, delivery_charge: Decimal) -> Decimal:
    """Order total, adding the delivery charge for delivery orders."""
    subtotal = cart_subtotal(items)
    if mode is OrderMode.DELIVERY:
        return subtotal + delivery_charge
    return subtotal


def serialize_cart(items: list[CartItem]) -> str:
    """Serialize a cart for the local store."""
    return _cart_adapter.dump_json(items).decode("utf-8")


def deserialize_cart(raw: str) -> list[CartItem]:
    """Parse a stored cart.

    Raises:
        CorruptLocalStateError: If the payload is not a JSON array of cart items
    """
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise CorruptLocalStateError(f"Stored cart is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise CorruptLocalStateError(f"Stored cart is a {type(data).__name__}, expected a list")

    try:
        return _cart_adapter.validate_python(data)
    except ValidationError as e:
        raise CorruptLocalStateError(f"Stored cart has invalid items: {e}") from e


class CartEngine:
    """Owns the cart and mirrors it to durable local storage."""

    def __init__(
        self,
        store: LocalStore,
        delivery_charge_provider: Callable[[], Decimal] | None = None,
        storage_key: str = CART_STORAGE_KEY,
    ) -> None:
        """Initialize the engine and rehydrate the stored cart.

        A stored cart that cannot be parsed is logged and ignored; the engine
        starts empty and leaves the stored entry untouched.

        Args:
            store: Durable local store holding the cart mirror
            delivery_charge_provider: Returns the current delivery surcharge
            storage_key: Store key of the cart mirror
        """
        self.store = store
        self.storage_key = storage_key
        self.delivery_charge_provider = delivery_charge_provider or (lambda: DEFAULT_DELIVERY_CHARGE)
        self._items: list[CartItem] = self._load()

    @property
    def items(self) -> list[CartItem]:
        """Current cart lines, in insertion order."""
        return list(self._items)

    def is_empty(self) -> bool:
        """Whether the cart has no lines."""
        return not self._items

    def add(self, product: Product, portion: Portion, quantity: int = 1) -> list[CartItem]:
        """Add a product; see add_item."""
        return self._commit("add", add_item(self._items, product, portion, quantity))

    def increase(self, product_id: str, portion: Portion) -> list[CartItem]:
        """Increment a line; see increase_item."""
        return self._commit("increase", increase_item(self._items, product_id, portion))

    def decrease(self, product_id: str, portion: Portion) -> list[CartItem]:
        """Decrement a line; see decrease_item."""
        return self._commit("decrease", decrease_item(self._items, product_id, portion))

    def remove(self, product_id: str, portion: Portion) -> list[CartItem]:
        """Delete a line; see remove_item."""
        return self._commit("remove", remove_item(self._items, product_id, portion))

    def subtotal(self) -> Decimal:
        """Sum of all line totals."""
        return cart_subtotal(self._items)

    def total(self, mode: OrderMode) -> Decimal:
        """Order total for a mode, using the current delivery surcharge."""
        return cart_total(self._items, mode, self.delivery_charge_provider())

    def clear(self) -> None:
        """Empty the cart and remove the stored mirror."""
        self._items = []
        record_cart_mutation("clear")
        if not self.store.remove(self.storage_key):
            logger.error("Failed to remove stored cart")

    def _commit(self, operation: str, items: list[CartItem]) -> list[CartItem]:
        self._items = items
        record_cart_mutation(operation)
        if not self.store.set(self.storage_key, serialize_cart(items)):
            logger.error(f"Failed to persist cart after {operation}")
        return self.items

    def _load(self) -> list[CartItem]:
        try:
            raw = self.store.get(self.storage_key)
            if raw is None:
                return []
            items = deserialize_cart(raw)
        except CorruptLocalStateError as e:
            logger.error(f"Corrupted cart data, starting with an empty cart: {e}")
            record_corrupt_cart()
            return []

        logger.info(f"Restored cart with {len(items)} items")
        return items
