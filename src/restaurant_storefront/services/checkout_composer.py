"""Checkout message composition and the messaging hand-off link.

Orders are not stored anywhere: checkout renders the cart into a WhatsApp
message addressed to the restaurant, and the customer sends it. The composer
is pure apart from drawing an order identifier.
"""

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from urllib.parse import quote

from restaurant_storefront.errors import CheckoutValidationError
from restaurant_storefront.models.cart_models import CartItem, CustomerDetails, OrderMode
from restaurant_storefront.observability import traced
from restaurant_storefront.services.cart_engine import cart_subtotal, cart_total
from restaurant_storefront.services.settings_sync import DEFAULT_DELIVERY_CHARGE

logger = logging.getLogger(__name__)

ORDER_ID_PREFIX = "RJ-"
DEFAULT_RESTAURANT_NAME = "Raj Family Restaurant"
DEFAULT_WHATSAPP_RECIPIENT = "916200656377"
WHATSAPP_BASE_URL = "https://wa.me"
CURRENCY_SYMBOL = "₹"
CONFIRMATION_PHRASE = "Please confirm my order."

# Characters encodeURIComponent leaves untouched, beyond those quote() always keeps
_URI_COMPONENT_SAFE = "!*'()"


@dataclass
class ComposedOrder:
    """Result of composing a checkout message.

    Attributes:
        order_id: Transient human-readable order identifier
        message: Message text to hand off to the messaging app
        total: Grand total included in the message
    """

    order_id: str
    message: str
    total: Decimal


def generate_order_id(rng: random.Random | None = None) -> str:
    """Draw a transient order identifier such as ``RJ-483920``.

    Identifiers are random and never checked for collisions; nothing keeps a
    history to check against.
    """
    rng = rng or random.Random()
    return f"{ORDER_ID_PREFIX}{rng.randint(100000, 999999)}"


def format_amount(amount: Decimal) -> str:
    """Format an amount as rupees with exactly two decimals."""
    return f"{CURRENCY_SYMBOL}{amount.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)}"


def format_line(item: CartItem) -> str:
    """Render one cart line, e.g. ``*Paneer Roll (Full) x2* — ₹240.00``."""
    serves = f" [{item.serves}]" if item.serves and item.serves != "1" else ""
    quantity = f" x{item.quantity}" if item.quantity > 1 else ""
    return f"*{item.name} ({item.portion.label}){serves}{quantity}* — {format_amount(item.line_total)}"


@traced("compose_order")
def compose(
    items: list[CartItem],
    mode: OrderMode,
    customer: CustomerDetails | None = None,
    delivery_charge: Decimal = DEFAULT_DELIVERY_CHARGE,
    restaurant_name: str = DEFAULT_RESTAURANT_NAME,
    order_id_factory: Callable[[], str] = generate_order_id,
) -> ComposedOrder:
    """Render a cart into an order message.

    Args:
        items: Cart lines, rendered in order
        mode: Pickup or delivery
        customer: Validated customer details, required for delivery
        delivery_charge: Surcharge added to delivery orders
        restaurant_name: Name shown in the message header
        order_id_factory: Source of the order identifier

    Returns:
        ComposedOrder with the identifier, message text and grand total

    Raises:
        CheckoutValidationError: If the cart is empty, or a delivery order has
            no customer details
    """
    if not items:
        raise CheckoutValidationError("Cannot compose an order for an empty cart")
    if mode is OrderMode.DELIVERY and customer is None:
        raise CheckoutValidationError("Delivery orders require customer name, phone and address")

    order_id = order_id_factory()
    subtotal = cart_subtotal(items)
    total = cart_total(items, mode, delivery_charge)

    sections = [
        f"*New Order - {restaurant_name}*",
        f"*Order ID:* {order_id}\n*Order Type:* {mode.value.capitalize()}",
        "\n".join(format_line(item) for item in items),
    ]

    totals = [f"*Subtotal: {format_amount(subtotal)}*"]
    if mode is OrderMode.DELIVERY:
        totals.append(f"*Delivery Charge: {format_amount(delivery_charge)}*")
    totals.append(f"*Total: {format_amount(total)}*")
    sections.append("\n".join(totals))

    if mode is OrderMode.DELIVERY and customer is not None:
        sections.append(
            f"*Name:* {customer.name}\n*Phone:* {customer.phone}\n*Address:* {customer.address}"
        )

    sections.append(CONFIRMATION_PHRASE)

    logger.info(f"Composed {mode.value} order {order_id} with {len(items)} lines")
    return ComposedOrder(order_id=order_id, message="\n\n".join(sections), total=total)


def build_handoff_url(message: str, recipient: str = DEFAULT_WHATSAPP_RECIPIENT) -> str:
    """Build the WhatsApp link that opens a chat pre-filled with the message."""
    return f"{WHATSAPP_BASE_URL}/{recipient}?text={quote(message, safe=_URI_COMPONENT_SAFE)}"
