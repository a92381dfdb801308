"""Catalog data models and the document normalization boundary.

Documents arrive from the realtime source as loosely-shaped dictionaries written
by the admin console (camelCase keys, optional fields, legacy single-image
field). Everything downstream only sees the typed records produced by
normalize_category and normalize_product.
"""

import functools
import logging
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE = "/placeholder.svg"
DEFAULT_SERVES = "1"


class DietFilter(str, Enum):
    """Storefront product filter."""

    ALL = "all"
    VEG = "veg"
    NONVEG = "nonveg"


class Category(BaseModel):
    """Menu category as shown on the storefront."""

    id: str = Field(..., description="Unique identifier for the category")
    name: str = Field(default="Unnamed", description="Category display name")
    image_url: str | None = Field(None, description="Category image reference")
    created_at: datetime | None = Field(None, description="Creation timestamp, used for ordering")


class Product(BaseModel):
    """Menu product belonging to a category."""

    model_config = ConfigDict(json_encoders={Decimal: str})

    id: str = Field(..., description="Unique identifier for the product")
    category_id: str = Field(..., description="Category this product belongs to")
    name: str = Field(default="Unnamed Product", description="Product name")
    price: Decimal = Field(default=Decimal("0"), description="Full portion price", ge=0)
    half_price: Decimal | None = Field(None, description="Explicit half portion price", ge=0)
    serves: str = Field(default=DEFAULT_SERVES, description="Free-text serving size label")
    description: str | None = Field(None, description="Product description")
    image_url: str | None = Field(None, description="Legacy single image reference")
    image_urls: list[str] | None = Field(None, description="Product image references")
    is_veg: bool = Field(default=True, description="Whether the product is vegetarian")
    created_at: datetime | None = Field(None, description="Creation timestamp, used for ordering")

    def display_images(self) -> list[str]:
        """Return image references suitable for display.

        Always returns at least one entry; the placeholder is used when the
        product has no usable image.
        """
        if self.image_urls:
            images = [url for url in self.image_urls if url and url.strip()]
            if images:
                return images
        if self.image_url and self.image_url.strip():
            return [self.image_url]
        return [PLACEHOLDER_IMAGE]

    def matches_diet(self, diet: DietFilter) -> bool:
        """Check whether the product passes a storefront diet filter."""
        if diet == DietFilter.VEG:
            return self.is_veg
        if diet == DietFilter.NONVEG:
            return not self.is_veg
        return True


def parse_timestamp(value: Any) -> datetime | None:
    """Coerce a stored creation timestamp into an aware datetime.

    Accepts datetimes, ISO-8601 strings and epoch milliseconds (DynamoDB hands
    numbers back as Decimal). Anything else is treated as missing.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)

    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            logger.warning(f"Ignoring unparseable timestamp: {value!r}")
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)

    if isinstance(value, int | float | Decimal):
        try:
            return datetime.fromtimestamp(float(value) / 1000, tz=UTC)
        except (OverflowError, OSError, ValueError):
            logger.warning(f"Ignoring out-of-range timestamp: {value!r}")
            return None

    return None


def _parse_amount(value: Any) -> Decimal | None:
    """Coerce a stored price into a non-negative Decimal, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or amount < 0:
        return None
    return amount


RecordT = TypeVar("RecordT", Category, Product)


def _compare_created_desc(a: Category | Product, b: Category | Product) -> int:
    # Missing timestamps compare equal so the stable sort keeps their position
    if a.created_at is None or b.created_at is None:
        return 0
    if a.created_at > b.created_at:
        return -1
    if a.created_at < b.created_at:
        return 1
    return 0


def sort_newest_first(records: list[RecordT]) -> list[RecordT]:
    """Sort records by creation timestamp, newest first."""
    return sorted(records, key=functools.cmp_to_key(_compare_created_desc))


def normalize_category(doc_id: str, data: dict[str, Any]) -> Category:
    """Build a Category from a raw category document.

    Args:
        doc_id: Document identifier
        data: Raw document body

    Returns:
        Category: Normalized category record
    """
    return Category(
        id=doc_id,
        name=data.get("name") or "Unnamed",
        image_url=data.get("imageUrl") or None,
        created_at=parse_timestamp(data.get("createdAt")),
    )


def normalize_product(doc_id: str, category_id: str, data: dict[str, Any]) -> Product:
    """Build a Product from a raw product document.

    Applies the storefront defaults: price 0, serves "1", veg true, and the
    legacy imageUrl promoted to a one-element image list.

    Args:
        doc_id: Document identifier
        category_id: Owning category (from the sub-collection path)
        data: Raw document body

    Returns:
        Product: Normalized product record
    """
    price = _parse_amount(data.get("price"))
    if price is None and data.get("price") is not None:
        logger.warning(f"Product {doc_id} has invalid price {data.get('price')!r}, using 0")

    legacy_image = data.get("imageUrl") if isinstance(data.get("imageUrl"), str) else None
    raw_images = data.get("imageUrls")
    images = [url for url in raw_images if isinstance(url, str)] if isinstance(raw_images, list) else []
    if not images and legacy_image:
        images = [legacy_image]

    serves = data.get("quantity")
    is_veg = data.get("isVeg")

    return Product(
        id=doc_id,
        category_id=category_id,
        name=data.get("name") or "Unnamed Product",
        price=price if price is not None else Decimal("0"),
        half_price=_parse_amount(data.get("halfPrice")),
        serves=str(serves) if serves not in (None, "") else DEFAULT_SERVES,
        description=data.get("description") or None,
        image_url=legacy_image or None,
        image_urls=images or None,
        is_veg=is_veg if isinstance(is_veg, bool) else True,
        created_at=parse_timestamp(data.get("createdAt")),
    )
