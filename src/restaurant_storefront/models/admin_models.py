"""Admin console input models.

These validate what the admin console submits before anything is written to
the documents table.
"""

import re
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

_WHITESPACE = re.compile(r"\s+")


def format_category_name(raw: str) -> str:
    """Collapse whitespace and capitalize each word (``"hot  DRINKS"`` -> ``"Hot Drinks"``)."""
    words = _WHITESPACE.sub(" ", raw.strip()).split(" ")
    return " ".join(w[:1].upper() + w[1:].lower() for w in words)


class CategoryInput(BaseModel):
    """Category create/update payload."""

    name: str = Field(..., description="Category name, normalized to title case")
    image_url: str = Field(..., description="Category image reference")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate that the name is present and normalize its casing."""
        if not v.strip():
            raise ValueError("Category name is required")
        return format_category_name(v)

    @field_validator("image_url")
    @classmethod
    def validate_image(cls, v: str) -> str:
        """Validate that an image reference is present."""
        if not v.strip():
            raise ValueError("Category image is required")
        return v


class ProductInput(BaseModel):
    """Product create/update payload."""

    name: str = Field(..., description="Product name")
    price: Decimal = Field(..., description="Full portion price", gt=0)
    half_price: Decimal | None = Field(None, description="Explicit half portion price", ge=0)
    serves: str = Field(default="1", description="Serving size label")
    description: str | None = Field(None, description="Product description")
    image_urls: list[str] = Field(default_factory=list, description="Product image references")
    is_veg: bool = Field(default=True, description="Whether the product is vegetarian")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate that the name is present."""
        v = v.strip()
        if not v:
            raise ValueError("Product name is required")
        return v

    def to_document(self) -> dict:
        """Build the stored document body (without creation timestamp).

        The first image is duplicated into the legacy ``imageUrl`` field for
        readers that predate multi-image products.
        """
        return {
            "name": self.name,
            "price": self.price,
            "halfPrice": self.half_price or None,
            "quantity": self.serves or "1",
            "description": self.description or None,
            "imageUrls": self.image_urls or None,
            "imageUrl": self.image_urls[0] if self.image_urls else "",
            "isVeg": self.is_veg,
        }


class DeliveryChargeInput(BaseModel):
    """Delivery charge update payload."""

    amount: int = Field(..., description="Flat delivery surcharge in rupees", ge=0)
