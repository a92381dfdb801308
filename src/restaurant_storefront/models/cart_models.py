"""Cart and checkout models.

Cart items carry a snapshot of the product taken when the item was added, so
the cart keeps rendering (and pricing) consistently even if the catalog
changes underneath it.
"""

import re
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

_NON_DIGITS = re.compile(r"\D")


class Portion(str, Enum):
    """Portion size selectable for a product."""

    HALF = "half"
    FULL = "full"

    @property
    def label(self) -> str:
        """Human-readable portion label."""
        return "Half" if self is Portion.HALF else "Full"


class OrderMode(str, Enum):
    """How the customer receives the order."""

    PICKUP = "pickup"
    DELIVERY = "delivery"


class CartItem(BaseModel):
    """A cart line, identified by (id, portion)."""

    model_config = ConfigDict(json_encoders={Decimal: str})

    id: str = Field(..., description="Product identifier")
    name: str = Field(..., description="Product name at time of add")
    price: Decimal = Field(..., description="Unit price for the chosen portion", ge=0)
    half_price: Decimal | None = Field(None, description="Explicit half price at time of add")
    quantity: int = Field(..., description="Number of units", ge=1)
    portion: Portion = Field(..., description="Chosen portion")
    description: str | None = Field(None, description="Product description at time of add")
    image_url: str | None = Field(None, description="Legacy single image reference")
    image_urls: list[str] | None = Field(None, description="Product image references")
    is_veg: bool = Field(default=True, description="Whether the product is vegetarian")
    serves: str | None = Field(None, description="Serving size label at time of add")

    @property
    def key(self) -> tuple[str, Portion]:
        """Line identity."""
        return (self.id, self.portion)

    @property
    def line_total(self) -> Decimal:
        """Extended price of the line."""
        return self.price * self.quantity


class CustomerDetails(BaseModel):
    """Customer fields required for delivery orders."""

    name: str = Field(..., description="Customer name")
    phone: str = Field(..., description="10-digit phone number")
    address: str = Field(..., description="Delivery address")

    @field_validator("name", "address")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Validate that the field has non-whitespace content."""
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        """Validate that the phone number has exactly 10 digits.

        Formatting characters are stripped; the stored value is digits only.
        """
        digits = _NON_DIGITS.sub("", v)
        if len(digits) != 10:
            raise ValueError("phone number must contain exactly 10 digits")
        return digits
