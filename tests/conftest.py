"""Shared pytest fixtures and configuration for all tests."""

import os
from decimal import Decimal

import pytest

# main.py builds the application at import time unless running under test
os.environ.setdefault("ENVIRONMENT", "test")

from restaurant_storefront.models.catalog_models import Product  # noqa: E402
from restaurant_storefront.sources.memory_source import MemoryDocumentSource  # noqa: E402
from restaurant_storefront.storage.local_store import InMemoryStore  # noqa: E402


@pytest.fixture
def paneer_roll() -> Product:
    """Fixture providing a full-price-only vegetarian product."""
    return Product(
        id="prod_paneer",
        category_id="cat_rolls",
        name="Paneer Roll",
        price=Decimal("120"),
        serves="1",
        description="Grilled paneer wrapped in a paratha",
        image_urls=["https://img.example.com/paneer.jpg"],
        is_veg=True,
    )


@pytest.fixture
def chicken_biryani() -> Product:
    """Fixture providing a product with an explicit half price."""
    return Product(
        id="prod_biryani",
        category_id="cat_rice",
        name="Chicken Biryani",
        price=Decimal("250"),
        half_price=Decimal("140"),
        serves="2",
        is_veg=False,
    )


@pytest.fixture
def memory_source() -> MemoryDocumentSource:
    """Fixture providing an in-memory document source that delivers on subscribe."""
    return MemoryDocumentSource()


@pytest.fixture
def store() -> InMemoryStore:
    """Fixture providing an empty in-memory local store."""
    return InMemoryStore()


@pytest.fixture
def category_documents() -> dict[str, dict]:
    """Fixture providing raw category documents as written by the admin console."""
    return {
        "cat_rolls": {"name": "Rolls", "imageUrl": "rolls.jpg", "createdAt": "2024-03-01T10:00:00+00:00"},
        "cat_rice": {"name": "Rice", "imageUrl": "rice.jpg", "createdAt": "2024-03-05T10:00:00+00:00"},
    }


@pytest.fixture
def product_documents() -> dict[str, dict[str, dict]]:
    """Fixture providing raw product documents keyed by category."""
    return {
        "cat_rolls": {
            "prod_paneer": {
                "name": "Paneer Roll",
                "price": 120,
                "quantity": "1",
                "imageUrl": "paneer.jpg",
                "isVeg": True,
                "createdAt": "2024-03-02T10:00:00+00:00",
            },
            "prod_egg": {
                "name": "Egg Roll",
                "price": 90,
                "isVeg": False,
                "createdAt": "2024-03-03T10:00:00+00:00",
            },
        },
        "cat_rice": {
            "prod_biryani": {
                "name": "Chicken Biryani",
                "price": 250,
                "halfPrice": 140,
                "quantity": "2",
                "description": "Dum biryani with raita",
                "isVeg": False,
            },
        },
    }
