"""Unit tests for the storefront and admin endpoints."""

from collections.abc import Iterator
from decimal import Decimal
from unittest.mock import MagicMock
from urllib.parse import unquote

import pytest
from fastapi.testclient import TestClient

from restaurant_storefront.handlers.api_handler import create_app
from restaurant_storefront.repositories.catalog_repository import CatalogRepository
from restaurant_storefront.services.cart_engine import CART_STORAGE_KEY, CartEngine
from restaurant_storefront.services.catalog_sync import CatalogSync
from restaurant_storefront.services.settings_sync import DELIVERY_CHARGE_DOC, SettingsSync
from restaurant_storefront.sources.document_source import (
    CATEGORIES_COLLECTION,
    SETTINGS_COLLECTION,
    products_collection,
)
from restaurant_storefront.sources.memory_source import MemoryDocumentSource
from restaurant_storefront.storage.local_store import InMemoryStore

ADMIN_HEADERS = {"X-API-Key": "test-admin-key"}
CUSTOMER = {"name": "Asha", "phone": "9876543210", "address": "12 MG Road, Patna"}


@pytest.fixture
def catalog_source(
    memory_source: MemoryDocumentSource,
    category_documents: dict,
    product_documents: dict,
) -> MemoryDocumentSource:
    """Memory source seeded with the sample catalog and a delivery charge of 30."""
    for doc_id, data in category_documents.items():
        memory_source.set_document(CATEGORIES_COLLECTION, doc_id, data)
    for category_id, documents in product_documents.items():
        for doc_id, data in documents.items():
            memory_source.set_document(products_collection(category_id), doc_id, data)
    memory_source.set_document(SETTINGS_COLLECTION, DELIVERY_CHARGE_DOC, {"amount": 30})
    return memory_source


@pytest.fixture
def mock_repository() -> MagicMock:
    """Mocked admin repository."""
    return MagicMock(spec=CatalogRepository)


@pytest.fixture
def client(
    catalog_source: MemoryDocumentSource,
    store: InMemoryStore,
    mock_repository: MagicMock,
) -> Iterator[TestClient]:
    """Test client over real syncs and cart engine with a mocked repository."""
    settings_sync = SettingsSync(source=catalog_source)
    app = create_app(
        catalog_sync=CatalogSync(source=catalog_source),
        settings_sync=settings_sync,
        cart_engine=CartEngine(store=store, delivery_charge_provider=settings_sync.get_delivery_charge),
        catalog_repository=mock_repository,
        admin_keys=["test-admin-key"],
        restaurant_name="Test Kitchen",
        whatsapp_recipient="911234567890",
    )
    with TestClient(app) as test_client:
        yield test_client


def add_paneer(client: TestClient, quantity: int = 1) -> dict:
    """Add the paneer roll (full portion) to the cart."""
    response = client.post(
        "/cart/items",
        json={"category_id": "cat_rolls", "product_id": "prod_paneer", "quantity": quantity},
    )
    assert response.status_code == 200
    return response.json()


@pytest.mark.unit
class TestHealthEndpoint:
    """Test suite for health check endpoint."""

    def test_health_check(self, client: TestClient) -> None:
        """Test health check endpoint returns 200."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


@pytest.mark.unit
class TestLifespan:
    """Test suite for sync lifecycle."""

    def test_syncs_run_only_while_app_is_up(self, catalog_source: MemoryDocumentSource) -> None:
        """Test that startup subscribes and shutdown releases every subscription."""
        catalog_sync = CatalogSync(source=catalog_source)
        app = create_app(
            catalog_sync=catalog_sync,
            settings_sync=SettingsSync(source=catalog_source),
            cart_engine=CartEngine(store=InMemoryStore()),
            catalog_repository=None,
            admin_keys=["k"],
        )

        with TestClient(app):
            assert catalog_sync.running is True
            assert catalog_source.listener_count(CATEGORIES_COLLECTION) == 1

        assert catalog_sync.running is False
        assert catalog_source.listener_count(CATEGORIES_COLLECTION) == 0
        assert catalog_source.listener_count(SETTINGS_COLLECTION) == 0


@pytest.mark.unit
class TestCatalogEndpoints:
    """Test suite for catalog browsing."""

    def test_list_categories(self, client: TestClient) -> None:
        """Test categories newest first."""
        response = client.get("/catalog/categories")

        assert response.status_code == 200
        data = response.json()
        assert data["loading"] is False
        assert [c["id"] for c in data["categories"]] == ["cat_rice", "cat_rolls"]

    def test_list_products_with_diet_filter(self, client: TestClient) -> None:
        """Test product listing and the veg filter."""
        response = client.get("/catalog/categories/cat_rolls/products", params={"diet": "veg"})

        assert response.status_code == 200
        data = response.json()
        assert data["loading"] is False
        assert [p["id"] for p in data["products"]] == ["prod_paneer"]
        assert data["products"][0]["images"] == ["paneer.jpg"]

    def test_product_without_images_uses_placeholder(self, client: TestClient) -> None:
        """Test the placeholder image."""
        data = client.get("/catalog/categories/cat_rolls/products", params={"diet": "nonveg"}).json()

        assert data["products"][0]["images"] == ["/placeholder.svg"]

    def test_invalid_diet_filter(self, client: TestClient) -> None:
        """Test that unknown diet values are rejected."""
        response = client.get("/catalog/categories/cat_rolls/products", params={"diet": "vegan"})

        assert response.status_code == 422

    def test_record_visit(self, client: TestClient, mock_repository: MagicMock) -> None:
        """Test the page-view counter."""
        response = client.post("/visits")

        assert response.status_code == 204
        mock_repository.increment_page_views.assert_called_once()


@pytest.mark.unit
class TestCartEndpoints:
    """Test suite for cart endpoints."""

    def test_add_to_cart(self, client: TestClient) -> None:
        """Test adding a product twice merges the line."""
        add_paneer(client, 2)
        data = add_paneer(client, 3)

        assert len(data["items"]) == 1
        assert data["items"][0]["quantity"] == 5
        assert Decimal(data["subtotal"]) == Decimal("600")

    def test_add_half_portion(self, client: TestClient) -> None:
        """Test adding a half portion uses the half price."""
        response = client.post(
            "/cart/items",
            json={"category_id": "cat_rice", "product_id": "prod_biryani", "portion": "half"},
        )

        item = response.json()["items"][0]
        assert item["portion"] == "half"
        assert Decimal(item["price"]) == Decimal("140")

    def test_add_unknown_product(self, client: TestClient) -> None:
        """Test that products not in the synced catalog are rejected."""
        response = client.post("/cart/items", json={"category_id": "cat_rolls", "product_id": "nope"})

        assert response.status_code == 404

    def test_add_rejects_zero_quantity(self, client: TestClient) -> None:
        """Test quantity validation."""
        response = client.post(
            "/cart/items",
            json={"category_id": "cat_rolls", "product_id": "prod_paneer", "quantity": 0},
        )

        assert response.status_code == 422

    def test_increase_decrease_remove(self, client: TestClient) -> None:
        """Test line quantity changes."""
        add_paneer(client)

        assert client.post("/cart/items/prod_paneer/full/increase").json()["items"][0]["quantity"] == 2
        assert client.post("/cart/items/prod_paneer/full/decrease").json()["items"][0]["quantity"] == 1
        assert client.post("/cart/items/prod_paneer/full/decrease").json()["items"] == []

        add_paneer(client)
        assert client.delete("/cart/items/prod_paneer/full").json()["items"] == []

    def test_cart_is_mirrored_to_store(self, client: TestClient, store: InMemoryStore) -> None:
        """Test that cart mutations reach the local store."""
        add_paneer(client)

        assert CART_STORAGE_KEY in store.values

    def test_total_for_each_mode(self, client: TestClient) -> None:
        """Test pickup and delivery totals."""
        add_paneer(client, 2)

        pickup = client.get("/cart/total", params={"mode": "pickup"}).json()
        delivery = client.get("/cart/total", params={"mode": "delivery"}).json()

        assert Decimal(pickup["total"]) == Decimal("240")
        assert Decimal(pickup["delivery_charge"]) == Decimal("0")
        assert Decimal(delivery["delivery_charge"]) == Decimal("30")
        assert Decimal(delivery["total"]) == Decimal("270")


@pytest.mark.unit
class TestCheckoutEndpoint:
    """Test suite for checkout."""

    def test_pickup_checkout(self, client: TestClient, store: InMemoryStore) -> None:
        """Test that checkout hands off the message and clears the cart."""
        add_paneer(client, 2)

        response = client.post("/checkout", json={"mode": "pickup"})

        assert response.status_code == 200
        data = response.json()
        assert data["order_id"].startswith("RJ-")
        assert "*Paneer Roll (Full) x2* — ₹240.00" in data["message"]
        assert "*New Order - Test Kitchen*" in data["message"]
        assert data["handoff_url"].startswith("https://wa.me/911234567890?text=")
        assert unquote(data["handoff_url"].split("?text=", 1)[1]) == data["message"]
        assert Decimal(data["total"]) == Decimal("240")
        assert client.get("/cart").json()["items"] == []
        assert CART_STORAGE_KEY not in store.values

    def test_delivery_checkout(self, client: TestClient) -> None:
        """Test that delivery includes the surcharge and customer block."""
        add_paneer(client)

        response = client.post("/checkout", json={"mode": "delivery", "customer": CUSTOMER})

        assert response.status_code == 200
        message = response.json()["message"]
        assert "*Delivery Charge: ₹30.00*" in message
        assert "*Total: ₹150.00*" in message
        assert "*Phone:* 9876543210" in message

    def test_empty_cart(self, client: TestClient) -> None:
        """Test that an empty cart cannot be checked out."""
        response = client.post("/checkout", json={"mode": "pickup"})

        assert response.status_code == 400

    def test_delivery_without_customer(self, client: TestClient) -> None:
        """Test that delivery requires customer details and keeps the cart."""
        add_paneer(client)

        response = client.post("/checkout", json={"mode": "delivery"})

        assert response.status_code == 422
        assert len(client.get("/cart").json()["items"]) == 1

    def test_delivery_with_invalid_phone(self, client: TestClient) -> None:
        """Test phone validation."""
        add_paneer(client)

        response = client.post(
            "/checkout",
            json={"mode": "delivery", "customer": {**CUSTOMER, "phone": "12345"}},
        )

        assert response.status_code == 422


@pytest.mark.unit
class TestAdminEndpoints:
    """Test suite for admin console endpoints."""

    def test_requires_api_key(self, client: TestClient) -> None:
        """Test that admin endpoints reject missing and wrong keys."""
        assert client.get("/admin/settings").status_code == 401
        assert client.get("/admin/settings", headers={"X-API-Key": "wrong"}).status_code == 401

    def test_create_category(self, client: TestClient, mock_repository: MagicMock) -> None:
        """Test category creation."""
        mock_repository.create_category.return_value = "cat_new"

        response = client.post(
            "/admin/categories",
            json={"name": "hot drinks", "image_url": "tea.jpg"},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 201
        assert response.json() == {"id": "cat_new"}
        assert mock_repository.create_category.call_args.args[0].name == "Hot Drinks"

    def test_create_category_requires_image(self, client: TestClient) -> None:
        """Test category validation."""
        response = client.post(
            "/admin/categories", json={"name": "Tea", "image_url": " "}, headers=ADMIN_HEADERS
        )

        assert response.status_code == 422

    def test_create_category_failure(self, client: TestClient, mock_repository: MagicMock) -> None:
        """Test that repository failures map to 500."""
        mock_repository.create_category.return_value = None

        response = client.post(
            "/admin/categories", json={"name": "Tea", "image_url": "t.jpg"}, headers=ADMIN_HEADERS
        )

        assert response.status_code == 500

    def test_update_missing_category(self, client: TestClient, mock_repository: MagicMock) -> None:
        """Test updating a category that does not exist."""
        mock_repository.update_category.return_value = False

        response = client.put(
            "/admin/categories/cat_x", json={"name": "Tea", "image_url": "t.jpg"}, headers=ADMIN_HEADERS
        )

        assert response.status_code == 404

    def test_delete_category(self, client: TestClient, mock_repository: MagicMock) -> None:
        """Test category deletion."""
        mock_repository.delete_category.return_value = True

        response = client.delete("/admin/categories/cat_rolls", headers=ADMIN_HEADERS)

        assert response.status_code == 204
        mock_repository.delete_category.assert_called_once_with("cat_rolls")

    def test_create_product(self, client: TestClient, mock_repository: MagicMock) -> None:
        """Test product creation."""
        mock_repository.create_product.return_value = "prod_new"

        response = client.post(
            "/admin/categories/cat_rolls/products",
            json={"name": "Veg Roll", "price": "80", "image_urls": ["veg.jpg"]},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 201
        category_id, product = mock_repository.create_product.call_args.args
        assert category_id == "cat_rolls"
        assert product.price == Decimal("80")

    def test_create_product_rejects_zero_price(self, client: TestClient) -> None:
        """Test product price validation."""
        response = client.post(
            "/admin/categories/cat_rolls/products",
            json={"name": "Veg Roll", "price": 0},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 422

    def test_update_and_delete_product(self, client: TestClient, mock_repository: MagicMock) -> None:
        """Test product update and deletion."""
        mock_repository.update_product.return_value = True
        mock_repository.delete_product.return_value = True

        update = client.put(
            "/admin/categories/cat_rolls/products/prod_paneer",
            json={"name": "Paneer Roll", "price": 130},
            headers=ADMIN_HEADERS,
        )
        delete = client.delete("/admin/categories/cat_rolls/products/prod_paneer", headers=ADMIN_HEADERS)

        assert update.status_code == 204
        assert delete.status_code == 204

    def test_settings(self, client: TestClient, mock_repository: MagicMock) -> None:
        """Test reading and writing settings."""
        mock_repository.set_delivery_charge.return_value = True

        settings = client.get("/admin/settings", headers=ADMIN_HEADERS).json()
        update = client.put(
            "/admin/settings/delivery-charge", json={"amount": 40}, headers=ADMIN_HEADERS
        )

        assert Decimal(settings["delivery_charge"]) == Decimal("30")
        assert settings["page_views"] == 0
        assert update.status_code == 204
        mock_repository.set_delivery_charge.assert_called_once_with(40)

    def test_negative_delivery_charge(self, client: TestClient) -> None:
        """Test delivery charge validation."""
        response = client.put(
            "/admin/settings/delivery-charge", json={"amount": -5}, headers=ADMIN_HEADERS
        )

        assert response.status_code == 422

    def test_search_products(self, client: TestClient) -> None:
        """Test product search over the synced catalog."""
        response = client.get("/admin/products/search", params={"q": "roll"}, headers=ADMIN_HEADERS)

        assert [p["id"] for p in response.json()] == ["prod_egg", "prod_paneer"]

    def test_admin_writes_disabled_without_repository(self, catalog_source: MemoryDocumentSource) -> None:
        """Test 503 when no repository is configured."""
        app = create_app(
            catalog_sync=CatalogSync(source=catalog_source),
            settings_sync=SettingsSync(source=catalog_source),
            cart_engine=CartEngine(store=InMemoryStore()),
            catalog_repository=None,
            admin_keys=["test-admin-key"],
        )
        with TestClient(app) as client:
            response = client.delete("/admin/categories/cat_rolls", headers=ADMIN_HEADERS)

        assert response.status_code == 503
