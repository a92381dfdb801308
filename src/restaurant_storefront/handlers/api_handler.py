"""FastAPI application for the storefront and the admin console."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from decimal import Decimal

from fastapi import Depends, FastAPI, Header, HTTPException, Query, status
from pydantic import BaseModel, Field, model_validator

from restaurant_storefront.auth.admin_auth import AdminKeyValidator, check_admin_key
from restaurant_storefront.errors import CheckoutValidationError
from restaurant_storefront.models.admin_models import CategoryInput, DeliveryChargeInput, ProductInput
from restaurant_storefront.models.cart_models import CartItem, CustomerDetails, OrderMode, Portion
from restaurant_storefront.models.catalog_models import Category, DietFilter, Product
from restaurant_storefront.observability.metrics import record_checkout
from restaurant_storefront.repositories.catalog_repository import CatalogRepository
from restaurant_storefront.services.cart_engine import CartEngine
from restaurant_storefront.services.catalog_sync import CatalogSync
from restaurant_storefront.services.checkout_composer import (
    DEFAULT_RESTAURANT_NAME,
    DEFAULT_WHATSAPP_RECIPIENT,
    build_handoff_url,
    compose,
)
from restaurant_storefront.services.settings_sync import SettingsSync

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str


class CategoryListResponse(BaseModel):
    """Categories in display order."""

    loading: bool
    categories: list[Category]


class ProductView(Product):
    """Product with its resolved display images."""

    images: list[str]


class ProductListResponse(BaseModel):
    """Products of one category."""

    category_id: str
    loading: bool
    products: list[ProductView]


class AddToCartRequest(BaseModel):
    """Request body for adding a product to the cart."""

    category_id: str
    product_id: str
    portion: Portion = Portion.FULL
    quantity: int = Field(default=1, ge=1)


class CartResponse(BaseModel):
    """Current cart contents."""

    items: list[CartItem]
    subtotal: Decimal


class CartTotalResponse(BaseModel):
    """Cart total for an order mode."""

    mode: OrderMode
    subtotal: Decimal
    delivery_charge: Decimal
    total: Decimal


class CheckoutRequest(BaseModel):
    """Request body for checkout."""

    mode: OrderMode
    customer: CustomerDetails | None = None

    @model_validator(mode="after")
    def require_customer_for_delivery(self) -> "CheckoutRequest":
        """Delivery orders need name, phone and address."""
        if self.mode is OrderMode.DELIVERY and self.customer is None:
            raise ValueError("customer details are required for delivery orders")
        return self


class CheckoutResponse(BaseModel):
    """Composed order and the link that hands it to WhatsApp."""

    order_id: str
    message: str
    handoff_url: str
    total: Decimal


class CreatedResponse(BaseModel):
    """Identifier of a newly created document."""

    id: str


class SettingsResponse(BaseModel):
    """Current storefront settings."""

    delivery_charge: Decimal
    page_views: int


def create_app(
    catalog_sync: CatalogSync,
    settings_sync: SettingsSync,
    cart_engine: CartEngine,
    catalog_repository: CatalogRepository | None,
    admin_keys: list[str],
    restaurant_name: str = DEFAULT_RESTAURANT_NAME,
    whatsapp_recipient: str = DEFAULT_WHATSAPP_RECIPIENT,
) -> FastAPI:
    """Create and configure the FastAPI application.

    The realtime syncs are started when the application starts and released
    when it shuts down.

    Args:
        catalog_sync: Category/product read-model
        settings_sync: Delivery charge and page-view read-model
        cart_engine: Cart owner
        catalog_repository: Admin writes; None disables admin mutations
        admin_keys: Accepted admin console keys
        restaurant_name: Name shown in order messages
        whatsapp_recipient: Phone number receiving order messages

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.catalog_sync.start()
        app.state.settings_sync.start()
        logger.info("Realtime syncs started")
        try:
            yield
        finally:
            app.state.catalog_sync.stop()
            app.state.settings_sync.stop()
            logger.info("Realtime syncs stopped")

    app = FastAPI(
        title="Restaurant Storefront API",
        description="Menu browsing, cart and WhatsApp checkout with an admin console",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.catalog_sync = catalog_sync
    app.state.settings_sync = settings_sync
    app.state.cart_engine = cart_engine
    app.state.catalog_repository = catalog_repository
    app.state.admin_key_validator = AdminKeyValidator(admin_keys=admin_keys)
    app.state.restaurant_name = restaurant_name
    app.state.whatsapp_recipient = whatsapp_recipient

    def cart_response() -> CartResponse:
        engine: CartEngine = app.state.cart_engine
        return CartResponse(items=engine.items, subtotal=engine.subtotal())

    def require_repository() -> CatalogRepository:
        if app.state.catalog_repository is None:
            raise HTTPException(status_code=503, detail="Admin writes are not configured")
        repository: CatalogRepository = app.state.catalog_repository
        return repository

    def validate_admin_key(x_api_key: str | None = Header(None)) -> str:
        """Dependency to validate the admin key."""
        return check_admin_key(x_api_key=x_api_key, validator=app.state.admin_key_validator)

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="healthy")

    # Storefront

    @app.get("/catalog/categories", response_model=CategoryListResponse, tags=["Catalog"])
    async def list_categories() -> CategoryListResponse:
        """Categories, newest first."""
        sync: CatalogSync = app.state.catalog_sync
        return CategoryListResponse(loading=sync.categories_loading, categories=sync.categories)

    @app.get(
        "/catalog/categories/{category_id}/products",
        response_model=ProductListResponse,
        tags=["Catalog"],
    )
    async def list_products(
        category_id: str,
        diet: DietFilter = DietFilter.ALL,
    ) -> ProductListResponse:
        """Products of a category, newest first, optionally filtered by diet."""
        sync: CatalogSync = app.state.catalog_sync
        products = [
            ProductView(**p.model_dump(), images=p.display_images())
            for p in sync.products_for(category_id, diet)
        ]
        return ProductListResponse(
            category_id=category_id,
            loading=sync.is_loading(category_id),
            products=products,
        )

    @app.post("/visits", status_code=status.HTTP_204_NO_CONTENT, tags=["Catalog"])
    async def record_visit() -> None:
        """Count a storefront page view."""
        if app.state.catalog_repository is not None:
            app.state.catalog_repository.increment_page_views()

    @app.get("/cart", response_model=CartResponse, tags=["Cart"])
    async def get_cart() -> CartResponse:
        """Current cart contents."""
        return cart_response()

    @app.post("/cart/items", response_model=CartResponse, tags=["Cart"])
    async def add_to_cart(request: AddToCartRequest) -> CartResponse:
        """Add a product portion to the cart."""
        product = app.state.catalog_sync.find_product(request.category_id, request.product_id)
        if product is None:
            raise HTTPException(
                status_code=404,
                detail=f"Product '{request.product_id}' not found in category '{request.category_id}'",
            )

        app.state.cart_engine.add(product, request.portion, request.quantity)
        return cart_response()

    @app.post(
        "/cart/items/{product_id}/{portion}/increase",
        response_model=CartResponse,
        tags=["Cart"],
    )
    async def increase_quantity(product_id: str, portion: Portion) -> CartResponse:
        """Add one to a cart line."""
        app.state.cart_engine.increase(product_id, portion)
        return cart_response()

    @app.post(
        "/cart/items/{product_id}/{portion}/decrease",
        response_model=CartResponse,
        tags=["Cart"],
    )
    async def decrease_quantity(product_id: str, portion: Portion) -> CartResponse:
        """Remove one from a cart line; a line at quantity 1 is removed."""
        app.state.cart_engine.decrease(product_id, portion)
        return cart_response()

    @app.delete("/cart/items/{product_id}/{portion}", response_model=CartResponse, tags=["Cart"])
    async def remove_from_cart(product_id: str, portion: Portion) -> CartResponse:
        """Remove a cart line."""
        app.state.cart_engine.remove(product_id, portion)
        return cart_response()

    @app.get("/cart/total", response_model=CartTotalResponse, tags=["Cart"])
    async def get_total(mode: OrderMode = OrderMode.PICKUP) -> CartTotalResponse:
        """Cart total for pickup or delivery."""
        engine: CartEngine = app.state.cart_engine
        charge = (
            app.state.settings_sync.get_delivery_charge()
            if mode is OrderMode.DELIVERY
            else Decimal("0")
        )
        return CartTotalResponse(
            mode=mode,
            subtotal=engine.subtotal(),
            delivery_charge=charge,
            total=engine.total(mode),
        )

    @app.post("/checkout", response_model=CheckoutResponse, tags=["Checkout"])
    async def checkout(request: CheckoutRequest) -> CheckoutResponse:
        """Compose the order message, build the WhatsApp link and clear the cart."""
        engine: CartEngine = app.state.cart_engine
        if engine.is_empty():
            raise HTTPException(status_code=400, detail="Cart is empty")

        try:
            composed = compose(
                engine.items,
                request.mode,
                customer=request.customer,
                delivery_charge=app.state.settings_sync.get_delivery_charge(),
                restaurant_name=app.state.restaurant_name,
            )
        except CheckoutValidationError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        handoff_url = build_handoff_url(composed.message, app.state.whatsapp_recipient)
        record_checkout(request.mode.value, float(composed.total))
        engine.clear()

        logger.info(f"Checkout {composed.order_id} handed off ({request.mode.value})")
        return CheckoutResponse(
            order_id=composed.order_id,
            message=composed.message,
            handoff_url=handoff_url,
            total=composed.total,
        )

    # Admin console

    @app.post(
        "/admin/categories",
        response_model=CreatedResponse,
        status_code=status.HTTP_201_CREATED,
        tags=["Admin"],
    )
    async def create_category(
        category: CategoryInput,
        _api_key: str = Depends(validate_admin_key),
    ) -> CreatedResponse:
        """Create a category."""
        category_id = require_repository().create_category(category)
        if category_id is None:
            raise HTTPException(status_code=500, detail="Failed to create category")
        logger.info(f"Created category {category_id} ({category.name})")
        return CreatedResponse(id=category_id)

    @app.put("/admin/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["Admin"])
    async def update_category(
        category_id: str,
        category: CategoryInput,
        _api_key: str = Depends(validate_admin_key),
    ) -> None:
        """Update a category."""
        if not require_repository().update_category(category_id, category):
            raise HTTPException(status_code=404, detail=f"Category '{category_id}' could not be updated")

    @app.delete(
        "/admin/categories/{category_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        tags=["Admin"],
    )
    async def delete_category(
        category_id: str,
        _api_key: str = Depends(validate_admin_key),
    ) -> None:
        """Delete a category and its products."""
        if not require_repository().delete_category(category_id):
            raise HTTPException(status_code=500, detail=f"Failed to delete category '{category_id}'")

    @app.post(
        "/admin/categories/{category_id}/products",
        response_model=CreatedResponse,
        status_code=status.HTTP_201_CREATED,
        tags=["Admin"],
    )
    async def create_product(
        category_id: str,
        product: ProductInput,
        _api_key: str = Depends(validate_admin_key),
    ) -> CreatedResponse:
        """Create a product in a category."""
        product_id = require_repository().create_product(category_id, product)
        if product_id is None:
            raise HTTPException(status_code=500, detail="Failed to create product")
        return CreatedResponse(id=product_id)

    @app.put(
        "/admin/categories/{category_id}/products/{product_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        tags=["Admin"],
    )
    async def update_product(
        category_id: str,
        product_id: str,
        product: ProductInput,
        _api_key: str = Depends(validate_admin_key),
    ) -> None:
        """Update a product."""
        if not require_repository().update_product(category_id, product_id, product):
            raise HTTPException(status_code=404, detail=f"Product '{product_id}' could not be updated")

    @app.delete(
        "/admin/categories/{category_id}/products/{product_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        tags=["Admin"],
    )
    async def delete_product(
        category_id: str,
        product_id: str,
        _api_key: str = Depends(validate_admin_key),
    ) -> None:
        """Delete a product."""
        if not require_repository().delete_product(category_id, product_id):
            raise HTTPException(status_code=500, detail=f"Failed to delete product '{product_id}'")

    @app.get("/admin/settings", response_model=SettingsResponse, tags=["Admin"])
    async def get_settings(_api_key: str = Depends(validate_admin_key)) -> SettingsResponse:
        """Current delivery charge and page-view count."""
        settings: SettingsSync = app.state.settings_sync
        return SettingsResponse(
            delivery_charge=settings.get_delivery_charge(),
            page_views=settings.page_views,
        )

    @app.put(
        "/admin/settings/delivery-charge",
        status_code=status.HTTP_204_NO_CONTENT,
        tags=["Admin"],
    )
    async def set_delivery_charge(
        charge: DeliveryChargeInput,
        _api_key: str = Depends(validate_admin_key),
    ) -> None:
        """Set the delivery surcharge."""
        if not require_repository().set_delivery_charge(charge.amount):
            raise HTTPException(status_code=500, detail="Failed to update delivery charge")
        logger.info(f"Delivery charge set to {charge.amount}")

    @app.get("/admin/products/search", response_model=list[Product], tags=["Admin"])
    async def search_products(
        q: str = Query(default=""),
        _api_key: str = Depends(validate_admin_key),
    ) -> list[Product]:
        """Search synced products by name or description."""
        results: list[Product] = app.state.catalog_sync.search_products(q)
        return results

    return app
