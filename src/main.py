"""Main application entry point for the restaurant storefront.

This module provides the FastAPI application factory and configuration
for running the service locally or in production.
"""

import logging
import os
from typing import Any

import boto3
from fastapi import FastAPI

from restaurant_storefront.handlers.api_handler import create_app
from restaurant_storefront.observability import configure_logging, setup_observability
from restaurant_storefront.repositories.catalog_repository import CatalogRepository
from restaurant_storefront.services.cart_engine import CartEngine
from restaurant_storefront.services.catalog_sync import CatalogSync
from restaurant_storefront.services.checkout_composer import (
    DEFAULT_RESTAURANT_NAME,
    DEFAULT_WHATSAPP_RECIPIENT,
)
from restaurant_storefront.services.settings_sync import SettingsSync
from restaurant_storefront.sources.document_source import DocumentSource
from restaurant_storefront.sources.dynamodb_source import DynamoDBDocumentSource
from restaurant_storefront.sources.memory_source import MemoryDocumentSource
from restaurant_storefront.storage.local_store import JsonFileStore

logger = logging.getLogger(__name__)


def get_dynamodb_resource() -> Any:
    """Create DynamoDB resource with appropriate configuration.

    Returns:
        Boto3 DynamoDB resource configured for environment
    """
    endpoint_url = os.getenv("DYNAMODB_ENDPOINT")
    region = os.getenv("AWS_REGION", "us-east-1")

    if endpoint_url:
        # Local DynamoDB accepts any credentials
        logger.info(f"Using local DynamoDB at {endpoint_url}")
        return boto3.resource(
            "dynamodb",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID", "dummy"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY", "dummy"),
        )

    logger.info(f"Using AWS DynamoDB in region {region}")
    return boto3.resource("dynamodb", region_name=region)


def create_document_backend() -> tuple[DocumentSource, CatalogRepository | None]:
    """Create the realtime document source and, when available, the admin repository.

    DOCUMENT_SOURCE=memory runs without a database; admin writes are then
    disabled.

    Returns:
        Tuple of (document source, catalog repository or None)
    """
    if os.getenv("DOCUMENT_SOURCE", "dynamodb").lower() == "memory":
        logger.warning("Using in-memory document source - catalog starts empty and admin writes are disabled")
        return MemoryDocumentSource(), None

    dynamodb_resource = get_dynamodb_resource()
    table_name = os.getenv("DYNAMODB_DOCUMENTS_TABLE", "restaurant-storefront-documents")
    poll_interval = float(os.getenv("SYNC_POLL_INTERVAL_SECONDS", "2"))

    source = DynamoDBDocumentSource(
        dynamodb_resource=dynamodb_resource,
        table_name=table_name,
        poll_interval_seconds=poll_interval,
    )
    repository = CatalogRepository(dynamodb_resource=dynamodb_resource, table_name=table_name)

    logger.info(f"Documents table configured: {table_name} (poll every {poll_interval}s)")
    return source, repository


def get_admin_keys() -> list[str]:
    """Read admin console keys from ADMIN_API_KEY (comma separated)."""
    keys_str = os.getenv("ADMIN_API_KEY", "")
    keys = [key.strip() for key in keys_str.split(",") if key.strip()]

    if not keys:
        logger.warning("No ADMIN_API_KEY configured - admin endpoints will not be accessible")
        keys = ["dummy-key-for-development"]

    return keys


def create_application() -> FastAPI:
    """Create and configure the FastAPI application with all dependencies.

    This factory function:
    1. Configures logging
    2. Creates the document source and admin repository
    3. Creates the catalog and settings syncs
    4. Restores the cart from local storage
    5. Creates the FastAPI app and sets up observability

    Returns:
        Configured FastAPI application instance
    """
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))

    logger.info("Initializing restaurant storefront...")

    source, repository = create_document_backend()

    catalog_sync = CatalogSync(source=source)
    settings_sync = SettingsSync(source=source)

    cart_path = os.getenv("CART_STORAGE_PATH", ".storefront/local_storage.json")
    cart_engine = CartEngine(
        store=JsonFileStore(cart_path),
        delivery_charge_provider=settings_sync.get_delivery_charge,
    )
    logger.info(f"Cart storage at {cart_path}")

    app = create_app(
        catalog_sync=catalog_sync,
        settings_sync=settings_sync,
        cart_engine=cart_engine,
        catalog_repository=repository,
        admin_keys=get_admin_keys(),
        restaurant_name=os.getenv("RESTAURANT_NAME", DEFAULT_RESTAURANT_NAME),
        whatsapp_recipient=os.getenv("WHATSAPP_RECIPIENT", DEFAULT_WHATSAPP_RECIPIENT),
    )

    setup_observability(app)

    logger.info("Restaurant storefront initialized successfully")
    return app


# Create the FastAPI application instance (only when not in test mode)
# This prevents the app from being created during test collection
if os.getenv("ENVIRONMENT") != "test":  # noqa: SIM108
    app = create_application()
else:
    # Create a placeholder app for test imports
    app = FastAPI()


if __name__ == "__main__":
    """Run the application with uvicorn when executed directly."""
    import uvicorn

    port = int(os.getenv("PORT", "8001"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info(f"Starting development server on {host}:{port}")
    logger.info(f"API documentation available at http://{host}:{port}/docs")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=True,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
