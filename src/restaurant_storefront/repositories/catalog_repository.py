"""DynamoDB repository for admin writes to the documents table.

The table is keyed by (collection, doc_id); document bodies live in the
``data`` attribute using the same camelCase shape the storefront reads.
Expected failures return None/False and are logged rather than raised.
"""

import logging
import uuid
from datetime import UTC, datetime
from typing import Any

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table

from restaurant_storefront.models.admin_models import CategoryInput, ProductInput
from restaurant_storefront.services.settings_sync import DELIVERY_CHARGE_DOC, PAGE_VIEWS_DOC
from restaurant_storefront.sources.document_source import (
    CATEGORIES_COLLECTION,
    SETTINGS_COLLECTION,
    products_collection,
)

logger = logging.getLogger(__name__)


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def _now() -> str:
    return datetime.now(UTC).isoformat()


class CatalogRepository:
    """Repository for category, product and settings documents."""

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the documents table
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)

    def create_category(self, category: CategoryInput) -> str | None:
        """Create a category.

        Args:
            category: Validated category payload

        Returns:
            The new category ID if saved successfully, None otherwise
        """
        category_id = _new_id("cat")
        data = {"name": category.name, "imageUrl": category.image_url, "createdAt": _now()}
        return category_id if self._put(CATEGORIES_COLLECTION, category_id, data) else None

    def update_category(self, category_id: str, category: CategoryInput) -> bool:
        """Update name and image of an existing category.

        Returns:
            bool: True if the category exists and was updated, False otherwise
        """
        return self._merge(
            CATEGORIES_COLLECTION,
            category_id,
            {"name": category.name, "imageUrl": category.image_url},
        )

    def delete_category(self, category_id: str) -> bool:
        """Delete a category together with all of its products.

        Returns:
            bool: True if delete succeeded, False otherwise
        """
        path = products_collection(category_id)
        try:
            query_kwargs: dict[str, Any] = {"KeyConditionExpression": Key("collection").eq(path)}
            with self.table.batch_writer() as batch:
                while True:
                    response = self.table.query(**query_kwargs)
                    for item in response.get("Items", []):
                        batch.delete_item(Key={"collection": path, "doc_id": item["doc_id"]})
                    if "LastEvaluatedKey" not in response:
                        break
                    query_kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]
            self.table.delete_item(Key={"collection": CATEGORIES_COLLECTION, "doc_id": category_id})
            return True

        except ClientError as e:
            logger.error(f"Failed to delete category {category_id}: {e}")  # pragma: no cover
            return False

    def create_product(self, category_id: str, product: ProductInput) -> str | None:
        """Create a product in a category.

        Returns:
            The new product ID if saved successfully, None otherwise
        """
        product_id = _new_id("prod")
        data = {**product.to_document(), "createdAt": _now()}
        return product_id if self._put(products_collection(category_id), product_id, data) else None

    def update_product(self, category_id: str, product_id: str, product: ProductInput) -> bool:
        """Update an existing product, keeping its creation timestamp.

        Returns:
            bool: True if the product exists and was updated, False otherwise
        """
        return self._merge(products_collection(category_id), product_id, product.to_document())

    def delete_product(self, category_id: str, product_id: str) -> bool:
        """Delete a product.

        Returns:
            bool: True if delete succeeded, False otherwise
        """
        try:
            self.table.delete_item(
                Key={"collection": products_collection(category_id), "doc_id": product_id}
            )
            return True

        except ClientError as e:
            logger.error(f"Failed to delete product {product_id}: {e}")  # pragma: no cover
            return False

    def set_delivery_charge(self, amount: int) -> bool:
        """Set the delivery surcharge, merging into the settings document.

        Returns:
            bool: True if save succeeded, False otherwise
        """
        return self._merge(SETTINGS_COLLECTION, DELIVERY_CHARGE_DOC, {"amount": amount}, create=True)

    def increment_page_views(self) -> bool:
        """Atomically add one to the page-view counter, creating it on first use.

        Returns:
            bool: True if the counter was incremented, False otherwise
        """
        key = {"collection": SETTINGS_COLLECTION, "doc_id": PAGE_VIEWS_DOC}
        try:
            self.table.update_item(
                Key=key,
                UpdateExpression="ADD #data.#count :one",
                ConditionExpression="attribute_exists(#data)",
                ExpressionAttributeNames={"#data": "data", "#count": "count"},
                ExpressionAttributeValues={":one": 1},
            )
            return True

        except ClientError as e:
            if e.response["Error"]["Code"] != "ConditionalCheckFailedException":
                logger.error(f"Failed to increment page views: {e}")  # pragma: no cover
                return False

        try:
            self.table.put_item(
                Item={**key, "data": {"count": 1}},
                ConditionExpression="attribute_not_exists(doc_id)",
            )
            return True

        except ClientError as e:
            logger.error(f"Failed to create page view counter: {e}")  # pragma: no cover
            return False

    def _put(self, collection: str, doc_id: str, data: dict[str, Any]) -> bool:
        try:
            self.table.put_item(Item={"collection": collection, "doc_id": doc_id, "data": data})
            return True

        except ClientError as e:
            logger.error(f"Failed to save {collection}/{doc_id}: {e}")  # pragma: no cover
            return False

    def _merge(
        self,
        collection: str,
        doc_id: str,
        fields: dict[str, Any],
        create: bool = False,
    ) -> bool:
        key = {"collection": collection, "doc_id": doc_id}
        try:
            response = self.table.get_item(Key=key)
            if "Item" not in response and not create:
                logger.warning(f"Cannot update missing document {collection}/{doc_id}")
                return False

            existing = dict(response.get("Item", {}).get("data", {}))
            self.table.put_item(Item={**key, "data": {**existing, **fields}})
            return True

        except ClientError as e:
            logger.error(f"Failed to update {collection}/{doc_id}: {e}")  # pragma: no cover
            return False
