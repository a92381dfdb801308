"""DynamoDB-backed document source.

Documents live in a single table keyed by (collection, doc_id) with the
document body stored in the ``data`` attribute, so Firestore-style paths such
as ``categories/cat_1/products`` map directly onto partition keys.

DynamoDB has no change feed suitable for a browsing client, so each
subscription polls its partition on the event loop and delivers a snapshot
whenever the content differs from the last delivered one.
"""

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table

from restaurant_storefront.sources.document_source import (
    CollectionCallback,
    CollectionSnapshot,
    DocumentCallback,
    DocumentSnapshot,
    DocumentSource,
    ErrorCallback,
    Subscription,
)

logger = logging.getLogger(__name__)


class DynamoDBDocumentSource(DocumentSource):
    """Polling document source over a DynamoDB documents table."""

    def __init__(
        self,
        dynamodb_resource: DynamoDBServiceResource,
        table_name: str,
        poll_interval_seconds: float = 2.0,
    ) -> None:
        """Initialize the source.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the documents table
            poll_interval_seconds: Delay between polls of one subscription
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)
        self.poll_interval_seconds = poll_interval_seconds
        self._tasks: set[asyncio.Task[None]] = set()

    def subscribe_collection(
        self,
        path: str,
        on_snapshot: CollectionCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        return self._start_polling(
            path,
            lambda: CollectionSnapshot(path=path, documents=self.fetch_collection(path)),
            on_snapshot,
            on_error,
        )

    def subscribe_document(
        self,
        collection: str,
        doc_id: str,
        on_snapshot: DocumentCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        return self._start_polling(
            f"{collection}/{doc_id}",
            lambda: self.fetch_document(collection, doc_id),
            on_snapshot,
            on_error,
        )

    def fetch_collection(self, path: str) -> list[DocumentSnapshot]:
        """Read every document in a collection.

        Args:
            path: Collection path

        Returns:
            list: Documents in the collection

        Raises:
            ClientError: If the query fails
        """
        documents: list[DocumentSnapshot] = []
        query_kwargs: dict[str, Any] = {"KeyConditionExpression": Key("collection").eq(path)}

        while True:
            response = self.table.query(**query_kwargs)
            for item in response.get("Items", []):
                data = item.get("data", {})
                if "doc_id" not in item or not isinstance(data, Mapping):
                    logger.warning(f"Skipping malformed document in {path}: {item!r}")
                    continue
                documents.append(DocumentSnapshot(id=item["doc_id"], data=dict(data)))
            if "LastEvaluatedKey" not in response:
                return documents
            query_kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]

    def fetch_document(self, collection: str, doc_id: str) -> DocumentSnapshot:
        """Read a single document.

        Raises:
            ClientError: If the read fails
        """
        response = self.table.get_item(Key={"collection": collection, "doc_id": doc_id})
        if "Item" not in response:
            return DocumentSnapshot(id=doc_id, exists=False)

        data = response["Item"].get("data", {})
        if not isinstance(data, Mapping):
            logger.warning(f"Ignoring malformed body of {collection}/{doc_id}: {data!r}")
            data = {}
        return DocumentSnapshot(id=doc_id, data=dict(data))

    def _start_polling(
        self,
        path: str,
        fetch: Any,
        on_snapshot: Any,
        on_error: ErrorCallback,
    ) -> Subscription:
        loop = asyncio.get_running_loop()
        subscription = Subscription(path, on_cancel=lambda: task.cancel())
        task = loop.create_task(self._poll(subscription, fetch, on_snapshot, on_error))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return subscription

    async def _poll(
        self,
        subscription: Subscription,
        fetch: Any,
        on_snapshot: Any,
        on_error: ErrorCallback,
    ) -> None:
        last_delivered: Any = None

        while subscription.active:
            try:
                snapshot = await asyncio.to_thread(fetch)
                # The subscription may have been cancelled while the read was in flight
                if subscription.active and snapshot != last_delivered:
                    last_delivered = snapshot
                    on_snapshot(snapshot)
            except (ClientError, BotoCoreError) as e:
                logger.error(f"Failed to poll {subscription.path}: {e}")
                if subscription.active:
                    on_error(e)
            except Exception as e:
                logger.exception(f"Unexpected failure while polling {subscription.path}: {e}")
                if subscription.active:
                    on_error(e)

            await asyncio.sleep(self.poll_interval_seconds)
