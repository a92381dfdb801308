"""Unit tests for the in-process document source."""

from unittest.mock import MagicMock

import pytest

from restaurant_storefront.sources.document_source import Subscription
from restaurant_storefront.sources.memory_source import MemoryDocumentSource


@pytest.mark.unit
class TestSubscription:
    """Test suite for subscription handles."""

    def test_cancel_runs_hook_once(self) -> None:
        """Test that cancelling twice is harmless."""
        hook = MagicMock()
        subscription = Subscription("categories", on_cancel=hook)

        subscription.cancel()
        subscription.cancel()

        assert subscription.active is False
        hook.assert_called_once()


@pytest.mark.unit
class TestMemoryDocumentSource:
    """Test suite for MemoryDocumentSource."""

    def test_initial_snapshot_on_subscribe(self, memory_source: MemoryDocumentSource) -> None:
        """Test that subscribers receive the current state immediately."""
        memory_source.set_document("categories", "c1", {"name": "Rolls"})
        on_snapshot = MagicMock()

        memory_source.subscribe_collection("categories", on_snapshot, MagicMock())

        snapshot = on_snapshot.call_args.args[0]
        assert snapshot.path == "categories"
        assert [(d.id, d.data) for d in snapshot.documents] == [("c1", {"name": "Rolls"})]

    def test_deferred_initial_snapshot(self) -> None:
        """Test that deliver_initial=False waits for publish."""
        source = MemoryDocumentSource(deliver_initial=False)
        on_snapshot = MagicMock()

        source.subscribe_collection("categories", on_snapshot, MagicMock())
        on_snapshot.assert_not_called()

        source.publish("categories")
        on_snapshot.assert_called_once()

    def test_writes_are_published(self, memory_source: MemoryDocumentSource) -> None:
        """Test that set and delete deliver full snapshots."""
        on_snapshot = MagicMock()
        memory_source.subscribe_collection("categories", on_snapshot, MagicMock())

        memory_source.set_document("categories", "c1", {"name": "Rolls"})
        memory_source.set_document("categories", "c1", {"image": "x.jpg"}, merge=True)
        memory_source.delete_document("categories", "c2")

        last = on_snapshot.call_args.args[0]
        assert on_snapshot.call_count == 4
        assert last.documents[0].data == {"name": "Rolls", "image": "x.jpg"}

    def test_snapshots_are_copies(self, memory_source: MemoryDocumentSource) -> None:
        """Test that subscribers cannot mutate stored documents."""
        memory_source.set_document("categories", "c1", {"tags": ["a"]})

        memory_source.collection_snapshot("categories").documents[0].data["tags"].append("b")

        assert memory_source.document_snapshot("categories", "c1").data == {"tags": ["a"]}

    def test_document_subscription(self, memory_source: MemoryDocumentSource) -> None:
        """Test single-document delivery including non-existence."""
        on_snapshot = MagicMock()
        memory_source.subscribe_document("settings", "deliveryCharge", on_snapshot, MagicMock())

        assert on_snapshot.call_args.args[0].exists is False

        memory_source.set_document("settings", "deliveryCharge", {"amount": 30})

        snapshot = on_snapshot.call_args.args[0]
        assert snapshot.exists is True
        assert snapshot.data == {"amount": 30}

    def test_cancelled_subscription_receives_nothing(self, memory_source: MemoryDocumentSource) -> None:
        """Test that cancellation stops snapshots and errors."""
        on_snapshot = MagicMock()
        on_error = MagicMock()
        subscription = memory_source.subscribe_collection("categories", on_snapshot, on_error)
        on_snapshot.reset_mock()

        subscription.cancel()
        memory_source.set_document("categories", "c1", {})
        memory_source.fail("categories", RuntimeError("boom"))

        on_snapshot.assert_not_called()
        on_error.assert_not_called()
        assert memory_source.listener_count("categories") == 0

    def test_fail_delivers_error(self, memory_source: MemoryDocumentSource) -> None:
        """Test injected transport errors."""
        on_error = MagicMock()
        memory_source.subscribe_collection("categories", MagicMock(), on_error)
        error = RuntimeError("boom")

        memory_source.fail("categories", error)

        on_error.assert_called_once_with(error)
