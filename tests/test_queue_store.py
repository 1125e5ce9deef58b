"""Tests for the SQLite work queue store."""

from datetime import datetime, timezone

import pytest

from auction_finalizer.config import DatabaseConfig
from auction_finalizer.storage.queue_store import QueueStoreError, SqliteWorkQueueStore


class TestEnqueue:
    """Tests for adding auctions to the queue."""

    def test_positions_append_to_tail(self, queue_store):
        first = queue_store.enqueue("veh-1")
        second = queue_store.enqueue("veh-2")

        assert first.position == 1
        assert second.position == 2
        assert queue_store.next_position() == 3

    def test_explicit_position_and_schedule(self, queue_store):
        scheduled = datetime(2024, 6, 1, 18, 0, tzinfo=timezone.utc)
        queue_store.enqueue("veh-1", position=5, scheduled_time=scheduled)

        entry = queue_store.list_pending()[0]
        assert entry.position == 5
        assert entry.scheduled_time == scheduled
        assert entry.created_at is not None

    def test_requeue_updates_slot(self, queue_store):
        queue_store.enqueue("veh-1", position=1)
        queue_store.enqueue("veh-1", position=7)

        entries = queue_store.list_pending()
        assert len(entries) == 1
        assert entries[0].position == 7

    def test_list_in_position_order(self, queue_store):
        queue_store.enqueue("veh-b", position=2)
        queue_store.enqueue("veh-a", position=1)
        queue_store.enqueue("veh-c", position=3)

        ids = [e.auction_id for e in queue_store.list_pending()]
        assert ids == ["veh-a", "veh-b", "veh-c"]
        assert len(queue_store.list_pending(limit=2)) == 2


class TestRemove:
    """Tests for removing finalized auctions."""

    @pytest.mark.asyncio
    async def test_remove_by_auction_id(self, queue_store):
        queue_store.enqueue("veh-1")
        queue_store.enqueue("veh-2")

        removed = await queue_store.remove("veh-1")

        assert removed == 1
        assert queue_store.contains("veh-1") is False
        assert queue_store.contains("veh-2") is True

    @pytest.mark.asyncio
    async def test_remove_missing_is_zero(self, queue_store):
        assert await queue_store.remove("missing") == 0

    def test_unconnected_store_raises(self, tmp_path):
        store = SqliteWorkQueueStore(DatabaseConfig(data_dir=str(tmp_path)))
        with pytest.raises(QueueStoreError):
            store.delete("veh-1")


class TestPersistence:
    """Queue contents survive reconnects."""

    @pytest.mark.asyncio
    async def test_reconnect_keeps_entries(self, tmp_path):
        config = DatabaseConfig(data_dir=str(tmp_path / "nested"), queue_db="q.db")
        store = SqliteWorkQueueStore(config)
        await store.start()
        store.enqueue("veh-1")
        await store.stop()

        reopened = SqliteWorkQueueStore(config)
        reopened.connect()
        try:
            assert reopened.contains("veh-1") is True
        finally:
            reopened.close()
