"""Pytest configuration and fixtures."""

import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio

# Add the python package to the path
PACKAGE_DIR = Path(__file__).parent.parent / "python"
sys.path.insert(0, str(PACKAGE_DIR))

from auction_finalizer.config import Config, DatabaseConfig
from auction_finalizer.models.types import AuctionWatchContext
from auction_finalizer.services.scheduler import AuctionFinalizationScheduler
from auction_finalizer.services.supabase import PaperFinalizationEndpoint
from auction_finalizer.storage.queue_store import QueueStoreError, SqliteWorkQueueStore


# Short enough that several ticks fit in a test's sleep.
FAST_POLL = 0.01


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FailingQueueStore:
    """Queue store whose deletes always fail."""

    def __init__(self):
        self.attempts = []

    async def remove(self, auction_id: str) -> int:
        self.attempts.append(auction_id)
        raise QueueStoreError("queue unavailable")


class SlowQueueStore:
    """Queue store whose deletes take a while."""

    def __init__(self, delay: float = 0.5):
        self.delay = delay
        self.attempts = []

    async def remove(self, auction_id: str) -> int:
        self.attempts.append(auction_id)
        await asyncio.sleep(self.delay)
        return 1


class RaisingEndpoint:
    """Endpoint that raises instead of returning a result."""

    def __init__(self):
        self.calls = []

    async def end_auction(self, auction_id: str):
        self.calls.append(auction_id)
        raise ConnectionError("socket closed")


class CallbackRecorder:
    """Zero-argument callback counting invocations."""

    def __init__(self):
        self.count = 0

    def __call__(self) -> None:
        self.count += 1


@pytest.fixture
def sample_config(tmp_path) -> Config:
    """Create a sample configuration for testing."""
    config = Config()
    config.database = DatabaseConfig(data_dir=str(tmp_path), queue_db="queue.db")
    config.scheduler.poll_interval_seconds = FAST_POLL
    return config


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def endpoint() -> PaperFinalizationEndpoint:
    return PaperFinalizationEndpoint()


@pytest.fixture
def queue_store(sample_config):
    """Connected SQLite work queue in a temp directory."""
    store = SqliteWorkQueueStore(sample_config.database)
    store.connect()
    yield store
    store.close()


@pytest_asyncio.fixture
async def scheduler(endpoint, queue_store, clock):
    """Scheduler with a fast poll interval and a fake clock."""
    sched = AuctionFinalizationScheduler(
        endpoint,
        queue_store,
        poll_interval_seconds=FAST_POLL,
        clock=clock,
    )
    yield sched
    await sched.drain()
    await sched.aclose()


@pytest.fixture
def callback() -> CallbackRecorder:
    return CallbackRecorder()


@pytest.fixture
def make_context(clock):
    """Build watch contexts relative to the fake clock."""
    def _make(
        auction_id: str = "veh-1",
        ends_in: float = 0.0,
        active: bool = True,
        on_auction_end=None,
    ) -> AuctionWatchContext:
        return AuctionWatchContext(
            auction_id=auction_id,
            end_time=clock.now + timedelta(seconds=ends_in),
            active=active,
            on_auction_end=on_auction_end,
        )
    return _make
