"""Watch runner for the auction-finalizer system.

Coordinates:
- Collaborator setup (finalization endpoint, work queue store)
- Watching one auction until it is finalized
- Manual early termination
"""

import functools
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Callable, Awaitable

from .config import Config
from .models.types import AuctionWatchContext, FinalizeOutcome, SchedulerPhase, utc_now
from .services.scheduler import AuctionFinalizationScheduler
from .services.supabase import (
    SupabaseRestClient,
    SupabaseFinalizationEndpoint,
    PaperFinalizationEndpoint,
)
from .storage.queue_store import SqliteWorkQueueStore
from .storage.remote_queue_store import SupabaseWorkQueueStore

logger = logging.getLogger(__name__)


class RunMode:
    """Run mode constants."""
    PAPER = "paper"
    LIVE = "live"


@dataclass
class WatcherState:
    """Current state of the watcher."""
    is_running: bool = False
    auctions_watched: int = 0
    auctions_finalized: int = 0
    manual_requests: int = 0


class Watcher:
    """Runs a finalization scheduler against real or simulated backends.

    Modes:
    - paper: simulated endpoint, local SQLite work queue
    - live: Supabase `end_auction` RPC and `auction_queue` table
    """

    def __init__(
        self,
        config: Config,
        mode: str = RunMode.PAPER,
        supabase_url: Optional[str] = None,
        supabase_key: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.config = config
        self.mode = mode

        if mode == RunMode.LIVE:
            url = supabase_url or config.supabase.url
            key = supabase_key or config.supabase.api_key
            if not url or not key:
                raise ValueError("Supabase URL and key required for live mode")
            client = SupabaseRestClient(config, url=url, api_key=key)
            self.endpoint = SupabaseFinalizationEndpoint(client)
            self.queue_store = SupabaseWorkQueueStore(client)
        elif mode == RunMode.PAPER:
            self.endpoint = PaperFinalizationEndpoint()
            self.queue_store = SqliteWorkQueueStore(config.database)
        else:
            raise ValueError(f"Unknown run mode: {mode}")

        self.scheduler = AuctionFinalizationScheduler.from_config(
            config, self.endpoint, self.queue_store, clock=clock
        )
        self.state = WatcherState()

        # Callback for external monitoring
        self.on_auction_end: Optional[Callable[[str], Awaitable[None]]] = None

    async def start(self) -> None:
        """Start the collaborators."""
        logger.info(f"Starting watcher in {self.mode} mode")
        await self.endpoint.start()
        await self.queue_store.start()
        self.state.is_running = True

    async def stop(self) -> None:
        """Stop watching and release the collaborators."""
        logger.info("Stopping watcher")
        self.state.is_running = False
        self.scheduler.deactivate()
        # Let in-flight remote calls finish before closing sessions.
        await self.scheduler.drain()
        await self.queue_store.stop()
        await self.endpoint.stop()

    def _context(self, auction_id: str, end_time: datetime) -> AuctionWatchContext:
        return AuctionWatchContext(
            auction_id=auction_id,
            end_time=end_time,
            active=True,
            on_auction_end=functools.partial(self._handle_auction_end, auction_id),
        )

    async def _handle_auction_end(self, auction_id: str) -> None:
        self.state.auctions_finalized += 1
        if self.on_auction_end:
            await self.on_auction_end(auction_id)

    async def watch(self, auction_id: str, end_time: datetime) -> bool:
        """Watch an auction until it is finalized or the watcher stops.

        Returns:
            True if the auction was finalized
        """
        self.state.auctions_watched += 1
        self.scheduler.activate(self._context(auction_id, end_time))
        await self.scheduler.join()
        return self.scheduler.phase is SchedulerPhase.FINALIZED

    async def finalize_now(self, auction_id: str) -> FinalizeOutcome:
        """End an auction immediately, ahead of its scheduled end time."""
        self.state.manual_requests += 1

        context = self.scheduler.context
        if context is None or context.auction_id != auction_id:
            self.scheduler.activate(self._context(auction_id, self.scheduler.clock()))

        outcome = await self.scheduler.finalize()
        if outcome is FinalizeOutcome.SKIPPED:
            # Another finalize for this activation is in flight.
            await self.scheduler.drain()
            if self.scheduler.phase is SchedulerPhase.FINALIZED:
                return FinalizeOutcome.COMPLETED
        return outcome

    def get_stats(self) -> dict:
        """Get watcher statistics."""
        return {
            "mode": self.mode,
            "is_running": self.state.is_running,
            "auctions_watched": self.state.auctions_watched,
            "auctions_finalized": self.state.auctions_finalized,
            "manual_requests": self.state.manual_requests,
            "scheduler_stats": self.scheduler.get_stats_dict(),
        }
