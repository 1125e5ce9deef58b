"""Auction finalization scheduler.

Watches one auction and ends it once its end time has elapsed:
- One deadline check immediately on activation, then one per poll interval
- A guarded finalize sequence: remote end call, queue cleanup, owner callback
- Failed attempts reopen the guard so the next tick (or a manual call) retries
"""

import asyncio
import inspect
import logging
import threading
from dataclasses import dataclass
from typing import Optional, Callable, Set
from datetime import datetime

from ..config import Config
from ..models.types import (
    AuctionWatchContext,
    FinalizeOutcome,
    SchedulerPhase,
    utc_now,
)

logger = logging.getLogger(__name__)


@dataclass
class SchedulerStats:
    """Counters for one scheduler instance."""
    checks: int = 0
    attempts: int = 0
    skipped: int = 0
    failures: int = 0
    completions: int = 0
    cleanup_failures: int = 0


class _CheckToken:
    """Stop flag shared between the scheduler and one check loop."""

    __slots__ = ("cancelled",)

    def __init__(self):
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class AuctionFinalizationScheduler:
    """Ends a watched auction exactly once per activation.

    The finalize guard is set before the first suspension point, so a timer
    tick and a manual finalize() racing each other produce a single endpoint
    call. The endpoint must tolerate duplicate calls from other clients.

    Usage:
        scheduler = AuctionFinalizationScheduler(endpoint, queue_store)
        scheduler.activate(AuctionWatchContext(auction_id, end_time))
        ...
        scheduler.deactivate()
    """

    def __init__(
        self,
        endpoint,
        queue_store,
        poll_interval_seconds: float = 1.0,
        clock: Callable[[], datetime] = utc_now,
        log: Optional[logging.Logger] = None,
    ):
        if poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be positive")

        self.endpoint = endpoint
        self.queue_store = queue_store
        self.poll_interval_seconds = poll_interval_seconds
        self.clock = clock
        self.log = log or logger

        # Guard
        self._guard_lock = threading.Lock()
        self._triggered = False

        # Activation state
        self._context: Optional[AuctionWatchContext] = None
        self._phase = SchedulerPhase.IDLE
        self._generation = 0
        self._closed = False

        # Repeating check
        self._check_task: Optional[asyncio.Task] = None
        self._check_token: Optional[_CheckToken] = None

        # Finalize tasks spawned by the check loop
        self._inflight: Set[asyncio.Task] = set()

        self.stats = SchedulerStats()

    @classmethod
    def from_config(cls, config: Config, endpoint, queue_store, **kwargs):
        return cls(
            endpoint,
            queue_store,
            poll_interval_seconds=config.scheduler.poll_interval_seconds,
            **kwargs,
        )

    @property
    def phase(self) -> SchedulerPhase:
        return self._phase

    @property
    def context(self) -> Optional[AuctionWatchContext]:
        return self._context

    @property
    def is_triggered(self) -> bool:
        with self._guard_lock:
            return self._triggered

    @property
    def is_watching(self) -> bool:
        """True while a repeating check is scheduled."""
        return self._check_task is not None and not self._check_task.done()

    @property
    def is_closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def activate(self, context: AuctionWatchContext) -> None:
        """Start (or restart) watching an auction.

        An inactive context or empty identifier resets the scheduler instead.
        Re-activating the auction that is already being finalized or has been
        finalized keeps the guard set.

        Must be called from a running event loop.
        """
        if self._closed:
            raise RuntimeError("Scheduler is closed")

        if not context.is_watchable:
            self.deactivate()
            return

        same_auction = (
            self._context is not None
            and self._context.auction_id == context.auction_id
        )
        self._cancel_check()

        if same_auction and self.is_triggered:
            self._context = context
            if self._phase is SchedulerPhase.FINALIZED:
                self.log.debug(f"Auction {context.auction_id} already finalized")
                return
        else:
            self._generation += 1
            with self._guard_lock:
                self._triggered = False
            self._context = context
            self._phase = SchedulerPhase.WATCHING

        self._start_check()
        self.log.info(
            f"Watching auction {context.auction_id} "
            f"(ends {context.end_time.isoformat()})"
        )

    def deactivate(self) -> None:
        """Stop watching and clear the guard. Safe to call when idle."""
        self._cancel_check()
        with self._guard_lock:
            self._triggered = False
        if self._context is not None:
            self.log.info(f"Stopped watching auction {self._context.auction_id}")
        self._generation += 1
        self._context = None
        self._phase = SchedulerPhase.IDLE

    def close(self) -> None:
        """Tear down the scheduler. In-flight calls are left to finish."""
        if self._closed:
            return
        self.deactivate()
        self._closed = True

    async def aclose(self) -> None:
        """Tear down and wait for the check loop to unwind."""
        task = self._check_task
        self.close()
        if task is not None:
            await asyncio.wait([task])

    async def __aenter__(self) -> "AuctionFinalizationScheduler":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def join(self) -> None:
        """Wait until the repeating check ends and spawned finalizes settle."""
        task = self._check_task
        if task is not None:
            await asyncio.wait([task])
        await self.drain()

    async def drain(self) -> None:
        """Wait for finalize tasks started by the check loop."""
        while self._inflight:
            await asyncio.wait(list(self._inflight))

    # ------------------------------------------------------------------
    # Repeating check
    # ------------------------------------------------------------------

    def _start_check(self) -> None:
        loop = asyncio.get_running_loop()
        token = _CheckToken()
        self._check_token = token
        self._check_task = loop.create_task(self._run_checks(token))

    def _cancel_check(self) -> None:
        if self._check_token is not None:
            self._check_token.cancel()
        if self._check_task is not None and not self._check_task.done():
            self._check_task.cancel()
        self._check_token = None
        self._check_task = None

    async def _run_checks(self, token: _CheckToken) -> None:
        """Immediate check, then one check per poll interval."""
        while not token.cancelled:
            try:
                await self.check_deadline()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.log.exception(f"Deadline check failed: {e}")

            if token.cancelled or self._phase is SchedulerPhase.FINALIZED:
                break
            await asyncio.sleep(self.poll_interval_seconds)

    async def check_deadline(self) -> bool:
        """Finalize if the end time has elapsed.

        Returns:
            True if the deadline was reached
        """
        context = self._context
        if context is None:
            return False

        self.stats.checks += 1
        if not context.is_due(self.clock()):
            return False

        task = asyncio.ensure_future(self.finalize())
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        # The remote call outlives a cancelled check loop.
        await asyncio.shield(task)
        return True

    # ------------------------------------------------------------------
    # Finalize sequence
    # ------------------------------------------------------------------

    def _try_acquire_guard(self) -> bool:
        with self._guard_lock:
            if self._triggered:
                return False
            self._triggered = True
            return True

    def _release_guard(self, generation: int) -> None:
        with self._guard_lock:
            if generation == self._generation and not self._closed:
                self._triggered = False

    def _set_phase(self, phase: SchedulerPhase, generation: int) -> None:
        if generation == self._generation and not self._closed:
            self._phase = phase

    def _abandon(self, generation: int) -> None:
        self.stats.failures += 1
        self._release_guard(generation)
        self._set_phase(SchedulerPhase.WATCHING, generation)

    async def finalize(self) -> FinalizeOutcome:
        """End the watched auction unless this activation already did.

        Never raises for remote or storage errors; a failure reopens the
        guard and returns FinalizeOutcome.FAILED.
        """
        context = self._context
        if context is None:
            self.log.warning("finalize() called with no auction being watched")
            return FinalizeOutcome.SKIPPED

        if not self._try_acquire_guard():
            self.stats.skipped += 1
            return FinalizeOutcome.SKIPPED

        generation = self._generation
        auction_id = context.auction_id
        self._set_phase(SchedulerPhase.FINALIZING, generation)
        self.stats.attempts += 1

        try:
            self.log.info(f"Ending auction {auction_id}")
            result = await self.endpoint.end_auction(auction_id)

            if not result.success:
                self.log.warning(f"Error ending auction {auction_id}: {result.error}")
                self._abandon(generation)
                return FinalizeOutcome.FAILED

        except asyncio.CancelledError:
            self._abandon(generation)
            raise
        except Exception as e:
            self.log.exception(f"Error finalizing auction {auction_id}: {e}")
            self._abandon(generation)
            return FinalizeOutcome.FAILED

        # Ended server-side: nothing below may reopen the guard.
        self._set_phase(SchedulerPhase.FINALIZED, generation)
        self.stats.completions += 1
        self.log.info(f"Auction ended for {auction_id}")

        await self._remove_from_queue(auction_id)

        if not self._closed:
            await self._notify(context)
        return FinalizeOutcome.COMPLETED

    async def _remove_from_queue(self, auction_id: str) -> None:
        """Best-effort queue cleanup; the auction has already ended."""
        try:
            removed = await self.queue_store.remove(auction_id)
            self.log.debug(f"Removed {removed} queue entries for {auction_id}")
        except Exception as e:
            self.stats.cleanup_failures += 1
            self.log.error(f"Failed to remove auction {auction_id} from queue: {e}")

    async def _notify(self, context: AuctionWatchContext) -> None:
        callback = context.on_auction_end
        if callback is None:
            return
        try:
            result = callback()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self.log.exception(f"End-of-auction callback failed: {e}")

    def get_stats_dict(self) -> dict:
        """Get stats as dictionary."""
        return {
            "phase": self._phase.name,
            "auction_id": self._context.auction_id if self._context else None,
            "triggered": self.is_triggered,
            "checks": self.stats.checks,
            "attempts": self.stats.attempts,
            "skipped": self.stats.skipped,
            "failures": self.stats.failures,
            "completions": self.stats.completions,
            "cleanup_failures": self.stats.cleanup_failures,
        }
