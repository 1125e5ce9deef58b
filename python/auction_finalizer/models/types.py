"""Core data types for the auction-finalizer system."""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Any, Awaitable, Callable, Optional, Union


# Zero-argument owner notification; coroutine functions are awaited.
AuctionEndCallback = Callable[[], Union[None, Awaitable[Any]]]


class SchedulerPhase(Enum):
    """Lifecycle phase of one activation."""
    IDLE = auto()
    WATCHING = auto()
    FINALIZING = auto()
    FINALIZED = auto()


class FinalizeOutcome(Enum):
    """Result of a single finalize() invocation."""
    COMPLETED = auto()
    FAILED = auto()
    SKIPPED = auto()


@dataclass
class AuctionWatchContext:
    """Snapshot of the auction being watched, supplied by the owner."""
    auction_id: str
    end_time: datetime
    active: bool = True
    on_auction_end: Optional[AuctionEndCallback] = None

    def __post_init__(self):
        if self.end_time.tzinfo is None:
            self.end_time = self.end_time.replace(tzinfo=timezone.utc)

    @property
    def is_watchable(self) -> bool:
        return self.active and bool(self.auction_id)

    def is_due(self, now: datetime) -> bool:
        """Check if the end time has elapsed."""
        return now >= self.end_time


@dataclass
class EndpointResult:
    """Outcome of a remote end-of-auction call."""
    success: bool
    error: Optional[str] = None

    @staticmethod
    def ok() -> "EndpointResult":
        return EndpointResult(success=True)

    @staticmethod
    def failed(error: str) -> "EndpointResult":
        return EndpointResult(success=False, error=error)


@dataclass
class QueueEntry:
    """A row of the pending-auction work queue."""
    auction_id: str
    position: int
    scheduled_time: Optional[datetime] = None
    created_at: Optional[str] = None


def utc_now() -> datetime:
    """Get the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    ts = datetime.fromisoformat(text)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts
