"""Data models for the auction-finalizer system."""

from .types import (
    AuctionEndCallback,
    AuctionWatchContext,
    EndpointResult,
    FinalizeOutcome,
    QueueEntry,
    SchedulerPhase,
    parse_timestamp,
    utc_now,
)

__all__ = [
    "AuctionEndCallback",
    "AuctionWatchContext",
    "EndpointResult",
    "FinalizeOutcome",
    "QueueEntry",
    "SchedulerPhase",
    "parse_timestamp",
    "utc_now",
]
