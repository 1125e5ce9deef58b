"""
Auction Finalizer - client-side auction end scheduler

Watches a live auction and, once its end time passes, ends it exactly once
per activation through a remote procedure, then removes it from the
pending-auction work queue and notifies the owner.
"""

__version__ = "0.1.0"
__author__ = "auction-finalizer"

from .config import Config, load_config
from .models.types import (
    AuctionWatchContext,
    EndpointResult,
    FinalizeOutcome,
    QueueEntry,
    SchedulerPhase,
)
from .watcher import Watcher, RunMode
from .services import (
    AuctionFinalizationScheduler,
    SupabaseFinalizationEndpoint,
    PaperFinalizationEndpoint,
)
from .storage import SqliteWorkQueueStore, SupabaseWorkQueueStore

__all__ = [
    # Config
    "Config",
    "load_config",
    # Types
    "AuctionWatchContext",
    "EndpointResult",
    "FinalizeOutcome",
    "QueueEntry",
    "SchedulerPhase",
    # Watcher
    "Watcher",
    "RunMode",
    # Services
    "AuctionFinalizationScheduler",
    "SupabaseFinalizationEndpoint",
    "PaperFinalizationEndpoint",
    # Storage
    "SqliteWorkQueueStore",
    "SupabaseWorkQueueStore",
]
