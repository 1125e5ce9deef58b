"""Services for the auction-finalizer system."""

from .scheduler import AuctionFinalizationScheduler, SchedulerStats
from .supabase import (
    SupabaseRestClient,
    SupabaseFinalizationEndpoint,
    PaperFinalizationEndpoint,
)

__all__ = [
    "AuctionFinalizationScheduler",
    "SchedulerStats",
    "SupabaseRestClient",
    "SupabaseFinalizationEndpoint",
    "PaperFinalizationEndpoint",
]
