"""Storage layer for the auction-finalizer system.

Uses:
- SQLite for the local work queue
- Supabase REST for the shared work queue
"""

from .queue_store import SqliteWorkQueueStore, QueueStoreError
from .remote_queue_store import SupabaseWorkQueueStore

__all__ = [
    "SqliteWorkQueueStore",
    "SupabaseWorkQueueStore",
    "QueueStoreError",
]
