"""Work queue storage backed by the Supabase `auction_queue` table."""

import asyncio
import logging

import aiohttp

from ..services.supabase import SupabaseRestClient, error_message
from .queue_store import QueueStoreError

logger = logging.getLogger(__name__)


class SupabaseWorkQueueStore:
    """Deletes finalized auctions from the remote queue table."""

    def __init__(self, client: SupabaseRestClient):
        self.client = client
        self.table = client.supabase_config.queue_table
        self.key_column = client.supabase_config.queue_key_column

    async def start(self) -> None:
        await self.client.start()

    async def stop(self) -> None:
        await self.client.stop()

    async def remove(self, auction_id: str) -> int:
        """Delete the queue row for an auction.

        Returns:
            Number of rows reported deleted by the server

        Raises:
            QueueStoreError: on a transport error or non-2xx response
        """
        try:
            status, body = await self.client.request(
                "DELETE",
                f"/rest/v1/{self.table}",
                params={self.key_column: f"eq.{auction_id}"},
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise QueueStoreError(f"{type(e).__name__}: {e}") from e

        if not 200 <= status < 300:
            raise QueueStoreError(error_message(status, body))

        # PostgREST only returns rows with `Prefer: return=representation`.
        return len(body) if isinstance(body, list) else 0
