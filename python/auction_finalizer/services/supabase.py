"""Supabase REST access for ending auctions.

Handles:
- Session lifecycle for the PostgREST API
- The end-of-auction remote procedure call
- A paper endpoint for dry runs without network access
"""

import asyncio
import json
import logging
from typing import Optional, Dict, List, Any, Tuple
import aiohttp

from ..config import Config
from ..models.types import EndpointResult

logger = logging.getLogger(__name__)


class SupabaseRestClient:
    """Thin aiohttp wrapper around a Supabase project's REST API."""

    def __init__(
        self,
        config: Config,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
    ):
        self.supabase_config = config.supabase
        self.url = (url or config.supabase.url).rstrip("/")
        self.api_key = api_key or config.supabase.api_key

        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def is_started(self) -> bool:
        return self._session is not None

    async def start(self) -> None:
        """Open the HTTP session."""
        if self._session is not None:
            return
        timeout = aiohttp.ClientTimeout(
            total=self.supabase_config.request_timeout_seconds
        )
        self._session = aiohttp.ClientSession(timeout=timeout)
        logger.info(f"Supabase client started ({self.url})")

    async def stop(self) -> None:
        """Close the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Tuple[int, Any]:
        """Make an authenticated REST request.

        Returns:
            (status code, decoded JSON body or raw text, None when empty)
        """
        if not self._session:
            raise RuntimeError("Supabase client not started")

        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        async with self._session.request(
            method,
            f"{self.url}{path}",
            headers=headers,
            params=params,
            json=payload,
        ) as resp:
            text = await resp.text()
            return resp.status, _decode_body(text)


def _decode_body(text: str) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def error_message(status: int, body: Any) -> str:
    """Build a readable error from a PostgREST error response."""
    if isinstance(body, dict):
        message = body.get("message") or body.get("error") or body.get("hint")
        if message:
            return f"HTTP {status}: {message}"
    if body:
        return f"HTTP {status}: {str(body)[:200]}"
    return f"HTTP {status}"


class SupabaseFinalizationEndpoint:
    """Ends auctions through the `end_auction` database function.

    The function is expected to be a no-op on an auction that has already
    ended, so duplicate calls from several clients are harmless.
    """

    def __init__(self, client: SupabaseRestClient):
        self.client = client
        self.rpc_name = client.supabase_config.end_auction_rpc
        self.auction_arg = client.supabase_config.auction_arg

    async def start(self) -> None:
        await self.client.start()

    async def stop(self) -> None:
        await self.client.stop()

    async def end_auction(self, auction_id: str) -> EndpointResult:
        """Call the remote procedure for one auction.

        Transport errors and non-2xx responses are returned as failed
        results rather than raised.
        """
        try:
            status, body = await self.client.request(
                "POST",
                f"/rest/v1/rpc/{self.rpc_name}",
                payload={self.auction_arg: auction_id},
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            return EndpointResult.failed(f"{type(e).__name__}: {e}")

        if 200 <= status < 300:
            return EndpointResult.ok()
        return EndpointResult.failed(error_message(status, body))


class PaperFinalizationEndpoint:
    """In-memory endpoint for dry runs and simulation.

    Records every call and can be told to fail a number of upcoming calls.
    """

    def __init__(self, latency_seconds: float = 0.0):
        self.latency_seconds = latency_seconds
        self.calls: List[str] = []
        self.ended: set = set()

        self._failures_remaining = 0
        self._failure_error = "simulated failure"

    async def start(self) -> None:
        logger.info("Paper finalization endpoint started")

    async def stop(self) -> None:
        pass

    def fail_next(self, count: int = 1, error: str = "simulated failure") -> None:
        """Make the next `count` calls report failure."""
        self._failures_remaining = count
        self._failure_error = error

    async def end_auction(self, auction_id: str) -> EndpointResult:
        self.calls.append(auction_id)
        if self.latency_seconds > 0:
            await asyncio.sleep(self.latency_seconds)

        if self._failures_remaining > 0:
            self._failures_remaining -= 1
            return EndpointResult.failed(self._failure_error)

        self.ended.add(auction_id)
        return EndpointResult.ok()

    def call_count(self, auction_id: Optional[str] = None) -> int:
        if auction_id is None:
            return len(self.calls)
        return sum(1 for c in self.calls if c == auction_id)
