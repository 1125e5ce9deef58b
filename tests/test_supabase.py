"""Tests for the Supabase REST collaborators."""

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from auction_finalizer.config import Config
from auction_finalizer.services.supabase import (
    SupabaseRestClient,
    SupabaseFinalizationEndpoint,
    PaperFinalizationEndpoint,
    error_message,
)
from auction_finalizer.storage.queue_store import QueueStoreError
from auction_finalizer.storage.remote_queue_store import SupabaseWorkQueueStore


class FakeSupabase:
    """Records requests made against a stub PostgREST app."""

    def __init__(self):
        self.rpc_calls = []
        self.deletes = []
        self.rpc_status = 204
        self.delete_status = 204

    async def rpc(self, request: web.Request) -> web.Response:
        self.rpc_calls.append({
            "name": request.match_info["name"],
            "body": await request.json(),
            "apikey": request.headers.get("apikey"),
            "authorization": request.headers.get("Authorization"),
        })
        if self.rpc_status >= 400:
            return web.json_response(
                {"code": "P0001", "message": "Auction is not live"},
                status=self.rpc_status,
            )
        return web.Response(status=self.rpc_status)

    async def delete(self, request: web.Request) -> web.Response:
        self.deletes.append({
            "table": request.match_info["table"],
            "query": dict(request.query),
        })
        if self.delete_status >= 400:
            return web.json_response({"message": "permission denied"}, status=self.delete_status)
        return web.Response(status=self.delete_status)


@pytest_asyncio.fixture
async def fake_supabase():
    fake = FakeSupabase()
    app = web.Application()
    app.router.add_post("/rest/v1/rpc/{name}", fake.rpc)
    app.router.add_delete("/rest/v1/{table}", fake.delete)

    server = TestServer(app)
    await server.start_server()
    fake.url = f"http://{server.host}:{server.port}"
    yield fake
    await server.close()


@pytest_asyncio.fixture
async def rest_client(fake_supabase):
    client = SupabaseRestClient(Config(), url=fake_supabase.url, api_key="anon-key")
    await client.start()
    yield client
    await client.stop()


class TestFinalizationEndpoint:
    """Tests for SupabaseFinalizationEndpoint."""

    @pytest.mark.asyncio
    async def test_calls_end_auction_rpc(self, rest_client, fake_supabase):
        endpoint = SupabaseFinalizationEndpoint(rest_client)
        result = await endpoint.end_auction("veh-1")

        assert result.success is True
        assert result.error is None
        call = fake_supabase.rpc_calls[0]
        assert call["name"] == "end_auction"
        assert call["body"] == {"vehicle_uuid": "veh-1"}
        assert call["apikey"] == "anon-key"
        assert call["authorization"] == "Bearer anon-key"

    @pytest.mark.asyncio
    async def test_error_response_is_failed_result(self, rest_client, fake_supabase):
        fake_supabase.rpc_status = 400
        endpoint = SupabaseFinalizationEndpoint(rest_client)
        result = await endpoint.end_auction("veh-1")

        assert result.success is False
        assert result.error == "HTTP 400: Auction is not live"

    @pytest.mark.asyncio
    async def test_connection_error_is_failed_result(self):
        client = SupabaseRestClient(Config(), url="http://127.0.0.1:1", api_key="k")
        endpoint = SupabaseFinalizationEndpoint(client)
        await endpoint.start()
        try:
            result = await endpoint.end_auction("veh-1")
        finally:
            await endpoint.stop()

        assert result.success is False
        assert result.error

    @pytest.mark.asyncio
    async def test_unstarted_client_raises(self):
        client = SupabaseRestClient(Config(), url="http://127.0.0.1:1", api_key="k")
        endpoint = SupabaseFinalizationEndpoint(client)
        with pytest.raises(RuntimeError):
            await endpoint.end_auction("veh-1")

    @pytest.mark.asyncio
    async def test_custom_rpc_name(self, fake_supabase):
        config = Config.from_dict({
            "supabase": {"end_auction_rpc": "close_auction", "auction_arg": "auction_id"},
        })
        client = SupabaseRestClient(config, url=fake_supabase.url, api_key="k")
        endpoint = SupabaseFinalizationEndpoint(client)
        await endpoint.start()
        try:
            await endpoint.end_auction("a-9")
        finally:
            await endpoint.stop()

        assert fake_supabase.rpc_calls[0]["name"] == "close_auction"
        assert fake_supabase.rpc_calls[0]["body"] == {"auction_id": "a-9"}


class TestRemoteQueueStore:
    """Tests for SupabaseWorkQueueStore."""

    @pytest.mark.asyncio
    async def test_deletes_by_vehicle_id(self, rest_client, fake_supabase):
        store = SupabaseWorkQueueStore(rest_client)
        removed = await store.remove("veh-1")

        assert removed == 0
        assert fake_supabase.deletes == [
            {"table": "auction_queue", "query": {"vehicle_id": "eq.veh-1"}}
        ]

    @pytest.mark.asyncio
    async def test_error_response_raises(self, rest_client, fake_supabase):
        fake_supabase.delete_status = 403
        store = SupabaseWorkQueueStore(rest_client)

        with pytest.raises(QueueStoreError, match="permission denied"):
            await store.remove("veh-1")


class TestPaperEndpoint:
    """Tests for PaperFinalizationEndpoint."""

    @pytest.mark.asyncio
    async def test_records_calls(self):
        endpoint = PaperFinalizationEndpoint()
        await endpoint.end_auction("veh-1")
        await endpoint.end_auction("veh-1")

        assert endpoint.call_count() == 2
        assert endpoint.call_count("veh-1") == 2
        assert endpoint.ended == {"veh-1"}

    @pytest.mark.asyncio
    async def test_fail_next(self):
        endpoint = PaperFinalizationEndpoint()
        endpoint.fail_next(1, error="boom")

        first = await endpoint.end_auction("veh-1")
        second = await endpoint.end_auction("veh-1")

        assert first.success is False
        assert first.error == "boom"
        assert second.success is True


class TestErrorMessage:
    """Tests for PostgREST error formatting."""

    def test_message_field(self):
        assert error_message(409, {"message": "conflict"}) == "HTTP 409: conflict"

    def test_plain_text(self):
        assert error_message(502, "Bad Gateway") == "HTTP 502: Bad Gateway"

    def test_empty_body(self):
        assert error_message(500, None) == "HTTP 500"
