"""Tests for the control API client."""

import httpx
import pytest

from syncthing_init.api import SyncthingClient
from syncthing_init.errors import TransportError


@pytest.fixture
def make_client(daemon):
    """Build a client talking to the fake daemon."""

    def _make(api_key=None, max_retries=3):
        return SyncthingClient(
            "http://127.0.0.1:8384",
            api_key or daemon.api_key,
            max_retries=max_retries,
            retry_delay=0,
            transport=daemon.transport,
        )

    return _make


class TestSyncthingClient:
    """Tests for SyncthingClient requests."""

    def test_init(self):
        """Test client initialization."""
        client = SyncthingClient("http://127.0.0.1:8384/", "key", max_retries=0)

        assert client.base_url == "http://127.0.0.1:8384"
        assert client.max_retries == 1
        assert client._client is None

    @pytest.mark.asyncio
    async def test_get_config_sends_api_key(self, daemon, make_client):
        """Test the API key header is sent."""
        async with make_client() as client:
            config = await client.get_config()

        assert config == daemon.config
        assert daemon.requests[0].headers["X-API-Key"] == daemon.api_key

    @pytest.mark.asyncio
    async def test_put_config(self, daemon, make_client):
        """Test the submitted body replaces the daemon config."""
        async with make_client() as client:
            await client.put_config({"options": {"maxSendKbps": 1}})

        assert daemon.config == {"options": {"maxSendKbps": 1}}

    @pytest.mark.asyncio
    async def test_restart_required(self, daemon, make_client):
        """Test the restart-required flag is read."""
        daemon.requires_restart = True

        async with make_client() as client:
            assert await client.restart_required() is True

    @pytest.mark.asyncio
    async def test_restart(self, daemon, make_client):
        """Test the restart command is posted."""
        async with make_client() as client:
            await client.restart()

        assert daemon.count("POST", "/rest/system/restart") == 1

    @pytest.mark.asyncio
    async def test_close_resets_client(self, make_client):
        """Test close() drops the underlying httpx client."""
        client = make_client()
        await client.get_config()
        assert client._client is not None

        await client.close()
        assert client._client is None


class TestRetries:
    """Tests for the retry policy."""

    @pytest.mark.asyncio
    async def test_retries_connection_errors(self, daemon, make_client):
        """Test connection failures are retried until the daemon answers."""
        daemon.failures[("GET", "/rest/config")] = [httpx.ConnectError, httpx.ConnectError]

        async with make_client(max_retries=3) as client:
            config = await client.get_config()

        assert config == daemon.config
        assert daemon.count("GET", "/rest/config") == 3

    @pytest.mark.asyncio
    async def test_retries_server_errors(self, daemon, make_client):
        """Test 5xx answers are retried."""
        daemon.failures[("PUT", "/rest/config")] = [503]

        async with make_client(max_retries=2) as client:
            await client.put_config({"devices": []})

        assert daemon.count("PUT", "/rest/config") == 2
        assert daemon.config == {"devices": []}

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, daemon, make_client):
        """Test exhausting attempts raises TransportError."""
        daemon.failures[("GET", "/rest/config")] = [httpx.ConnectTimeout] * 5

        async with make_client(max_retries=3) as client:
            with pytest.raises(TransportError, match="after 3 attempts"):
                await client.get_config()

        assert daemon.count("GET", "/rest/config") == 3

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, daemon, make_client):
        """Test a wrong API key fails at once."""
        async with make_client(api_key="wrong", max_retries=5) as client:
            with pytest.raises(TransportError) as exc_info:
                await client.get_config()

        assert exc_info.value.status_code == 403
        assert daemon.count("GET", "/rest/config") == 1

    @pytest.mark.asyncio
    async def test_non_object_config_rejected(self):
        """Test a config endpoint answering a list is an error."""
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=[]))
        client = SyncthingClient("http://st", "key", retry_delay=0, transport=transport)

        with pytest.raises(TransportError, match="did not return an object"):
            await client.get_config()
        await client.close()

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        """Test an undecodable body is reported."""
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
        client = SyncthingClient("http://st", "key", retry_delay=0, transport=transport)

        with pytest.raises(TransportError, match="invalid JSON"):
            await client.get_config()
        await client.close()
