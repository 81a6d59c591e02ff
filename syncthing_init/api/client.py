"""Async client for the Syncthing REST control API.

Every request carries the API key header and is retried with a fixed delay.
"""

import asyncio
import logging
from typing import Any

import httpx

from ..errors import TransportError

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"


class SyncthingClient:
    """Client for the daemon's configuration and restart endpoints.

    Use as an async context manager, or call ``close()`` when done.
    """

    CONFIG_PATH = "/rest/config"
    RESTART_REQUIRED_PATH = "/rest/config/restart-required"
    RESTART_PATH = "/rest/system/restart"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        max_retries: int = 1000,
        retry_delay: float = 1.0,
        verify: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            base_url: GUI listener URL (e.g., "http://127.0.0.1:8384").
            api_key: Key sent in the X-API-Key header.
            timeout: Request timeout in seconds.
            max_retries: Maximum attempts per request.
            retry_delay: Seconds to wait between attempts.
            verify: Verify the listener's TLS certificate.
            transport: Optional httpx transport, used by tests.
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self._api_key = api_key
        self._verify = verify
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={API_KEY_HEADER: self._api_key},
                timeout=self.timeout,
                verify=self._verify,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "SyncthingClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _request_with_retry(
        self,
        method: str,
        path: str,
        json_data: Any = None,
    ) -> Any:
        """Make an HTTP request, retrying transport failures and 5xx answers.

        Args:
            method: HTTP method.
            path: URL path relative to the base URL.
            json_data: Optional JSON body.

        Returns:
            Decoded JSON body, or None for an empty body.

        Raises:
            TransportError: On a 4xx answer, an undecodable body, or when
                all attempts failed.
        """
        client = await self._get_client()
        last_error = "no attempt made"

        for attempt in range(self.max_retries):
            try:
                response = await client.request(method, path, json=json_data)

                if response.status_code < 400:
                    if not response.content:
                        return None
                    try:
                        return response.json()
                    except ValueError as e:
                        raise TransportError(
                            f"{method} {path} returned invalid JSON: {e}",
                            response.status_code,
                        ) from e

                if response.status_code < 500:
                    # Client error, don't retry
                    raise TransportError(
                        f"{method} {path} failed with HTTP {response.status_code}: "
                        f"{response.text}",
                        response.status_code,
                    )

                last_error = f"HTTP {response.status_code}"
                logger.warning(
                    f"{method} {path}: server error {response.status_code}, "
                    f"attempt {attempt + 1}/{self.max_retries}"
                )

            except httpx.TransportError as e:
                last_error = f"{type(e).__name__}: {e}"
                logger.warning(
                    f"{method} {path}: {type(e).__name__}, "
                    f"attempt {attempt + 1}/{self.max_retries}"
                )

            if attempt < self.max_retries - 1:
                await asyncio.sleep(self.retry_delay)

        raise TransportError(
            f"{method} {path} failed after {self.max_retries} attempts: {last_error}"
        )

    async def get_config(self) -> dict[str, Any]:
        """Fetch the daemon's current configuration."""
        config = await self._request_with_retry("GET", self.CONFIG_PATH)
        if not isinstance(config, dict):
            raise TransportError(f"GET {self.CONFIG_PATH} did not return an object")
        return config

    async def put_config(self, config: dict[str, Any]) -> None:
        """Replace the daemon's configuration."""
        await self._request_with_retry("PUT", self.CONFIG_PATH, config)

    async def restart_required(self) -> bool:
        """Ask whether the applied configuration needs a daemon restart."""
        data = await self._request_with_retry("GET", self.RESTART_REQUIRED_PATH)
        return bool(isinstance(data, dict) and data.get("requiresRestart"))

    async def restart(self) -> None:
        """Tell the daemon to restart. Completion is not awaited."""
        await self._request_with_retry("POST", self.RESTART_PATH)
