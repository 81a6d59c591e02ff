"""Shared fixtures: an in-process fake of the daemon's REST API."""

import json

import httpx
import pytest

API_KEY = "test-api-key"


class FakeDaemon:
    """Answers the control API endpoints from an in-memory config.

    ``failures`` maps ``(method, path)`` to a list of HTTP status codes or
    httpx exception classes returned before the endpoint starts answering
    normally.
    """

    def __init__(self, config=None, requires_restart=False, api_key=API_KEY):
        self.config = config if config is not None else {
            "version": 37,
            "options": {"maxSendKbps": 0},
            "devices": [],
            "folders": [],
        }
        self.requires_restart = requires_restart
        self.api_key = api_key
        self.failures = {}
        self.requests = []
        self.submitted = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)

        pending = self.failures.get(key)
        if pending:
            failure = pending.pop(0)
            if isinstance(failure, type):
                raise failure("simulated failure", request=request)
            return httpx.Response(failure, text="simulated failure")

        if request.headers.get("X-API-Key") != self.api_key:
            return httpx.Response(403, text="CSRF Error")

        if key == ("GET", "/rest/config"):
            return httpx.Response(200, json=self.config)
        if key == ("PUT", "/rest/config"):
            self.config = json.loads(request.content)
            self.submitted.append(self.config)
            return httpx.Response(200)
        if key == ("GET", "/rest/config/restart-required"):
            return httpx.Response(200, json={"requiresRestart": self.requires_restart})
        if key == ("POST", "/rest/system/restart"):
            return httpx.Response(200, json={"ok": "restarting"})
        return httpx.Response(404, text="Not Found")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def count(self, method: str, path: str) -> int:
        """Number of requests received for an endpoint."""
        return sum(
            1 for r in self.requests if r.method == method and r.url.path == path
        )


@pytest.fixture
def daemon():
    """A fake daemon with an empty configuration."""
    return FakeDaemon()
