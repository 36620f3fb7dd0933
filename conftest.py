"""Shared test fixtures for the track viewer project."""

import json
from collections.abc import Iterator
from typing import Any

import httpx
import pytest

from track_viewer.recorder import RecorderClient
from track_viewer.state import ViewerSettings, reset_viewer_state

RECORDER_URL = "http://recorder.test:8083"


def point(tst: int, lat: float | None = 52.0, lon: float | None = 13.0, acc: float | None = None) -> dict[str, Any]:
    """Build a recorder location point."""
    location: dict[str, Any] = {"_type": "location", "tst": tst, "lat": lat, "lon": lon}
    if acc is not None:
        location["acc"] = acc
    return location


class FakeRecorder:
    """
    In-memory recorder API served through ``httpx.MockTransport``.

    Attributes:
        users: user -> device names, served by /api/0/list
        locations: (user, device) -> points (or raw bytes), served by /api/0/locations
        last: Body of /api/0/last (any JSON value, or raw bytes)
        failing_paths: Paths answered with HTTP 500
        requests: Every request received, in order
    """

    def __init__(self) -> None:
        self.version = "0.9.6"
        self.users: dict[str, list[str]] = {}
        self.locations: dict[tuple[str, str], Any] = {}
        self.last: Any = []
        self.failing_paths: set[str] = set()
        self.requests: list[httpx.Request] = []

    def _respond(self, body: Any) -> httpx.Response:
        if isinstance(body, bytes):
            return httpx.Response(200, content=body, headers={"Content-Type": "application/json"})
        return httpx.Response(200, content=json.dumps(body).encode(), headers={"Content-Type": "application/json"})

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        params = request.url.params
        if path in self.failing_paths:
            return httpx.Response(500, text="Internal Server Error")
        if path == "/api/0/version":
            return self._respond({"version": self.version})
        if path == "/api/0/list":
            user = params.get("user")
            if user is None:
                return self._respond({"results": list(self.users)})
            return self._respond({"results": self.users.get(user, [])})
        if path == "/api/0/locations":
            key = (params.get("user"), params.get("device"))
            body = self.locations.get(key, [])
            if isinstance(body, bytes):
                return self._respond(body)
            return self._respond({"count": len(body), "data": body})
        if path == "/api/0/last":
            return self._respond(self.last)
        return httpx.Response(404, text="Not Found")

    def requests_to(self, path: str) -> list[httpx.Request]:
        return [request for request in self.requests if request.url.path == path]

    def client(self, fetch_options: dict[str, Any] | None = None) -> RecorderClient:
        return RecorderClient(RECORDER_URL, fetch_options, transport=httpx.MockTransport(self.handle))


@pytest.fixture
def recorder() -> FakeRecorder:
    """A fake recorder with one user and two devices."""
    fake = FakeRecorder()
    fake.users = {"alice": ["phone", "watch"]}
    return fake


@pytest.fixture
def patched_recorder(recorder: FakeRecorder, monkeypatch: pytest.MonkeyPatch) -> FakeRecorder:
    """Make every ViewerSettings.create_client() talk to the fake recorder."""
    monkeypatch.setattr(
        ViewerSettings,
        "create_client",
        lambda self: recorder.client(self.fetch_options),
    )
    return recorder


@pytest.fixture(autouse=True)
def fresh_viewer_state() -> Iterator[None]:
    """Every test starts with a viewer state built from current settings."""
    reset_viewer_state()
    yield
    reset_viewer_state()
