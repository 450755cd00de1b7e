"""Shared fixtures: a scripted stand-in for aiohttp sessions and endpoint configs."""

from typing import Dict, List
from urllib.parse import urlsplit

import pytest

from config import StaticEndpointSource


class FakeResponse:
    def __init__(self, status: int = 200, body: str = ""):
        self.status = status
        self.body = body

    async def text(self):
        return self.body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class _Raising:
    def __init__(self, exc: BaseException):
        self.exc = exc

    async def __aenter__(self):
        raise self.exc

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """
    Routes GETs by URL path. A route value is a FakeResponse, an exception
    instance to raise, or a list of either consumed in order.
    """

    def __init__(self, routes: Dict[str, object] = None):
        self.routes = dict(routes or {})
        self.calls: List[tuple] = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        outcome = self.routes[urlsplit(url).path]
        if isinstance(outcome, list):
            outcome = outcome.pop(0)
        if isinstance(outcome, BaseException):
            return _Raising(outcome)
        return outcome

    def paths(self):
        return [urlsplit(url).path for url, _ in self.calls]

    async def close(self):
        pass


class RecordingPublisher:
    def __init__(self):
        self.snapshots = []

    async def publish_snapshot(self, snapshot):
        self.snapshots.append(snapshot)


ENDPOINT_CONFIG = {
    "base_url": "https://pc.example.com",
    "ip_address": "192.168.1.42",
    "mac_address": "AA:BB:CC:DD:EE:FF",
    "api_key": "",
}


@pytest.fixture
def endpoints():
    return StaticEndpointSource(ENDPOINT_CONFIG)


@pytest.fixture
def unconfigured():
    return StaticEndpointSource({})


@pytest.fixture
def publisher():
    return RecordingPublisher()
