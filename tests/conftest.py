import json as jsonlib
import threading

import pytest
import requests

from config import TrelloConfig
from rate_limiter import Clock


class FakeClock(Clock):
    """Deterministic clock: sleep() advances now() and is recorded."""

    def __init__(self, start: float = 1000.0):
        self._now = start
        self._lock = threading.Lock()
        self.sleeps = []

    def now(self) -> float:
        with self._lock:
            return self._now

    def sleep(self, seconds: float) -> None:
        with self._lock:
            self.sleeps.append(seconds)
            self._now += seconds

    def advance(self, seconds: float) -> None:
        with self._lock:
            self._now += seconds


def make_response(status_code: int, body=None, url: str = "https://api.trello.com/1/test") -> requests.Response:
    """Builds a requests.Response the way the transport would return it."""
    response = requests.Response()
    response.status_code = status_code
    response.url = url
    response.reason = {200: "OK", 401: "Unauthorized", 404: "Not Found",
                       429: "Too Many Requests", 500: "Internal Server Error"}.get(status_code, "Error")
    if body is None:
        response._content = b""
    elif isinstance(body, (dict, list)):
        response._content = jsonlib.dumps(body).encode("utf-8")
        response.headers["Content-Type"] = "application/json"
    else:
        response._content = str(body).encode("utf-8")
    return response


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def trello_config():
    return TrelloConfig(api_key="test-key", token="test-token", board_id="board123")
