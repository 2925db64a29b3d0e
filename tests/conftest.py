import json
from types import SimpleNamespace

import pytest
import requests
from urllib3 import HTTPHeaderDict

from nitro_bot.client import RequestClient

# well-known development key, never funded
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
SITE_URL = "https://community.nitrograph.com"


class FakeResponse:
    def __init__(self, status_code=200, payload=None, set_cookies=()):
        self.status_code = status_code
        self._payload = payload
        self.text = json.dumps(payload) if payload is not None else ""
        self.reason = "OK" if status_code < 400 else "Error"
        self.headers = {}
        raw_headers = HTTPHeaderDict()
        for cookie in set_cookies:
            raw_headers.add('Set-Cookie', cookie)
        self.raw = SimpleNamespace(headers=raw_headers)

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeSession:
    """Routes (METHOD, url-without-query) to scripted responses.

    A route value is a response, an exception, or a list of them consumed
    in order (the last one repeats).
    """

    def __init__(self, routes=None):
        self.routes = {(m, u.split('?', 1)[0]): v for (m, u), v in (routes or {}).items()}
        self.calls = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.calls.append(SimpleNamespace(method=method, url=url, **kwargs))
        key = (method, url.split('?', 1)[0])
        if key not in self.routes:
            raise requests.ConnectionError(f"no route for {key}")
        result = self.routes[key]
        if isinstance(result, list):
            result = result.pop(0) if len(result) > 1 else result[0]
        if isinstance(result, Exception):
            raise result
        return result

    def calls_to(self, url):
        url = url.split('?', 1)[0]
        return [c for c in self.calls if c.url.split('?', 1)[0] == url]

    def close(self):
        self.closed = True


class RecordingSleep:
    def __init__(self, stop_at=None):
        self.calls = []
        self.stop_at = stop_at

    def __call__(self, seconds):
        self.calls.append(seconds)
        if self.stop_at is not None and seconds == self.stop_at:
            raise KeyboardInterrupt


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def make_client(sleep):
    def _make(routes=None, **kwargs):
        session = FakeSession(routes)
        kwargs.setdefault('sleep', sleep)
        client = RequestClient(site_url=SITE_URL, session=session, **kwargs)
        return client, session
    return _make
