import json
import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379")
os.environ.pop("GEMINI_API_KEY", None)

from osm_smart.config import Config, reset_config  # noqa: E402
from osm_smart.providers.base import Provider, ProviderMetadata, ProviderNotAvailableError  # noqa: E402


class FakeRedis:
    """In-memory stand-in for the redis.asyncio hash commands the tile store uses."""

    def __init__(self, fail_with=None):
        self.store = {}
        self.fail_with = fail_with
        self.writes = []

    async def ping(self):
        return True

    async def hget(self, key, field):
        return self.store.get(key, {}).get(field)

    async def hset(self, key, field, value):
        if self.fail_with is not None:
            raise self.fail_with
        self.writes.append((key, field))
        self.store.setdefault(key, {})[field] = value
        return 1

    async def hdel(self, key, field):
        return 1 if self.store.get(key, {}).pop(field, None) is not None else 0

    async def hlen(self, key):
        return len(self.store.get(key, {}))

    async def aclose(self):
        return None


class FakeResponse:
    def __init__(self, status=200, body=None, text=None):
        self.status = status
        self._body = body
        self._text = text if text is not None else json.dumps(body)

    async def json(self, content_type=None):
        return json.loads(self._text)

    async def text(self):
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    """Minimal aiohttp.ClientSession: hands out one canned response, or raises error."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def request(self, method, url, timeout=None, **kwargs):
        self.calls.append({"method": method, "url": url, "timeout": timeout, **kwargs})
        if self.error is not None:
            raise self.error
        return self.response

    def get(self, url, timeout=None, **kwargs):
        return self.request("GET", url, timeout=timeout, **kwargs)


class FakeProvider(Provider):
    """Provider whose health check runs the real base logic against ping_error."""

    name = "fake"

    def __init__(self, ping_error=None):
        super().__init__()
        self.ping_error = ping_error

    def get_metadata(self):
        return ProviderMetadata(name=self.name, version="test", description="fake", capabilities=[])

    async def ping(self):
        if self.ping_error is not None:
            raise self.ping_error


class FakeOverpass(FakeProvider):
    """Records queries and returns canned Overpass payloads (or raises)."""

    name = "overpass"

    def __init__(self, response=None, error=None, ping_error=None):
        super().__init__(ping_error)
        self.response = response if response is not None else {"version": 0.6, "elements": []}
        self.error = error
        self.calls = []

    async def fetch(self, query, timeout):
        self.calls.append((query, timeout))
        if self.error is not None:
            raise self.error
        return self.response


class FakeGemini(FakeProvider):
    name = "gemini"

    def __init__(self, answer="No answer.", api_key="test-key", error=None, ping_error=None):
        super().__init__(ping_error)
        self.answer = answer
        self.api_key = api_key
        self.error = error
        self.prompts = []

    @property
    def enabled(self):
        return bool(self.api_key)

    async def generate(self, text):
        if not self.api_key:
            raise ProviderNotAvailableError("Missing Gemini API key", "gemini")
        self.prompts.append(text)
        if self.error is not None:
            raise self.error
        return {"candidates": [{"content": {"parts": [{"text": self.answer}]}}]}

    async def list_models(self):
        if not self.api_key:
            raise ProviderNotAvailableError("Missing Gemini API key", "gemini")
        return {"models": [{"name": "models/gemini-1.5-pro-002"}]}

    async def ping(self):
        await self.list_models()
        await super().ping()


class FakeNominatim(FakeProvider):
    name = "nominatim"

    def __init__(self, results=None, ping_error=None):
        super().__init__(ping_error)
        self.results = results or []
        self.queries = []

    async def search(self, query):
        self.queries.append(query)
        return self.results if len(query.strip()) >= 3 else []


@pytest.fixture
def config(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    reset_config()
    cfg = Config()
    yield cfg
    reset_config()


@pytest.fixture
def fake_redis():
    return FakeRedis()
