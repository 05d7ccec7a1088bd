import asyncio

import pytest

from conftest import FakeResponse, FakeSession
from osm_smart.providers.base import (
    ProviderNotAvailableError,
    ProviderRateLimitError,
    ProviderStatus,
    ProviderTimeoutError,
    UpstreamError,
)
from osm_smart.providers.gemini_provider import NO_ANSWER, GeminiProvider, extract_answer
from osm_smart.providers.nominatim_provider import NominatimProvider
from osm_smart.providers.overpass_provider import (
    OverpassProvider,
    build_bbox_query,
    build_radius_query,
    build_ring_query,
)
from osm_smart.utils.geometry import BoundingBox


def test_bbox_query_shapes():
    bbox = BoundingBox(47.1, 8.2, 47.3, 8.4)
    plain = build_bbox_query(bbox, 15)
    assert plain.startswith("[out:json][timeout:15];")
    assert "node(47.1,8.2,47.3,8.4);" in plain
    assert "way(47.1,8.2,47.3,8.4);" in plain
    assert "relation" not in plain
    assert plain.endswith("out;")

    full = build_bbox_query(bbox, 15, include_relations=True)
    assert "relation(47.1,8.2,47.3,8.4);" in full
    assert "(._;>;);" in full
    assert full.endswith("out geom;")


def test_radius_and_ring_query_shapes():
    radius = build_radius_query(47.0, 8.0, 25.4, 25)
    assert radius == "[out:json][timeout:25];\nnwr(around:25,47.0,8.0);\nout center;"
    ring = build_ring_query(47.0, 8.0, 150, 100, 35)
    assert ring.startswith("[out:json][timeout:35];")
    assert ring.index("nwr(around:150") < ring.index("- nwr(around:100")


@pytest.mark.asyncio
async def test_overpass_fetch_posts_query(config):
    session = FakeSession(FakeResponse(body={"elements": [{"type": "node", "id": 1}]}))
    provider = OverpassProvider(session=session, config=config)
    data = await provider.fetch("[out:json];node(1,2,3,4);out;", 15)
    assert data["elements"][0]["id"] == 1
    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == config.overpass_config.url
    assert call["data"] == {"data": "[out:json];node(1,2,3,4);out;"}
    assert call["timeout"].total == 15


@pytest.mark.asyncio
async def test_overpass_rate_limit(config):
    provider = OverpassProvider(session=FakeSession(FakeResponse(429, text="Too Many Requests")), config=config)
    with pytest.raises(ProviderRateLimitError) as exc:
        await provider.fetch("q", 15)
    assert exc.value.status == 429


@pytest.mark.asyncio
async def test_overpass_upstream_error_and_bad_json(config):
    provider = OverpassProvider(session=FakeSession(FakeResponse(500, text="oops")), config=config)
    with pytest.raises(UpstreamError) as exc:
        await provider.fetch("q", 15)
    assert exc.value.details == {"status": 500}
    assert exc.value.status == 502

    provider = OverpassProvider(session=FakeSession(FakeResponse(200, text="<html>busy</html>")), config=config)
    with pytest.raises(UpstreamError):
        await provider.fetch("q", 15)


@pytest.mark.asyncio
async def test_overpass_gateway_timeout_is_an_upstream_error(config):
    provider = OverpassProvider(session=FakeSession(FakeResponse(504, text="Gateway Timeout")), config=config)
    with pytest.raises(UpstreamError) as exc:
        await provider.fetch("q", 15)
    assert exc.value.status == 502
    assert exc.value.details == {"status": 504}


@pytest.mark.asyncio
async def test_overpass_client_timeout_is_408(config):
    provider = OverpassProvider(session=FakeSession(error=asyncio.TimeoutError()), config=config)
    with pytest.raises(ProviderTimeoutError) as exc:
        await provider.fetch("q", 15)
    assert exc.value.status == 408


@pytest.mark.asyncio
async def test_overpass_health_check(config):
    session = FakeSession(FakeResponse(200, text="Connected as: 1"))
    health = await OverpassProvider(session=session, config=config).health_check()
    assert health.is_healthy
    assert health.message == "Provider overpass is healthy"
    assert session.calls[0]["url"] == config.overpass_config.url.rsplit("/", 1)[0] + "/status"

    health = await OverpassProvider(session=FakeSession(error=asyncio.TimeoutError()), config=config).health_check()
    assert health.status is ProviderStatus.UNHEALTHY
    assert health.to_dict()["healthy"] is False

@pytest.mark.asyncio
async def test_gemini_requires_key(config):
    provider = GeminiProvider(session=FakeSession(FakeResponse(body={})), config=config)
    assert not provider.enabled
    with pytest.raises(ProviderNotAvailableError) as exc:
        await provider.generate("hello")
    assert exc.value.status == 500
    health = await provider.health_check()
    assert health.status is ProviderStatus.UNKNOWN


@pytest.mark.asyncio
async def test_gemini_generate_payload(config):
    config.gemini_config.api_key = "secret"
    body = {"candidates": [{"content": {"parts": [{"text": "Hi there"}]}}]}
    session = FakeSession(FakeResponse(body=body))
    provider = GeminiProvider(session=session, config=config)
    data = await provider.generate("hello")
    assert extract_answer(data) == "Hi there"
    call = session.calls[0]
    assert call["url"].endswith("/models/gemini-1.5-pro-002:generateContent")
    assert call["params"] == {"key": "secret"}
    assert call["json"] == {"contents": [{"parts": [{"text": "hello"}]}]}


def test_extract_answer_fallback():
    assert extract_answer({}) == NO_ANSWER
    assert extract_answer({"candidates": []}) == NO_ANSWER
    assert extract_answer(None) == NO_ANSWER


@pytest.mark.asyncio
async def test_nominatim_short_query_skips_request(config):
    session = FakeSession(FakeResponse(body=[]))
    provider = NominatimProvider(session=session, config=config)
    assert await provider.search("Zu") == []
    assert session.calls == []


@pytest.mark.asyncio
async def test_nominatim_normalizes_results(config):
    body = [
        {"display_name": "Zürich, Schweiz", "lat": "47.3744489", "lon": "8.5410422", "type": "city", "class": "place"},
        {"display_name": "broken", "lat": None, "lon": "8"},
    ]
    session = FakeSession(FakeResponse(body=body))
    provider = NominatimProvider(session=session, config=config)
    results = await provider.search("Zurich")
    assert results == [{
        "display_name": "Zürich, Schweiz",
        "lat": 47.3744489,
        "lon": 8.5410422,
        "type": "city",
        "class": "place",
        "address": {},
        "extratags": {},
    }]
    call = session.calls[0]
    assert call["params"]["q"] == "Zurich"
    assert call["params"]["limit"] == "5"
    assert call["headers"]["User-Agent"].startswith("OSMSmart/")
