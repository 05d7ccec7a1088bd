import json

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError, ResponseError

from conftest import FakeOverpass, FakeRedis
from osm_smart.providers.base import PayloadTooLargeError
from osm_smart.services.tile_service import InvalidQueryError, TileQuery, TileService
from osm_smart.services.tile_store import CacheStoreError, TileStore


def _service(config, response=None, redis=None):
    redis = redis or FakeRedis()
    overpass = FakeOverpass(response)
    store = TileStore(redis, config.redis_config.tiles_key)
    return TileService(store, overpass, config), redis, overpass


def test_point_query_uses_fixed_delta_bbox(config):
    query = TileQuery.from_args({"lat": "47.3769", "lng": "8.5417"}, config)
    assert query.kind == "tile"
    assert query.cache_key.id == "tile_47.37690_8.54170_z17"
    assert query.bbox.max_lat - query.bbox.min_lat == pytest.approx(0.004)
    text = query.to_overpass(config)
    assert text.startswith("[out:json][timeout:15];")
    assert "out;" in text
    assert query.timeout(config) == 15.0


def test_bbox_wins_over_point(config):
    args = {"lat": "1", "lng": "1", "minLat": "47.1", "minLng": "8.2", "maxLat": "47.3", "maxLng": "8.4"}
    query = TileQuery.from_args(args, config)
    assert query.kind == "bbox"
    assert query.cache_key.id == "bbox_47.10000_8.20000_47.30000_8.40000_z17"


def test_radius_and_ring_queries(config):
    radius = TileQuery.from_args({"lat": "47.3769", "lng": "8.5417", "radius": "25"}, config)
    assert radius.kind == "radius"
    assert radius.center_mode
    assert "nwr(around:25,47.3769,8.5417);" in radius.to_overpass(config)
    assert "[timeout:25]" in radius.to_overpass(config)

    ring = TileQuery.from_args({"lat": "47.3769", "lng": "8.5417", "radius": "150", "innerRadius": "100"}, config)
    assert ring.kind == "ring"
    assert ring.cache_key.id == "ring_47.37690_8.54170_r100-150"
    text = ring.to_overpass(config)
    assert "[timeout:35]" in text
    assert "nwr(around:150,47.3769,8.5417);" in text
    assert "- nwr(around:100,47.3769,8.5417);" in text
    assert text.endswith("out center;")


def test_zero_inner_radius_is_a_radius_query(config):
    query = TileQuery.from_args({"lat": "47", "lng": "8", "radius": "100", "innerRadius": "0"}, config)
    assert query.kind == "radius"


def test_fractional_radii_are_rounded_before_validation(config):
    query = TileQuery.from_args({"lat": "47", "lng": "8", "radius": "100", "innerRadius": "0.3"}, config)
    assert query.kind == "radius"
    assert query.cache_key.id == "radius_47.00000_8.00000_r100"
    assert "- nwr" not in query.to_overpass(config)

    ring = TileQuery.from_args({"lat": "47", "lng": "8", "radius": "149.6", "innerRadius": "99.5"}, config)
    assert ring.kind == "ring"
    assert ring.cache_key.id == "ring_47.00000_8.00000_r100-150"
    assert "- nwr(around:100,47.0,8.0);" in ring.to_overpass(config)


@pytest.mark.parametrize("args", [
    {},
    {"lat": "47.3"},
    {"lat": "abc", "lng": "8"},
    {"lat": "95", "lng": "8"},
    {"lat": "47", "lng": "8", "radius": "-5"},
    {"lat": "47", "lng": "8", "radius": "100", "innerRadius": "100"},
    {"lat": "47", "lng": "8", "radius": "0.4"},
    {"lat": "47", "lng": "8", "radius": "100", "innerRadius": "99.7"},
    {"lat": "47", "lng": "8", "innerRadius": "10"},
    {"minLat": "47.3", "minLng": "8.2", "maxLat": "47.1", "maxLng": "8.4"},
])
def test_invalid_queries(config, args):
    with pytest.raises(InvalidQueryError):
        TileQuery.from_args(args, config)


@pytest.mark.asyncio
async def test_miss_then_hit_fetches_once(config):
    response = {"version": 0.6, "elements": [{"id": 5}, {"type": "node", "id": 1, "lat": 47.37, "lon": 8.54}]}
    service, redis, overpass = _service(config, response)
    query = TileQuery.from_args({"lat": "47.3769", "lng": "8.5417"}, config)

    first = await service.resolve(query)
    second = await service.resolve(query)

    assert not first.cache_hit
    assert second.cache_hit
    assert len(overpass.calls) == 1
    assert redis.writes == [("tiles", "tile_47.37690_8.54170_z17")]
    assert second.payload == first.payload
    assert json.loads(first.payload)["elements"] == [{"type": "node", "id": 1, "lat": 47.37, "lon": 8.54}]


@pytest.mark.asyncio
async def test_cached_payload_returned_verbatim(config):
    service, redis, overpass = _service(config)
    redis.store["tiles"] = {"tile_47.37690_8.54170_z17": '{"elements": [], "cached": true}'}
    result = await service.resolve(TileQuery.from_args({"lat": "47.3769", "lng": "8.5417"}, config))
    assert result.payload == '{"elements": [], "cached": true}'
    assert overpass.calls == []


@pytest.mark.asyncio
async def test_raw_element_guard(config):
    config.overpass_config.max_raw_elements = 2
    response = {"elements": [{"type": "node", "id": i, "lat": 0, "lon": 0} for i in range(3)]}
    service, redis, _ = _service(config, response)
    with pytest.raises(PayloadTooLargeError) as exc:
        await service.resolve(TileQuery.from_args({"lat": "1", "lng": "1"}, config))
    assert exc.value.status == 413
    assert redis.writes == []


@pytest.mark.asyncio
async def test_payload_size_guard(config):
    config.overpass_config.max_payload_bytes = 100
    response = {"elements": [{"type": "node", "id": 1, "lat": 0, "lon": 0, "tags": {"name": "x" * 200}}]}
    service, redis, _ = _service(config, response)
    with pytest.raises(PayloadTooLargeError):
        await service.resolve(TileQuery.from_args({"lat": "1", "lng": "1"}, config))
    assert redis.writes == []


@pytest.mark.asyncio
async def test_out_of_memory_store_is_distinguishable(config):
    redis = FakeRedis(fail_with=ResponseError("OOM command not allowed when used memory > 'maxmemory'."))
    service, _, _ = _service(config, redis=redis)
    with pytest.raises(CacheStoreError) as exc:
        await service.resolve(TileQuery.from_args({"lat": "1", "lng": "1"}, config))
    assert exc.value.is_oom
    assert exc.value.status == 413


@pytest.mark.asyncio
async def test_other_store_failures_are_500(config):
    redis = FakeRedis(fail_with=RedisConnectionError("connection refused"))
    service, _, _ = _service(config, redis=redis)
    with pytest.raises(CacheStoreError) as exc:
        await service.resolve(TileQuery.from_args({"lat": "1", "lng": "1"}, config))
    assert not exc.value.is_oom
    assert exc.value.status == 500
