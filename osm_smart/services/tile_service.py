"""
Resolve a spatial query to a processed, cached element set.

``TileQuery`` parses the request parameters into one of four shapes (tile,
bbox, radius, ring) and knows its cache key, its Overpass query and the
timeout for that shape. ``TileService`` checks the cache, fetches on a miss,
applies the size guards, post-processes and stores.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ..config import Config, get_config
from ..providers.base import PayloadTooLargeError
from ..providers.overpass_provider import (
    OverpassProvider,
    build_bbox_query,
    build_radius_query,
    build_ring_query,
)
from ..src.osm_processing import process_osm_data
from ..utils.cache_keys import BBoxKey, CacheKey, RadiusKey, RingKey, TileKey
from ..utils.geometry import BoundingBox
from .tile_store import TileStore

logger = logging.getLogger(__name__)

TILE = "tile"
BBOX = "bbox"
RADIUS = "radius"
RING = "ring"


class InvalidQueryError(ValueError):
    """Missing or unusable query parameters."""
    status = 400


def _parse_number(args: Mapping[str, Any], name: str) -> Optional[float]:
    raw = args.get(name)
    if raw is None or str(raw).strip() == "":
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise InvalidQueryError(f"Invalid number for {name}: {raw}")
    if value != value or value in (float("inf"), float("-inf")):
        raise InvalidQueryError(f"Invalid number for {name}: {raw}")
    return value


def _whole_meters(value: Optional[float]) -> Optional[int]:
    """Radii are keyed and queried in whole meters; validate them the same way."""
    return None if value is None else int(round(value))


def _check_point(lat: float, lng: float) -> None:
    if not -90.0 <= lat <= 90.0 or not -180.0 <= lng <= 180.0:
        raise InvalidQueryError(f"Coordinates out of range: {lat},{lng}")


@dataclass(frozen=True)
class TileQuery:
    """One parsed tile request."""
    kind: str
    bbox: BoundingBox
    lat: Optional[float] = None
    lng: Optional[float] = None
    radius: Optional[float] = None
    inner_radius: Optional[float] = None
    zoom: int = 17

    @classmethod
    def from_args(cls, args: Mapping[str, Any], config: Optional[Config] = None) -> "TileQuery":
        """Build a query from request arguments.

        A complete ``minLat,minLng,maxLat,maxLng`` set wins; otherwise ``lat,lng``
        is required, with an optional ``radius`` and ``innerRadius``.

        Raises:
            InvalidQueryError: For missing, non-numeric or inconsistent values
        """
        config = config or get_config()
        zoom = config.overpass_config.zoom

        corners = [_parse_number(args, name) for name in ("minLat", "minLng", "maxLat", "maxLng")]
        if all(value is not None for value in corners):
            bbox = BoundingBox(*corners)
            if not bbox.is_valid:
                raise InvalidQueryError("Bounding box is inverted or out of range")
            return cls(BBOX, bbox, zoom=zoom)

        lat = _parse_number(args, "lat")
        lng = _parse_number(args, "lng")
        if lat is None or lng is None:
            raise InvalidQueryError("Missing or invalid lat/lng or bounding box")
        _check_point(lat, lng)

        radius = _whole_meters(_parse_number(args, "radius"))
        inner_radius = _whole_meters(_parse_number(args, "innerRadius"))
        if radius is None:
            if inner_radius is not None:
                raise InvalidQueryError("innerRadius requires radius")
            bbox = BoundingBox.around(lat, lng, config.overpass_config.tile_delta)
            return cls(TILE, bbox, lat=lat, lng=lng, zoom=zoom)

        if radius <= 0:
            raise InvalidQueryError("radius must be positive")
        bbox = BoundingBox.from_radius(lat, lng, radius)
        if inner_radius is None or inner_radius == 0:
            return cls(RADIUS, bbox, lat=lat, lng=lng, radius=radius, zoom=zoom)
        if inner_radius < 0 or inner_radius >= radius:
            raise InvalidQueryError("innerRadius must be between 0 and radius")
        return cls(RING, bbox, lat=lat, lng=lng, radius=radius, inner_radius=inner_radius, zoom=zoom)

    @property
    def cache_key(self) -> CacheKey:
        if self.kind == BBOX:
            b = self.bbox
            return BBoxKey(b.min_lat, b.min_lng, b.max_lat, b.max_lng, self.zoom)
        if self.kind == RADIUS:
            return RadiusKey(self.lat, self.lng, self.radius)
        if self.kind == RING:
            return RingKey(self.lat, self.lng, self.radius, self.inner_radius)
        return TileKey(self.lat, self.lng, self.zoom)

    @property
    def center_mode(self) -> bool:
        """Radius and ring queries use ``out center``."""
        return self.kind in (RADIUS, RING)

    def timeout(self, config: Config) -> float:
        if self.kind == RING:
            return config.timeout_config.ring
        if self.kind == RADIUS:
            return config.timeout_config.radius
        return config.timeout_config.bbox

    def to_overpass(self, config: Config) -> str:
        """Overpass QL for this shape, with a server timeout equal to the fetch timeout."""
        timeout = int(self.timeout(config))
        if self.kind == RING:
            return build_ring_query(self.lat, self.lng, self.radius, self.inner_radius, timeout)
        if self.kind == RADIUS:
            return build_radius_query(self.lat, self.lng, self.radius, timeout)
        return build_bbox_query(self.bbox, timeout, config.overpass_config.include_relations)


@dataclass
class TileResult:
    payload: str
    cache_hit: bool
    key: str


class TileService:
    """Cache-first tile resolution."""

    def __init__(self, store: TileStore, overpass: OverpassProvider, config: Optional[Config] = None):
        self.store = store
        self.overpass = overpass
        self.config = config or get_config()

    async def resolve(self, query: TileQuery) -> TileResult:
        """Return the payload for query, fetching and caching it on a miss.

        Raises:
            CacheStoreError: The cache could not be read or written
            PayloadTooLargeError: Raw element count or processed size over the guards
            ProviderError: Any Overpass failure
        """
        key = query.cache_key.id
        cached = await self.store.get(key)
        if cached is not None:
            logger.info(f"[TILE] cache hit {key}")
            return TileResult(cached, True, key)

        logger.info(f"[TILE] cache miss {key}, querying Overpass")
        guards = self.config.overpass_config
        raw = await self.overpass.fetch(query.to_overpass(self.config), query.timeout(self.config))

        raw_count = len(raw.get("elements") or [])
        if raw_count > guards.max_raw_elements:
            logger.warning(f"[TILE] {key}: {raw_count} raw elements exceeds {guards.max_raw_elements}")
            raise PayloadTooLargeError(
                "Too many elements in this area; narrow the search",
                "overpass",
                details={"elements": raw_count},
            )

        processed = process_osm_data(raw, center_mode=query.center_mode)
        payload = json.dumps(processed)
        size = len(payload.encode("utf-8"))
        if size > guards.max_payload_bytes:
            logger.warning(f"[TILE] {key}: payload {size} bytes exceeds {guards.max_payload_bytes}")
            raise PayloadTooLargeError(
                "Response too large; narrow the search",
                "overpass",
                details={"bytes": size},
            )

        await self.store.put(key, payload)
        logger.info(f"[TILE] stored {key}: {len(processed['elements'])} elements, {size} bytes")
        return TileResult(payload, False, key)
