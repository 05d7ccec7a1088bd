"""
Coordinate math for map-ready points.

Web-Mercator slippy-map tile conversions, bounding boxes, way and relation
centroids and a rough ground-area estimate for a block of tiles. No I/O.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

# Closed-polygon detection and degenerate-area guard, in degrees
CLOSED_TOLERANCE = 1e-4
MIN_POLYGON_AREA = 1e-6

EARTH_RADIUS_M = 6371000.0
METERS_PER_DEG_LAT = 111320.0


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lon: float

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lon": self.lon}


@dataclass(frozen=True)
class TileCoords:
    xtile: int
    ytile: int


TileBounds = Tuple[Tuple[float, float], Tuple[float, float]]


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned lat/lng box.

    Only used as a cache-key and upstream-query input, never persisted.
    """
    min_lat: float
    min_lng: float
    max_lat: float
    max_lng: float

    @classmethod
    def around(cls, lat: float, lng: float, delta: float) -> "BoundingBox":
        """Fixed-delta box centred on a point."""
        return cls(lat - delta, lng - delta, lat + delta, lng + delta)

    @classmethod
    def from_radius(cls, lat: float, lng: float, radius_m: float) -> "BoundingBox":
        """Approximate the box enclosing a circle of radius_m meters."""
        dlat = radius_m / METERS_PER_DEG_LAT
        cos_lat = math.cos(math.radians(lat))
        dlng = radius_m / (METERS_PER_DEG_LAT * max(cos_lat, 1e-12))
        return cls(lat - dlat, lng - dlng, lat + dlat, lng + dlng)

    @property
    def is_valid(self) -> bool:
        return (
            -90.0 <= self.min_lat <= self.max_lat <= 90.0
            and -180.0 <= self.min_lng <= self.max_lng <= 180.0
        )

    def contains(self, lat: float, lng: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lng <= lng <= self.max_lng

    def to_overpass(self) -> str:
        """Overpass (south,west,north,east) order."""
        return f"{self.min_lat},{self.min_lng},{self.max_lat},{self.max_lng}"


def lat_lng_to_tile(lat: float, lng: float, zoom: int) -> TileCoords:
    """Convert latitude/longitude to slippy-map tile indices."""
    n = 2 ** zoom
    lat_rad = math.radians(lat)
    xtile = math.floor((lng + 180.0) / 360.0 * n)
    ytile = math.floor((1.0 - math.log(math.tan(lat_rad) + 1.0 / math.cos(lat_rad)) / math.pi) / 2.0 * n)
    return TileCoords(xtile, ytile)


def get_tile_bounds_xy(xtile: int, ytile: int, zoom: int) -> TileBounds:
    """Return ((lat1, lng1), (lat2, lng2)) of a tile: north-west then south-east corner."""
    n = 2 ** zoom
    lon1 = xtile / n * 360.0 - 180.0
    lat1 = math.degrees(math.atan(math.sinh(math.pi * (1 - 2 * ytile / n))))
    lon2 = (xtile + 1) / n * 360.0 - 180.0
    lat2 = math.degrees(math.atan(math.sinh(math.pi * (1 - 2 * (ytile + 1) / n))))
    return ((lat1, lon1), (lat2, lon2))


def calculate_tile_bounds(lat: float, lng: float, grid_size: int, zoom: int) -> BoundingBox:
    """Bounding box of a grid_size x grid_size block of tiles centred on the point's tile.

    Args:
        lat: Centre latitude
        lng: Centre longitude
        grid_size: Odd number of tiles per side
        zoom: Tile zoom level

    Returns:
        BoundingBox covering every tile of the grid
    """
    centre = lat_lng_to_tile(lat, lng, zoom)
    half = grid_size // 2
    min_lat, max_lat, min_lng, max_lng = 90.0, -90.0, 180.0, -180.0
    for dx in range(-half, half + 1):
        for dy in range(-half, half + 1):
            (lat1, lng1), (lat2, lng2) = get_tile_bounds_xy(centre.xtile + dx, centre.ytile + dy, zoom)
            min_lat = min(min_lat, lat1, lat2)
            max_lat = max(max_lat, lat1, lat2)
            min_lng = min(min_lng, lng1, lng2)
            max_lng = max(max_lng, lng1, lng2)
    return BoundingBox(min_lat, min_lng, max_lat, max_lng)


def _mean(coords: List[Dict[str, float]]) -> Coordinate:
    lat = sum(c["lat"] for c in coords) / len(coords)
    lon = sum(c["lon"] for c in coords) / len(coords)
    return Coordinate(lat, lon)


def is_closed(coords: List[Dict[str, float]]) -> bool:
    first, last = coords[0], coords[-1]
    return (
        abs(first["lat"] - last["lat"]) < CLOSED_TOLERANCE
        and abs(first["lon"] - last["lon"]) < CLOSED_TOLERANCE
    )


def get_way_center(node_coords: Optional[List[Dict[str, float]]]) -> Optional[Coordinate]:
    """Compute the centre of a way from its resolved node coordinates.

    Small or open shapes get the arithmetic mean. Closed polygons with four or
    more points get the area-weighted shoelace centroid, falling back to the
    mean when the signed area is too small to divide by.

    Args:
        node_coords: List of {"lat", "lon"} dicts in way order

    Returns:
        Coordinate, or None for empty input
    """
    if not node_coords:
        return None

    if len(node_coords) <= 3 or not is_closed(node_coords):
        return _mean(node_coords)

    area = 0.0
    centroid_lat = 0.0
    centroid_lon = 0.0
    for curr, nxt in zip(node_coords, node_coords[1:]):
        cross = curr["lon"] * nxt["lat"] - nxt["lon"] * curr["lat"]
        area += cross
        centroid_lat += (curr["lat"] + nxt["lat"]) * cross
        centroid_lon += (curr["lon"] + nxt["lon"]) * cross
    area /= 2.0

    if abs(area) < MIN_POLYGON_AREA:
        return _mean(node_coords)

    return Coordinate(centroid_lat / (6.0 * area), centroid_lon / (6.0 * area))


def _points_from(items: Optional[Iterable[Any]]) -> List[Dict[str, float]]:
    points = []
    for item in items or []:
        if isinstance(item, dict) and item.get("lat") is not None and item.get("lon") is not None:
            points.append({"lat": float(item["lat"]), "lon": float(item["lon"])})
    return points


def calculate_relation_centroid(relation: Dict[str, Any]) -> Optional[Coordinate]:
    """Average every coordinate a relation carries.

    Sources are the relation's own ``geometry`` list, each member's
    ``geometry`` list and each member's own ``lat``/``lon`` point.
    """
    points = _points_from(relation.get("geometry"))
    for member in relation.get("members") or []:
        if not isinstance(member, dict):
            continue
        points.extend(_points_from(member.get("geometry")))
        points.extend(_points_from([member]))
    if not points:
        return None
    return _mean(points)


def meters_per_degree(lat: float) -> Tuple[float, float]:
    """WGS84 (meters per degree latitude, meters per degree longitude) at lat."""
    lat_rad = math.radians(lat)
    per_lat = 111132.92 - 559.82 * math.cos(2 * lat_rad) + 1.175 * math.cos(4 * lat_rad)
    per_lon = 111412.84 * math.cos(lat_rad) - 93.5 * math.cos(3 * lat_rad)
    return per_lat, per_lon


def tile_area_sq_meters(zoom: int, lat: float, tile_count: int) -> float:
    """Estimate the ground area in m² covered by tile_count tiles at zoom around lat."""
    if tile_count <= 0:
        return 0.0
    tile_width_deg = 360.0 / 2 ** zoom
    tile_height_deg = 180.0 / 2 ** (zoom - 1)
    per_lat, per_lon = meters_per_degree(lat)
    area_per_tile = (tile_width_deg * per_lon) * (tile_height_deg * per_lat)
    return area_per_tile * tile_count


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(a))
