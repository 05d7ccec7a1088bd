"""
Cache key derivation for the tile cache.

Every query shape is its own frozen dataclass and renders an id with its own
prefix, so a bbox key can never collide with a radius or ring key. Coordinates
are rounded to 5 decimals (about 1.1m) and radii to whole meters, so repeated
identical queries land on the same row.
"""

from dataclasses import dataclass
from typing import Union


def _coord(value: float) -> str:
    return f"{value:.5f}"


def _meters(value: float) -> int:
    return int(round(value))


@dataclass(frozen=True)
class TileKey:
    """Point query served with a fixed-delta bbox."""
    lat: float
    lng: float
    zoom: int = 17

    @property
    def id(self) -> str:
        return f"tile_{_coord(self.lat)}_{_coord(self.lng)}_z{self.zoom}"


@dataclass(frozen=True)
class BBoxKey:
    min_lat: float
    min_lng: float
    max_lat: float
    max_lng: float
    zoom: int = 17

    @property
    def id(self) -> str:
        return (
            f"bbox_{_coord(self.min_lat)}_{_coord(self.min_lng)}_"
            f"{_coord(self.max_lat)}_{_coord(self.max_lng)}_z{self.zoom}"
        )


@dataclass(frozen=True)
class RadiusKey:
    lat: float
    lng: float
    radius: float

    @property
    def id(self) -> str:
        return f"radius_{_coord(self.lat)}_{_coord(self.lng)}_r{_meters(self.radius)}"


@dataclass(frozen=True)
class RingKey:
    lat: float
    lng: float
    radius: float
    inner_radius: float

    @property
    def id(self) -> str:
        return (
            f"ring_{_coord(self.lat)}_{_coord(self.lng)}_"
            f"r{_meters(self.inner_radius)}-{_meters(self.radius)}"
        )


CacheKey = Union[TileKey, BBoxKey, RadiusKey, RingKey]
