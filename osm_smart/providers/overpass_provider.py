"""Overpass provider: query builder and fetch.

Builds Overpass QL for the three query shapes the tile endpoint serves and
posts it to the interpreter. Each query carries a server-side ``[timeout:N]``
equal to the client timeout used for its shape, so Overpass gives up at the
same moment the fetch would.
"""
from typing import Optional, Dict, Any

import aiohttp

from .base import Provider, ProviderMetadata, UpstreamError
from .utils import get_session, request_json
from ..config import Config, get_config
from ..utils.geometry import BoundingBox


def build_bbox_query(bbox: BoundingBox, timeout: int = 15, include_relations: bool = False) -> str:
    """Nodes and ways inside a box; relations with full member geometry when asked."""
    bbox_str = bbox.to_overpass()
    if include_relations:
        return (
            f"[out:json][timeout:{timeout}];\n"
            f"(\n"
            f"  node({bbox_str});\n"
            f"  way({bbox_str});\n"
            f"  relation({bbox_str});\n"
            f");\n"
            f"(._;>;);\n"
            f"out geom;"
        )
    return (
        f"[out:json][timeout:{timeout}];\n"
        f"(\n"
        f"  node({bbox_str});\n"
        f"  way({bbox_str});\n"
        f");\n"
        f"out;"
    )


def _around(radius: float, lat: float, lng: float) -> str:
    return f"(around:{int(round(radius))},{lat},{lng})"


def build_radius_query(lat: float, lng: float, radius: float, timeout: int = 25) -> str:
    """Everything within radius meters, centre-only geometry to keep payloads small."""
    return (
        f"[out:json][timeout:{timeout}];\n"
        f"nwr{_around(radius, lat, lng)};\n"
        f"out center;"
    )


def build_ring_query(lat: float, lng: float, radius: float, inner_radius: float, timeout: int = 35) -> str:
    """Only the annulus between inner_radius and radius: outer disc minus inner disc."""
    return (
        f"[out:json][timeout:{timeout}];\n"
        f"(\n"
        f"  nwr{_around(radius, lat, lng)};\n"
        f"  - nwr{_around(inner_radius, lat, lng)};\n"
        f");\n"
        f"out center;"
    )


class OverpassProvider(Provider):
    """Fetches raw Overpass JSON for a prepared query."""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None, config: Optional[Config] = None):
        super().__init__(session)
        self.config = config or get_config()
        self.url = self.config.overpass_config.url

    def get_metadata(self) -> ProviderMetadata:
        return ProviderMetadata(
            name="overpass",
            version="0.7",
            description="OpenStreetMap Overpass API",
            capabilities=["bbox", "radius", "ring"],
        )

    async def fetch(self, query: str, timeout: float) -> Dict[str, Any]:
        """Run an Overpass QL query.

        Args:
            query: Overpass QL text
            timeout: Client-side timeout in seconds

        Returns:
            Decoded Overpass JSON (``{"elements": [...], ...}``)

        Raises:
            ProviderRateLimitError: Overpass answered 429
            ProviderTimeoutError: The request did not finish within ``timeout``
            UpstreamError: Any other failure
        """
        self.logger.debug(f"[OVERPASS] query ({timeout}s): {query!r}")
        data = await request_json(
            "POST",
            self.url,
            "overpass",
            timeout,
            session=self.session,
            data={"data": query},
        )
        if not isinstance(data, dict):
            raise UpstreamError("Overpass returned an unexpected payload", "overpass")
        self.logger.info(f"[OVERPASS] received {len(data.get('elements') or [])} elements")
        return data

    async def ping(self) -> None:
        status_url = self.url.rsplit("/", 1)[0] + "/status"
        timeout = aiohttp.ClientTimeout(total=self.config.timeout_config.geo)
        async with get_session(self.session) as session:
            async with session.get(status_url, timeout=timeout) as resp:
                if resp.status >= 400:
                    raise UpstreamError(f"Overpass status {resp.status}", "overpass")
