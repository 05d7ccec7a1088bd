"""
Nominatim address search used to pick a search centre by name.
"""

from typing import Optional, List, Dict, Any

import aiohttp

from .base import Provider, ProviderMetadata, UpstreamError
from .utils import request_json
from ..config import Config, get_config

MIN_QUERY_LENGTH = 3


class NominatimProvider(Provider):

    def __init__(self, session: Optional[aiohttp.ClientSession] = None, config: Optional[Config] = None):
        super().__init__(session)
        self.config = config or get_config()
        self.url = self.config.nominatim_config.url
        self.user_agent = self.config.nominatim_config.user_agent
        self.limit = self.config.nominatim_config.limit

    def get_metadata(self) -> ProviderMetadata:
        return ProviderMetadata(
            name="nominatim",
            version="1",
            description="OpenStreetMap Nominatim geocoder",
            capabilities=["address_search"],
            rate_limit=60,
        )

    async def search(self, query: str) -> List[Dict[str, Any]]:
        """Search addresses matching query.

        Queries shorter than three characters return an empty list without
        touching the network.

        Returns:
            List of ``{"display_name", "lat", "lon", "type", "address", ...}`` dicts
            with lat/lon converted to floats
        """
        query = (query or "").strip()
        if len(query) < MIN_QUERY_LENGTH:
            return []

        params = {
            "format": "json",
            "q": query,
            "limit": str(self.limit),
            "addressdetails": "1",
            "extratags": "1",
        }
        data = await request_json(
            "GET",
            self.url,
            "nominatim",
            self.config.timeout_config.geo,
            session=self.session,
            params=params,
            headers={"User-Agent": self.user_agent, "Accept-Language": "en"},
        )
        if not isinstance(data, list):
            raise UpstreamError("Nominatim returned an unexpected payload", "nominatim")

        results = []
        for item in data:
            try:
                lat = float(item["lat"])
                lon = float(item["lon"])
            except (KeyError, TypeError, ValueError):
                continue
            results.append({
                "display_name": item.get("display_name", ""),
                "lat": lat,
                "lon": lon,
                "type": item.get("type"),
                "class": item.get("class"),
                "address": item.get("address") or {},
                "extratags": item.get("extratags") or {},
            })
        self.logger.info(f"[NOMINATIM] {len(results)} results for {query!r}")
        return results

    async def ping(self) -> None:
        await self.search("Zurich")
