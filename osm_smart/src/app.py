"""
OSM Smart Quart application
"""

from dataclasses import dataclass, field
from typing import Optional

import aiohttp
from quart import Quart
from quart_cors import cors

from osm_smart.config import Config, get_config, setup_logging
from osm_smart.providers import GeminiProvider, NominatimProvider, OverpassProvider
from osm_smart.providers.utils import USER_AGENT
from osm_smart.services.summary_service import SummaryService
from osm_smart.services.tile_service import TileService
from osm_smart.services.tile_store import TileStore
from .routes import register_blueprints


@dataclass
class Services:
    """Everything the route handlers need, built once per app."""
    config: Config
    tile_store: TileStore
    overpass: OverpassProvider
    gemini: GeminiProvider
    nominatim: NominatimProvider
    tile_service: TileService
    summary_service: SummaryService
    session: Optional[aiohttp.ClientSession] = None
    owns_store: bool = False
    providers_without_session: list = field(default_factory=list)


def create_app(
    config: Optional[Config] = None,
    tile_store: Optional[TileStore] = None,
    overpass: Optional[OverpassProvider] = None,
    gemini: Optional[GeminiProvider] = None,
    nominatim: Optional[NominatimProvider] = None,
) -> Quart:
    """Build the application with its services.

    Anything passed in is used as is; the rest is built from config. Providers
    built here get the shared aiohttp session at startup.
    """
    config = config or get_config()
    setup_logging(config)

    app = Quart(__name__)
    app = cors(app, allow_origin=config.cors_origin, allow_methods=["GET", "POST", "DELETE", "OPTIONS"])

    owns_store = tile_store is None
    tile_store = tile_store or TileStore.from_config(config)
    built = []
    if overpass is None:
        overpass = OverpassProvider(config=config)
        built.append(overpass)
    if gemini is None:
        gemini = GeminiProvider(config=config)
        built.append(gemini)
    if nominatim is None:
        nominatim = NominatimProvider(config=config)
        built.append(nominatim)

    services = Services(
        config=config,
        tile_store=tile_store,
        overpass=overpass,
        gemini=gemini,
        nominatim=nominatim,
        tile_service=TileService(tile_store, overpass, config),
        summary_service=SummaryService(gemini),
        owns_store=owns_store,
        providers_without_session=built,
    )
    app.extensions["osm_smart"] = services

    @app.before_serving
    async def startup():
        services.session = aiohttp.ClientSession(headers={"User-Agent": USER_AGENT})
        for provider in services.providers_without_session:
            provider.session = services.session
        if await services.tile_store.ping():
            app.logger.info("Redis connected")
        else:
            app.logger.warning("Redis not reachable; tile requests will fail until it is")

    @app.after_serving
    async def shutdown():
        if services.session:
            await services.session.close()
            services.session = None
            for provider in services.providers_without_session:
                provider.session = None
        if services.owns_store:
            await services.tile_store.close()

    register_blueprints(app)
    return app


app = create_app()


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000)
