"""
Tile routes: cached Overpass element sets for a bbox, point, radius or ring
"""
from quart import Blueprint, Response, current_app, request

from osm_smart.providers.base import ProviderError
from osm_smart.services.tile_service import InvalidQueryError, TileQuery
from osm_smart.services.tile_store import CacheStoreError
from .utils import error_response, get_services

bp = Blueprint('tile', __name__)


@bp.route('/api/tile')
async def tile():
    """
    Query parameters: ``lat,lng[,radius[,innerRadius]]`` or ``minLat,minLng,maxLat,maxLng``.
    Body is the processed Overpass JSON; ``X-Cache`` says whether it came from the cache.
    """
    services = get_services()
    try:
        query = TileQuery.from_args(request.args, services.config)
        result = await services.tile_service.resolve(query)
    except InvalidQueryError as e:
        return error_response(str(e), 400)
    except CacheStoreError as e:
        return error_response("Database out of memory" if e.is_oom else "Database error", e.status)
    except ProviderError as e:
        current_app.logger.warning(f"[TILE] upstream failure ({e.status}): {e}")
        return error_response(str(e), e.status)
    except Exception:
        current_app.logger.exception('[TILE] tile request failed')
        return error_response("Internal Server Error", 500)

    return Response(
        result.payload,
        status=200,
        mimetype="application/json",
        headers={"X-Cache": "hit" if result.cache_hit else "miss"},
    )


def register(app):
    app.register_blueprint(bp)
