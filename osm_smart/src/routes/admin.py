"""
Admin routes: health check and tile cache purge
"""
import asyncio
import time

from quart import Blueprint, current_app, jsonify

from osm_smart.services.tile_store import CacheStoreError
from .utils import error_response, get_services

bp = Blueprint('admin', __name__)


@bp.route('/healthz')
async def healthz():
    """Component status, with a reachability check per upstream provider."""
    services = get_services()
    redis_ok = await services.tile_store.ping()
    tiles = None
    if redis_ok:
        try:
            tiles = await services.tile_store.count()
        except CacheStoreError:
            current_app.logger.exception('[ADMIN] tile count failed')
    providers = {"overpass": services.overpass, "gemini": services.gemini, "nominatim": services.nominatim}
    checks = await asyncio.gather(*(provider.health_check() for provider in providers.values()))
    return jsonify({
        'app': 'ok',
        'time': time.time(),
        'ready': services.session is not None,
        'redis': redis_ok,
        'tiles': tiles,
        'gemini': services.gemini.enabled,
        'overpass': services.config.overpass_config.url,
        'providers': {name: check.to_dict() for name, check in zip(providers, checks)},
    })


@bp.route('/admin/tiles/<tile_id>', methods=['DELETE'])
async def purge_tile(tile_id):
    """Drop one cached tile so the next request refetches it."""
    services = get_services()
    try:
        deleted = await services.tile_store.delete(tile_id)
    except CacheStoreError as e:
        return error_response(str(e), e.status)
    if not deleted:
        return error_response(f"Unknown tile {tile_id}", 404)
    current_app.logger.info(f"[ADMIN] purged {tile_id}")
    return jsonify({'id': tile_id, 'deleted': True})


def register(app):
    app.register_blueprint(bp)
