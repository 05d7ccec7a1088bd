"""
Address search route backed by Nominatim
"""
from quart import Blueprint, current_app, jsonify, request

from osm_smart.providers.base import ProviderError
from .utils import error_response, get_services

bp = Blueprint('geocode', __name__)


@bp.route('/api/address-search')
async def address_search():
    """Search addresses for ``?q=``; fewer than three characters returns no results."""
    services = get_services()
    query = request.args.get("q", "")
    try:
        results = await services.nominatim.search(query)
    except ProviderError as e:
        current_app.logger.warning(f"[GEO] address search failed: {e}")
        return error_response(str(e), e.status)
    return jsonify({"query": query, "results": results})


def register(app):
    app.register_blueprint(bp)
