"""
Tag taxonomy route
"""
from quart import Blueprint, jsonify, request

from osm_smart.src.allowed_tags import taxonomy_as_dict, tags_for_interests

bp = Blueprint('tags', __name__)


@bp.route('/api/tags')
async def tags():
    """Taxonomy groups and default categories; ``?interests=a,b`` adds the resulting tag set."""
    payload = taxonomy_as_dict()
    interests = [i for i in request.args.get("interests", "").split(",") if i.strip()]
    if interests:
        payload["interests"] = interests
        payload["tags"] = sorted(tags_for_interests(interests))
    return jsonify(payload)


def register(app):
    app.register_blueprint(bp)
