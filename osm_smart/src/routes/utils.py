"""
Helpers shared by the route modules.
"""
from quart import current_app, jsonify


def get_services():
    """Services built by create_app for the running application."""
    return current_app.extensions["osm_smart"]


def error_response(message, status):
    return jsonify({"error": message}), status


def elements_error(elements):
    """Why elements is not a usable list of OSM elements, or None when it is."""
    if not isinstance(elements, list):
        return "elements must be a list"
    for element in elements:
        if not isinstance(element, dict):
            return "elements must be objects"
        if not isinstance(element.get("tags") or {}, dict):
            return "element tags must be an object"
    return None
