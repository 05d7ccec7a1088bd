"""
Gemini routes: raw prompt bridge, model list, tourist summaries and fact reports
"""
from quart import Blueprint, current_app, jsonify, request

from osm_smart.providers.base import ProviderError, ProviderNotAvailableError
from osm_smart.src.allowed_tags import filter_elements, tags_for_interests
from .utils import elements_error, error_response, get_services

bp = Blueprint('gemini', __name__)

MISSING_KEY = "Missing Gemini API key"


async def _json_object():
    data = await request.get_json(silent=True)
    if data is None:
        return {}
    return data if isinstance(data, dict) else None


@bp.route('/api/gemini', methods=['POST'])
async def gemini_prompt():
    """
    Request JSON: {"relevantData": [...], "prompt": "..."}
    Response JSON: {"answer": "...", "candidates": [...]}
    """
    services = get_services()
    try:
        data = await _json_object()
        if data is None:
            return error_response("Request body must be a JSON object", 400)
        prompt = data.get("prompt") or ""
        if not isinstance(prompt, str):
            return error_response("prompt must be a string", 400)
        result = await services.summary_service.ask(prompt, data.get("relevantData") or [])
    except ProviderNotAvailableError:
        return error_response(MISSING_KEY, 500)
    except ProviderError as e:
        current_app.logger.error(f"[GEMINI] request failed: {e}")
        return error_response("Gemini API error", 500)
    except Exception:
        current_app.logger.exception('[GEMINI] request failed')
        return error_response("Gemini API error", 500)
    return jsonify(result)


@bp.route('/api/gemini', methods=['GET'])
async def gemini_models():
    """List the models available to the configured key."""
    services = get_services()
    try:
        models = await services.gemini.list_models()
    except ProviderNotAvailableError:
        return error_response(MISSING_KEY, 500)
    except ProviderError as e:
        current_app.logger.error(f"[GEMINI] model list failed: {e}")
        return error_response("Gemini model list error", 500)
    except Exception:
        current_app.logger.exception('[GEMINI] model list failed')
        return error_response("Gemini model list error", 500)
    return jsonify(models)


@bp.route('/api/summary', methods=['POST'])
async def summary():
    """
    Request JSON: {"elements": [...], "interests": ["culture", ...] (optional)}
    Response JSON: {"answer": "...", "markers": [{"name", "description", "lat", "lon"}]}
    """
    services = get_services()
    if not services.gemini.enabled:
        return error_response(MISSING_KEY, 500)

    try:
        data = await _json_object()
        if data is None:
            return error_response("Request body must be a JSON object", 400)
        elements = data.get("elements")
        problem = elements_error(elements)
        if problem:
            return error_response(problem, 400)
        interests = data.get("interests")
        if interests and not (isinstance(interests, list) and all(isinstance(i, str) for i in interests)):
            return error_response("interests must be a list of strings", 400)
        tag_set = tags_for_interests(interests) if interests else None

        result = await services.summary_service.summarize(filter_elements(elements, tag_set))
    except Exception:
        current_app.logger.exception('[GEMINI] summary request failed')
        return error_response("Gemini API error", 500)
    return jsonify(result.to_dict())


@bp.route('/api/fact-report', methods=['POST'])
async def fact_report():
    """
    Request JSON: {"label": "Name: Description | Best for: ... | Tip: ...", "elements": [...]}
    Response JSON: {"answer": "...", "markers": []}
    """
    services = get_services()
    if not services.gemini.enabled:
        return error_response(MISSING_KEY, 500)

    try:
        data = await _json_object()
        if data is None:
            return error_response("Request body must be a JSON object", 400)
        label = data.get("label") or ""
        if not isinstance(label, str) or not label.strip():
            return error_response("Missing label", 400)
        elements = data.get("elements") or []
        problem = elements_error(elements)
        if problem:
            return error_response(problem, 400)

        result = await services.summary_service.fact_report(label.strip(), elements)
    except Exception:
        current_app.logger.exception('[GEMINI] fact report request failed')
        return error_response("Gemini API error", 500)
    return jsonify(result.to_dict())


def register(app):
    app.register_blueprint(bp)
