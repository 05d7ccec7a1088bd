"""
Post-processing of raw Overpass responses before they are cached.

Ways get their node coordinates resolved and a centre assigned, relations get
a centroid, and bare stub objects are dropped. Responses produced with
``out center`` already carry a centre per way, so coordinate resolution is
skipped for them and the supplied centre is flattened onto ``lat``/``lon``.
"""

import logging
from typing import Any, Dict, List

from ..utils.geometry import calculate_relation_centroid, get_way_center

logger = logging.getLogger(__name__)


def is_node(element: Dict[str, Any]) -> bool:
    return element.get("type") == "node" and element.get("lat") is not None and element.get("lon") is not None


def is_way(element: Dict[str, Any]) -> bool:
    return element.get("type") == "way" and isinstance(element.get("nodes"), list)


def is_relation(element: Dict[str, Any]) -> bool:
    return element.get("type") == "relation" and isinstance(element.get("members"), list)


def has_coordinates(element: Dict[str, Any]) -> bool:
    return element.get("lat") is not None and element.get("lon") is not None


def has_name(element: Dict[str, Any]) -> bool:
    name = (element.get("tags") or {}).get("name")
    return bool(name and name.strip())


def _elements(osm_data: Dict[str, Any]) -> List[Any]:
    elements = osm_data.get("elements")
    return elements if isinstance(elements, list) else []


def resolve_way_coordinates(elements: List[Any]) -> List[Any]:
    """Attach ``nodeCoords`` to every way whose node ids appear as nodes in the same response.

    Unknown node ids are skipped; a way with no resolvable node is left as is.
    """
    node_map = {
        el["id"]: {"lat": el["lat"], "lon": el["lon"]}
        for el in elements
        if isinstance(el, dict) and is_node(el) and "id" in el
    }

    resolved = []
    for el in elements:
        if isinstance(el, dict) and is_way(el):
            coords = [node_map[node_id] for node_id in el["nodes"] if node_id in node_map]
            if coords:
                el = {**el, "nodeCoords": coords}
        resolved.append(el)
    return resolved


def assign_way_centers(elements: List[Any]) -> List[Any]:
    out = []
    for el in elements:
        if isinstance(el, dict) and el.get("type") == "way" and el.get("nodeCoords"):
            center = get_way_center(el["nodeCoords"])
            if center:
                el = {**el, "lat": center.lat, "lon": center.lon}
        out.append(el)
    return out


def flatten_centers(elements: List[Any]) -> List[Any]:
    """Copy an upstream ``center`` onto ``lat``/``lon`` for ways and relations."""
    out = []
    for el in elements:
        if isinstance(el, dict) and not has_coordinates(el):
            center = el.get("center")
            if isinstance(center, dict) and center.get("lat") is not None and center.get("lon") is not None:
                el = {**el, "lat": center["lat"], "lon": center["lon"]}
        out.append(el)
    return out


def assign_relation_centroids(elements: List[Any]) -> List[Any]:
    out = []
    for el in elements:
        if isinstance(el, dict) and is_relation(el) and not has_coordinates(el):
            centroid = calculate_relation_centroid(el)
            if centroid:
                el = {**el, "lat": centroid.lat, "lon": centroid.lon}
        out.append(el)
    return out


def drop_degenerate(elements: List[Any]) -> List[Dict[str, Any]]:
    """Remove non-dicts and dicts with exactly one key (bare stubs such as ``{"id": 5}``)."""
    return [el for el in elements if isinstance(el, dict) and len(el) != 1]


def process_osm_data(osm_data: Dict[str, Any], center_mode: bool = False) -> Dict[str, Any]:
    """Run the enrichment pipeline over a decoded Overpass response.

    Args:
        osm_data: Decoded Overpass JSON
        center_mode: True for ``out center`` responses (radius and ring queries)

    Returns:
        A new dict with every passthrough field kept and ``elements`` replaced
    """
    elements = _elements(osm_data)
    raw_count = len(elements)

    if center_mode:
        elements = flatten_centers(elements)
    else:
        elements = resolve_way_coordinates(elements)
        elements = assign_way_centers(elements)
    elements = assign_relation_centroids(elements)
    elements = drop_degenerate(elements)

    logger.debug(f"[PROCESS] {raw_count} raw -> {len(elements)} processed elements (center_mode={center_mode})")
    return {**osm_data, "elements": elements}
