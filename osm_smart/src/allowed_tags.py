"""
Curated OSM tag taxonomy and the element filter built on it.

Each category lists ``"key"`` or ``"key:value"`` strings. An element is
relevant when any of its tags matches a string of the active set either by its
bare key or by its exact ``key:value`` pair (case-sensitive).
"""

import logging
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

OTHER_GROUP = "Other"

TAG_GROUPS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "Entertainment": (
        "amenity:casino",
        "amenity:planetarium",
        "leisure:stadium",
        "leisure:water_park",
        "tourism:aquarium",
        "tourism:theme_park",
        "tourism:zoo",
        "building:stadium",
        "aeroway:spaceport",
    ),
    "Transport": (
        "boundary:limited_traffic_zone",
        "boundary:low_emission_zone",
        "amenity:boat_rental",
        "barrier:border_control",
        "building:train_station",
        "highway:hitchhiking",
        "man_made:pier",
        "railway:funicular",
        "office:harbour_master",
    ),
    "Sport": (
        "leisure:ice_rink",
        "leisure:miniature_golf",
        "amenity:public_bath",
        "amenity:surf_school",
        "amenity:dive_centre",
        "landuse:winter_sports",
        "leisure:marina",
    ),
    "Culture": (
        "amenity:arts_centre",
        "amenity:monastery",
        "amenity:place_of_worship",
        "building:cathedral",
        "building:church",
        "building:kingdom_hall",
        "building:monastery",
        "building:mosque",
        "building:synagogue",
        "building:temple",
        "building:museum",
        "tourism:artwork",
        "tourism:gallery",
        "tourism:museum",
    ),
    "Nature": (
        "landuse:salt_pond",
        "mountain_pass:yes",
        "boundary:aboriginal_lands",
        "boundary:national_park",
        "boundary:protected_area",
        "geological:volcanic_caldera_rim",
        "geological:volcanic_lava_field",
        "geological:volcanic_vent",
        "geological:columnar_jointing",
        "geological:hoodoo",
        "geological:dyke",
        "geological:tor",
        "geological:inselberg",
        "leisure:bird_hide",
        "leisure:nature_reserve",
        "natural:beach",
        "natural:blowhole",
        "natural:geyser",
        "natural:glacier",
        "natural:hot_spring",
        "natural:isthmus",
        "natural:arch",
        "natural:cave_entrance",
        "natural:dune",
        "natural:fumarole",
        "natural:volcano",
        "tourism:viewpoint",
        "waterway:waterfall",
    ),
    "Food": (
        "amenity:marketplace",
        "amenity:food_court",
        "shop:ice_cream",
        "landuse:vineyard",
        "craft:winery",
        "shop:mall",
    ),
    "History": (
        "historic:aircraft",
        "historic:aqueduct",
        "historic:archaeological_site",
        "historic:building",
        "historic:castle",
        "historic:castle_wall",
        "historic:church",
        "historic:city_gate",
        "historic:citywalls",
        "historic:district",
        "historic:farm",
        "historic:fort",
        "historic:house",
        "historic:locomotive",
        "historic:manor",
        "historic:monastery",
        "historic:mine",
        "historic:monument",
        "historic:mosque",
        "historic:road",
        "historic:ruins",
        "historic:ship",
        "historic:temple",
        "historic:tomb",
        "historic:tower",
        "historic:wreck",
        "building:bridge",
        "building:beach_hut",
        "building:castle",
        "building:ship",
        "building:triumphal_arch",
        "barrier:city_wall",
        "man_made:lighthouse",
        "man_made:observatory",
        "man_made:watermill",
        "man_made:windmill",
    ),
    "Tourism": (
        "leisure:beach_resort",
        "amenity:ranger_station",
        "office:guide",
        "tourism:alpine_hut",
        "tourism:attraction",
        "tourism:yes",
    ),
    "Health": (
        "amenity:kneipp_water_cure",
    ),
    "Other": (
        "boundary:hazard",
        "boundary:timezone",
    ),
})

ALLOWED_CATEGORIES: Tuple[str, ...] = ("Entertainment", "Culture", "Nature", "History", "Tourism")

ALLOWED_TAGS: FrozenSet[str] = frozenset(
    tag for category in ALLOWED_CATEGORIES for tag in TAG_GROUPS[category]
)


def normalize_interest(interest: str) -> str:
    """Map an interest id ("sport", "Sport") to its category name."""
    interest = (interest or "").strip()
    return interest[:1].upper() + interest[1:]


def tags_for_interests(interests: Iterable[str]) -> FrozenSet[str]:
    """Union of the tag lists of the selected interest categories.

    Unknown interests are logged and skipped, so a selection with no known
    category yields an empty set (nothing matches).
    """
    tags = set()
    for interest in interests:
        category = normalize_interest(interest)
        category_tags = TAG_GROUPS.get(category)
        if category_tags is None:
            logger.warning(f"No tags found for interest category: {category}")
            continue
        tags.update(category_tags)
    return frozenset(tags)


def _tag_candidates(tags: Mapping[str, Any]):
    for key, value in tags.items():
        yield key, f"{key}:{value}"


def element_matches(element: Mapping[str, Any], tag_set: FrozenSet[str] = ALLOWED_TAGS) -> bool:
    """True when any tag of element matches tag_set by key or exact key:value."""
    tags = element.get("tags")
    if not tags or not isinstance(tags, Mapping):
        return False
    return any(pair in tag_set or key in tag_set for key, pair in _tag_candidates(tags))


def filter_elements(
    elements: Iterable[Dict[str, Any]],
    tag_set: Optional[FrozenSet[str]] = None,
) -> List[Dict[str, Any]]:
    """Keep the elements matching tag_set (the default allowed set when None)."""
    active = ALLOWED_TAGS if tag_set is None else tag_set
    return [el for el in elements if isinstance(el, dict) and element_matches(el, active)]


def get_tag_group(tag: str) -> Optional[str]:
    """First category containing tag, scanning categories in taxonomy order."""
    for group_name, tags in TAG_GROUPS.items():
        if tag in tags:
            return group_name
    return None


def group_elements(elements: Iterable[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    """Bucket elements by the category of their first matching tag.

    Elements matching no category land in ``Other`` for display only.
    """
    groups: Dict[str, List[Dict[str, Any]]] = {}
    for element in elements:
        group = None
        for key, pair in _tag_candidates(element.get("tags") or {}):
            group = get_tag_group(pair) or get_tag_group(key)
            if group:
                break
        groups.setdefault(group or OTHER_GROUP, []).append(element)
    return groups


def get_tag_display_name(tag: str) -> str:
    """``"historic:city_gate"`` -> ``"historic: city gate"``."""
    key, _, value = tag.partition(":")
    if value:
        return f"{key}: {value.replace('_', ' ')}"
    return key.replace("_", " ")


def taxonomy_as_dict() -> Dict[str, Any]:
    return {
        "groups": {name: list(tags) for name, tags in TAG_GROUPS.items()},
        "allowed_categories": list(ALLOWED_CATEGORIES),
    }
