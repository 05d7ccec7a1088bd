from osm_smart.src.allowed_tags import (
    ALLOWED_TAGS,
    element_matches,
    filter_elements,
    get_tag_display_name,
    get_tag_group,
    group_elements,
    tags_for_interests,
)


def test_amenity_museum_is_not_allowed_but_tourism_museum_is():
    assert not element_matches({"tags": {"amenity": "museum"}})
    assert element_matches({"tags": {"tourism": "museum"}})
    assert get_tag_group("tourism:museum") == "Culture"


def test_matching_is_case_sensitive_and_needs_tags():
    assert not element_matches({"tags": {"tourism": "Museum"}})
    assert not element_matches({"id": 1})
    assert not element_matches({"tags": {}})


def test_default_set_excludes_non_default_categories():
    assert "leisure:ice_rink" not in ALLOWED_TAGS  # Sport
    assert "historic:castle" in ALLOWED_TAGS


def test_interest_selection_limits_the_tag_set():
    sport = tags_for_interests(["sport"])
    assert "leisure:ice_rink" in sport
    assert "historic:castle" not in sport
    elements = [
        {"id": 1, "tags": {"leisure": "ice_rink"}},
        {"id": 2, "tags": {"historic": "castle"}},
    ]
    assert [el["id"] for el in filter_elements(elements, sport)] == [1]
    assert [el["id"] for el in filter_elements(elements)] == [2]


def test_unknown_interest_matches_nothing():
    tag_set = tags_for_interests(["shopping"])
    assert tag_set == frozenset()
    assert filter_elements([{"tags": {"historic": "castle"}}], tag_set) == []


def test_group_elements_puts_unmatched_in_other():
    groups = group_elements([
        {"id": 1, "tags": {"natural": "beach"}},
        {"id": 2, "tags": {"shop": "bakery"}},
    ])
    assert [el["id"] for el in groups["Nature"]] == [1]
    assert [el["id"] for el in groups["Other"]] == [2]


def test_display_name():
    assert get_tag_display_name("historic:city_gate") == "historic: city gate"
    assert get_tag_display_name("mountain_pass") == "mountain pass"
