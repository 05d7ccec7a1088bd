import pytest

from osm_smart.src.osm_processing import has_name, process_osm_data


def test_single_key_objects_are_dropped():
    data = {"elements": [{"id": 5}, {"type": "node", "id": 6, "lat": 1.0, "lon": 2.0}]}
    out = process_osm_data(data)
    assert out["elements"] == [{"type": "node", "id": 6, "lat": 1.0, "lon": 2.0}]


def test_passthrough_fields_survive():
    data = {"version": 0.6, "generator": "Overpass API", "osm3s": {"copyright": "ODbL"}, "elements": []}
    out = process_osm_data(data)
    assert out["version"] == 0.6
    assert out["osm3s"] == {"copyright": "ODbL"}
    assert out["elements"] == []


def test_way_coordinates_resolved_and_centered():
    data = {"elements": [
        {"type": "node", "id": 1, "lat": 0.0, "lon": 0.0},
        {"type": "node", "id": 2, "lat": 0.0, "lon": 1.0},
        {"type": "node", "id": 3, "lat": 1.0, "lon": 1.0},
        {"type": "node", "id": 4, "lat": 1.0, "lon": 0.0},
        {"type": "way", "id": 10, "nodes": [1, 2, 3, 4, 1, 99], "tags": {"tourism": "attraction"}},
    ]}
    way = process_osm_data(data)["elements"][-1]
    # unknown node 99 is skipped; the remaining ring is the unit square
    assert len(way["nodeCoords"]) == 5
    assert way["lat"] == pytest.approx(0.5)
    assert way["lon"] == pytest.approx(0.5)


def test_center_mode_flattens_upstream_center():
    data = {"elements": [
        {"type": "way", "id": 10, "nodes": [1, 2], "center": {"lat": 47.1, "lon": 8.2}},
    ]}
    way = process_osm_data(data, center_mode=True)["elements"][0]
    assert (way["lat"], way["lon"]) == (47.1, 8.2)
    assert "nodeCoords" not in way


def test_relation_centroid_assigned():
    data = {"elements": [{
        "type": "relation",
        "id": 7,
        "members": [{"type": "node", "ref": 1, "lat": 1.0, "lon": 3.0}, {"type": "node", "ref": 2, "lat": 3.0, "lon": 5.0}],
    }]}
    rel = process_osm_data(data)["elements"][0]
    assert (rel["lat"], rel["lon"]) == (2.0, 4.0)


def test_input_is_not_mutated():
    way = {"type": "way", "id": 10, "nodes": [1]}
    data = {"elements": [{"type": "node", "id": 1, "lat": 1.0, "lon": 1.0}, way]}
    process_osm_data(data)
    assert "nodeCoords" not in way


def test_has_name():
    assert has_name({"tags": {"name": "Grossmünster"}})
    assert not has_name({"tags": {"name": "  "}})
    assert not has_name({})
