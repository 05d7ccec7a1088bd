import pytest

from osm_smart.src.markdown_table import (
    needs_repair,
    normalize_table,
    parse_float,
    parse_gemini_markers,
    repair_table,
    split_summary,
    strip_markdown_tables,
)

BEST_FOR_ANSWER = """Here is a summary of the tourist-relevant OpenStreetMap data:
The old town around the Limmat is compact and walkable.

| Name | Description | Best for | Insider Tips | Latitude | Longitude |
|---|---|---|---|---|---|
| Grossmünster | Romanesque church | Views | Climb the towers | 47.3700 | 8.5440 |
| Lindenhof | Park on a hill | Sunsets | Go early | 47.3730 | 8.5410 |

Enjoy your stay!"""


def test_best_for_maps_into_popularity_without_shifting_cells():
    rows = normalize_table(repair_table(BEST_FOR_ANSWER))
    first = rows[0]
    assert first.name == "Grossmünster"
    assert first.description == "Romanesque church"
    assert first.popularity == "Views"
    assert first.insider_tips == "Climb the towers"
    assert first.latitude == "47.3700"
    assert first.longitude == "8.5440"


def test_repaired_table_has_canonical_header():
    repaired = repair_table(BEST_FOR_ANSWER)
    assert repaired.splitlines()[0] == "| Name | Description | Popularity | Insider tips | Latitude | Longitude |"
    assert not needs_repair(repaired)


def test_markers_from_best_for_table():
    markers = parse_gemini_markers(BEST_FOR_ANSWER)
    assert [(m.name, m.lat, m.lon) for m in markers] == [
        ("Grossmünster", 47.37, 8.544),
        ("Lindenhof", 47.373, 8.541),
    ]
    assert markers[0].description == "Romanesque church"


def test_reordered_and_missing_columns():
    answer = (
        "| name | Latitude | Longitude | Description |\n"
        "|---|---|---|---|\n"
        "| Lindenhof | 47.373 | 8.541 | Park |\n"
    )
    rows = normalize_table(repair_table(answer))
    assert rows[0].name == "Lindenhof"
    assert rows[0].description == "Park"
    assert rows[0].popularity == ""
    assert rows[0].insider_tips == ""
    assert parse_gemini_markers(answer)[0].lat == 47.373


def test_rows_with_non_numeric_coordinates_are_dropped():
    answer = (
        "| Name | Description | Popularity | Insider Tips | Latitude | Longitude |\n"
        "|---|---|---|---|---|---|\n"
        "| Somewhere | Unknown | | | N/A | 8.5 |\n"
        "| Uetliberg | Hill | Hiking | Take the S10 | 47.3494° | 8.4914 E |\n"
    )
    markers = parse_gemini_markers(answer)
    assert [m.name for m in markers] == ["Uetliberg"]
    assert markers[0].lat == pytest.approx(47.3494)
    assert markers[0].lon == pytest.approx(8.4914)


def test_no_table_means_no_markers():
    assert parse_gemini_markers("No elements are relevant for tourists.") == []
    assert parse_gemini_markers("") == []
    assert repair_table("nothing here") is None


def test_parse_float_reads_leading_number():
    assert parse_float("  -12.5abc") == -12.5
    assert parse_float(".5") == 0.5
    assert parse_float("abc") is None
    assert parse_float("") is None


def test_split_summary_removes_boilerplate_and_table():
    narrative, rows = split_summary(BEST_FOR_ANSWER)
    assert narrative.startswith("Summary for Tourists:\n\nThe old town")
    assert "Here is a summary" not in narrative
    assert "| Name |" not in narrative
    assert "Enjoy your stay!" in narrative
    assert [row.label for row in rows] == [
        "Grossmünster: Romanesque church | Best for: Views | Tip: Climb the towers",
        "Lindenhof: Park on a hill | Best for: Sunsets | Tip: Go early",
    ]


def test_split_summary_empty():
    assert split_summary("") == ("", [])


def test_strip_markdown_tables():
    text = "Intro para.\n\n| a | b |\n|---|---|\n| 1 | 2 |\n\nOutro."
    assert strip_markdown_tables(text) == "Intro para.\n\nOutro."
