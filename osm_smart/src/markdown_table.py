"""
Markdown table handling for Gemini answers.

The model is asked for a fixed six-column table (Name, Description,
Popularity, Insider Tips, Latitude, Longitude) plus a short narrative. Models
drift: columns get renamed ("Best for" instead of "Popularity"), reordered or
dropped. The parser locates the first table whose header starts with a Name
column, maps every header onto the required columns through an alias list and
rebuilds rows in the required order, so no cell ever shifts into a neighbour's
slot.
"""

import re
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional, Sequence, Tuple

REQUIRED_HEADERS: Tuple[str, ...] = (
    "name",
    "description",
    "popularity",
    "insider tips",
    "latitude",
    "longitude",
)

HEADER_ALIASES: Dict[str, Tuple[str, ...]] = {
    "name": ("name", "name of the element", "place", "element"),
    "description": ("description", "desc"),
    "popularity": ("popularity", "best for", "best_for", "bestfor"),
    "insider tips": ("insider tips", "insider tip", "tips", "tip"),
    "latitude": ("latitude", "lat"),
    "longitude": ("longitude", "lon", "lng", "long"),
}

TABLE_RE = re.compile(r"\|\s*Name[^|\n]*\|[\s\S]*?\n\s*\|\s*:?-{3}[\s\S]*?(?=\n\s*\n|\Z)", re.IGNORECASE)
SEPARATOR_RE = re.compile(r"^\|?[\s:|-]+\|?$")
FLOAT_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
BOILERPLATE_RE = re.compile(
    r"^(Here(?:'s| is) a summary of the tourist-relevant OpenStreetMap data:?|Summary:|Tourist summary:?|"
    r"Gemini summary:?|Gemini result:?|Tourist information:?|For tourists:?|The following is a summary:?|"
    r"Below is a summary:?|This is a summary:?|Summary for tourists:?)",
    re.IGNORECASE,
)

SUMMARY_HEADING = "Summary for Tourists:"


@dataclass
class GeminiMarker:
    name: str
    description: str
    lat: float
    lon: float

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


@dataclass
class TableRow:
    name: str
    description: str
    popularity: str
    insider_tips: str
    latitude: str
    longitude: str

    @property
    def label(self) -> str:
        """One-line label: ``Name: Description | Best for: ... | Tip: ...``."""
        label = f"{self.name}: {self.description}"
        if self.popularity:
            label += f" | Best for: {self.popularity}"
        if self.insider_tips:
            label += f" | Tip: {self.insider_tips}"
        return label


def parse_float(text: Optional[str]) -> Optional[float]:
    """Parse the leading number of text, ignoring trailing units; None when there is none."""
    if not text:
        return None
    match = FLOAT_RE.match(text)
    if not match:
        return None
    return float(match.group(1))


def split_row(line: str) -> List[str]:
    """Cells of a ``| a | b |`` line without the empty outer cells."""
    stripped = line.strip()
    if stripped.startswith("|"):
        stripped = stripped[1:]
    if stripped.endswith("|"):
        stripped = stripped[:-1]
    return [cell.strip() for cell in stripped.split("|")]


def find_table(summary: str) -> Optional[str]:
    if not summary:
        return None
    match = TABLE_RE.search(summary)
    return match.group(0) if match else None


def _column_index(header: Sequence[str], required: str) -> int:
    aliases = HEADER_ALIASES[required]
    for idx, cell in enumerate(header):
        if cell.lower().strip() in aliases:
            return idx
    return -1


def normalize_table(table: str) -> List[TableRow]:
    """Rebuild every data row of table in the required column order.

    Missing columns become empty cells; short rows are padded.
    """
    lines = [line for line in table.split("\n") if line.strip().startswith("|")]
    if len(lines) < 2:
        return []

    header = split_row(lines[0])
    indexes = [_column_index(header, required) for required in REQUIRED_HEADERS]

    rows = []
    for line in lines[1:]:
        if SEPARATOR_RE.match(line.strip()):
            continue
        cells = split_row(line)
        values = [cells[idx] if 0 <= idx < len(cells) else "" for idx in indexes]
        rows.append(TableRow(*values))
    return rows


def needs_repair(table: str) -> bool:
    """True when the header is not exactly the required columns in order."""
    lines = [line for line in table.split("\n") if line.strip().startswith("|")]
    if not lines:
        return True
    header = [cell.lower() for cell in split_row(lines[0])]
    return tuple(header) != REQUIRED_HEADERS


def render_table(rows: Sequence[TableRow]) -> str:
    """Render rows back to a canonical Markdown table."""
    title = [h[:1].upper() + h[1:] for h in REQUIRED_HEADERS]
    out = ["| " + " | ".join(title) + " |", "| " + " | ".join("---" for _ in title) + " |"]
    for row in rows:
        cells = [row.name, row.description, row.popularity, row.insider_tips, row.latitude, row.longitude]
        out.append("| " + " | ".join(cells) + " |")
    return "\n".join(out)


def repair_table(summary: str) -> Optional[str]:
    table = find_table(summary)
    if table is None:
        return None
    if not needs_repair(table):
        return table
    return render_table(normalize_table(table))


def parse_gemini_markers(summary: str) -> List[GeminiMarker]:
    """Extract map markers from a Gemini answer.

    Rows whose latitude or longitude does not start with a number are dropped.
    """
    table = find_table(summary)
    if table is None:
        return []

    markers = []
    for row in normalize_table(table):
        lat = parse_float(row.latitude)
        lon = parse_float(row.longitude)
        if lat is None or lon is None:
            continue
        markers.append(GeminiMarker(row.name, row.description, lat, lon))
    return markers


def split_summary(summary: str) -> Tuple[str, List[TableRow]]:
    """Split an answer into its narrative (headed for display) and its table rows.

    Rows with neither a name nor a description are skipped.
    """
    summary = (summary or "").strip()
    if not summary:
        return "", []

    table = find_table(summary)
    rows: List[TableRow] = []
    if table is not None:
        summary = summary.replace(table, "")
        rows = [row for row in normalize_table(table) if row.name.strip() or row.description.strip()]

    narrative = BOILERPLATE_RE.sub("", summary.strip(), count=1).strip()
    return f"{SUMMARY_HEADING}\n\n{narrative}", rows


def strip_markdown_tables(text: str) -> str:
    """Remove tables and stray pipe fragments from free text, collapsing blank runs."""
    text = re.sub(r"\|\s*[^|\n]*\s*\|[\s\S]*?\n\|[-\s|]*\|[\s\S]*?(?=\n\n|\Z)", "", text or "")
    text = re.sub(r"\|[^|\n]*\|", "", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()
