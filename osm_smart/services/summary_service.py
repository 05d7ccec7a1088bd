"""
Gemini-backed tourist summaries and per-place fact reports.

Wraps GeminiProvider with the prompts the map uses and post-processes the
answers: markers are parsed out of summary tables, tables are stripped from
fact reports. Failures never propagate; callers get the fixed error text.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from ..providers.base import ProviderError
from ..providers.gemini_provider import GeminiProvider, extract_answer
from ..src.markdown_table import GeminiMarker, parse_gemini_markers, strip_markdown_tables

logger = logging.getLogger(__name__)

SUMMARY_ERROR = "Error retrieving summary."
NO_SUMMARY = "No summary available."

SUMMARY_PROMPT = (
    "You are a strict markdown table generator. You must always output a markdown table with exactly "
    "these columns, in this order: Name, Description, Popularity, Insider Tips, Latitude, Longitude. "
    "Never omit or reorder columns, even if data is missing - leave the cell empty if needed. "
    "Output only the table, nothing else. The column header must be 'Popularity' (not 'Best for'). "
    "Do not use any other column headers.\n"
    "Summarize the most relevant tourist information from these OpenStreetMap elements."
)

FACT_REPORT_TEMPLATE = """Act as a knowledgeable local expert and provide a comprehensive, authoritative report about: {label}

Draw upon your full knowledge base to write with confidence and specificity. Include concrete details such as:

ESSENTIAL INFORMATION:
- What this place is and why it matters locally
- Specific historical facts, dates, and stories
- Architectural or natural features worth noting
- Current use and significance in the community

VISITOR GUIDANCE:
- Exact practical details (opening times, access methods, costs)
- What visitors can expect to see and experience
- Specific walking/hiking times and route descriptions
- Best times to visit and what to bring

EXPERT INSIGHTS:
- Interesting historical context and background stories
- Local connections and cultural significance
- Insider tips that only locals would know
- How this place fits into the broader area's character

Write with the authority and enthusiasm of someone who knows this place well. Use specific details, exact timings, and confident statements rather than vague or cautious language. Structure your response as flowing, informative paragraphs that tell the complete story of this place.

FORMATTING: Write in clear paragraphs only - no bullet points, tables, or markdown formatting."""


def build_gemini_prompt(prompt: str, relevant_data: Any) -> str:
    """Wrap a caller prompt and its elements in the table instructions sent to Gemini."""
    return (
        f"{prompt} {json.dumps(relevant_data)}. Only for elements that are very relevant for a tourist, "
        "provide a markdown table with the following columns: name of the element, description, best for, "
        "insider tips, latitude (mandatory), longitude (mandatory). Latitude and longitude must always be "
        "listed for each element. Above the table, write a short summary for tourists. If no elements are "
        "relevant, say so and do not provide a table."
    )


def build_fact_report_prompt(label: str) -> str:
    return FACT_REPORT_TEMPLATE.format(label=label)


_LABEL_NAME_RE = re.compile(r"^([^:]+):")
_LABEL_DESC_RE = re.compile(r"^([^:]+):\s*([^|]+)")


def find_element_for_label(label: str, elements: Optional[Iterable[Dict[str, Any]]]) -> Optional[Dict[str, Any]]:
    """Find the element a ``Name: Description | Best for: ... | Tip: ...`` label refers to.

    Prefers an element whose name matches and whose description starts with
    the label's description, then any element with the same name.
    """
    if not elements:
        return None
    name_match = _LABEL_NAME_RE.match(label or "")
    if not name_match:
        return None
    name = name_match.group(1).strip()
    desc_match = _LABEL_DESC_RE.match(label)
    description = desc_match.group(2).strip() if desc_match else None

    by_name = None
    for element in elements:
        if not isinstance(element, dict):
            continue
        tags = element.get("tags") or {}
        if (tags.get("name") or "").strip() != name:
            continue
        el_desc = (tags.get("description") or "").strip()
        if not description or (el_desc and el_desc.startswith(description)):
            return element
        if by_name is None:
            by_name = element
    return by_name


@dataclass
class SummaryResult:
    answer: str
    markers: List[GeminiMarker] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        data = {"answer": self.answer, "markers": [m.to_dict() for m in self.markers]}
        if self.error:
            data["error"] = self.error
        return data


class SummaryService:
    """Summaries and fact reports over a GeminiProvider."""

    def __init__(self, gemini: GeminiProvider):
        self.gemini = gemini

    async def ask(self, prompt: str, relevant_data: Any) -> Dict[str, Any]:
        """Raw round trip used by ``POST /api/gemini``.

        Returns:
            ``{"answer": str, "candidates": list}``

        Raises:
            ProviderError: Missing key or upstream failure
        """
        data = await self.gemini.generate(build_gemini_prompt(prompt, relevant_data))
        return {"answer": extract_answer(data), "candidates": data.get("candidates")}

    async def summarize(self, elements: List[Dict[str, Any]]) -> SummaryResult:
        """Tourist summary table for elements, with the map markers parsed from it."""
        try:
            response = await self.ask(SUMMARY_PROMPT, elements)
        except ProviderError as e:
            logger.error(f"[GEMINI] summary failed: {e}")
            return SummaryResult(SUMMARY_ERROR, error=str(e))

        answer = response["answer"] or NO_SUMMARY
        markers = parse_gemini_markers(answer)
        logger.info(f"[GEMINI] summary for {len(elements)} elements, {len(markers)} markers")
        return SummaryResult(answer, markers)

    async def fact_report(self, label: str, elements: Optional[List[Dict[str, Any]]] = None) -> SummaryResult:
        """Long-form report about one place, with any tables removed."""
        element = find_element_for_label(label, elements)
        try:
            response = await self.ask(build_fact_report_prompt(label), [element] if element else [])
        except ProviderError as e:
            logger.error(f"[GEMINI] fact report for {label!r} failed: {e}")
            return SummaryResult(SUMMARY_ERROR, error=str(e))
        return SummaryResult(strip_markdown_tables(response["answer"] or NO_SUMMARY))
