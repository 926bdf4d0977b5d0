"""Affiliate-post enhancement: structure analysis, summary and disclosure."""

import re
from typing import List, NamedTuple, Sequence

from app.models.keyword import KeywordScore

_HEADING_SPLIT_RE = re.compile(r"^#{1,6}\s+", re.MULTILINE)
_REVIEW_RE = re.compile(r"\b(?:review|rating|stars?)\b", re.IGNORECASE)
_PRICING_RE = re.compile(r"\b(?:price|cost)\b|\$", re.IGNORECASE)
_COMPARISON_RE = re.compile(r"\b(?:vs|versus|compared?|better than)\b", re.IGNORECASE)

DISCLOSURE = (
    "*Disclosure: As an affiliate, we may earn a commission from qualifying "
    "purchases at no extra cost to you.*"
)


class ContentStructure(NamedTuple):
    heading_count: int
    average_section_length: float
    has_product_reviews: bool
    has_pricing: bool
    has_comparisons: bool


class Enhancement(NamedTuple):
    content: str
    structure: ContentStructure


def analyze_structure(markdown: str) -> ContentStructure:
    sections = _HEADING_SPLIT_RE.split(markdown)
    return ContentStructure(
        heading_count=len(sections) - 1,
        average_section_length=round(sum(len(s) for s in sections) / len(sections), 1),
        has_product_reviews=bool(_REVIEW_RE.search(markdown)),
        has_pricing=bool(_PRICING_RE.search(markdown)),
        has_comparisons=bool(_COMPARISON_RE.search(markdown)),
    )


def _summary(keywords: Sequence[KeywordScore], structure: ContentStructure) -> str:
    lines: List[str] = ["## Quick Summary", ""]
    topics = [k.term for k in keywords[:3]]
    if topics:
        lines.append(f"This page covers {', '.join(topics)}.")
        lines.append("")
    if structure.has_product_reviews:
        lines.append("- Includes product reviews")
    if structure.has_comparisons:
        lines.append("- Includes side-by-side comparisons")
    if structure.has_pricing:
        lines.append("- Mentions pricing (check the source for current prices)")
    return "\n".join(lines).rstrip()


def enhance(markdown: str, keywords: Sequence[KeywordScore]) -> Enhancement:
    """Wrap *markdown* with a summary section and the affiliate disclosure."""
    structure = analyze_structure(markdown)
    content = "\n\n".join([_summary(keywords, structure), markdown.strip(), "---", DISCLOSURE])
    return Enhancement(content=content, structure=structure)
