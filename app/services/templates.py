"""Template catalog and template selection.

Selection is a scoring pass independent of the genre classifier; the two
may disagree and that is not reconciled here.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import yaml
from bs4 import BeautifulSoup

from app.config import TEMPLATES_DIR, get_settings
from app.models.document import ExtractedContent, ParsedDocument
from app.models.genre import Genre
from app.models.keyword import KeywordScore
from app.models.template import TemplateCandidate

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_ID = "blog-post"

CODE_BLOCK_WEIGHT = 10
GENRE_BONUS = 20
TAG_BONUS = 10
HEADING_THRESHOLD = 5
HEADING_BONUS = 5
HEADING_BONUS_TEMPLATES = ("tutorial", "affiliate-post")

TAG_TEMPLATES = {
    "code": "code-snippet",
    "tutorial": "tutorial",
    "guide": "tutorial",
    "research": "research-note",
    "study": "research-note",
    "review": "affiliate-post",
    "product": "affiliate-post",
}


def load_candidates(path: Optional[Path] = None) -> Tuple[TemplateCandidate, ...]:
    """Read the template catalog YAML at *path*."""
    path = path or get_settings().template_catalog
    with open(path, encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    candidates = tuple(TemplateCandidate(**entry) for entry in raw.get("templates", []))
    if not any(c.id == DEFAULT_TEMPLATE_ID for c in candidates):
        raise ValueError(f"Template catalog {path} has no '{DEFAULT_TEMPLATE_ID}' entry")
    logger.info("Loaded %d template candidates from %s", len(candidates), path)
    return candidates


@lru_cache(maxsize=1)
def get_catalog() -> Tuple[TemplateCandidate, ...]:
    """The process-wide catalog, read once and never mutated."""
    return load_candidates()


def catalog_ids() -> Tuple[str, ...]:
    return tuple(c.id for c in get_catalog())


def template_path(template_id: str) -> Path:
    """Return the bundled Markdown file for *template_id*.

    Raises:
        ValueError: if *template_id* is empty or names a path.
    """
    if not template_id or any(part in template_id for part in ("/", "\\", "..")):
        raise ValueError(f"Invalid template id: {template_id!r}")
    return TEMPLATES_DIR / f"{template_id}.md"


@dataclass(frozen=True)
class TemplateSignals:
    """The document features the selector scores on."""

    body_text: str
    code_block_count: int = 0
    heading_count: int = 0
    tags: Tuple[str, ...] = ()


def collect_signals(
    document: ParsedDocument,
    content: ExtractedContent,
    tags: Iterable[str] = (),
) -> TemplateSignals:
    """Count code blocks and headings inside the extracted body.

    Falls back to whole-document counts when the body carries none.
    """
    body = BeautifulSoup(content.body_html, "lxml")
    code_blocks = len(body.find_all("pre")) or document.code_block_count
    headings = len(body.find_all(["h1", "h2", "h3", "h4", "h5", "h6"])) or document.heading_count
    declared = tuple(dict.fromkeys([*document.metadata.tags, *tags]))
    return TemplateSignals(
        body_text=content.body_text,
        code_block_count=code_blocks,
        heading_count=headings,
        tags=declared,
    )


def score_candidates(
    genre: Optional[Genre],
    keywords: Sequence[KeywordScore],
    signals: TemplateSignals,
    candidates: Sequence[TemplateCandidate],
) -> Dict[str, int]:
    """Return the accumulated score of every selectable candidate."""
    scores = {c.id: 0 for c in candidates if c.selectable}

    def bump(template_id: str, amount: int) -> None:
        if template_id in scores:
            scores[template_id] += amount

    if signals.code_block_count > 0:
        bump("code-snippet", CODE_BLOCK_WEIGHT * signals.code_block_count)

    for candidate in candidates:
        if candidate.id in scores:
            for rule in candidate.score_rules:
                bump(candidate.id, rule.count(signals.body_text) * rule.weight)

    if genre is not None:
        bump(genre.template_id, GENRE_BONUS)

    # Declared tags and ranked keyword terms both map through the tag table.
    for tag in (*signals.tags, *(k.term for k in keywords)):
        mapped = TAG_TEMPLATES.get(tag.strip().lower())
        if mapped:
            bump(mapped, TAG_BONUS)

    if signals.heading_count > HEADING_THRESHOLD:
        for template_id in HEADING_BONUS_TEMPLATES:
            bump(template_id, HEADING_BONUS)

    return scores


def select_template(
    genre: Optional[Genre],
    keywords: Sequence[KeywordScore],
    signals: TemplateSignals,
    candidates: Optional[Sequence[TemplateCandidate]] = None,
) -> str:
    """Return the id of the highest-scoring template.

    An all-zero board or a tie for first place resolves to ``blog-post``.
    """
    candidates = get_catalog() if candidates is None else candidates
    scores = score_candidates(genre, keywords, signals, candidates)
    if not scores:
        return DEFAULT_TEMPLATE_ID

    top = max(scores.values())
    leaders: List[str] = [template_id for template_id, score in scores.items() if score == top]
    if top <= 0 or len(leaders) > 1:
        logger.debug("Template scores tied at %d: %s", top, leaders)
        return DEFAULT_TEMPLATE_ID
    logger.debug("Template scores: %s", scores)
    return leaders[0]
