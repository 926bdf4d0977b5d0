"""Content extraction: an ordered chain of strategies tried until one yields text.

Strategies run strictly in sequence and are never retried here; retrying the
whole fetch-and-extract call is the resilience layer's job.
"""

import logging
from typing import Callable, List, Optional, Tuple

from readability import Document

from app.models.document import ExtractedContent, ParsedDocument
from app.services.errors import ExtractionFailed
from app.services.sanitizer import sanitize, visible_text

logger = logging.getLogger(__name__)

EXCERPT_LENGTH = 200

# Probed in order; the first landmark with visible text wins.
LANDMARK_SELECTORS = (
    "article",
    '[role="article"]',
    "main",
    '[role="main"]',
    "#content",
    ".content",
    ".post-content",
    ".entry-content",
    ".article-body",
)

Strategy = Callable[[ParsedDocument, str], Optional[ExtractedContent]]


def _excerpt(document: ParsedDocument, body_text: str) -> str:
    declared = document.metadata.description or document.metadata.og_description
    if declared:
        return declared
    snippet = " ".join(body_text.split())
    return snippet[:EXCERPT_LENGTH]


def _title(document: ParsedDocument, fallback: str = "") -> str:
    return fallback or document.metadata.og_title or document.metadata.title


def readability_strategy(document: ParsedDocument, html: str) -> Optional[ExtractedContent]:
    """Locate the densest article-like subtree with readability."""
    if not html.strip():
        return None
    reader = Document(html)
    body_html = reader.summary(html_partial=True)
    body_text = visible_text(sanitize(body_html))
    if not body_text:
        return None
    short_title = reader.short_title()
    if short_title == "[no-title]":
        short_title = ""
    return ExtractedContent(
        title=_title(document, short_title),
        body_html=body_html,
        body_text=body_text,
        excerpt=_excerpt(document, body_text),
        strategy="readability",
    )


def landmark_strategy(document: ParsedDocument, html: str) -> Optional[ExtractedContent]:
    """Return the first structural landmark (article, main, content container) with text."""
    for selector in LANDMARK_SELECTORS:
        for node in document.tree.select(selector):
            body_text = visible_text(node)
            if body_text:
                logger.debug("Landmark %r matched", selector)
                return ExtractedContent(
                    title=_title(document),
                    body_html=str(node),
                    body_text=body_text,
                    excerpt=_excerpt(document, body_text),
                    strategy=f"landmark:{selector}",
                )
    return None


DEFAULT_STRATEGIES: Tuple[Tuple[str, Strategy], ...] = (
    ("readability", readability_strategy),
    ("landmark", landmark_strategy),
)


def extract_content(
    document: ParsedDocument,
    html: Optional[str] = None,
    strategies: Tuple[Tuple[str, Strategy], ...] = DEFAULT_STRATEGIES,
) -> ExtractedContent:
    """Run *strategies* in order and return the first usable result.

    Raises:
        ExtractionFailed: when no strategy produced non-blank body text.
    """
    markup = document.html if html is None else html
    errors: List[str] = []
    for name, strategy in strategies:
        try:
            content = strategy(document, markup)
        except Exception as exc:
            logger.warning("Extraction strategy %s failed: %s", name, exc)
            errors.append(f"{name}: {exc}")
            continue
        if content is not None and content.body_text.strip():
            logger.info("Extraction succeeded with %s strategy", content.strategy or name)
            return content
        logger.info("Extraction strategy %s produced no text", name)

    raise ExtractionFailed(len(strategies), details={"errors": errors} if errors else None)


def simple_extract(document: ParsedDocument) -> ExtractedContent:
    """Title tag plus the whole visible ``<body>`` text, no heuristics.

    Used as the degraded path when the strategy chain is unavailable.
    """
    body = document.tree.find("body") or document.tree
    body_text = visible_text(body)
    if not body_text:
        raise ExtractionFailed(1, details={"fallback": "simple"})
    return ExtractedContent(
        title=_title(document),
        body_html=str(body),
        body_text=body_text,
        excerpt=_excerpt(document, body_text),
        strategy="simple",
    )
