"""Signal extraction: parse raw markup into a :class:`ParsedDocument`.

Metadata is read from the untouched markup (``<head>`` survives there), while
structural flags are computed on the sanitized tree so that navigation lists,
cookie banners and other page chrome cannot masquerade as tutorial steps or
citations.  Parsing is best-effort: malformed or empty markup yields a
document whose flags are all false and whose metadata fields are absent.
"""

import json
import logging
from types import MappingProxyType
from typing import Iterator, List, Optional

from bs4 import BeautifulSoup

from app.models.document import DocumentMetadata, ParsedDocument
from app.services.sanitizer import sanitize

logger = logging.getLogger(__name__)

_HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]


def _meta_content(soup: BeautifulSoup, key: str) -> Optional[str]:
    for attr in ("property", "name"):
        tag = soup.find("meta", attrs={attr: key})
        if tag and tag.get("content"):
            return str(tag["content"]).strip()
    return None


def _raw_meta(soup: BeautifulSoup) -> dict:
    raw = {}
    for tag in soup.find_all("meta"):
        key = tag.get("property") or tag.get("name") or tag.get("itemprop")
        content = tag.get("content")
        if key and content and str(key).lower() not in raw:
            raw[str(key).lower()] = str(content).strip()
    return raw


def _json_ld_types(soup: BeautifulSoup) -> Iterator[str]:
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        try:
            data = json.loads(script.string or "")
        except json.JSONDecodeError:
            logger.debug("Ignoring malformed JSON-LD block")
            continue
        nodes = data if isinstance(data, list) else [data]
        for node in nodes:
            if not isinstance(node, dict):
                continue
            graph = node.get("@graph")
            candidates = graph if isinstance(graph, list) else [node]
            for item in candidates:
                if not isinstance(item, dict):
                    continue
                kind = item.get("@type")
                for value in kind if isinstance(kind, list) else [kind]:
                    if isinstance(value, str):
                        yield value


def _schema_type(soup: BeautifulSoup) -> Optional[str]:
    node = soup.find(attrs={"itemtype": True})
    if node:
        return str(node["itemtype"]).strip()
    return next(_json_ld_types(soup), None)


def _declared_tags(soup: BeautifulSoup) -> List[str]:
    seen = set()
    tags: List[str] = []
    values = [
        str(tag["content"])
        for tag in soup.find_all("meta", attrs={"property": "article:tag"})
        if tag.get("content")
    ]
    keywords = _meta_content(soup, "keywords")
    if keywords:
        values.extend(keywords.split(","))
    for value in values:
        tag = value.strip()
        if tag and tag.lower() not in seen:
            seen.add(tag.lower())
            tags.append(tag)
    return tags


def _title(soup: BeautifulSoup) -> str:
    title_tag = soup.find("title")
    if title_tag and title_tag.get_text(strip=True):
        return title_tag.get_text(strip=True)
    og_title = _meta_content(soup, "og:title")
    if og_title:
        return og_title
    h1 = soup.find("h1")
    return h1.get_text(strip=True) if h1 else ""


def extract_metadata(soup: BeautifulSoup) -> DocumentMetadata:
    """Collect declared metadata from the raw (unsanitized) tree."""
    canonical = soup.find("link", rel="canonical")
    body = soup.find("body")
    return DocumentMetadata(
        title=_title(soup),
        description=_meta_content(soup, "description"),
        og_title=_meta_content(soup, "og:title"),
        og_description=_meta_content(soup, "og:description"),
        og_image=_meta_content(soup, "og:image"),
        og_type=_meta_content(soup, "og:type"),
        article_type=_meta_content(soup, "article:type"),
        schema_type=_schema_type(soup),
        author=_meta_content(soup, "author") or _meta_content(soup, "article:author"),
        published=_meta_content(soup, "article:published_time"),
        modified=_meta_content(soup, "article:modified_time"),
        canonical=str(canonical["href"]) if canonical and canonical.get("href") else None,
        tags=tuple(_declared_tags(soup)),
        body_classes=tuple(body.get("class", [])) if body else (),
        raw=MappingProxyType(_raw_meta(soup)),
    )


def parse_document(html: str, url: Optional[str] = None) -> ParsedDocument:
    """Parse *html* and derive structural and metadata signals."""
    html = html or ""
    metadata = extract_metadata(BeautifulSoup(html, "lxml"))
    tree = sanitize(html)

    code_blocks = tree.select("pre")
    has_code = bool(tree.select_one("pre code") or tree.select_one('pre[class*="language-"]'))

    return ParsedDocument(
        html=html,
        tree=tree,
        metadata=metadata,
        url=url,
        has_article_root=bool(tree.find("article") or tree.select_one('[role="article"]')),
        has_code_block=has_code,
        has_ordered_steps=bool(tree.select_one("ol li")),
        has_citation_markers=bool(tree.select_one("cite, blockquote")),
        code_block_count=len(code_blocks),
        heading_count=len(tree.find_all(_HEADING_TAGS)),
    )
