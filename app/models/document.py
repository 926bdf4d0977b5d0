from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from bs4 import BeautifulSoup
from pydantic import BaseModel, ConfigDict, field_validator


@dataclass(frozen=True)
class DocumentMetadata:
    """Metadata declared by the page itself (``<meta>``, ``itemtype``, JSON-LD, ...)."""

    title: str = ""
    description: Optional[str] = None
    og_title: Optional[str] = None
    og_description: Optional[str] = None
    og_image: Optional[str] = None
    og_type: Optional[str] = None
    article_type: Optional[str] = None
    schema_type: Optional[str] = None
    author: Optional[str] = None
    published: Optional[str] = None
    modified: Optional[str] = None
    canonical: Optional[str] = None
    tags: Tuple[str, ...] = ()
    body_classes: Tuple[str, ...] = ()
    raw: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def as_dict(self) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "og_title": self.og_title,
            "og_description": self.og_description,
            "og_image": self.og_image,
            "og_type": self.og_type,
            "article_type": self.article_type,
            "schema_type": self.schema_type,
            "author": self.author,
            "published": self.published,
            "modified": self.modified,
            "canonical": self.canonical,
            "tags": list(self.tags),
        }


@dataclass(frozen=True)
class ParsedDocument:
    """A parsed page plus the structural signals derived from it.

    Built once per ingestion by :func:`app.services.signals.parse_document`.
    ``tree`` must be treated as read-only; strategies that prune markup
    re-parse ``html`` instead.
    """

    html: str = field(repr=False)
    tree: BeautifulSoup = field(repr=False, compare=False)
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)
    url: Optional[str] = None
    has_article_root: bool = False
    has_code_block: bool = False
    has_ordered_steps: bool = False
    has_citation_markers: bool = False
    code_block_count: int = 0
    heading_count: int = 0


class ExtractedContent(BaseModel):
    """Body content produced by the first successful extraction strategy."""

    model_config = ConfigDict(frozen=True)

    title: str
    body_html: str
    body_text: str
    excerpt: str
    strategy: str = ""

    @field_validator("body_text")
    @classmethod
    def _body_text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("body_text must not be empty")
        return value

    @property
    def word_count(self) -> int:
        return len(self.body_text.split())

    @property
    def reading_time(self) -> int:
        """Minutes at 200 words per minute, rounded up."""
        return -(-self.word_count // 200)
