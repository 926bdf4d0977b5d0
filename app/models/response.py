from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from app.models.keyword import KeywordScore


class ScrapeResponse(BaseModel):
    url: Optional[str] = None
    title: str
    excerpt: str
    genre: str
    """One of ``code_snippet``, ``tutorial``, ``research_note``,
    ``affiliate_post`` or ``blog_post``."""
    template_id: str
    keywords: List[KeywordScore]
    content_markdown: str
    metadata: Dict[str, Any]
    word_count: int
    reading_time: int
    strategy: str
    folder: str
    path: Optional[str] = None


class ClipResponse(BaseModel):
    title: str
    content_markdown: str
    folder: str
    path: Optional[str] = None
    partial: bool
