"""Ingestion orchestration: fetch → signals → extraction → analysis → render.

Every stage boundary runs under :class:`~app.services.resilience.Guard`, so a
stage failure is either recovered transparently or surfaces as a single
:class:`~app.services.errors.GuardError`.
"""

import asyncio
import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from app.config import Settings, get_settings
from app.models.document import ExtractedContent, ParsedDocument
from app.models.error_context import ErrorContext
from app.models.genre import Genre
from app.models.keyword import KeywordScore
from app.services.classifier import classify
from app.services.enhancer import enhance
from app.services.event_log import EventLog, LoggingEventLog
from app.services.extractor import extract_content, simple_extract
from app.services.fetcher import fetch_url, validate_url
from app.services.keywords import KeywordCorpus, rank_keywords
from app.services.normalizer import folder_structure
from app.services.renderer import render, render_minimal, to_markdown, validate_payload
from app.services.resilience import FallbackRegistry, Guard, Sleep
from app.services.signals import parse_document
from app.services.storage import TempFileBackup, VaultWriter
from app.services.templates import catalog_ids, collect_signals, get_catalog, select_template

logger = logging.getLogger(__name__)

CLIP_TEMPLATE = "web-clip"
DEFAULT_CLIP_FOLDER = "web-clips"


class ScrapedPage(NamedTuple):
    document: ParsedDocument
    content: ExtractedContent


class IngestResult(NamedTuple):
    url: Optional[str]
    title: str
    excerpt: str
    genre: Genre
    template_id: str
    keywords: List[KeywordScore]
    content_markdown: str
    metadata: Dict[str, Any]
    word_count: int
    reading_time: int
    folder: str
    path: Optional[str]


class ClipResult(NamedTuple):
    title: str
    content_markdown: str
    folder: str
    path: Optional[str]
    partial: bool


def is_url(source: str) -> bool:
    return source.strip().lower().startswith(("http://", "https://"))


def _images(content: ExtractedContent, base_url: Optional[str]) -> List[Dict[str, str]]:
    seen: set = set()
    images: List[Dict[str, str]] = []
    for img in BeautifulSoup(content.body_html, "lxml").find_all("img"):
        src = img.get("src") or img.get("data-src")
        if not src or str(src).startswith("data:"):
            continue
        url = urljoin(base_url, str(src)) if base_url else str(src)
        if url not in seen:
            seen.add(url)
            images.append({"url": url, "alt": str(img.get("alt") or "")})
    return images


def _merge_tags(*groups: Iterable[str]) -> List[str]:
    merged: Dict[str, str] = {}
    for group in groups:
        for tag in group:
            tag = tag.strip()
            if tag and tag.lower() not in merged:
                merged[tag.lower()] = tag
    return list(merged.values())


class Pipeline:
    """One instance per process; each call is an independent unit of work.

    Only the keyword corpus (append-only) and the template catalog
    (read-only) are shared between concurrent calls.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        event_log: Optional[EventLog] = None,
        corpus: Optional[KeywordCorpus] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        self.corpus = corpus if corpus is not None else KeywordCorpus()
        self.writer = VaultWriter(self.settings.vault_path)
        self.backup = TempFileBackup(self.settings.fallback_dir)

        fallbacks = FallbackRegistry()
        fallbacks.register("scraper", "extract", self._simple_scrape)
        fallbacks.register("template", "apply", render_minimal)
        fallbacks.register("storage", "save", self.backup.save)
        self.guard = Guard(
            event_log=event_log or LoggingEventLog(),
            fallbacks=fallbacks,
            sleep=sleep,
            retry_attempts=self.settings.retry_attempts,
            cooldown=self.settings.rate_limit_cooldown,
        )

    # -- extraction ---------------------------------------------------------

    async def _load(self, source: str) -> Tuple[str, Optional[str]]:
        if is_url(source):
            url = source.strip()
            return await fetch_url(url), url
        return source, None

    @staticmethod
    def _parse_and_extract(
        html: str, url: Optional[str], extractor: Callable[[ParsedDocument], ExtractedContent]
    ) -> ScrapedPage:
        document = parse_document(html, url)
        return ScrapedPage(document, extractor(document))

    async def _scrape(self, source: str) -> ScrapedPage:
        html, url = await self._load(source)
        # CPU-bound: runs in a worker thread.
        return await asyncio.to_thread(self._parse_and_extract, html, url, extract_content)

    async def _simple_scrape(self, source: str) -> ScrapedPage:
        """Fetch-and-parse without the strategy chain."""
        html, url = await self._load(source)
        return await asyncio.to_thread(self._parse_and_extract, html, url, simple_extract)

    async def extract(self, source: str, user_id: Optional[str] = None) -> ScrapedPage:
        """Fetch (when *source* is a URL) and extract the page body.

        Raises:
            ValueError: if *source* is a URL that is malformed or points at a
                private address. Bad input is never retried.
        """
        if is_url(source):
            validate_url(source.strip())
        context = ErrorContext(
            service_name="scraper",
            operation_name="extract",
            parameters={"source": source},
            user_id=user_id,
        )
        return await self.guard.guard(lambda: self._scrape(source), context)

    # -- analysis -----------------------------------------------------------

    async def _analyze(self, page: ScrapedPage) -> Tuple[List[KeywordScore], Genre]:
        # Both are pure over already-fetched data.
        keywords, genre = await asyncio.gather(
            asyncio.to_thread(rank_keywords, page.content.body_text, self.corpus),
            asyncio.to_thread(classify, page.document, page.content),
        )
        self.corpus.add(page.content.body_text)
        return keywords, genre

    async def analyze(self, page: ScrapedPage, user_id: Optional[str] = None) -> Tuple[List[KeywordScore], Genre]:
        context = ErrorContext(
            service_name="analyzer",
            operation_name="analyze",
            parameters={"url": page.document.url, "title": page.content.title},
            user_id=user_id,
        )
        return await self.guard.guard(lambda: self._analyze(page), context)

    async def choose_template(
        self,
        page: ScrapedPage,
        genre: Genre,
        keywords: Sequence[KeywordScore],
        tags: Sequence[str],
        user_id: Optional[str] = None,
    ) -> str:
        context = ErrorContext(
            service_name="template",
            operation_name="select",
            parameters={"genre": genre.value, "tags": list(tags)},
            user_id=user_id,
        )
        signals = collect_signals(page.document, page.content, tags)
        return await self.guard.guard(
            lambda: select_template(genre, keywords, signals, get_catalog()), context
        )

    # -- rendering & storage --------------------------------------------------

    async def render(self, template_id: str, payload: Dict[str, Any], user_id: Optional[str] = None) -> str:
        validated = await self.guard.guard(
            lambda: validate_payload(payload),
            ErrorContext(
                service_name="template",
                operation_name="validate",
                parameters={"title": payload.get("title")},
                user_id=user_id,
            ),
        )
        return await self.guard.guard(
            lambda: render(template_id, validated),
            ErrorContext(
                service_name="template",
                operation_name="apply",
                parameters={"template_id": template_id, "payload": validated},
                user_id=user_id,
            ),
        )

    async def persist(self, rendered: str, folder: str, title: str, user_id: Optional[str] = None) -> str:
        context = ErrorContext(
            service_name="storage",
            operation_name="save",
            parameters={"rendered": rendered, "folder": folder, "title": title},
            user_id=user_id,
        )
        return await self.guard.guard(lambda: self.writer.persist(rendered, folder, title), context)

    # -- entry points ---------------------------------------------------------

    async def ingest(
        self,
        source: str,
        tags: Sequence[str] = (),
        user_id: Optional[str] = None,
        template_id: Optional[str] = None,
        persist: bool = False,
    ) -> IngestResult:
        """Run the whole pipeline for one URL or markup string.

        Raises:
            ValueError: if *template_id* is not a catalog template, or *source*
                is a URL that fails validation.
        """
        if template_id is not None and template_id not in catalog_ids():
            raise ValueError(f"Unknown template: {template_id}")
        page = await self.extract(source, user_id)
        document, content = page
        keywords, genre = await self.analyze(page, user_id)
        all_tags = _merge_tags(tags, document.metadata.tags)
        if template_id is None:
            template_id = await self.choose_template(page, genre, keywords, all_tags, user_id)
        logger.info(
            "Classified %s as %s using template %s",
            document.url or "<markup>",
            genre.value,
            template_id,
        )

        markdown = to_markdown(content.body_html)
        metadata: Dict[str, Any] = {
            **document.metadata.as_dict(),
            "content_type": genre.value,
            "extraction_strategy": content.strategy,
            "word_count": content.word_count,
            "reading_time": content.reading_time,
            "keywords": [k.term for k in keywords],
        }
        if genre is Genre.AFFILIATE_POST:
            enhancement = enhance(markdown, keywords)
            markdown = enhancement.content
            metadata["enhanced"] = True
            metadata["structure"] = enhancement.structure._asdict()

        folder = folder_structure(genre.value, [k.term for k in keywords])
        metadata["folder"] = folder.path
        payload = {
            "title": content.title,
            "url": document.url,
            "excerpt": content.excerpt,
            "content": markdown,
            "genre": genre.value,
            "tags": all_tags,
            "keywords": [k.term for k in keywords],
            "images": _images(content, document.url),
            "reading_time": content.reading_time,
            "metadata": metadata,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        rendered = await self.render(template_id, payload, user_id)

        path = None
        if persist:
            path = await self.persist(rendered, folder.path, content.title, user_id)

        return IngestResult(
            url=document.url,
            title=content.title,
            excerpt=content.excerpt,
            genre=genre,
            template_id=template_id,
            keywords=keywords,
            content_markdown=rendered,
            metadata=metadata,
            word_count=content.word_count,
            reading_time=content.reading_time,
            folder=folder.path,
            path=path,
        )

    async def clip(
        self,
        url: str,
        selection: Optional[str] = None,
        title: Optional[str] = None,
        tags: Sequence[str] = (),
        user_id: Optional[str] = None,
        persist: bool = True,
    ) -> ClipResult:
        """Save a browser clip: the selected text verbatim, or the scraped page."""
        metadata: Dict[str, Any] = {"source_url": url, "clipped_at": datetime.now(timezone.utc).isoformat()}
        if selection and selection.strip():
            content = selection.strip()
            title = title or "Untitled Clip"
            metadata["is_partial_content"] = True
        else:
            document, extracted = await self.extract(url, user_id)
            content = to_markdown(extracted.body_html)
            title = title or extracted.title
            metadata.update(document.metadata.as_dict())
            metadata["word_count"] = extracted.word_count

        payload = {
            "title": title,
            "url": url,
            "content": content,
            "tags": list(tags),
            "metadata": metadata,
        }
        rendered = await self.render(CLIP_TEMPLATE, payload, user_id)
        folder = tags[0] if tags else DEFAULT_CLIP_FOLDER
        path = await self.persist(rendered, folder, title or "", user_id) if persist else None
        return ClipResult(
            title=title or "",
            content_markdown=rendered,
            folder=folder,
            path=path,
            partial=bool(metadata.get("is_partial_content")),
        )


@lru_cache(maxsize=1)
def get_pipeline() -> Pipeline:
    """Process-wide pipeline; used as a FastAPI dependency."""
    return Pipeline()
