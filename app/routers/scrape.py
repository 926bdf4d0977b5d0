import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.models.request import ScrapeRequest
from app.models.response import ScrapeResponse
from app.services.pipeline import Pipeline, get_pipeline

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
router = APIRouter()


@router.post("/scrape", response_model=ScrapeResponse, summary="Ingest a web page into a Markdown note")
@limiter.limit("10/minute")
async def scrape(
    request: Request,
    body: ScrapeRequest,
    pipeline: Pipeline = Depends(get_pipeline),
) -> ScrapeResponse:
    """Fetch *url* (or take *html* as-is), classify it and render it through a template.

    Stage failures are recovered where possible (retry, cooldown, fallback);
    an unrecoverable one is answered with a 502 carrying the error context.
    """
    source = str(body.url) if body.url is not None else body.html
    logger.info(
        "Scrape request received",
        extra={"url": str(body.url) if body.url else None, "persist": body.persist},
    )

    try:
        result = await pipeline.ingest(
            source,
            tags=body.tags,
            user_id=body.user_id,
            template_id=body.template_id,
            persist=body.persist,
        )
    except ValueError as exc:
        logger.warning("Rejected scrape request for %s – %s", body.url or "<markup>", exc)
        raise HTTPException(status_code=400, detail=str(exc))

    return ScrapeResponse(
        url=result.url,
        title=result.title,
        excerpt=result.excerpt,
        genre=result.genre.value,
        template_id=result.template_id,
        keywords=result.keywords,
        content_markdown=result.content_markdown,
        metadata=result.metadata,
        word_count=result.word_count,
        reading_time=result.reading_time,
        strategy=result.metadata.get("extraction_strategy", ""),
        folder=result.folder,
        path=result.path,
    )
