"""Browser-extension clipping endpoint."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.models.request import ClipRequest
from app.models.response import ClipResponse
from app.services.pipeline import Pipeline, get_pipeline

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
router = APIRouter(tags=["Clipper"])


@router.post(
    "/clip",
    response_model=ClipResponse,
    summary="Save a web clip",
    description=(
        "Saves the text selected in the browser verbatim, or the extracted "
        "page body when no selection is sent. The note is rendered with the "
        "`web-clip` template and filed under the first tag (or `web-clips`)."
    ),
)
@limiter.limit("20/minute")
async def clip(
    request: Request,
    body: ClipRequest,
    pipeline: Pipeline = Depends(get_pipeline),
) -> ClipResponse:
    url = str(body.url)
    logger.info("Clip request received", extra={"url": url, "partial": bool(body.selection)})

    try:
        result = await pipeline.clip(
            url,
            selection=body.selection,
            title=body.title,
            tags=body.tags,
            user_id=body.user_id,
        )
    except ValueError as exc:
        logger.warning("Invalid or blocked URL: %s – %s", url, exc)
        raise HTTPException(status_code=400, detail=str(exc))

    return ClipResponse(**result._asdict())
