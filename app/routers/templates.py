from typing import List

from fastapi import APIRouter, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.models.template import TemplateInfo
from app.services.templates import get_catalog

limiter = Limiter(key_func=get_remote_address)
router = APIRouter(tags=["Templates"])


@router.get("/templates", response_model=List[TemplateInfo], summary="List catalog templates")
@limiter.limit("30/minute")
async def list_templates(request: Request) -> List[TemplateInfo]:
    return [
        TemplateInfo(
            id=candidate.id,
            name=candidate.name,
            description=candidate.description,
            default_tags=list(candidate.default_tags),
        )
        for candidate in get_catalog()
    ]
