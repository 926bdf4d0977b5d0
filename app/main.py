import logging
import logging.config

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.config import get_settings
from app.routers.clip import router as clip_router
from app.routers.scrape import limiter, router as scrape_router
from app.routers.templates import router as templates_router
from app.services.errors import GuardError

settings = get_settings()

logging.config.dictConfig(
    {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "format": '{"time": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s"}',
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
            },
        },
        "root": {"level": settings.log_level, "handlers": ["console"]},
    }
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Vaultclip – Content Ingestion API",
    description=(
        "Fetches a page, extracts and classifies its content, and renders it "
        "into a Markdown note for a knowledge vault."
    ),
    version="1.0.0",
)

# Rate-limiting state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(GuardError)
async def guard_exception_handler(request: Request, exc: GuardError) -> JSONResponse:
    logger.error(
        "Pipeline failure for %s: %s.%s %s",
        request.url,
        exc.context.service_name,
        exc.context.operation_name,
        exc.kind.value,
    )
    return JSONResponse(
        status_code=502,
        content=exc.to_response(include_original=settings.is_development),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception for %s", request.url)
    return JSONResponse(status_code=500, content={"detail": "An unexpected error occurred."})


app.include_router(scrape_router)
app.include_router(clip_router)
app.include_router(templates_router)


@app.get("/", summary="Health check")
async def root() -> dict:
    return {"message": "Hello from Vaultclip", "environment": settings.app_env}
