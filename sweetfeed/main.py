import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sweetfeed.api import decisions_router, feed_router, health_router
from sweetfeed.config import settings
from sweetfeed.db.database import init_db
from sweetfeed.models.failure import ApiResponse, KnownError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    await init_db()
    yield


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("sweetfeed"),
    lifespan=lifespan,
)

app.include_router(decisions_router)
app.include_router(feed_router)
app.include_router(health_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(KnownError)
async def known_error_handler(request: Request, exc: KnownError) -> JSONResponse:
    """Feed errors become a classified envelope with the error's status code."""
    logger.warning(
        "known_error",
        extra={"path": request.url.path, "kind": exc.kind.value, "detail": exc.detail},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(mode="json"),
    )


@app.exception_handler(Exception)
async def unknown_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything unexpected still leaves as a classified envelope."""
    logger.exception("unhandled_error", extra={"path": request.url.path})
    return JSONResponse(
        status_code=500,
        content=ApiResponse.unknown_failure(exc).model_dump(mode="json"),
    )
