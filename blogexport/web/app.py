"""
FastAPI-based web service for the blog exporter.

Exposes the two pipelines as JSON-in, XML-out endpoints:

- ``POST /api/aggregate`` rebuilds a blog's complete feed
- ``POST /api/transcode`` converts a feed into a Blogger import document

Error responses are always ``{"error": "<message>"}``.
"""
from datetime import datetime, timezone
from typing import Optional

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from prometheus_client import make_asgi_app
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from blogexport.config import Settings, load_profile, load_settings
from blogexport.errors import ExportError, InputError, InternalError
from blogexport.feeds.aggregator import FeedAggregator
from blogexport.feeds.codec import serialize
from blogexport.feeds.transcoder import FeedTranscoder, export_filename

# Set up structured logger
logger = structlog.get_logger()

XML_MEDIA_TYPE = "application/xml"


class AggregateRequest(BaseModel):
    """Body of the aggregate endpoint."""
    url: Optional[str] = None


class TranscodeRequest(BaseModel):
    """Body of the transcode endpoint."""
    rssData: Optional[str] = None


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings; loaded from the environment if omitted
        transport: Optional httpx transport for outbound feed requests
    """
    settings = settings or load_settings()

    app = FastAPI(
        title="Blogger Archive Exporter",
        description="Rebuilds Blogger feeds and converts them into import documents",
        version=settings.version,
        debug=settings.debug,
    )

    # Static data is loaded once; each request builds its own aggregator
    app.state.settings = settings
    app.state.transcoder = FeedTranscoder(
        load_profile(settings.transcoder),
        settings.aggregator.classification,
    )

    if settings.metrics.prometheus_enabled:
        app.mount("/metrics", make_asgi_app())

    @app.exception_handler(ExportError)
    async def export_error_handler(request: Request, exc: ExportError):
        logger.warning(
            "Request failed",
            path=request.url.path,
            status_code=exc.status_code,
            error=exc.message,
        )
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.info("Invalid request body", path=request.url.path, errors=exc.errors())
        return _error(400, "Invalid request body")

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error", path=request.url.path, error=str(exc))
        error = InternalError("Internal Server Error")
        return _error(error.status_code, error.message)

    @app.post("/api/aggregate")
    async def aggregate(body: AggregateRequest) -> Response:
        """Fetch every page of a blog's feed and return the merged feed."""
        if not body.url:
            raise InputError("URL is required")

        aggregator = FeedAggregator(settings.aggregator, transport=transport)
        document = await aggregator.aggregate(body.url)
        return Response(content=serialize(document.to_element()), media_type=XML_MEDIA_TYPE)

    @app.post("/api/transcode")
    async def transcode(body: TranscodeRequest) -> Response:
        """Convert a feed into a downloadable Blogger import document."""
        if not body.rssData:
            raise InputError("No RSS data provided")

        xml = app.state.transcoder.transcode(body.rssData)
        filename = export_filename()
        return Response(
            content=xml,
            media_type=XML_MEDIA_TYPE,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc),
            "version": settings.version,
        }

    return app
