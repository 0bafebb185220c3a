"""
FastAPI application serving the WebUntis RSS feed.
"""

from pathlib import Path

import structlog
from fastapi import FastAPI, HTTPException, status
from fastapi.responses import PlainTextResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.config import APIConfig

logger = structlog.get_logger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent

FEED_MEDIA_TYPE = "application/rss+xml"
FAVICON_MEDIA_TYPE = "image/svg+xml"
FEED_NOT_FOUND = "Feed not found. Please wait for the first fetch."


def resolve_favicon(favicon_path: str) -> Path:
    """Favicon file location; relative paths are taken from the project root."""
    path = Path(favicon_path)
    return path if path.is_absolute() else PROJECT_ROOT / path


def create_app(api_config: APIConfig) -> FastAPI:
    """
    Build the HTTP application.

    Args:
        api_config: Server settings, including the feed and icon file paths

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title=api_config.api_title,
        description=api_config.api_description,
        version=api_config.api_version,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.config = api_config

    feed_file = Path(api_config.feed_file)
    favicon_file = resolve_favicon(api_config.favicon_path)
    favicon_route = "/" + Path(api_config.favicon_path).name

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request, exc: StarletteHTTPException):
        """Plain text errors, as feed readers expect."""
        return PlainTextResponse(str(exc.detail), status_code=exc.status_code)

    @app.get("/feed.xml")
    async def get_feed():
        """The most recently published feed document."""
        try:
            content = feed_file.read_bytes()
        except OSError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=FEED_NOT_FOUND)
        return Response(content=content, media_type=FEED_MEDIA_TYPE)

    @app.get("/health")
    async def health_check():
        return PlainTextResponse("OK")

    @app.get(favicon_route)
    async def get_favicon():
        try:
            content = favicon_file.read_bytes()
        except OSError:
            logger.warning("Favicon not found", path=str(favicon_file))
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Favicon not found.")
        return Response(content=content, media_type=FAVICON_MEDIA_TYPE)

    logger.info("API application created", feed_file=str(feed_file), favicon=favicon_route)
    return app
