"""
Tubely API application.

create_app builds a fresh FastAPI instance from the current Settings;
tests call it after changing the environment. The module-level `app`
is the one servers import.

For local development:
    uvicorn tubely.main:app --reload --port 8091

For production:
    gunicorn tubely.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .api.routes import health, videos
from .config.settings import get_settings
from .core.media.errors import UploadError

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Runs on startup and shutdown. Startup logs the active mock modes and
    any missing configuration so a misconfigured deploy shows up in the
    first lines of output.
    """
    settings = get_settings()

    logger.info(
        "Tubely API starting",
        extra={
            "version": settings.api_version,
            "mock_mode": {
                "snowflake": settings.snowflake_mock_mode,
                "s3": settings.s3_mock_mode,
                "media_tool": settings.media_tool_mock_mode,
            }
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        # Readiness reports these too; the process still starts
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )

    yield

    logger.info("Tubely API shutting down")


def create_app() -> FastAPI:
    """Build the app: middleware, routers, static assets and error handlers."""
    settings = get_settings()

    logging.getLogger().setLevel(settings.log_level.upper())

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Media upload backend for videos and thumbnails.

        ## Authentication

        All video endpoints require a JWT in the `Authorization: Bearer` header.

        ## Workflow

        1. **Create a video**: `POST /api/v1/videos`
        2. **Upload the file**: `POST /api/v1/videos/{video_id}/video`
           - MP4 only, remuxed for fast start and stored by orientation
        3. **Add a thumbnail**: `POST /api/v1/videos/{video_id}/thumbnail`
           - JPEG or PNG, served from `/assets`
        4. **Watch**: `GET /api/v1/videos/{video_id}`
           - Returns a short-lived presigned `video_url`
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        videos.router,
        prefix="/api/v1/videos",
        tags=["Videos"],
    )

    # Thumbnails are plain files served straight from disk
    settings.assets_root.mkdir(parents=True, exist_ok=True)
    app.mount(
        "/assets",
        StaticFiles(directory=settings.assets_root),
        name="assets",
    )

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint - points at the docs."""
        return {
            "message": "Tubely API",
            "version": settings.api_version,
            "docs": "/docs",
            "health": "/health",
        }

    @app.exception_handler(UploadError)
    async def upload_error_handler(request: Request, exc: UploadError):
        """
        Map pipeline errors to their HTTP status.

        Client errors echo the message; server errors only return the
        error class's public message, the detail stays in the logs.
        """
        if exc.status_code >= 500:
            logger.error(
                "Request failed",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "error_type": type(exc).__name__,
                    "error": exc.message,
                },
            )
            detail = exc.public_message
        else:
            logger.info(
                "Request rejected",
                extra={
                    "path": request.url.path,
                    "status_code": exc.status_code,
                    "error": exc.message,
                },
            )
            detail = exc.message

        return JSONResponse(status_code=exc.status_code, content={"detail": detail})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Bad path ids and request bodies are invalid input: 400 with a string detail."""
        problems = []
        for error in exc.errors():
            loc = [str(part) for part in error.get("loc", ())]
            location = ".".join(loc[1:]) or ".".join(loc) or "request"
            problems.append(f"{location}: {error['msg']}")
        detail = "; ".join(problems) or "Invalid request"

        logger.info(
            "Request rejected",
            extra={"path": request.url.path, "status_code": 400, "error": detail},
        )
        return JSONResponse(status_code=400, content={"detail": detail})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        """Anything that isn't an UploadError: full trace in the log, generic 500 out."""
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"}
        )

    logger.info("Tubely app created", extra={"api_version": settings.api_version})

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "tubely.main:app",
        host="0.0.0.0",
        port=8091,
        reload=True,
        log_level=settings.log_level.lower(),
    )
