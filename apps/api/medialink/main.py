from contextlib import asynccontextmanager
from datetime import UTC, datetime

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from medialink.core.config import Settings, settings as default_settings
from medialink.core.constants import YouTube
from medialink.core.errors import InvalidReference, ResolutionExhausted
from medialink.core.logging_setup import configure_logging
from medialink.core.middleware import RequestIDMiddleware
from medialink.models.references import ReferenceKind
from medialink.services.registry import StrategyRegistry, build_default_registry

VERSION = "1.0.0"

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    registry: StrategyRegistry = app.state.registry
    logger.info(
        "app.startup",
        environment=app.state.settings.ENVIRONMENT,
        strategies={kind.value: [s.name for s in registry.strategies_for(kind)] for kind in registry.kinds()},
    )
    yield
    logger.info("app.shutdown")


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(InvalidReference)
    async def invalid_reference_handler(request: Request, exc: InvalidReference):
        body = {"status": False, "error": str(exc)}
        if exc.kind == ReferenceKind.VIDEO.value:
            body["supported_formats"] = list(YouTube.SUPPORTED_FORMATS)
        return JSONResponse(status_code=400, content=body)

    @app.exception_handler(ResolutionExhausted)
    async def exhausted_handler(request: Request, exc: ResolutionExhausted):
        return JSONResponse(
            status_code=500,
            content={
                "status": False,
                "error": "All resolution strategies failed",
                "msg": "The upstream services might be temporarily down. Please try again later.",
                "attempts": [attempt.as_dict() for attempt in exc.attempts],
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content={"status": False, "error": "Endpoint not found"})
        return JSONResponse(status_code=exc.status_code, content={"status": False, "error": exc.detail})

    @app.exception_handler(Exception)
    async def unhandled_handler(request: Request, exc: Exception):
        logger.exception("request.error", method=request.method, path=request.url.path, error=str(exc))
        return JSONResponse(status_code=500, content={"status": False, "error": "Something went wrong!"})


def create_app(settings: Settings | None = None, registry: StrategyRegistry | None = None) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.LOG_LEVEL, settings.ENVIRONMENT)

    app = FastAPI(
        title="MediaLink API",
        description="Resolve video links into MP3 audio and film-catalog pages into download links",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.registry = registry or build_default_registry(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["Content-Disposition", "X-Request-ID"],
        max_age=3600,
    )
    app.add_middleware(RequestIDMiddleware)
    _register_error_handlers(app)

    from medialink.api.routes import audio, catalog

    app.include_router(audio.router, prefix="/api", tags=["audio"])
    app.include_router(catalog.router, prefix="/api/movies", tags=["catalog"])

    @app.get("/")
    async def root():
        return {
            "message": "MediaLink API is running!",
            "endpoints": {
                "/api/mp3": "GET - MP3 download info (youtubeUrl query parameter)",
                "/api/mp3/download": "POST - MP3 download info (youtubeUrl in body)",
                "/api/info": "GET - Video information (url query parameter)",
                "/api/download": "GET - Stream the MP3 file (url query parameter)",
                "/api/download-mp3": "GET - Stream the source audio without transcoding (url query parameter)",
                "/api/movies/search": "GET/POST - Catalog search (query, page)",
                "/api/movies/detail": "GET/POST - Catalog page details (url)",
                "/api/test": "GET - Resolve a sample video",
            },
            "example": "/api/mp3?youtubeUrl=https://www.youtube.com/watch?v=KK9bwTlAvgo",
        }

    @app.get("/health")
    async def health_check():
        return {"status": "OK", "timestamp": datetime.now(UTC).isoformat()}

    @app.get("/api/status")
    async def api_status():
        return {"status": "OK", "message": "MediaLink API is running", "version": VERSION}

    return app


app = create_app()


def run() -> None:
    uvicorn.run("medialink.main:app", host=default_settings.HOST, port=default_settings.PORT)
