from __future__ import annotations

from datetime import UTC, datetime
from typing import Optional
from dotenv import load_dotenv
import logging
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from .deps import build_services
from .routers.chat import router as chat_router
from .routers.listing import router as listing_router
from .routers.system_prompt import router as system_prompt_router
from ..core.settings import Settings, get_settings
from ..domain.errors import CompletionError, CorruptState, ValidationError
from ..observability.metrics import metrics_middleware_factory

load_dotenv()  # Load environment variables from .env if present (OPENAI_API_KEY, SITECHAT_*, etc.)

logger = logging.getLogger("sitechat.api")

APP_NAME = "SiteChat API"
APP_VERSION = "0.1.0"
GENERIC_SERVER_ERROR = "Server error while generating the reply."


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(CompletionError)
    async def _completion_error(request: Request, exc: CompletionError) -> JSONResponse:
        # Upstream details are already logged by the client; keep the response generic
        logger.error("chat_turn_failed", extra={"path": request.url.path, "err": str(exc)})
        return JSONResponse(status_code=500, content={"error": GENERIC_SERVER_ERROR})

    @app.exception_handler(CorruptState)
    async def _corrupt_state(request: Request, exc: CorruptState) -> JSONResponse:
        logger.error("stored_record_unreadable", extra={"location": exc.location, "reason": exc.reason})
        return JSONResponse(status_code=500, content={"error": "Stored chat history could not be read."})


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title=APP_NAME, version=APP_VERSION)
    app.state.services = build_services(settings)

    # Observability: request latency histogram
    app.middleware("http")(metrics_middleware_factory())

    app.include_router(chat_router)
    app.include_router(system_prompt_router)
    app.include_router(listing_router)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app)

    # Serve generated artifacts at /artifacts/<project>.html
    app.mount(
        "/artifacts",
        StaticFiles(directory=str(settings.artifact_dir), html=True, check_dir=False),
        name="artifacts",
    )

    @app.get("/")
    def root():
        return {"name": APP_NAME, "version": APP_VERSION}

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "components": {
                "api": "ok",
                "store": settings.store_impl,
                "auto_commit": settings.auto_commit,
            },
        }

    @app.get("/metrics")
    def metrics() -> Response:
        # Expose Prometheus metrics
        data = generate_latest(REGISTRY)
        return Response(content=data, media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app()
