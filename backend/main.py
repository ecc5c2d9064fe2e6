from datetime import datetime, timezone
from typing import Optional
import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from enhancement_service import EnhancementService
from errors import AppError
from llm_client import LLMClient
from routes import enhance_router, health_router
from routes.enhance import logs_router
from settings import ServerSettings, load_server_settings, validate_ai_config
from telemetry import DiagnosticLog

logger = logging.getLogger(__name__)


def _error_body(request: Request, message: str, status_code: int, details=None) -> dict:
    error = {
        "message": message,
        "status_code": status_code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": request.url.path,
        "method": request.method,
    }
    if details:
        error["details"] = details
    return {"error": error}


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or "info").upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(
    service: Optional[EnhancementService] = None,
    settings: Optional[ServerSettings] = None,
) -> FastAPI:
    settings = settings or load_server_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Contract Enforcement API",
        description="Prompt enhancement with task-specific output contracts",
        version="1.0.0",
    )

    if service is None:
        valid, errors = validate_ai_config()
        if not valid:
            logger.warning("AI configuration incomplete: %s", ", ".join(errors))
        diagnostics = DiagnosticLog()
        service = EnhancementService(
            LLMClient(diagnostics=diagnostics),
            diagnostics=diagnostics,
            logging_enabled=settings.enable_logging,
        )

    app.state.settings = settings
    app.state.enhancement_service = service
    app.state.diagnostics = service.diagnostics

    # CORS settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.cors_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(enhance_router)
    if settings.enable_logging:
        app.include_router(logs_router)
    app.include_router(health_router)

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.message, exc.status_code, exc.details),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        details = [
            {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg", "")}
            for err in exc.errors()
        ]
        return JSONResponse(status_code=400, content=_error_body(request, "Validation error", 400, details))

    @app.get("/")
    async def root():
        return {
            "message": "Contract Enforcement API",
            "version": "1.0.0",
        }

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
