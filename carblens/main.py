"""CarbLens FastAPI application."""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from carblens import __version__
from carblens.config import settings
from carblens.core.errors import AnalysisError
from carblens.logging_config import get_logger, setup_logging
from carblens.middleware import CorrelationIdMiddleware
from carblens.routers import analyze, health
from carblens.services.ai_client import get_ai_client

setup_logging(
    log_format=settings.log_format,
    log_level=settings.log_level,
    service_name=settings.service_name,
)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the process-wide vision client and log the startup banner."""
    app.state.ai_client = get_ai_client(
        settings.ai_provider,
        settings.ai_api_key,
        model=settings.ai_model,
        base_url=settings.ai_base_url,
        max_tokens=settings.ai_max_tokens,
        timeout=settings.ai_timeout_seconds,
    )

    logger.info(
        "CarbLens API started",
        port=settings.port,
        provider=settings.ai_provider.value,
        api_key_configured=bool(settings.ai_api_key),
        prompt_version=settings.prompt_version.value,
        endpoints=["GET /", "GET /health/live", "POST /api/analyze"],
    )
    if not settings.ai_api_key:
        logger.warning("No API key configured for the vision provider")

    yield

    logger.info("CarbLens API shutdown complete")


app = FastAPI(
    title="CarbLens API",
    description="Meal photo carbohydrate estimation with server-side insulin dosing",
    version=__version__,
    lifespan=lifespan,
)

# Middleware (order matters: first added = last executed)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(CorrelationIdMiddleware)

app.include_router(health.router)
app.include_router(analyze.router)


@app.exception_handler(AnalysisError)
async def analysis_error_handler(request: Request, exc: AnalysisError) -> JSONResponse:
    """Render a classified pipeline failure as a structured error body."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Analysis request failed",
        path=request.url.path,
        kind=exc.kind.value,
        status_code=exc.status_code,
        reason=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Standard 422 body without the offending input values.

    Inputs may hold non-finite floats (not representable in JSON) or the
    base64 image itself.
    """
    errors = [
        {key: value for key, value in error.items() if key not in ("input", "ctx")}
        for error in exc.errors()
    ]
    logger.warning(
        "Request validation failed",
        path=request.url.path,
        error_count=len(errors),
        fields=[".".join(str(p) for p in error["loc"]) for error in errors],
    )
    return JSONResponse(
        status_code=422,
        content={"detail": jsonable_encoder(errors)},
    )


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    uvicorn.run(
        "carblens.main:app",
        host="0.0.0.0",
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
