"""FastAPI application entry point."""

import logging
import os
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from lingua_progress.api.routes import get_orchestrator, router
from lingua_progress.config import get_settings
from lingua_progress.errors import StoreUnavailable

logger = structlog.get_logger()


def configure_logging(production: bool) -> None:
    """JSON logs in production, console rendering otherwise."""
    renderer = structlog.processors.JSONRenderer() if production else structlog.dev.ConsoleRenderer()
    level = logging.INFO if production else logging.DEBUG
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging(os.getenv("ENV", "development").lower() == "production")


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if get_orchestrator.cache_info().currsize:
        await get_orchestrator().ledger.store.close()


app = FastAPI(title="Lingua Progress", version="0.1.0", lifespan=lifespan)
app.include_router(router)


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable) -> JSONResponse:
    logger.error("store_unavailable", path=request.url.path, error=str(exc))
    return JSONResponse({"error": "Storage temporarily unavailable"}, status_code=503)


def main() -> None:
    """Run the application."""
    settings = get_settings()
    uvicorn.run(
        "lingua_progress.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":
    main()
