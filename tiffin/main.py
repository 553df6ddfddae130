"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import Depends, FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tiffin.api import router
from tiffin.api.dependencies import get_db
from tiffin.api.websocket import handle_change_stream
from tiffin.config import get_settings
from tiffin.errors import MarketplaceError
from tiffin.state.manager import get_state_manager
from tiffin.state.repository import Database
from tiffin.utils.logging import get_logger, setup_logging

# Setup logging first
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    logger.info("application_starting")

    state_manager = await get_state_manager()
    logger.info("state_manager_initialized")

    yield

    # Shutdown
    logger.info("application_shutting_down")
    await state_manager.disconnect()


app = FastAPI(
    title="Tiffin Marketplace",
    description="Multi-vendor food delivery marketplace API",
    version="0.1.0",
    lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    """Render domain errors as ``{"error": CODE, "detail": ...}``."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "request_failed",
        path=request.url.path,
        method=request.method,
        status_code=exc.status_code,
        error=exc.code,
        detail=exc.detail,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_content())


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": "tiffin-marketplace"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "message": "Tiffin Marketplace API",
        "docs": "/docs",
        "health": "/health",
    }


app.include_router(router, prefix="/api/v1")


@app.websocket("/ws/changes")
async def changes_websocket(
    websocket: WebSocket,
    tables: str | None = None,
    token: str | None = None,
    db: Database = Depends(get_db),
) -> None:
    """Realtime change notifications for the user behind ``token``."""
    await handle_change_stream(websocket, db, tables, token)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tiffin.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.environment == "development",
    )
