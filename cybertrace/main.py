"""FastAPI application entry point."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from cybertrace import __version__
from cybertrace.config import get_settings
from cybertrace.database import init_db
from cybertrace.errors import ChatNotFound, ModelInvocationError, PersistenceError, Unauthorized
from cybertrace.logging_config import configure_logging
from cybertrace.middleware import RateLimitMiddleware
from cybertrace.routers import chat, chats, health

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)
    await init_db()
    logger.info(
        "app_started",
        model=settings.model_name,
        model_configured=settings.model_configured,
        tool_server_transport=settings.tool_server_transport,
    )
    yield


app = FastAPI(
    title="CybertraceAI-Ops",
    description="Chat backend for network observability with tool-using language models",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(RateLimitMiddleware)

app.include_router(health.router)
app.include_router(chat.router)
app.include_router(chats.router)


@app.exception_handler(Unauthorized)
async def unauthorized_handler(request: Request, exc: Unauthorized) -> JSONResponse:
    return JSONResponse(status_code=401, content={"detail": "Unauthorized"})


@app.exception_handler(ChatNotFound)
async def chat_not_found_handler(request: Request, exc: ChatNotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": "Chat not found"})


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    logger.error("request_failed", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.exception_handler(ModelInvocationError)
async def model_error_handler(request: Request, exc: ModelInvocationError) -> JSONResponse:
    logger.error("model_failed", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=500,
        content={"detail": "An error occurred while processing your request."},
    )
