import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.exc import DBAPIError, IntegrityError

from apps.api.middlewares.metrics import MetricsMiddleware
from apps.api.routers import health, identity, matches, queue, requests, sessions, users
from core import close_redis
from core.config import settings
from core.errors import ChatCoreError, Conflict

logger = logging.getLogger(__name__)

SERIALIZATION_FAILURE = "40001"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    logging.basicConfig(level=logging.DEBUG if settings.is_development else logging.INFO)
    yield
    # Shutdown
    await close_redis()


app = FastAPI(
    title="Blind Date Chat API",
    description="Random-pairing chat: queue, speed dating sessions, mutual reveal and reconnection",
    version="0.1.0",
    lifespan=lifespan,
)

# Middlewares
app.add_middleware(MetricsMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.is_development else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ChatCoreError)
async def chat_core_error_handler(request: Request, exc: ChatCoreError) -> JSONResponse:
    """Render domain errors as {"error": code, "detail": message}."""
    return JSONResponse(status_code=exc.status_code, content={"error": exc.code, "detail": exc.detail})


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    """A uniqueness rule lost a race with a concurrent transaction."""
    logger.warning(f"Integrity conflict on {request.method} {request.url.path}: {exc.orig}")
    return await chat_core_error_handler(request, Conflict("Conflicting concurrent change, please retry"))


@app.exception_handler(DBAPIError)
async def dbapi_error_handler(request: Request, exc: DBAPIError) -> JSONResponse:
    """Serializable transactions that lost a conflict surface as 409; anything else is a 500."""
    if getattr(exc.orig, "sqlstate", None) == SERIALIZATION_FAILURE:
        logger.info(f"Serialization failure on {request.method} {request.url.path}")
        return await chat_core_error_handler(request, Conflict("Concurrent update, please retry"))
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": "internal_error", "detail": "Database error"})


# Include routers
app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(queue.router, prefix="/queue", tags=["queue"])
app.include_router(sessions.router, prefix="/sessions", tags=["sessions"])
app.include_router(matches.router, prefix="/matches", tags=["matches"])
app.include_router(requests.router, prefix="/requests", tags=["requests"])
app.include_router(users.router, prefix="/users", tags=["users"])
app.include_router(identity.router, prefix="/identity", tags=["identity"])


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"status": "ok", "service": "blind-date-chat"}


@app.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("apps.api.main:app", host="0.0.0.0", port=settings.api_port)
