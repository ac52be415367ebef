"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Callable

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from square_connect.core.database import Base, check_connection, get_engine
from square_connect.core.dependencies import get_callback_handler, get_settings
from square_connect.plugins.square import create_square_router

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("api")


# Request tracing middleware
class RequestTracingMiddleware(BaseHTTPMiddleware):
    """Request tracing middleware."""

    async def dispatch(self, request: Request, call_next: Callable) -> Any:
        # Query strings carry authorization codes, so only the path is logged
        logger.info("Request: %s %s", request.method, request.url.path)

        response = await call_next(request)

        logger.info("Response status: %s", response.status_code)
        return response


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan for the FastAPI application."""
    engine = get_engine()
    check_connection(engine)
    logger.info("Initializing database...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database initialized successfully!")
    yield
    engine.dispose()


app = FastAPI(
    title="Square Connect API",
    description="Square OAuth callback for organization connections",
    version="1.0.0",
    lifespan=lifespan,
)

# Add request tracing middleware
app.add_middleware(RequestTracingMiddleware)

# Resolve the values at startup
settings = get_settings()
app.include_router(
    create_square_router(get_callback_handler(), settings),
    prefix="/api/square",
)


@app.get("/")
async def root() -> dict:
    """Root endpoint."""
    return {"message": "Welcome to the Square Connect API"}
