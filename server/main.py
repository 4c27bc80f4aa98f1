"""
MuchToDo API: task lists with user accounts.

FastAPI backend with dependency injection, a bearer-token auth gate, and a
TTL cache that is pre-warmed with taken usernames at startup.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from core.container import container
from core.exceptions import (
    InvalidCredentialsError,
    MuchToDoError,
    SourceUnavailableError,
    TodoNotFoundError,
    UserNotFoundError,
    UsernameTakenError,
    ValidationError,
)
from core.health import get_health_status, set_startup_time
from core.logging import configure_logging, get_logger
from middleware.auth import AuthMiddleware
from routers import auth, todos, users

# Initialize settings and logging
settings = container.settings()
configure_logging(settings)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management.

    The cache warm-up runs before the app starts accepting requests and is
    bounded by its own timeout, so a slow or failing preload never blocks
    startup indefinitely.
    """
    logger.info("Starting MuchToDo API")
    set_startup_time()

    database = container.database()
    cache = container.cache()
    cleanup = container.cleanup_service()

    await database.startup()
    await cache.startup()

    result = await container.cache_warmer().warm()
    logger.info("Username cache warm-up finished", status=result.status.value, count=result.count)

    await cleanup.start()

    logger.info("Services started successfully")
    yield

    # Shutdown
    await cleanup.stop()
    await cache.shutdown()
    await database.shutdown()
    logger.info("Services shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="MuchToDo API",
    version="1.0.0",
    description="ToDo application with user authentication",
    lifespan=lifespan,
    default_response_class=ORJSONResponse
)


# Error status for each application exception
ERROR_STATUS = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_CONTENT,
    UsernameTakenError: status.HTTP_409_CONFLICT,
    InvalidCredentialsError: status.HTTP_401_UNAUTHORIZED,
    UserNotFoundError: status.HTTP_404_NOT_FOUND,
    TodoNotFoundError: status.HTTP_404_NOT_FOUND,
    SourceUnavailableError: status.HTTP_503_SERVICE_UNAVAILABLE,
}

ERROR_MESSAGE = {
    UserNotFoundError: "User not found",
    TodoNotFoundError: "Todo not found",
    SourceUnavailableError: "Service temporarily unavailable",
}


@app.exception_handler(MuchToDoError)
async def handle_app_error(request: Request, exc: MuchToDoError):
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    message = ERROR_MESSAGE.get(type(exc), str(exc))
    if status_code >= 500:
        logger.error("Request failed", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=status_code, content={"error": message})


@app.exception_handler(StarletteHTTPException)
async def handle_http_error(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    if exc.status_code == status.HTTP_404_NOT_FOUND and detail == "Not Found":
        detail = "Route not found"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": detail},
        headers=getattr(exc, "headers", None),
    )


class CatchAllExceptionsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled exception: {type(e).__name__}: {str(e)}", exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": "Internal server error"}
            )


# Last added runs first: CORS, then error catching, then the auth gate
app.add_middleware(AuthMiddleware)
app.add_middleware(CatchAllExceptionsMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(todos.router)


@app.get("/")
async def root():
    return {"message": "Welcome to MuchToDo API"}


@app.get("/ping")
async def ping():
    return {"message": "pong"}


@app.get("/health")
async def health_check():
    """Database and cache connectivity."""
    report = await get_health_status(container.database(), container.cache(), container.settings())
    status_code = (status.HTTP_503_SERVICE_UNAVAILABLE if report["status"] == "unhealthy"
                   else status.HTTP_200_OK)
    return JSONResponse(status_code=status_code, content=report)


if __name__ == "__main__":
    import uvicorn

    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logger.info("Starting MuchToDo API", host=settings.host, port=settings.port, debug=settings.debug)
    # SIGINT/SIGTERM give in-flight requests a bounded grace period before the listener closes
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        timeout_graceful_shutdown=settings.shutdown_grace_seconds,
    )
