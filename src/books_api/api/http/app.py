"""FastAPI application factory and setup."""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from starlette.responses import JSONResponse

from books_api.api.http.app_data import ApplicationDependencies
from books_api.api.http.routers import health
from books_api.api.http.routers.service import book
from books_api.api.utils.app_startup import configure_logging
from books_api.core.exceptions import BookServiceError
from books_api.core.services import (
    BookService,
    DbManageService,
    DbSessionService,
    RedisService,
)
from books_api.core.services.events.notifier import start_notifier
from books_api.core.storage import detect_cache_storage
from books_api.runtime.config.config_data import ConfigData
from books_api.runtime.context import get_config

__all__ = ["app", "create_app", "build_dependencies"]


# --- Lifecycle hooks ---
async def build_dependencies(config: ConfigData) -> ApplicationDependencies:
    """Construct the store, cache and notifier clients and the book service."""
    database_service = DbSessionService(config)
    # Same effect as an auto-migrate on boot
    DbManageService(database_service.engine).create_all()

    redis_service = RedisService(config)
    cache_storage = await detect_cache_storage(redis_service, config.app.environment)
    notifier = await start_notifier(config.kafka, config.app.environment)

    book_service = BookService.create(database_service, cache_storage, notifier, config)
    return ApplicationDependencies(
        database_service=database_service,
        redis_service=redis_service,
        cache_storage=cache_storage,
        notifier=notifier,
        book_service=book_service,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = get_config()
    if getattr(app.state, "app_dependencies", None) is None:
        logger.info("Starting up application in {} environment", config.app.environment)
        app.state.app_dependencies = await build_dependencies(config)
    try:
        yield
    finally:
        logger.info("Shutting down application")
        deps: ApplicationDependencies = app.state.app_dependencies
        await deps.close()
        app.state.app_dependencies = None


# --- Error rendering ---
async def book_service_error_handler(request: Request, exc: BookServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.bind(errors=exc.errors()).info("request.validation_error")
    return JSONResponse(status_code=400, content={"error": "Invalid request"})


# --- Request logging middleware ---
async def log_requests(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

    xff = request.headers.get("x-forwarded-for")
    client_ip = (
        xff.split(",")[0].strip()
        if xff
        else request.client.host
        if request.client
        else "unknown"
    )

    base_ctx = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "client_ip": client_ip,
        "user_agent": request.headers.get("user-agent", "unknown"),
    }

    start = time.perf_counter()

    # Everything that logs within this block inherits base_ctx
    with logger.contextualize(**base_ctx):
        try:
            logger.info("request.start")
            response = await call_next(request)

            duration_ms = (time.perf_counter() - start) * 1000
            logger.bind(
                status_code=response.status_code,
                duration_ms=round(duration_ms, 1),
            ).info("request.end")

            response.headers.setdefault("X-Request-ID", request_id)
            return response

        except Exception as exc:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.bind(
                status_code=500,
                duration_ms=round(duration_ms, 1),
                error_type=type(exc).__name__,
            ).exception("request.error")
            return JSONResponse(
                status_code=500,
                content={"error": "Internal Server Error"},
                headers={"X-Request-ID": request_id},
            )


def create_app(
    config: ConfigData | None = None,
    dependencies: ApplicationDependencies | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Configuration for logging and CORS; the current context's when omitted.
        dependencies: Prebuilt collaborators. When given, startup uses them
            instead of connecting to the configured database, Redis and Kafka.
    """
    config = config or get_config()
    configure_logging(config)

    app = FastAPI(
        title="Books API",
        description="A simple API for managing books.",
        version="1.0",
        lifespan=lifespan,
        docs_url=None if config.app.environment == "production" else "/docs",
        redoc_url=None if config.app.environment == "production" else "/redoc",
    )
    if dependencies is not None:
        app.state.app_dependencies = dependencies

    cors = config.app.cors
    if config.app.environment == "production" and "*" in cors.origins and cors.allow_credentials:
        raise RuntimeError(
            "CORS misconfigured: cannot use '*' with allow_credentials=True in production"
        )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors.origins,
        allow_credentials=cors.allow_credentials,
        allow_methods=cors.allow_methods,
        allow_headers=cors.allow_headers,
        expose_headers=cors.expose_headers,
    )
    app.middleware("http")(log_requests)

    app.add_exception_handler(BookServiceError, book_service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)

    app.include_router(health.router)
    app.include_router(book.router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    main_config = get_config()
    uvicorn.run(
        app,
        host=main_config.app.host,
        port=main_config.app.port,
        access_log=False,  # We handle access logging in middleware
    )
