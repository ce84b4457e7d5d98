from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI
from starlette.requests import Request

from jobboard.api.router import api_router
from jobboard.core.config import Settings, get_settings
from jobboard.core.telemetry import (
    ApiTelemetry,
    configure_api_logging,
    setup_api_telemetry,
    shutdown_api_telemetry,
)
from jobboard.services.jobs import load_fallback_jobs
from jobboard.services.repository import PostgresRepository
from jobboard.services.store import InMemoryRepository

settings = get_settings()
_telemetry: ApiTelemetry | None = None
logger = logging.getLogger(__name__)


def build_repository(settings: Settings) -> PostgresRepository | InMemoryRepository:
    if settings.storage_backend == "memory":
        return InMemoryRepository()
    return PostgresRepository(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    runtime_settings = get_settings()
    repository = build_repository(runtime_settings)
    app.state.repository = repository
    app.state.fallback_jobs = load_fallback_jobs(runtime_settings)
    logger.info(
        "storage ready backend=%s identity_provider=%s fallback_jobs=%d",
        runtime_settings.storage_backend,
        runtime_settings.identity_provider,
        len(app.state.fallback_jobs),
    )
    try:
        yield
    finally:
        if _telemetry is not None:
            shutdown_api_telemetry(app, _telemetry)
        # Ensure asyncpg pool shuts down on app teardown.
        await repository.close()


configure_api_logging(settings)
app = FastAPI(title=settings.app_name, lifespan=lifespan)
_telemetry = setup_api_telemetry(app, settings)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    started_at = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started_at) * 1000.0
    logger.info(
        "http request method=%s path=%s status=%s duration_ms=%.2f",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


app.include_router(api_router)
