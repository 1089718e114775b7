from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Callable, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from app.api import router
from datastore.sql import (
    SqlDeviceRepository,
    SqlSensorReadingRepository,
    build_default_engine,
    create_schema,
)
from logging_config import configure_logging
from models.errors import ErrorKind, ServiceError
from services.devices import DeviceService
from services.readings import SensorReadingService
from settings import get_settings

logger = logging.getLogger(__name__)

_STATUS_BY_KIND = {
    ErrorKind.validation: status.HTTP_400_BAD_REQUEST,
    ErrorKind.not_found: status.HTTP_404_NOT_FOUND,
    ErrorKind.persistence: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _build_lifespan(
    engine: Optional[Engine],
) -> Callable[[FastAPI], AsyncContextManager[None]]:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owns_engine = engine is None
        active_engine = build_default_engine() if owns_engine else engine
        try:
            if owns_engine and get_settings().create_schema:
                create_schema(active_engine)
            app.state.device_service = DeviceService(SqlDeviceRepository(active_engine))
            app.state.reading_service = SensorReadingService(
                SqlSensorReadingRepository(active_engine)
            )
            logger.info("IoT platform API started")
            yield
        finally:
            if owns_engine:
                active_engine.dispose()
            logger.info("IoT platform API stopped")

    return lifespan


async def service_error_handler(_request: Request, exc: ServiceError) -> JSONResponse:
    status_code = _STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("Request failed: %s", exc.detail, extra={"error_kind": exc.kind.value})
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.detail, "kind": exc.kind.value},
    )


def create_app(engine: Optional[Engine] = None) -> FastAPI:
    """Build the API. An injected ``engine`` is used as-is and never disposed here."""
    configure_logging()
    app = FastAPI(
        title="IoT Platform",
        description="Device registry and sensor reading store backed by a relational database.",
        version="0.1.0",
        lifespan=_build_lifespan(engine),
    )
    app.add_exception_handler(ServiceError, service_error_handler)
    app.include_router(router)
    return app

app = create_app()
