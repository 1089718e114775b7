"""HTTP route definitions for the service."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status

from app.schemas import (
    DeviceCreatedResponse,
    DeviceListResponse,
    DeviceRequest,
    DeviceResponse,
    ErrorResponse,
    SensorReadingCreatedResponse,
    SensorReadingListResponse,
    SensorReadingRequest,
    SensorReadingResponse,
)
from models.errors import ValidationError
from models.records import utcnow
from services.devices import DeviceService
from services.readings import SensorReadingService

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10

_ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
}

router = APIRouter(responses=_ERROR_RESPONSES)


def get_device_service(request: Request) -> DeviceService:
    return request.app.state.device_service


def get_reading_service(request: Request) -> SensorReadingService:
    return request.app.state.reading_service


def coerce_page(value: Optional[str], default: int) -> int:
    """Parse a pagination query value, falling back to ``default`` when invalid."""
    if value is None:
        return default
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed >= 1 else default


def parse_page(value: Optional[str], default: int, label: str) -> int:
    """Parse a pagination query value strictly; range checks are left to storage."""
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError:
        raise ValidationError(f"{label} must be an integer, got {value!r}") from None


# =========================================
# Devices
# =========================================

@router.post(
    "/devices",
    response_model=DeviceCreatedResponse,
    summary="Register a new device.",
)
def create_device(
    payload: DeviceRequest,
    service: DeviceService = Depends(get_device_service),
) -> DeviceCreatedResponse:
    device_id = service.create_device(payload.to_new_device())
    return DeviceCreatedResponse(id=device_id)


@router.get(
    "/devices",
    response_model=DeviceListResponse,
    summary="List devices ordered by creation time.",
)
def list_devices(
    page: Optional[str] = Query(None),
    page_size: Optional[str] = Query(None, alias="pageSize"),
    service: DeviceService = Depends(get_device_service),
) -> DeviceListResponse:
    page_number = coerce_page(page, DEFAULT_PAGE)
    size = coerce_page(page_size, DEFAULT_PAGE_SIZE)
    devices = service.fetch_devices(page_number, size)
    return DeviceListResponse(
        devices=[DeviceResponse.from_record(device) for device in devices],
        page=page_number,
        page_size=size,
    )


@router.get(
    "/devices/{device_id}",
    response_model=DeviceResponse,
    summary="Fetch a single device.",
)
def get_device(
    device_id: str,
    service: DeviceService = Depends(get_device_service),
) -> DeviceResponse:
    return DeviceResponse.from_record(service.find_device_by_id(device_id))


@router.patch(
    "/devices/{device_id}",
    response_model=DeviceResponse,
    summary="Update a device's name and/or API key.",
)
def update_device(
    device_id: str,
    payload: DeviceRequest,
    service: DeviceService = Depends(get_device_service),
) -> DeviceResponse:
    device = service.update_device(device_id, payload.to_draft())
    return DeviceResponse.from_record(device)


@router.delete(
    "/devices/{device_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete a device.",
)
def delete_device(
    device_id: str,
    service: DeviceService = Depends(get_device_service),
) -> Response:
    service.delete_device(device_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/devices/{device_id}/sensor-data",
    response_model=SensorReadingListResponse,
    summary="List every reading recorded for a device.",
)
def list_device_readings(
    device_id: str,
    service: SensorReadingService = Depends(get_reading_service),
) -> SensorReadingListResponse:
    readings = service.find_readings_by_device(device_id)
    return SensorReadingListResponse(
        sensor_data=[SensorReadingResponse.from_record(reading) for reading in readings],
        page=1,
        page_size=len(readings),
    )


# =========================================
# Sensor readings
# =========================================

@router.post(
    "/sensor-data",
    response_model=SensorReadingCreatedResponse,
    summary="Record a sensor reading.",
)
def create_reading(
    payload: SensorReadingRequest,
    service: SensorReadingService = Depends(get_reading_service),
) -> SensorReadingCreatedResponse:
    reading_id = service.create_reading(payload.to_draft(received_at=utcnow()))
    return SensorReadingCreatedResponse(id=reading_id)


@router.get(
    "/sensor-data",
    response_model=SensorReadingListResponse,
    summary="List readings in insertion order.",
)
def list_readings(
    page: Optional[str] = Query(None),
    page_size: Optional[str] = Query(None, alias="pageSize"),
    service: SensorReadingService = Depends(get_reading_service),
) -> SensorReadingListResponse:
    page_number = parse_page(page, DEFAULT_PAGE, "page")
    size = parse_page(page_size, DEFAULT_PAGE_SIZE, "pageSize")
    readings = service.fetch_readings(page_number, size)
    return SensorReadingListResponse(
        sensor_data=[SensorReadingResponse.from_record(reading) for reading in readings],
        page=page_number,
        page_size=size,
    )


@router.get(
    "/sensor-data/{reading_id}",
    response_model=SensorReadingResponse,
    summary="Fetch a single reading.",
)
def get_reading(
    reading_id: int,
    service: SensorReadingService = Depends(get_reading_service),
) -> SensorReadingResponse:
    return SensorReadingResponse.from_record(service.find_reading_by_id(reading_id))


@router.delete(
    "/sensor-data/{reading_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete a reading.",
)
def delete_reading(
    reading_id: int,
    service: SensorReadingService = Depends(get_reading_service),
) -> Response:
    service.delete_reading(reading_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =========================================
# Health
# =========================================

@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
