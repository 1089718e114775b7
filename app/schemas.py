"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

import math
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.errors import ValidationError
from models.records import Device, SensorReading


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class DeviceRequest(_CamelModel):
    """Payload for creating or partially updating a device."""

    name: str = ""
    kind: str = ""
    api_key: str = Field(default="", alias="apiKey")

    def to_new_device(self) -> Device:
        if not self.name or not self.kind or not self.api_key:
            raise ValidationError("name, kind and apiKey are required")
        return Device(name=self.name, kind=self.kind, api_key=self.api_key)

    def to_draft(self) -> Device:
        return Device(name=self.name, kind=self.kind, api_key=self.api_key)


class DeviceResponse(_CamelModel):
    id: str
    name: str
    kind: str
    api_key: str = Field(..., alias="apiKey")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    @classmethod
    def from_record(cls, device: Device) -> "DeviceResponse":
        return cls(
            id=device.id,
            name=device.name,
            kind=device.kind,
            api_key=device.api_key,
            created_at=device.created_at,
            updated_at=device.updated_at,
        )


class DeviceCreatedResponse(_CamelModel):
    message: str = "Device created successfully"
    id: str


class DeviceListResponse(_CamelModel):
    devices: List[DeviceResponse] = Field(default_factory=list)
    page: int
    page_size: int = Field(..., alias="pageSize")


class SensorReadingRequest(_CamelModel):
    """Payload for recording a new sensor reading."""

    device_id: str = Field(default="", alias="deviceId")
    metric_name: str = Field(default="", alias="metricName")
    metric_value: Optional[float] = Field(default=None, alias="metricValue")

    def to_draft(self, received_at: datetime) -> SensorReading:
        """Build a reading stamped with the request arrival time.

        Non-positive values are rejected here even though storage accepts them.
        """
        if not self.device_id or not self.metric_name:
            raise ValidationError("deviceId and metricName are required")
        if (
            self.metric_value is None
            or not math.isfinite(self.metric_value)
            or self.metric_value <= 0
        ):
            raise ValidationError("metricValue must be a positive finite number")
        return SensorReading(
            device_id=self.device_id,
            metric_name=self.metric_name,
            metric_value=self.metric_value,
            timestamp=received_at,
        )


class SensorReadingResponse(_CamelModel):
    id: int
    device_id: str = Field(..., alias="deviceId")
    metric_name: str = Field(..., alias="metricName")
    metric_value: float = Field(..., alias="metricValue")
    timestamp: Optional[datetime] = None

    @classmethod
    def from_record(cls, reading: SensorReading) -> "SensorReadingResponse":
        return cls(
            id=reading.id,
            device_id=reading.device_id,
            metric_name=reading.metric_name,
            metric_value=reading.metric_value if reading.metric_value is not None else 0.0,
            timestamp=reading.timestamp,
        )


class SensorReadingCreatedResponse(_CamelModel):
    message: str = "Sensor data created successfully"
    id: int


class SensorReadingListResponse(_CamelModel):
    sensor_data: List[SensorReadingResponse] = Field(default_factory=list, alias="sensorData")
    page: int
    page_size: int = Field(..., alias="pageSize")


class ErrorResponse(BaseModel):
    detail: str
    kind: str
