"""Persistence ports consumed by the service layer."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from models.records import Device, SensorReading


class DeviceRepository(ABC):
    """Contract for durable device storage."""

    @abstractmethod
    def save(self, device: Device) -> str:
        """Insert when ``device.id`` is empty, update otherwise; return the identity."""

    @abstractmethod
    def find_by_id(self, device_id: str) -> Device:
        """Return the stored device or raise ``NotFoundError``."""

    @abstractmethod
    def delete(self, device_id: str) -> None:
        """Remove the device or raise ``NotFoundError`` when nothing was deleted."""

    @abstractmethod
    def list_devices(self, page: int, page_size: int) -> List[Device]:
        """Return one page of devices ordered by creation time; may be empty."""


class SensorReadingRepository(ABC):
    """Contract for durable, append-only sensor reading storage."""

    @abstractmethod
    def save(self, reading: SensorReading) -> int:
        """Insert the reading and return its assigned id."""

    @abstractmethod
    def find_by_id(self, reading_id: int) -> SensorReading:
        """Return the stored reading or raise ``NotFoundError``."""

    @abstractmethod
    def find_by_device(self, device_id: str) -> List[SensorReading]:
        """Return every reading for a device; an empty result is ``NotFoundError``."""

    @abstractmethod
    def delete(self, reading_id: int) -> None:
        """Remove the reading or raise ``NotFoundError`` when nothing was deleted."""

    @abstractmethod
    def list_readings(self, page: int, page_size: int) -> List[SensorReading]:
        """Return one page of readings in insertion order; an empty page is ``NotFoundError``."""
