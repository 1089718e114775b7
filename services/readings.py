"""Sensor reading lifecycle orchestration."""

from __future__ import annotations

import logging
from typing import List

from datastore.ports import SensorReadingRepository
from models.records import SensorReading

logger = logging.getLogger(__name__)


class SensorReadingService:
    """Thin seam between the HTTP boundary and reading storage.

    Readings are append-only: there is no update operation. The capture
    timestamp is stamped by the caller on arrival, not here.
    """

    def __init__(self, repository: SensorReadingRepository) -> None:
        self.repository = repository

    def create_reading(self, draft: SensorReading) -> int:
        reading_id = self.repository.save(draft)
        logger.info(
            "Sensor reading created",
            extra={"reading_id": reading_id, "device_id": draft.device_id},
        )
        return reading_id

    def find_reading_by_id(self, reading_id: int) -> SensorReading:
        return self.repository.find_by_id(reading_id)

    def find_readings_by_device(self, device_id: str) -> List[SensorReading]:
        return self.repository.find_by_device(device_id)

    def fetch_readings(self, page: int, page_size: int) -> List[SensorReading]:
        return self.repository.list_readings(page, page_size)

    def delete_reading(self, reading_id: int) -> None:
        self.repository.delete(reading_id)
        logger.info("Sensor reading deleted", extra={"reading_id": reading_id})
