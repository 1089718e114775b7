"""Device lifecycle orchestration."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List

from datastore.ports import DeviceRepository
from models.errors import NotFoundError
from models.records import Clock, Device, utcnow

logger = logging.getLogger(__name__)

# Kind is fixed at creation; only these fields are merged on update.
UPDATABLE_DEVICE_FIELDS = ("name", "api_key")


class DeviceService:
    """Create, merge-update, look up, list and delete devices.

    ``update_device`` reads then writes in two separate statements, so a
    concurrent update landing between them is overwritten.
    """

    def __init__(self, repository: DeviceRepository, clock: Clock = utcnow) -> None:
        self.repository = repository
        self._clock = clock

    def create_device(self, draft: Device) -> str:
        """Persist a new device and return its generated identity."""
        device_id = self.repository.save(replace(draft, id=""))
        logger.info("Device created", extra={"device_id": device_id})
        return device_id

    def update_device(self, device_id: str, draft: Device) -> Device:
        """Merge the non-empty updatable fields of ``draft`` into the stored device."""
        try:
            device = self.repository.find_by_id(device_id)
        except NotFoundError as exc:
            raise NotFoundError(f"cannot update device {device_id!r}: {exc.detail}") from exc

        for field_name in UPDATABLE_DEVICE_FIELDS:
            value = getattr(draft, field_name)
            if value:
                setattr(device, field_name, value)

        now = self._clock()
        if device.updated_at is None or now > device.updated_at:
            device.updated_at = now

        self.repository.save(device)
        logger.info("Device updated", extra={"device_id": device_id})
        return device

    def find_device_by_id(self, device_id: str) -> Device:
        return self.repository.find_by_id(device_id)

    def fetch_devices(self, page: int, page_size: int) -> List[Device]:
        return self.repository.list_devices(page, page_size)

    def delete_device(self, device_id: str) -> None:
        self.repository.delete(device_id)
        logger.info("Device deleted", extra={"device_id": device_id})
