"""Tests for the SQLAlchemy persistence adapter, run against in-memory SQLite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterator

import pytest
from sqlalchemy import text
from sqlalchemy.engine import Engine

from datastore.sql import (
    SqlDeviceRepository,
    SqlSensorReadingRepository,
    build_engine,
    create_schema,
)
from models.errors import ErrorKind, NotFoundError, PersistenceError, ValidationError
from models.records import Device, SensorReading


class TickingClock:
    """Deterministic clock that advances one second per call."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)) -> None:
        self._current = start

    def __call__(self) -> datetime:
        value = self._current
        self._current += timedelta(seconds=1)
        return value


@pytest.fixture
def engine() -> Iterator[Engine]:
    engine = build_engine("sqlite://")
    create_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def devices(engine: Engine) -> SqlDeviceRepository:
    return SqlDeviceRepository(engine, clock=TickingClock())


@pytest.fixture
def readings(engine: Engine) -> SqlSensorReadingRepository:
    return SqlSensorReadingRepository(engine)


def _device(name: str = "T1") -> Device:
    return Device(name=name, kind="sensor-hub", api_key="k1")


# =========================================
# Devices
# =========================================

def test_save_without_identity_assigns_unique_ids(devices: SqlDeviceRepository) -> None:
    ids = {devices.save(_device(f"device-{index}")) for index in range(5)}

    assert len(ids) == 5
    assert all(ids)


def test_save_enriches_device_in_place(devices: SqlDeviceRepository) -> None:
    device = _device()

    device_id = devices.save(device)

    assert device.id == device_id
    assert device.created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert device.updated_at == device.created_at


@pytest.mark.parametrize("field_name", ["name", "kind", "api_key"])
def test_save_rejects_empty_required_fields(
    devices: SqlDeviceRepository, field_name: str
) -> None:
    device = _device()
    setattr(device, field_name, "")

    with pytest.raises(ValidationError) as exc_info:
        devices.save(device)

    assert field_name in exc_info.value.detail
    assert exc_info.value.kind is ErrorKind.validation


def test_find_by_id_round_trip(devices: SqlDeviceRepository) -> None:
    device_id = devices.save(Device(name="T1", kind="sensor-hub", api_key="k1"))

    found = devices.find_by_id(device_id)

    assert found.id == device_id
    assert (found.name, found.kind, found.api_key) == ("T1", "sensor-hub", "k1")
    assert found.created_at is not None and found.created_at.tzinfo is not None
    assert found.updated_at is not None


def test_find_by_id_missing_raises_not_found(devices: SqlDeviceRepository) -> None:
    with pytest.raises(NotFoundError) as exc_info:
        devices.find_by_id("does-not-exist")

    assert "does-not-exist" in exc_info.value.detail


def test_save_with_identity_updates_fields_and_refreshes_timestamp(
    devices: SqlDeviceRepository,
) -> None:
    device_id = devices.save(_device())
    stored = devices.find_by_id(device_id)

    stored.name = "renamed"
    stored.api_key = "k2"
    assert devices.save(stored) == device_id

    reloaded = devices.find_by_id(device_id)
    assert reloaded.name == "renamed"
    assert reloaded.api_key == "k2"
    assert reloaded.created_at == stored.created_at
    assert reloaded.updated_at > reloaded.created_at


def test_update_keeps_later_requested_timestamp(devices: SqlDeviceRepository) -> None:
    device_id = devices.save(_device())
    stored = devices.find_by_id(device_id)
    future = datetime(2030, 1, 1, tzinfo=timezone.utc)
    stored.updated_at = future

    devices.save(stored)

    assert devices.find_by_id(device_id).updated_at == future


def test_device_timestamps_from_offset_clock_keep_the_instant(engine: Engine) -> None:
    local = datetime(2024, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
    repository = SqlDeviceRepository(engine, clock=lambda: local)

    device_id = repository.save(_device())
    stored = repository.find_by_id(device_id)

    assert stored.created_at == local
    assert stored.created_at.hour == 10
    assert stored.updated_at == local


def test_update_of_unknown_identity_raises_not_found(devices: SqlDeviceRepository) -> None:
    ghost = _device()
    ghost.id = "ghost"

    with pytest.raises(NotFoundError):
        devices.save(ghost)


def test_delete_then_find_raises_not_found(devices: SqlDeviceRepository) -> None:
    device_id = devices.save(_device())

    devices.delete(device_id)

    with pytest.raises(NotFoundError):
        devices.find_by_id(device_id)
    with pytest.raises(NotFoundError):
        devices.delete(device_id)


def test_list_devices_orders_by_creation_and_paginates(devices: SqlDeviceRepository) -> None:
    created = [devices.save(_device(f"device-{index}")) for index in range(3)]

    first_page = devices.list_devices(page=1, page_size=2)
    second_page = devices.list_devices(page=2, page_size=2)

    assert [device.id for device in first_page] == created[:2]
    assert [device.id for device in second_page] == created[2:]


def test_list_devices_out_of_range_page_is_empty(devices: SqlDeviceRepository) -> None:
    devices.save(_device())

    assert devices.list_devices(page=5, page_size=10) == []


@pytest.mark.parametrize("page, page_size", [(0, 10), (1, 0), (-1, -1)])
def test_list_devices_rejects_non_positive_paging(
    devices: SqlDeviceRepository, page: int, page_size: int
) -> None:
    with pytest.raises(ValidationError):
        devices.list_devices(page=page, page_size=page_size)


def test_store_failure_maps_to_persistence_error(
    engine: Engine, devices: SqlDeviceRepository
) -> None:
    with engine.begin() as connection:
        connection.execute(text("DROP TABLE devices"))

    with pytest.raises(PersistenceError) as exc_info:
        devices.find_by_id("any")

    assert exc_info.value.kind is ErrorKind.persistence
    assert exc_info.value.__cause__ is not None
    assert exc_info.value.detail == "failed to find device"


def test_repository_over_dead_connection_fails_immediately(tmp_path) -> None:
    unreachable = build_engine(f"sqlite:///{tmp_path / 'missing' / 'iot.db'}")

    with pytest.raises(PersistenceError) as exc_info:
        SqlDeviceRepository(unreachable)

    assert "failed to connect to the database" in exc_info.value.detail
    unreachable.dispose()


# =========================================
# Sensor readings
# =========================================

def _reading(device_id: str = "d1", value: float = 3.5) -> SensorReading:
    return SensorReading(
        device_id=device_id,
        metric_name="temp",
        metric_value=value,
        timestamp=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
    )


def test_save_reading_assigns_increasing_ids(readings: SqlSensorReadingRepository) -> None:
    first = _reading()
    second = _reading()

    first_id = readings.save(first)
    second_id = readings.save(second)

    assert 0 < first_id < second_id
    assert first.id == first_id
    assert second.id == second_id


def test_save_reading_accepts_zero_value(readings: SqlSensorReadingRepository) -> None:
    reading_id = readings.save(_reading(value=0.0))

    assert readings.find_by_id(reading_id).metric_value == 0.0


@pytest.mark.parametrize(
    "reading",
    [
        SensorReading(device_id="", metric_name="temp", metric_value=1.0),
        SensorReading(device_id="d1", metric_name="", metric_value=1.0),
        SensorReading(device_id="d1", metric_name="temp", metric_value=None),
    ],
)
def test_save_reading_rejects_incomplete_drafts(
    readings: SqlSensorReadingRepository, reading: SensorReading
) -> None:
    with pytest.raises(ValidationError):
        readings.save(reading)


@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
def test_save_reading_rejects_non_finite_values(
    readings: SqlSensorReadingRepository, value: float
) -> None:
    with pytest.raises(ValidationError):
        readings.save(_reading(value=value))


def test_save_reading_with_offset_timestamp_keeps_the_instant(
    readings: SqlSensorReadingRepository,
) -> None:
    local = datetime(2024, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
    reading = _reading()
    reading.timestamp = local

    reading_id = readings.save(reading)
    stored = readings.find_by_id(reading_id)

    assert stored.timestamp == local
    assert stored.timestamp == datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
    assert reading.timestamp.tzinfo is timezone.utc


def test_save_reading_without_timestamp_uses_store_default(
    readings: SqlSensorReadingRepository,
) -> None:
    reading = SensorReading(device_id="d1", metric_name="temp", metric_value=1.0)

    reading_id = readings.save(reading)

    assert reading.timestamp is not None
    assert readings.find_by_id(reading_id).timestamp == reading.timestamp


def test_find_reading_round_trip(readings: SqlSensorReadingRepository) -> None:
    reading_id = readings.save(_reading())

    found = readings.find_by_id(reading_id)

    assert found == SensorReading(
        id=reading_id,
        device_id="d1",
        metric_name="temp",
        metric_value=3.5,
        timestamp=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
    )


@pytest.mark.parametrize("reading_id", [0, -7, 999])
def test_find_reading_by_invalid_or_missing_id_raises_not_found(
    readings: SqlSensorReadingRepository, reading_id: int
) -> None:
    with pytest.raises(NotFoundError):
        readings.find_by_id(reading_id)


def test_find_by_device_returns_only_that_device_in_insertion_order(
    readings: SqlSensorReadingRepository,
) -> None:
    first = readings.save(_reading("d1", 1.0))
    readings.save(_reading("d2", 2.0))
    third = readings.save(_reading("d1", 3.0))

    found = readings.find_by_device("d1")

    assert [reading.id for reading in found] == [first, third]
    assert all(reading.device_id == "d1" for reading in found)


def test_find_by_device_without_readings_raises_not_found(
    readings: SqlSensorReadingRepository,
) -> None:
    with pytest.raises(NotFoundError):
        readings.find_by_device("unknown-device")


def test_find_by_device_requires_device_id(readings: SqlSensorReadingRepository) -> None:
    with pytest.raises(ValidationError):
        readings.find_by_device("")


def test_delete_reading_validations(readings: SqlSensorReadingRepository) -> None:
    with pytest.raises(ValidationError):
        readings.delete(0)
    with pytest.raises(NotFoundError):
        readings.delete(42)


def test_delete_reading_then_find_raises_not_found(
    readings: SqlSensorReadingRepository,
) -> None:
    reading_id = readings.save(_reading())

    readings.delete(reading_id)

    with pytest.raises(NotFoundError):
        readings.find_by_id(reading_id)


def test_list_readings_paginates_in_insertion_order(
    readings: SqlSensorReadingRepository,
) -> None:
    ids = [readings.save(_reading(value=float(index + 1))) for index in range(5)]

    assert [reading.id for reading in readings.list_readings(1, 2)] == ids[:2]
    assert [reading.id for reading in readings.list_readings(3, 2)] == ids[4:]


def test_list_readings_empty_page_raises_not_found(
    readings: SqlSensorReadingRepository,
) -> None:
    readings.save(_reading())

    with pytest.raises(NotFoundError):
        readings.list_readings(2, 10)


@pytest.mark.parametrize("page, page_size", [(0, 10), (1, 0)])
def test_list_readings_rejects_non_positive_paging(
    readings: SqlSensorReadingRepository, page: int, page_size: int
) -> None:
    with pytest.raises(ValidationError):
        readings.list_readings(page, page_size)
