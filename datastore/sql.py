"""Relational persistence adapter built on SQLAlchemy Core.

The adapter owns all durable state: it assigns device identities, stamps
creation/update times and maps every driver failure onto the service error
taxonomy. Each operation runs in its own short transaction; nothing spans
more than one statement group.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    delete,
    func,
    insert,
    select,
    text,
    update,
)
from sqlalchemy.engine import Engine, RowMapping
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import QueuePool, StaticPool

from datastore.ports import DeviceRepository, SensorReadingRepository
from models.errors import NotFoundError, PersistenceError, ValidationError
from models.records import Clock, Device, SensorReading, utcnow
from settings import Settings, get_settings

logger = logging.getLogger(__name__)


_SQLITE_MEMORY_URLS = {"sqlite://", "sqlite:///:memory:"}

metadata = MetaData()

devices_table = Table(
    "devices",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("kind", String(255), nullable=False),
    Column("api_key", String(255), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

sensor_readings_table = Table(
    "sensor_readings",
    metadata,
    # SQLite only auto-increments INTEGER PRIMARY KEY columns.
    Column(
        "id",
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    ),
    Column("device_id", String(64), nullable=False),
    Column("metric_name", String(255), nullable=False),
    Column("metric_value", Float, nullable=False),
    Column("timestamp", DateTime(timezone=True), nullable=False, server_default=func.now()),
)


# =========================================
# Engine management
# =========================================

def build_engine(url: str, echo: bool = False, statement_timeout_ms: int = 0) -> Engine:
    """Create an engine for ``url``.

    SQLite engines are made shareable across request threads, and in-memory
    databases are pinned to a single connection so every session sees the
    same data. Server databases get a pre-pinged connection pool.
    """
    if url.startswith("sqlite"):
        options: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if url in _SQLITE_MEMORY_URLS:
            options["poolclass"] = StaticPool
        return create_engine(url, echo=echo, **options)

    connect_args: Dict[str, Any] = {}
    if statement_timeout_ms > 0 and url.startswith("postgresql"):
        connect_args["options"] = f"-c statement_timeout={statement_timeout_ms}"

    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        echo=echo,
        connect_args=connect_args,
    )


def build_default_engine(settings: Optional[Settings] = None) -> Engine:
    settings = settings or get_settings()
    return build_engine(
        settings.database_url,
        echo=settings.sql_echo,
        statement_timeout_ms=settings.statement_timeout_ms,
    )


def create_schema(engine: Engine) -> None:
    """Create the ``devices`` and ``sensor_readings`` tables when missing."""
    try:
        metadata.create_all(engine)
    except SQLAlchemyError as exc:
        raise _store_failure("create schema", exc) from exc
    logger.info("Database tables verified")


def _store_failure(action: str, exc: SQLAlchemyError) -> PersistenceError:
    error = PersistenceError(f"failed to {action}")
    logger.error("Store operation failed: %s: %s", action, exc, extra={"error_kind": error.kind.value})
    return error


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything stored is UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _require_positive_page(page: int, page_size: int) -> None:
    if page <= 0:
        raise ValidationError(f"page must be a positive integer, got {page}")
    if page_size <= 0:
        raise ValidationError(f"page size must be a positive integer, got {page_size}")


class _SqlRepository:

    def __init__(self, engine: Engine, clock: Clock = utcnow) -> None:
        self._engine = engine
        self._clock = clock
        self._ping()

    def _ping(self) -> None:
        try:
            with self._engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            logger.error("Database connection check failed: %s", exc)
            raise PersistenceError("failed to connect to the database") from exc


# =========================================
# Devices
# =========================================

def _device_from_row(row: RowMapping) -> Device:
    return Device(
        id=row["id"],
        name=row["name"],
        kind=row["kind"],
        api_key=row["api_key"],
        created_at=_as_utc(row["created_at"]),
        updated_at=_as_utc(row["updated_at"]),
    )


class SqlDeviceRepository(_SqlRepository, DeviceRepository):
    """Device storage backed by the ``devices`` table."""

    def save(self, device: Device) -> str:
        missing = [
            label
            for label, value in (
                ("name", device.name),
                ("kind", device.kind),
                ("api_key", device.api_key),
            )
            if not value
        ]
        if missing:
            raise ValidationError(f"device fields must not be empty: {', '.join(missing)}")

        if not device.id:
            return self._insert(device)
        return self._update(device)

    def _insert(self, device: Device) -> str:
        device_id = str(uuid4())
        now = _as_utc(self._clock())
        try:
            with self._engine.begin() as connection:
                connection.execute(
                    insert(devices_table).values(
                        id=device_id,
                        name=device.name,
                        kind=device.kind,
                        api_key=device.api_key,
                        created_at=now,
                        updated_at=now,
                    )
                )
        except SQLAlchemyError as exc:
            raise _store_failure("insert device", exc) from exc

        device.id = device_id
        device.created_at = now
        device.updated_at = now
        return device_id

    def _update(self, device: Device) -> str:
        stamp = _as_utc(self._clock())
        requested = _as_utc(device.updated_at)
        if requested is not None and requested > stamp:
            stamp = requested

        try:
            with self._engine.begin() as connection:
                result = connection.execute(
                    update(devices_table)
                    .where(devices_table.c.id == device.id)
                    .values(
                        name=device.name,
                        kind=device.kind,
                        api_key=device.api_key,
                        updated_at=stamp,
                    )
                )
        except SQLAlchemyError as exc:
            raise _store_failure("update device", exc) from exc

        if result.rowcount == 0:
            raise NotFoundError(f"no device found with id: {device.id}")
        device.updated_at = stamp
        return device.id

    def find_by_id(self, device_id: str) -> Device:
        try:
            with self._engine.connect() as connection:
                row = (
                    connection.execute(
                        select(devices_table).where(devices_table.c.id == device_id)
                    )
                    .mappings()
                    .first()
                )
        except SQLAlchemyError as exc:
            raise _store_failure("find device", exc) from exc

        if row is None:
            raise NotFoundError(f"no device found with id: {device_id}")
        return _device_from_row(row)

    def delete(self, device_id: str) -> None:
        try:
            with self._engine.begin() as connection:
                result = connection.execute(
                    delete(devices_table).where(devices_table.c.id == device_id)
                )
        except SQLAlchemyError as exc:
            raise _store_failure("delete device", exc) from exc

        if result.rowcount == 0:
            raise NotFoundError(f"no device found with id: {device_id}")

    def list_devices(self, page: int, page_size: int) -> List[Device]:
        _require_positive_page(page, page_size)
        query = (
            select(devices_table)
            .order_by(devices_table.c.created_at, devices_table.c.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        try:
            with self._engine.connect() as connection:
                rows = connection.execute(query).mappings().all()
        except SQLAlchemyError as exc:
            raise _store_failure("list devices", exc) from exc

        logger.debug(
            "Listed devices",
            extra={"page": page, "page_size": page_size, "row_count": len(rows)},
        )
        return [_device_from_row(row) for row in rows]


# =========================================
# Sensor readings
# =========================================

def _reading_from_row(row: RowMapping) -> SensorReading:
    return SensorReading(
        id=row["id"],
        device_id=row["device_id"],
        metric_name=row["metric_name"],
        metric_value=row["metric_value"],
        timestamp=_as_utc(row["timestamp"]),
    )


class SqlSensorReadingRepository(_SqlRepository, SensorReadingRepository):
    """Append-only reading storage backed by the ``sensor_readings`` table."""

    def save(self, reading: SensorReading) -> int:
        if not reading.device_id or not reading.metric_name:
            raise ValidationError("device id and metric name are required")
        if reading.metric_value is None:
            raise ValidationError("metric value is required")
        if not math.isfinite(reading.metric_value):
            raise ValidationError(f"metric value must be a finite number, got {reading.metric_value}")

        values: Dict[str, Any] = {
            "device_id": reading.device_id,
            "metric_name": reading.metric_name,
            "metric_value": reading.metric_value,
        }
        if reading.timestamp is not None:
            reading.timestamp = _as_utc(reading.timestamp)
            values["timestamp"] = reading.timestamp

        try:
            with self._engine.begin() as connection:
                result = connection.execute(insert(sensor_readings_table).values(**values))
                reading_id = int(result.inserted_primary_key[0])
                if reading.timestamp is None:
                    stored = connection.execute(
                        select(sensor_readings_table.c.timestamp).where(
                            sensor_readings_table.c.id == reading_id
                        )
                    ).scalar_one()
                    reading.timestamp = _as_utc(stored)
        except SQLAlchemyError as exc:
            raise _store_failure("insert sensor reading", exc) from exc

        reading.id = reading_id
        return reading_id

    def find_by_id(self, reading_id: int) -> SensorReading:
        if reading_id <= 0:
            raise NotFoundError(f"no sensor reading found with id: {reading_id}")

        try:
            with self._engine.connect() as connection:
                row = (
                    connection.execute(
                        select(sensor_readings_table).where(
                            sensor_readings_table.c.id == reading_id
                        )
                    )
                    .mappings()
                    .first()
                )
        except SQLAlchemyError as exc:
            raise _store_failure("find sensor reading", exc) from exc

        if row is None:
            raise NotFoundError(f"no sensor reading found with id: {reading_id}")
        return _reading_from_row(row)

    def find_by_device(self, device_id: str) -> List[SensorReading]:
        if not device_id:
            raise ValidationError("device id is required")

        query = (
            select(sensor_readings_table)
            .where(sensor_readings_table.c.device_id == device_id)
            .order_by(sensor_readings_table.c.id)
        )
        try:
            with self._engine.connect() as connection:
                rows = connection.execute(query).mappings().all()
        except SQLAlchemyError as exc:
            raise _store_failure("find sensor readings by device", exc) from exc

        if not rows:
            raise NotFoundError(f"no sensor readings found for device: {device_id}")
        return [_reading_from_row(row) for row in rows]

    def delete(self, reading_id: int) -> None:
        if reading_id <= 0:
            raise ValidationError(f"sensor reading id must be positive, got {reading_id}")

        try:
            with self._engine.begin() as connection:
                result = connection.execute(
                    delete(sensor_readings_table).where(
                        sensor_readings_table.c.id == reading_id
                    )
                )
        except SQLAlchemyError as exc:
            raise _store_failure("delete sensor reading", exc) from exc

        if result.rowcount == 0:
            raise NotFoundError(f"no sensor reading found with id: {reading_id}")

    def list_readings(self, page: int, page_size: int) -> List[SensorReading]:
        _require_positive_page(page, page_size)
        query = (
            select(sensor_readings_table)
            .order_by(sensor_readings_table.c.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        try:
            with self._engine.connect() as connection:
                rows = connection.execute(query).mappings().all()
        except SQLAlchemyError as exc:
            raise _store_failure("list sensor readings", exc) from exc

        if not rows:
            raise NotFoundError(f"no sensor readings on page {page} with page size {page_size}")
        logger.debug(
            "Listed sensor readings",
            extra={"page": page, "page_size": page_size, "row_count": len(rows)},
        )
        return [_reading_from_row(row) for row in rows]
