"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional


@dataclass(slots=True)
class Device:
    """A registered device; also used as a draft before identity is assigned."""

    name: str = ""
    kind: str = ""
    api_key: str = ""
    id: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(slots=True)
class SensorReading:
    """A single metric captured by a device. Readings are append-only."""

    device_id: str = ""
    metric_name: str = ""
    metric_value: Optional[float] = None
    timestamp: Optional[datetime] = None
    id: int = 0


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


Clock = Callable[[], datetime]
