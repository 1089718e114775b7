from __future__ import annotations

from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_device(payload: Dict[str, Any]) -> None:
    echo_heading("Device")
    echo_key_values(
        [
            ("id", payload.get("id")),
            ("name", payload.get("name")),
            ("kind", payload.get("kind")),
            ("apiKey", payload.get("apiKey")),
            ("createdAt", payload.get("createdAt")),
            ("updatedAt", payload.get("updatedAt")),
        ]
    )


def render_device_list(payload: Dict[str, Any]) -> None:
    echo_heading(f"Devices (page {payload.get('page')}, size {payload.get('pageSize')})")
    devices = payload.get("devices") or []
    if not devices:
        typer.echo("No devices on this page.")
        return
    for device in devices:
        typer.echo(f"  - {device.get('id')}: {device.get('name')} [{device.get('kind')}]")


def render_reading(payload: Dict[str, Any]) -> None:
    echo_heading("Sensor Reading")
    echo_key_values(
        [
            ("id", payload.get("id")),
            ("deviceId", payload.get("deviceId")),
            ("metricName", payload.get("metricName")),
            ("metricValue", payload.get("metricValue")),
            ("timestamp", payload.get("timestamp")),
        ]
    )


def render_reading_list(payload: Dict[str, Any]) -> None:
    echo_heading(f"Sensor Readings (page {payload.get('page')}, size {payload.get('pageSize')})")
    readings = payload.get("sensorData") or []
    if not readings:
        typer.echo("No sensor readings recorded.")
        return
    for reading in readings:
        typer.echo(
            f"  - #{reading.get('id')} {reading.get('deviceId')} "
            f"{reading.get('metricName')}={reading.get('metricValue')} @ {reading.get('timestamp')}"
        )
