from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import (
    render_device,
    render_device_list,
    render_reading,
    render_reading_list,
)


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for managing devices and sensor readings.",
    context_settings={"help_option_names": ["-h", "--help"]},
)
devices_app = typer.Typer(help="Register, inspect and remove devices.")
readings_app = typer.Typer(help="Record, inspect and remove sensor readings.")
app.add_typer(devices_app, name="devices")
app.add_typer(readings_app, name="readings")


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each API request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@devices_app.command("create")
def create_device_command(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Display name."),
    kind: str = typer.Argument(..., help="Device category label."),
    api_key: str = typer.Argument(..., help="Credential the device authenticates with."),
) -> None:
    """Register a new device."""
    state = _get_state(ctx)
    device_id = state.client.create_device(name, kind, api_key)
    typer.secho(f"Device created. id={device_id}", fg=typer.colors.GREEN)


@devices_app.command("list")
def list_devices_command(
    ctx: typer.Context,
    page: int = typer.Option(1, "--page", min=1),
    page_size: int = typer.Option(10, "--page-size", min=1),
) -> None:
    """List devices ordered by creation time."""
    state = _get_state(ctx)
    render_device_list(state.client.list_devices(page, page_size))


@devices_app.command("show")
def show_device_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Device identity."),
) -> None:
    """Show a single device."""
    state = _get_state(ctx)
    render_device(state.client.get_device(device_id))


@devices_app.command("update")
def update_device_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Device identity."),
    name: Optional[str] = typer.Option(None, "--name", help="New display name."),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="New API key."),
) -> None:
    """Change a device's name and/or API key. Kind cannot be changed."""
    if not name and not api_key:
        raise typer.BadParameter("Provide --name and/or --api-key.")
    state = _get_state(ctx)
    render_device(state.client.update_device(device_id, name=name, api_key=api_key))


@devices_app.command("delete")
def delete_device_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Device identity."),
) -> None:
    """Delete a device."""
    state = _get_state(ctx)
    state.client.delete_device(device_id)
    typer.secho(f"Device {device_id} deleted.", fg=typer.colors.GREEN)


@readings_app.command("create")
def create_reading_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Identity of the reporting device."),
    metric_name: str = typer.Argument(..., help="Metric name, e.g. temp."),
    metric_value: float = typer.Argument(..., help="Positive metric value."),
) -> None:
    """Record a sensor reading."""
    state = _get_state(ctx)
    reading_id = state.client.create_reading(device_id, metric_name, metric_value)
    typer.secho(f"Sensor reading recorded. id={reading_id}", fg=typer.colors.GREEN)


@readings_app.command("list")
def list_readings_command(
    ctx: typer.Context,
    page: int = typer.Option(1, "--page"),
    page_size: int = typer.Option(10, "--page-size"),
) -> None:
    """List sensor readings in insertion order."""
    state = _get_state(ctx)
    render_reading_list(state.client.list_readings(page, page_size))


@readings_app.command("show")
def show_reading_command(
    ctx: typer.Context,
    reading_id: int = typer.Argument(..., help="Reading id."),
) -> None:
    """Show a single sensor reading."""
    state = _get_state(ctx)
    render_reading(state.client.get_reading(reading_id))


@readings_app.command("for-device")
def readings_for_device_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Device identity."),
) -> None:
    """List every reading recorded for a device."""
    state = _get_state(ctx)
    render_reading_list(state.client.readings_for_device(device_id))


@readings_app.command("delete")
def delete_reading_command(
    ctx: typer.Context,
    reading_id: int = typer.Argument(..., help="Reading id."),
) -> None:
    """Delete a sensor reading."""
    state = _get_state(ctx)
    state.client.delete_reading(reading_id)
    typer.secho(f"Sensor reading {reading_id} deleted.", fg=typer.colors.GREEN)
