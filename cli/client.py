from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the device and sensor reading API."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def create_device(self, name: str, kind: str, api_key: str) -> str:
        payload = self._request(
            "POST", "/devices", json={"name": name, "kind": kind, "apiKey": api_key}
        )
        device_id = payload.get("id")
        if not isinstance(device_id, str):
            raise typer.BadParameter("Unexpected response payload when creating device.")
        return device_id

    def list_devices(self, page: int, page_size: int) -> Dict[str, Any]:
        return self._request("GET", "/devices", params={"page": page, "pageSize": page_size})

    def get_device(self, device_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/devices/{device_id}")

    def update_device(
        self, device_id: str, name: Optional[str] = None, api_key: Optional[str] = None
    ) -> Dict[str, Any]:
        body: Dict[str, str] = {}
        if name:
            body["name"] = name
        if api_key:
            body["apiKey"] = api_key
        return self._request("PATCH", f"/devices/{device_id}", json=body)

    def delete_device(self, device_id: str) -> None:
        self._request("DELETE", f"/devices/{device_id}")

    def create_reading(self, device_id: str, metric_name: str, metric_value: float) -> int:
        payload = self._request(
            "POST",
            "/sensor-data",
            json={
                "deviceId": device_id,
                "metricName": metric_name,
                "metricValue": metric_value,
            },
        )
        reading_id = payload.get("id")
        if not isinstance(reading_id, int):
            raise typer.BadParameter("Unexpected response payload when recording reading.")
        return reading_id

    def list_readings(self, page: int, page_size: int) -> Dict[str, Any]:
        return self._request(
            "GET", "/sensor-data", params={"page": page, "pageSize": page_size}
        )

    def get_reading(self, reading_id: int) -> Dict[str, Any]:
        return self._request("GET", f"/sensor-data/{reading_id}")

    def readings_for_device(self, device_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/devices/{device_id}/sensor-data")

    def delete_reading(self, reading_id: int) -> None:
        self._request("DELETE", f"/sensor-data/{reading_id}")

    def _request(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.RequestError as exc:
            typer.secho(f"Could not reach {self._config.base_url}: {exc}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1)
        if response.status_code == httpx.codes.NO_CONTENT or not response.content:
            return {}
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail") if isinstance(data, dict) else None
        except ValueError:
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
