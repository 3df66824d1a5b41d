from __future__ import annotations

from typing import Any, Dict, NoReturn

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the signal monitor service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def get_status(self) -> Dict[str, Any]:
        return self._request("GET", "/status").json()

    def refresh(self) -> Dict[str, Any]:
        return self._request("POST", "/refresh").json()

    def get_history(self, page: int, page_size: int) -> Dict[str, Any]:
        return self._request(
            "GET", "/history", params={"page": page, "page_size": page_size}
        ).json()

    def get_stats(self) -> Dict[str, Any]:
        return self._request("GET", "/stats").json()

    def export_csv(self) -> str:
        return self._request("GET", "/export.csv").text

    def delete_reading(self, timestamp: str) -> Dict[str, Any]:
        return self._request("DELETE", f"/readings/{timestamp}").json()

    def delete_all(self) -> Dict[str, Any]:
        return self._request("DELETE", "/readings").json()

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            typer.secho(
                f"Could not reach {self._config.base_url}: {exc}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1) from exc
        return response

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> NoReturn:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
