"""Shared HTTP client for the *arr v3 APIs."""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from doplarr.errors import BackendProtocolError, BackendRequestFailed, BackendUnavailable

DEFAULT_TIMEOUT = httpx.Timeout(30.0, connect=10.0)


def build_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=DEFAULT_TIMEOUT, headers={"Accept": "application/json"})


def log_api_error(status_code: int, content: str, context: str) -> None:
    logger.error("{} - HTTP {}: {}", context, status_code, content)


class ArrClient:
    """Thin JSON wrapper over one Radarr/Sonarr instance."""

    def __init__(self, name: str, base_url: str, api_key: str, http: httpx.AsyncClient) -> None:
        self.name = name
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._http = http

    async def get(self, path: str, *, context: str, params: dict[str, Any] | None = None) -> Any:
        return await self._call("GET", path, context=context, params=params)

    async def post(self, path: str, payload: Any, *, context: str) -> Any:
        return await self._call("POST", path, context=context, json=payload)

    async def put(self, path: str, payload: Any, *, context: str) -> Any:
        return await self._call("PUT", path, context=context, json=payload)

    async def _call(self, method: str, path: str, *, context: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}/api/v3/{path.lstrip('/')}"
        logger.trace("{}.http method={} path={}", self.name, method, path)
        try:
            response = await self._http.request(method, url, headers={"X-Api-Key": self._api_key}, **kwargs)
        except httpx.TimeoutException as exc:
            logger.error("{} - request timed out: {}", context, exc)
            raise BackendUnavailable(f"{context}: timed out", timed_out=True) from exc
        except httpx.TransportError as exc:
            logger.error("{} - connection error: {}", context, exc)
            raise BackendUnavailable(f"{context}: connection failed") from exc

        if response.is_error:
            log_api_error(response.status_code, response.text, context)
            raise BackendRequestFailed(f"{context}: HTTP {response.status_code}", status_code=response.status_code)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            logger.error("{} - undecodable response: {}", context, response.text[:200])
            raise BackendProtocolError(f"{context}: response is not JSON") from exc


def expect_list(payload: Any, context: str) -> list[dict[str, Any]]:
    if not isinstance(payload, list) or not all(isinstance(entry, dict) for entry in payload):
        raise BackendProtocolError(f"{context}: expected a list of objects")
    return payload


def expect_object(payload: Any, context: str) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise BackendProtocolError(f"{context}: expected an object")
    return payload
