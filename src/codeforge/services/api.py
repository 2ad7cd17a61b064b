"""Async HTTP client for the CodeForge REST backend."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .settings import Settings

__all__ = ["ApiSettings", "ApiClient"]

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ApiSettings:
    """Subset of settings required to talk to the backend."""

    base_url: str
    token: str = ""
    request_timeout: float = 30.0
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "ApiSettings":
        return cls(
            base_url=settings.api_base_url,
            token=settings.auth_token,
            request_timeout=settings.request_timeout,
            max_retries=settings.max_retries,
            retry_min_seconds=settings.retry_min_seconds,
            retry_max_seconds=settings.retry_max_seconds,
        )


class ApiClient:
    """Thin wrapper over :class:`httpx.AsyncClient` carrying the bearer token.

    Only idempotent reads are retried; writes are issued exactly once and any
    failure is reported to the caller.
    """

    def __init__(
        self,
        settings: ApiSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.base_url.rstrip("/"),
            timeout=settings.request_timeout,
            transport=transport,
        )

    @property
    def settings(self) -> ApiSettings:
        return self._settings

    @property
    def token(self) -> str:
        return self._settings.token

    def set_token(self, token: str) -> None:
        self._settings.token = token or ""

    async def read(self, path: str) -> Any:
        """GET ``path`` and decode the JSON body, retrying transport failures."""

        async for attempt in self._retrying():
            with attempt:
                response = await self._send("GET", path)
        return response.json()

    async def write(self, method: str, path: str, payload: Mapping[str, Any] | None = None) -> Any:
        """Issue a single non-idempotent request and decode the JSON body."""

        response = await self._send(method, path, payload)
        if not response.content:
            return None
        return response.json()

    async def _send(self, method: str, path: str, payload: Mapping[str, Any] | None = None) -> httpx.Response:
        LOGGER.debug("%s %s", method, path)
        response = await self._client.request(
            method,
            path,
            json=dict(payload) if payload is not None else None,
            headers=self._headers(),
        )
        response.raise_for_status()
        return response

    def _headers(self) -> dict[str, str]:
        if not self._settings.token:
            return {}
        return {"Authorization": f"Bearer {self._settings.token}"}

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(1, self._settings.max_retries)),
            wait=wait_exponential(
                multiplier=self._settings.retry_min_seconds,
                max=self._settings.retry_max_seconds,
            ),
            retry=retry_if_exception_type(httpx.TransportError),
        )

    async def aclose(self) -> None:
        await self._client.aclose()
