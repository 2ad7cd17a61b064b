"""Client for the remote code execution service."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping

import httpx

from ..services.settings import Settings

__all__ = [
    "DEFAULT_RUNTIME",
    "RUNTIME_IDENTIFIERS",
    "RemoteExecutionSettings",
    "RemoteResponse",
    "RemoteExecutionClient",
    "runtime_for",
]

LOGGER = logging.getLogger(__name__)

RUNTIME_IDENTIFIERS: Mapping[str, str] = MappingProxyType(
    {
        "javascript": "nodejs",
        "python": "python3",
        "java": "java",
        "cpp": "cpp17",
        "c": "c",
        "go": "go",
        "ruby": "ruby",
    }
)
DEFAULT_RUNTIME = "nodejs"


def runtime_for(language: str) -> str:
    """Return the service's runtime id for ``language``.

    Unknown languages run on :data:`DEFAULT_RUNTIME` instead of being refused.
    """

    runtime = RUNTIME_IDENTIFIERS.get((language or "").strip().lower())
    if runtime is None:
        LOGGER.debug("No runtime mapped for %r; using %s", language, DEFAULT_RUNTIME)
        return DEFAULT_RUNTIME
    return runtime


@dataclass(slots=True)
class RemoteExecutionSettings:
    url: str
    client_id: str = ""
    client_secret: str = ""
    version_index: str = "0"
    timeout: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RemoteExecutionSettings":
        return cls(
            url=settings.execution_url,
            client_id=settings.execution_client_id,
            client_secret=settings.execution_client_secret,
            version_index=settings.execution_version_index,
            timeout=settings.execution_timeout,
        )


@dataclass(slots=True, frozen=True)
class RemoteResponse:
    output: str = ""
    error: str = ""


class RemoteExecutionClient:
    """Submits one program per request; there is no streaming and no retry."""

    def __init__(
        self,
        settings: RemoteExecutionSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._client = httpx.AsyncClient(timeout=settings.timeout, transport=transport)

    @property
    def settings(self) -> RemoteExecutionSettings:
        return self._settings

    async def execute(self, source: str, runtime: str) -> RemoteResponse:
        """Run ``source`` on ``runtime``.

        Raises:
            httpx.HTTPError: on transport failures, timeouts and error statuses.
            ValueError: when the response body is not a JSON object.
        """

        body = {
            "script": source,
            "language": runtime,
            "versionIndex": self._settings.version_index,
            "clientId": self._settings.client_id,
            "clientSecret": self._settings.client_secret,
        }
        LOGGER.debug("Submitting %d characters to %s (runtime=%s)", len(source), self._settings.url, runtime)
        response = await self._client.post(self._settings.url, json=body)
        response.raise_for_status()
        payload: Any = response.json()
        if not isinstance(payload, Mapping):
            raise ValueError("Execution service returned a non-object payload")
        return RemoteResponse(
            output=_text(payload.get("output")),
            error=_text(payload.get("error")),
        )

    async def aclose(self) -> None:
        await self._client.aclose()


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)
