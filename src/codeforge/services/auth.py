"""Client for the backend's registration and login endpoints."""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from ..errors import AuthenticationError
from .api import ApiClient

__all__ = ["AuthClient"]

LOGGER = logging.getLogger(__name__)

UNEXPECTED_RESPONSE = "Unexpected server response"


class AuthClient:
    """Obtains bearer tokens and stores them on the shared :class:`ApiClient`."""

    def __init__(self, api: ApiClient) -> None:
        self._api = api

    async def register(self, username: str, email: str, password: str) -> str:
        payload = {"username": username, "email": email, "password": password}
        return await self._issue_token("/auth/register", payload)

    async def login(self, email: str, password: str) -> str:
        return await self._issue_token("/auth/login", {"email": email, "password": password})

    async def me(self) -> dict[str, Any]:
        """Return the profile of the user the current token belongs to."""

        if not self._api.token:
            raise AuthenticationError("Not logged in")
        try:
            payload = await self._api.read("/auth/me")
        except httpx.HTTPStatusError as exc:
            raise AuthenticationError(_server_message(exc.response)) from exc
        except httpx.HTTPError as exc:
            raise AuthenticationError(f"Unable to reach the server: {exc}") from exc
        except ValueError as exc:
            raise AuthenticationError(UNEXPECTED_RESPONSE) from exc
        if not isinstance(payload, Mapping):
            raise AuthenticationError(UNEXPECTED_RESPONSE)
        return dict(payload)

    def logout(self) -> None:
        self._api.set_token("")

    async def _issue_token(self, path: str, payload: Mapping[str, str]) -> str:
        try:
            body = await self._api.write("POST", path, payload)
        except httpx.HTTPStatusError as exc:
            LOGGER.info("Authentication request to %s rejected (%s)", path, exc.response.status_code)
            raise AuthenticationError(_server_message(exc.response)) from exc
        except httpx.HTTPError as exc:
            raise AuthenticationError(f"Unable to reach the server: {exc}") from exc
        except ValueError as exc:
            raise AuthenticationError(UNEXPECTED_RESPONSE) from exc
        token = body.get("token") if isinstance(body, Mapping) else None
        if not token:
            raise AuthenticationError("Server response did not include a token")
        self._api.set_token(str(token))
        return str(token)


def _server_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, Mapping) and body.get("message"):
        return str(body["message"])
    return f"Request failed with status {response.status_code}"
