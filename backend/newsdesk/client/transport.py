from __future__ import annotations

import logging
from typing import Any

import httpx

from newsdesk.config import settings

logger = logging.getLogger(__name__)

CONVERSATIONS_PATH = "/messages/conversations"
MESSAGES_PATH = "/messages"
SEND_PATH = "/messages/send"
MARK_READ_PATH = "/messages/read"


class TransportError(Exception):
    """Raised for network failures, non-2xx responses and ``success: false`` bodies."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(message)


def _error_from_body(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("error", "detail"):
            if isinstance(body.get(key), str) and body[key]:
                return body[key]
    return f"Request failed with status code {response.status_code}"


class MessageTransport:
    """Authenticated JSON client for the messaging endpoints.

    The session cookie is attached to every request; authorisation failures
    surface as ordinary ``TransportError``s.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        session_token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        cookies = {settings.SESSION_COOKIE_NAME: session_token} if session_token else None
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            cookies=cookies,
            timeout=timeout if timeout is not None else settings.REQUEST_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def get(self, path: str, params: dict[str, Any] | None = None) -> dict:
        return await self._request("GET", path, params=params)

    async def post(self, path: str, json: dict[str, Any] | None = None) -> dict:
        return await self._request("POST", path, json=json)

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.debug("%s %s failed: %s", method, path, exc)
            raise TransportError(str(exc)) from exc

        if response.is_error:
            raise TransportError(_error_from_body(response), response.status_code)

        try:
            body = response.json()
        except ValueError as exc:
            raise TransportError("Invalid JSON response", response.status_code) from exc

        if not isinstance(body, dict):
            raise TransportError("Unexpected response body", response.status_code)
        if body.get("success") is False:
            raise TransportError(body.get("error") or "", response.status_code)
        return body

    async def aclose(self) -> None:
        await self._client.aclose()
