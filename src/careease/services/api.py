"""HTTP client for the CareEase REST API."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..core.config import Settings
from ..core.exceptions import (
    AccountBannedError,
    ApiError,
    AuthenticationError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    RequestValidationError,
    ServerError,
)
from ..core.preferences import Preferences

logger = logging.getLogger(__name__)


class ApiClient:
    """Thin async wrapper around httpx.

    Adds the bearer token from Preferences to every request, unwraps the
    ``{"success": ..., "data": ...}`` envelope, and turns failures into the
    ApiError hierarchy.
    """

    def __init__(
        self,
        settings: Settings,
        preferences: Preferences,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings
        self.preferences = preferences
        self._client = client or httpx.AsyncClient(
            base_url=settings.api_url,
            timeout=httpx.Timeout(settings.request_timeout),
            headers={"Content-Type": "application/json"},
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        token = self.preferences.token
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Send a request and return the response's ``data`` object."""
        if params:
            params = {k: v for k, v in params.items() if v not in (None, "")}
        try:
            response = await self._client.request(
                method,
                path,
                params=params or None,
                json=json,
                headers=self._headers(),
            )
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise NetworkError() from e

        if response.is_error:
            raise self._error_for(response)

        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError as e:
            raise ApiError("Invalid response from server", status_code=response.status_code) from e
        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            return body["data"]
        return body if isinstance(body, dict) else {"items": body}

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.request("POST", path, json=json or {})

    async def put(self, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.request("PUT", path, json=json or {})

    async def patch(self, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.request("PATCH", path, json=json or {})

    async def delete(self, path: str) -> Dict[str, Any]:
        return await self.request("DELETE", path)

    def _error_for(self, response: httpx.Response) -> ApiError:
        status = response.status_code
        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        message = data.get("message")
        kwargs = {"status_code": status, "payload": data}
        logger.debug("API error %s: %s", status, message)

        if status == 401:
            text = (message or "").lower()
            if "token" in text or "unauthorized" in text:
                self.preferences.clear_token()
            return AuthenticationError(message, **kwargs)
        if status == 403:
            if message and "banned" in message.lower():
                self.preferences.clear_token()
                return AccountBannedError(ban_reason=data.get("banReason"), **kwargs)
            return PermissionDeniedError(message, **kwargs)
        if status == 404:
            return NotFoundError(message, **kwargs)
        if status == 422:
            errors = [
                e.get("message") or e.get("msg") or ""
                for e in data.get("errors") or []
                if isinstance(e, dict)
            ]
            return RequestValidationError(message, errors=errors, **kwargs)
        if status == 429:
            return RateLimitError(message, **kwargs)
        if status == 500:
            return ServerError(**kwargs)
        if status >= 500:
            return ServerError(message or "Service temporarily unavailable", **kwargs)
        return ApiError(message, **kwargs)
