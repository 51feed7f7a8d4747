# backend/portal/client/gateway.py
"""
Outbound request wrapper for the portal API.

Every request gets the freshest available Firebase ID token as a Bearer
header. Failing to obtain a token never blocks the request: the server is
the authority on rejecting it. 401/403 responses are logged here and
handed back untouched; re-authentication is the caller's decision.
"""
from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

import httpx

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Awaitable[Optional[str]]]


class RequestGateway:
    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider,
        timeout: float = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token_provider = token_provider
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
            event_hooks={
                "request": [self._attach_token],
                "response": [self._log_auth_failures],
            },
        )

    async def _attach_token(self, request: httpx.Request) -> None:
        try:
            token = await self._token_provider()
        except Exception as exc:
            logger.warning(
                "Unable to attach token: %s", exc,
                extra={"step": "attach_token"},
            )
            return
        if token:
            request.headers["Authorization"] = f"Bearer {token}"

    async def _log_auth_failures(self, response: httpx.Response) -> None:
        if response.status_code in (401, 403):
            await response.aread()
            label = "Unauthorized" if response.status_code == 401 else "Forbidden"
            logger.error(
                "%s (%s) from %s: %s",
                label,
                response.status_code,
                response.request.url.path,
                response.text[:500],
                extra={"status_code": response.status_code, "step": "api_response"},
            )

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        return await self._client.request(method, url, **kwargs)

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "RequestGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
