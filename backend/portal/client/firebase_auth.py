# backend/portal/client/firebase_auth.py
"""
Firebase Authentication over its REST API (the client-side identity provider).

Publishes SignedIn / CredentialRefreshed / SignedOut onto an asyncio.Queue
so a SessionHydrator can consume them, and doubles as the gateway's token
provider via `get_id_token`.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional

import httpx

from .session import CredentialRefreshed, Principal, SessionEvent, SignedIn, SignedOut

logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"
SECURE_TOKEN_URL = "https://securetoken.googleapis.com/v1/token"

# Refresh a little before Firebase's one-hour expiry
TOKEN_REFRESH_MARGIN_SECONDS = 300


class FirebaseAuthError(Exception):
    def __init__(self, code: str, status_code: int | None = None) -> None:
        super().__init__(code)
        self.code = code
        self.status_code = status_code


class FirebaseAuthClient:
    def __init__(
        self,
        api_key: str,
        channel: "asyncio.Queue[Optional[SessionEvent]] | None" = None,
        timeout: float = 30,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not api_key:
            raise ValueError("Firebase API key is required")
        self.api_key = api_key
        self.channel = channel
        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._clock = clock

        self.current_user: Optional[Principal] = None
        self._id_token: Optional[str] = None
        self._refresh_token: Optional[str] = None
        self._expires_at: float = 0.0

    def _emit(self, event: SessionEvent) -> None:
        if self.channel is not None:
            self.channel.put_nowait(event)

    async def _post(self, url: str, **kwargs: Any) -> Dict[str, Any]:
        resp = await self._http.post(url, params={"key": self.api_key}, **kwargs)
        if resp.status_code >= 400:
            try:
                code = resp.json()["error"]["message"]
            except (ValueError, KeyError, TypeError):
                code = f"HTTP_{resp.status_code}"
            raise FirebaseAuthError(code, resp.status_code)
        return resp.json()

    def _store_tokens(self, id_token: str, refresh_token: str, expires_in: Any) -> None:
        self._id_token = id_token
        self._refresh_token = refresh_token
        self._expires_at = self._clock() + int(expires_in or 3600)

    async def sign_in_with_password(self, email: str, password: str) -> Principal:
        data = await self._post(
            f"{IDENTITY_TOOLKIT_URL}/accounts:signInWithPassword",
            json={"email": email, "password": password, "returnSecureToken": True},
        )
        self._store_tokens(data["idToken"], data["refreshToken"], data.get("expiresIn"))

        profile = await self._lookup(data["idToken"])
        self.current_user = Principal(
            uid=data["localId"],
            email=data.get("email") or profile.get("email"),
            display_name=profile.get("displayName") or data.get("displayName"),
            photo_url=profile.get("photoUrl"),
        )
        logger.info(
            "Signed in", extra={"firebase_id": self.current_user.uid, "step": "sign_in"}
        )
        self._emit(SignedIn(self.current_user, self._id_token))
        return self.current_user

    async def _lookup(self, id_token: str) -> Dict[str, Any]:
        data = await self._post(
            f"{IDENTITY_TOOLKIT_URL}/accounts:lookup", json={"idToken": id_token}
        )
        users = data.get("users") or []
        return users[0] if users else {}

    async def refresh(self) -> str:
        if not self._refresh_token:
            raise FirebaseAuthError("NOT_SIGNED_IN")
        data = await self._post(
            SECURE_TOKEN_URL,
            data={"grant_type": "refresh_token", "refresh_token": self._refresh_token},
        )
        self._store_tokens(data["id_token"], data["refresh_token"], data.get("expires_in"))
        self._emit(CredentialRefreshed(self._id_token))
        return self._id_token

    async def get_id_token(self, force_refresh: bool = False) -> Optional[str]:
        if self.current_user is None:
            return None
        if force_refresh or self._clock() >= self._expires_at - TOKEN_REFRESH_MARGIN_SECONDS:
            return await self.refresh()
        return self._id_token

    async def sign_out(self) -> None:
        self.current_user = None
        self._id_token = None
        self._refresh_token = None
        self._expires_at = 0.0
        self._emit(SignedOut())

    async def aclose(self) -> None:
        await self._http.aclose()
