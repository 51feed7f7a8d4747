# backend/portal/client/session.py
"""
Client-side session hydration.

Identity-provider events arrive on a channel and are folded into a
`SessionSnapshot` by `reduce`, a pure function:

    UNAUTHENTICATED --SignedIn--> HYDRATING --HydrationSucceeded--> HYDRATED
                                  HYDRATING --HydrationFailed-----> UNAUTHENTICATED
    any             --SignedOut--> UNAUTHENTICATED
    HYDRATED        --CredentialRefreshed--> HYDRATED (token replaced in place)

Every SignedIn/SignedOut bumps `attempt`; hydration results carry the
attempt they were started for and are dropped when stale, so a newer
sign-in supersedes an in-flight one instead of queueing behind it.
"""
from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Union

from .api import PortalClient

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    HYDRATING = "HYDRATING"
    HYDRATED = "HYDRATED"


@dataclass(frozen=True)
class Principal:
    """What the identity provider knows about the signed-in user."""
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None


@dataclass(frozen=True)
class Session:
    user_id: Optional[str]
    firebase_id: str
    email: Optional[str]
    name: Optional[str]
    photo_url: Optional[str]
    firebase_token: Optional[str]
    hydrated_at: float


@dataclass(frozen=True)
class SessionSnapshot:
    state: SessionState = SessionState.UNAUTHENTICATED
    session: Optional[Session] = None
    # principal/token being hydrated (or backing the current session)
    principal: Optional[Principal] = None
    token: Optional[str] = None
    attempt: int = 0
    error: Optional[str] = None

    @property
    def loading(self) -> bool:
        return self.state is SessionState.HYDRATING

    @property
    def is_authenticated(self) -> bool:
        return (
            self.state is SessionState.HYDRATED
            and self.session is not None
            and bool(self.session.firebase_id)
        )


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SignedIn:
    principal: Principal
    token: Optional[str] = None


@dataclass(frozen=True)
class SignedOut:
    pass


@dataclass(frozen=True)
class CredentialRefreshed:
    token: str


@dataclass(frozen=True)
class HydrationSucceeded:
    attempt: int
    user: Dict[str, Any]
    hydrated_at: float


@dataclass(frozen=True)
class HydrationFailed:
    attempt: int
    error: str


SessionEvent = Union[
    SignedIn, SignedOut, CredentialRefreshed, HydrationSucceeded, HydrationFailed
]


def build_session(
    principal: Principal,
    token: Optional[str],
    user: Dict[str, Any],
    hydrated_at: float,
) -> Session:
    # uid and email come from the provider; name/photo prefer what we stored
    return Session(
        user_id=user.get("id"),
        firebase_id=principal.uid,
        email=principal.email or user.get("email"),
        name=user.get("name") or principal.display_name,
        photo_url=user.get("photoUrl") or principal.photo_url,
        firebase_token=token,
        hydrated_at=hydrated_at,
    )


def reduce(snapshot: SessionSnapshot, event: SessionEvent) -> SessionSnapshot:
    if isinstance(event, SignedIn):
        if not event.principal.uid:
            return SessionSnapshot(
                attempt=snapshot.attempt + 1,
                error="Identity provider returned no user id",
            )
        return SessionSnapshot(
            state=SessionState.HYDRATING,
            principal=event.principal,
            token=event.token,
            attempt=snapshot.attempt + 1,
        )

    if isinstance(event, SignedOut):
        return SessionSnapshot(attempt=snapshot.attempt + 1)

    if isinstance(event, CredentialRefreshed):
        if snapshot.state is SessionState.HYDRATED and snapshot.session is not None:
            return replace(
                snapshot,
                token=event.token,
                session=replace(snapshot.session, firebase_token=event.token),
            )
        if snapshot.state is SessionState.HYDRATING:
            return replace(snapshot, token=event.token)
        return snapshot

    if isinstance(event, HydrationSucceeded):
        if event.attempt != snapshot.attempt or snapshot.state is not SessionState.HYDRATING:
            return snapshot
        return replace(
            snapshot,
            state=SessionState.HYDRATED,
            session=build_session(
                snapshot.principal, snapshot.token, event.user, event.hydrated_at
            ),
            error=None,
        )

    if isinstance(event, HydrationFailed):
        if event.attempt != snapshot.attempt or snapshot.state is not SessionState.HYDRATING:
            return snapshot
        # Never expose a partial session
        return SessionSnapshot(attempt=snapshot.attempt, error=event.error)

    raise TypeError(f"Unknown session event: {event!r}")


# ---------------------------------------------------------------------------
# Hydrator
# ---------------------------------------------------------------------------

class SessionRequired(Exception):
    """Raised when a protected action runs without a hydrated session."""


Listener = Callable[[SessionSnapshot], None]


class SessionHydrator:
    def __init__(
        self,
        client: PortalClient,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._clock = clock
        self._task: Optional[asyncio.Task] = None
        self._listeners: List[Listener] = []
        self.snapshot = SessionSnapshot()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.snapshot)

    async def dispatch(self, event: SessionEvent) -> SessionSnapshot:
        previous = self.snapshot
        self.snapshot = reduce(previous, event)
        if self.snapshot != previous:
            self._notify()

        if isinstance(event, SignedIn):
            self._cancel_pending()
            if self.snapshot.state is SessionState.HYDRATING:
                self._task = asyncio.create_task(
                    self._hydrate(self.snapshot.attempt, self.snapshot.principal)
                )
        elif isinstance(event, SignedOut):
            self._cancel_pending()
        return self.snapshot

    def _cancel_pending(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _hydrate(self, attempt: int, principal: Principal) -> None:
        logger.info(
            "Hydrating session",
            extra={"firebase_id": principal.uid, "step": "hydrate_session"},
        )
        try:
            user = await self._client.upsert_user(
                firebase_id=principal.uid,
                email=principal.email,
                display_name=principal.display_name,
                photo_url=principal.photo_url,
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error(
                "Session hydration failed: %s", exc,
                extra={"firebase_id": principal.uid, "step": "hydrate_session"},
            )
            await self.dispatch(
                HydrationFailed(attempt=attempt, error=str(exc) or "Failed to hydrate session")
            )
            return

        await self.dispatch(
            HydrationSucceeded(attempt=attempt, user=user, hydrated_at=self._clock())
        )

    async def wait_idle(self) -> SessionSnapshot:
        """Wait for the in-flight hydration (if any) to settle."""
        # a newer sign-in may replace the task while we wait
        while self._task is not None and not self._task.done():
            task = self._task
            await asyncio.wait({task})
        return self.snapshot

    async def refresh(self) -> SessionSnapshot:
        """Re-hydrate the current principal, or clear when nobody is signed in."""
        if self.snapshot.principal is None:
            return await self.dispatch(SignedOut())
        await self.dispatch(SignedIn(self.snapshot.principal, self.snapshot.token))
        return await self.wait_idle()

    async def run(self, channel: "asyncio.Queue[Optional[SessionEvent]]") -> None:
        """Consume events until a None sentinel arrives."""
        while True:
            event = await channel.get()
            try:
                if event is None:
                    break
                await self.dispatch(event)
            finally:
                channel.task_done()
        await self.wait_idle()

    def require_session(self) -> Session:
        if not self.snapshot.is_authenticated:
            raise SessionRequired("Sign in required")
        return self.snapshot.session
