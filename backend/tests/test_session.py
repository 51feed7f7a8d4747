"""
Tests for the client-side session reducer and hydrator.
"""
import asyncio
from typing import Any, Dict, List

import pytest

from portal.client.api import PortalAPIError
from portal.client.session import (
    CredentialRefreshed,
    HydrationFailed,
    HydrationSucceeded,
    Principal,
    SessionHydrator,
    SessionRequired,
    SessionSnapshot,
    SessionState,
    SignedIn,
    SignedOut,
    reduce,
)

ALICE = Principal(
    uid="uid-alice",
    email="alice@example.com",
    display_name="Alice (provider)",
    photo_url="https://img.example.com/provider.png",
)
BOB = Principal(uid="uid-bob", email="bob@example.com")

STORED_ALICE = {
    "id": "user-1",
    "firebaseId": "uid-alice",
    "email": "old@example.com",
    "name": "Alice",
    "photoUrl": None,
}


class FakePortalClient:
    """Stands in for PortalClient.upsert_user; optionally blocks per uid."""

    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []
        self.gates: Dict[str, asyncio.Event] = {}
        self.fail_with: Exception | None = None

    async def upsert_user(self, firebase_id, email, display_name=None, photo_url=None):
        self.calls.append({"firebase_id": firebase_id, "email": email})
        gate = self.gates.get(firebase_id)
        if gate is not None:
            await gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        return dict(STORED_ALICE, firebaseId=firebase_id, email=email)


def _hydrating(attempt=1, principal=ALICE, token="t1"):
    return SessionSnapshot(
        state=SessionState.HYDRATING, principal=principal, token=token, attempt=attempt
    )


# ---------------------------------------------------------------------------
# Reducer
# ---------------------------------------------------------------------------

class TestReduce:
    def test_initial_snapshot(self):
        snapshot = SessionSnapshot()
        assert snapshot.state is SessionState.UNAUTHENTICATED
        assert snapshot.loading is False
        assert snapshot.is_authenticated is False

    def test_sign_in_starts_hydration(self):
        snapshot = reduce(SessionSnapshot(), SignedIn(ALICE, "t1"))
        assert snapshot.state is SessionState.HYDRATING
        assert snapshot.loading is True
        assert snapshot.attempt == 1
        assert snapshot.session is None

    def test_sign_in_without_uid_stays_unauthenticated(self):
        snapshot = reduce(SessionSnapshot(), SignedIn(Principal(uid=""), "t1"))
        assert snapshot.state is SessionState.UNAUTHENTICATED
        assert snapshot.error

    def test_success_builds_session_preferring_stored_profile(self):
        snapshot = reduce(
            _hydrating(), HydrationSucceeded(attempt=1, user=STORED_ALICE, hydrated_at=100.0)
        )
        assert snapshot.state is SessionState.HYDRATED
        assert snapshot.is_authenticated is True
        session = snapshot.session
        assert session.user_id == "user-1"
        assert session.firebase_id == "uid-alice"
        # provider email, stored name, provider photo as fallback
        assert session.email == "alice@example.com"
        assert session.name == "Alice"
        assert session.photo_url == "https://img.example.com/provider.png"
        assert session.firebase_token == "t1"
        assert session.hydrated_at == 100.0

    def test_stale_results_are_ignored(self):
        current = _hydrating(attempt=2)
        assert reduce(current, HydrationSucceeded(1, STORED_ALICE, 1.0)) == current
        assert reduce(current, HydrationFailed(1, "boom")) == current

    def test_failure_never_exposes_partial_session(self):
        snapshot = reduce(_hydrating(), HydrationFailed(attempt=1, error="boom"))
        assert snapshot.state is SessionState.UNAUTHENTICATED
        assert snapshot.session is None
        assert snapshot.principal is None
        assert snapshot.error == "boom"

    def test_sign_out_clears_and_bumps_attempt(self):
        hydrated = reduce(_hydrating(), HydrationSucceeded(1, STORED_ALICE, 1.0))
        snapshot = reduce(hydrated, SignedOut())
        assert snapshot == SessionSnapshot(attempt=2)

    def test_refresh_replaces_token_in_place(self):
        hydrated = reduce(_hydrating(), HydrationSucceeded(1, STORED_ALICE, 1.0))
        refreshed = reduce(hydrated, CredentialRefreshed("t2"))
        assert refreshed.state is SessionState.HYDRATED
        assert refreshed.session.firebase_token == "t2"
        assert refreshed.session.hydrated_at == hydrated.session.hydrated_at
        assert refreshed.attempt == hydrated.attempt

    def test_refresh_while_hydrating_updates_pending_token(self):
        snapshot = reduce(_hydrating(), CredentialRefreshed("t2"))
        assert snapshot.token == "t2"
        done = reduce(snapshot, HydrationSucceeded(1, STORED_ALICE, 1.0))
        assert done.session.firebase_token == "t2"

    def test_refresh_when_signed_out_is_ignored(self):
        assert reduce(SessionSnapshot(), CredentialRefreshed("t2")) == SessionSnapshot()

    def test_unknown_event_raises(self):
        with pytest.raises(TypeError):
            reduce(SessionSnapshot(), object())


# ---------------------------------------------------------------------------
# Hydrator
# ---------------------------------------------------------------------------

class TestSessionHydrator:
    def test_sign_in_hydrates_once(self):
        async def scenario():
            client = FakePortalClient()
            hydrator = SessionHydrator(client, clock=lambda: 42.0)
            seen = []
            hydrator.subscribe(lambda s: seen.append(s.state))

            await hydrator.dispatch(SignedIn(ALICE, "t1"))
            snapshot = await hydrator.wait_idle()
            return client, snapshot, seen

        client, snapshot, seen = asyncio.run(scenario())
        assert len(client.calls) == 1
        assert client.calls[0] == {"firebase_id": "uid-alice", "email": "alice@example.com"}
        assert snapshot.is_authenticated
        assert snapshot.session.hydrated_at == 42.0
        assert seen == [SessionState.HYDRATING, SessionState.HYDRATED]

    def test_failed_upsert_leaves_unauthenticated(self):
        async def scenario():
            client = FakePortalClient()
            client.fail_with = PortalAPIError(403, "Unauthorized: Token does not match firebaseId")
            hydrator = SessionHydrator(client)
            await hydrator.dispatch(SignedIn(ALICE, "t1"))
            return await hydrator.wait_idle()

        snapshot = asyncio.run(scenario())
        assert snapshot.state is SessionState.UNAUTHENTICATED
        assert snapshot.session is None
        assert "403" in snapshot.error

    def test_newer_sign_in_supersedes_in_flight_hydration(self):
        async def scenario():
            client = FakePortalClient()
            client.gates["uid-alice"] = asyncio.Event()
            hydrator = SessionHydrator(client)

            await hydrator.dispatch(SignedIn(ALICE, "t-alice"))
            await asyncio.sleep(0)  # let Alice's upsert start and block
            await hydrator.dispatch(SignedIn(BOB, "t-bob"))
            client.gates["uid-alice"].set()
            return client, await hydrator.wait_idle()

        client, snapshot = asyncio.run(scenario())
        assert [c["firebase_id"] for c in client.calls] == ["uid-alice", "uid-bob"]
        assert snapshot.session.firebase_id == "uid-bob"
        assert snapshot.session.firebase_token == "t-bob"
        assert snapshot.attempt == 2

    def test_sign_out_during_hydration_discards_result(self):
        async def scenario():
            client = FakePortalClient()
            client.gates["uid-alice"] = asyncio.Event()
            hydrator = SessionHydrator(client)

            await hydrator.dispatch(SignedIn(ALICE, "t1"))
            await asyncio.sleep(0)
            await hydrator.dispatch(SignedOut())
            client.gates["uid-alice"].set()
            return await hydrator.wait_idle()

        snapshot = asyncio.run(scenario())
        assert snapshot.state is SessionState.UNAUTHENTICATED
        assert snapshot.session is None

    def test_token_refresh_does_not_rehydrate(self):
        async def scenario():
            client = FakePortalClient()
            hydrator = SessionHydrator(client)
            await hydrator.dispatch(SignedIn(ALICE, "t1"))
            await hydrator.wait_idle()
            await hydrator.dispatch(CredentialRefreshed("t2"))
            return client, await hydrator.wait_idle()

        client, snapshot = asyncio.run(scenario())
        assert len(client.calls) == 1
        assert snapshot.session.firebase_token == "t2"

    def test_run_consumes_channel_until_sentinel(self):
        async def scenario():
            client = FakePortalClient()
            hydrator = SessionHydrator(client)
            channel = asyncio.Queue()
            for event in (SignedIn(ALICE, "t1"), CredentialRefreshed("t2"), None):
                channel.put_nowait(event)
            await hydrator.run(channel)
            return hydrator.snapshot

        snapshot = asyncio.run(scenario())
        assert snapshot.is_authenticated
        assert snapshot.session.firebase_token == "t2"

    def test_unsubscribe_stops_notifications(self):
        async def scenario():
            hydrator = SessionHydrator(FakePortalClient())
            seen = []
            unsubscribe = hydrator.subscribe(lambda s: seen.append(s.state))
            unsubscribe()
            await hydrator.dispatch(SignedIn(ALICE, "t1"))
            await hydrator.wait_idle()
            return seen

        assert asyncio.run(scenario()) == []

    def test_require_session(self):
        async def scenario():
            hydrator = SessionHydrator(FakePortalClient())
            with pytest.raises(SessionRequired):
                hydrator.require_session()
            await hydrator.dispatch(SignedIn(ALICE, "t1"))
            await hydrator.wait_idle()
            return hydrator.require_session()

        assert asyncio.run(scenario()).firebase_id == "uid-alice"
