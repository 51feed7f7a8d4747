"""
Shared pytest fixtures: in-memory SQLite, a fake Firebase verifier, and an
Apollo connector wired to httpx.MockTransport.
"""
import os

# Settings are read at import time by portal.core.db
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENV", "test")

from typing import Any, Callable, Dict, List

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from portal.core.db import Base, get_db
from portal.main import create_app
from portal.models.company import Company  # noqa: F401
from portal.models.user import User  # noqa: F401
from portal.services.connectors.apollo import ApolloConnector
from portal.services.identity import IdentityClaim, InvalidCredential

ALICE_UID = "uid-alice"
ALICE_TOKEN = "token-alice"
BOB_UID = "uid-bob"
BOB_TOKEN = "token-bob"
EXPIRED_TOKEN = "token-expired"


class FakeVerifier:
    """Maps known tokens to claims; everything else is rejected."""

    def __init__(self) -> None:
        self.claims: Dict[str, IdentityClaim] = {
            ALICE_TOKEN: IdentityClaim(uid=ALICE_UID, email="alice@example.com"),
            BOB_TOKEN: IdentityClaim(uid=BOB_UID, email="bob@example.com"),
        }
        self.seen: List[str] = []

    def verify(self, token: str) -> IdentityClaim:
        self.seen.append(token)
        if token == EXPIRED_TOKEN:
            raise InvalidCredential("ID token expired", expired=True)
        claim = self.claims.get(token)
        if claim is None:
            raise InvalidCredential("ID token invalid")
        return claim


class ApolloStub:
    """
    Canned Apollo responses behind httpx.MockTransport.

    `responses` is consumed in order; each entry is (status_code, body) where
    a str body is sent as raw text and anything else as JSON.
    """

    def __init__(self) -> None:
        self.responses: List[tuple] = []
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            return httpx.Response(200, json={"organizations": []})
        status, body = self.responses.pop(0)
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def verifier() -> FakeVerifier:
    return FakeVerifier()


@pytest.fixture
def apollo_stub() -> ApolloStub:
    return ApolloStub()


@pytest.fixture
def apollo_api_key() -> str | None:
    return "test-apollo-key"


@pytest.fixture
def make_client(session_factory, verifier, apollo_stub) -> Callable[..., TestClient]:
    def _make(apollo_api_key: str | None = "test-apollo-key") -> TestClient:
        connector = ApolloConnector(
            api_key=apollo_api_key,
            base_url="https://apollo.test/v1",
            transport=apollo_stub.transport(),
        )
        app = create_app(identity_verifier=verifier, apollo_connector=connector)

        def _get_test_db():
            db = session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = _get_test_db
        return TestClient(app)

    return _make


@pytest.fixture
def client(make_client, apollo_api_key) -> TestClient:
    return make_client(apollo_api_key)


def auth(token: str = ALICE_TOKEN) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def signed_up(client) -> Dict[str, Any]:
    """Alice, hydrated once through /user/upsert."""
    resp = client.post(
        "/api/user/upsert",
        json={
            "firebaseId": ALICE_UID,
            "email": "alice@example.com",
            "displayName": "Alice",
            "photoUrl": "https://img.example.com/alice.png",
        },
        headers=auth(),
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["user"]
