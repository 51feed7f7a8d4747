# backend/portal/services/identity.py
"""
Firebase ID token verification.

The firebase_admin App is built once by the process entry point
(`create_app`) and injected into request handlers; nothing in this module
initializes Firebase lazily.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import firebase_admin
from firebase_admin import auth, credentials, exceptions as firebase_exceptions

from ..core.config import Settings
from ..core.errors import ConfigurationError

logger = logging.getLogger(__name__)

FIREBASE_APP_NAME = "portal"


@dataclass(frozen=True)
class IdentityClaim:
    uid: str
    email: Optional[str] = None


class InvalidCredential(Exception):
    """Expired, malformed, revoked or badly signed ID token."""

    def __init__(self, message: str, *, expired: bool = False) -> None:
        super().__init__(message)
        self.expired = expired


class IdentityVerifier(Protocol):
    def verify(self, token: str) -> IdentityClaim:
        ...


def load_service_account(settings: Settings) -> Dict[str, Any]:
    """
    Resolve the service credential from settings.

    FIREBASE_SERVICE_ACCOUNT_KEY (full JSON) wins; otherwise the discrete
    FIREBASE_PROJECT_ID / FIREBASE_CLIENT_EMAIL / FIREBASE_PRIVATE_KEY trio.
    """
    if settings.FIREBASE_SERVICE_ACCOUNT_KEY:
        try:
            data = json.loads(settings.FIREBASE_SERVICE_ACCOUNT_KEY)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(
                "FIREBASE_SERVICE_ACCOUNT_KEY must be a valid JSON string"
            ) from exc
        if not isinstance(data, dict):
            raise ConfigurationError(
                "FIREBASE_SERVICE_ACCOUNT_KEY must be a JSON object"
            )
        return data

    project_id = settings.FIREBASE_PROJECT_ID
    client_email = settings.FIREBASE_CLIENT_EMAIL
    private_key = settings.FIREBASE_PRIVATE_KEY
    if project_id and client_email and private_key:
        return {
            "type": "service_account",
            "project_id": project_id,
            "client_email": client_email,
            # env files usually carry the PEM with literal "\n" sequences
            "private_key": private_key.replace("\\n", "\n"),
            "token_uri": "https://oauth2.googleapis.com/token",
        }

    raise ConfigurationError(
        "FIREBASE_SERVICE_ACCOUNT_KEY (or FIREBASE_PROJECT_ID + "
        "FIREBASE_CLIENT_EMAIL + FIREBASE_PRIVATE_KEY) must be set"
    )


class FirebaseIdentityVerifier:
    def __init__(self, app: firebase_admin.App) -> None:
        self.app = app

    @classmethod
    def from_settings(cls, settings: Settings) -> "FirebaseIdentityVerifier":
        service_account = load_service_account(settings)
        try:
            cred = credentials.Certificate(service_account)
        except ValueError as exc:
            raise ConfigurationError("Invalid Firebase service account") from exc

        try:
            app = firebase_admin.get_app(FIREBASE_APP_NAME)
        except ValueError:
            app = firebase_admin.initialize_app(cred, name=FIREBASE_APP_NAME)
            logger.info(
                "Firebase Admin initialized",
                extra={"step": "firebase_init"},
            )
        return cls(app)

    def verify(self, token: str) -> IdentityClaim:
        try:
            decoded = auth.verify_id_token(token, app=self.app)
        except auth.ExpiredIdTokenError as exc:
            raise InvalidCredential("ID token expired", expired=True) from exc
        except (auth.InvalidIdTokenError, auth.UserDisabledError) as exc:
            raise InvalidCredential("ID token invalid") from exc
        except ValueError as exc:
            # Empty or non-string tokens
            raise InvalidCredential("ID token malformed") from exc
        except firebase_exceptions.FirebaseError as exc:
            # e.g. CertificateFetchError: we cannot vouch for the token
            logger.warning(
                "Firebase token verification failed: %s",
                exc.__class__.__name__,
                extra={"step": "verify_id_token"},
            )
            raise InvalidCredential("ID token could not be verified") from exc

        return IdentityClaim(uid=decoded["uid"], email=decoded.get("email"))

    def close(self) -> None:
        firebase_admin.delete_app(self.app)
