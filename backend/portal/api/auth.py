import logging

from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..core.errors import ConfigurationError, Unauthorized
from ..services.identity import IdentityClaim, IdentityVerifier, InvalidCredential

bearer_scheme = HTTPBearer(auto_error=False)
logger = logging.getLogger(__name__)


def get_identity_verifier(request: Request) -> IdentityVerifier:
    verifier = getattr(request.app.state, "identity_verifier", None)
    if verifier is None:
        raise ConfigurationError("Identity verifier not configured")
    return verifier


def require_claim(
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> IdentityClaim:
    """
    Bearer-token authentication against Firebase.

    - Missing header or non-Bearer scheme -> 401.
    - Expired token -> 401 with a "sign in again" hint.
    - Anything else the verifier rejects -> 401 without further detail.
    """
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Unauthorized: Missing token")

    try:
        return verifier.verify(credentials.credentials)
    except InvalidCredential as exc:
        logger.info(
            "Rejected bearer token: %s", exc,
            extra={"step": "require_claim"},
        )
        if exc.expired:
            raise Unauthorized("Token expired. Please sign in again.") from exc
        raise Unauthorized("Unauthorized: Invalid token") from exc
