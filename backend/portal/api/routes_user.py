import logging
from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..core.errors import Forbidden
from ..schemas.user import UpdateUserRequest, UpsertUserRequest, dump_user
from ..services import directory
from ..services.identity import IdentityClaim
from .auth import require_claim

router = APIRouter(prefix="/user", tags=["user"])
logger = logging.getLogger(__name__)


@router.get("/get")
def get_user(
    db: Session = Depends(get_db),
    claim: IdentityClaim = Depends(require_claim),
):
    user = directory.get_user(db, claim.uid)
    return {"success": True, "user": dump_user(user)}


@router.post("/update")
def update_user(
    payload: UpdateUserRequest,
    db: Session = Depends(get_db),
    claim: IdentityClaim = Depends(require_claim),
):
    changes = payload.model_dump(exclude_unset=True)
    user = directory.update_user(db, claim.uid, changes)
    logger.info(
        "User profile updated",
        extra={"firebase_id": claim.uid, "step": "update_user"},
    )
    return {"success": True, "user": dump_user(user)}


@router.post("/upsert")
def upsert_user(
    body: Any = Body(None),
    db: Session = Depends(get_db),
    claim: IdentityClaim = Depends(require_claim),
):
    """
    Session hydration endpoint: create-or-refresh the caller's user row.

    The firebaseId in the body must be the verified token's uid. That check
    runs before payload validation, so a mismatch is always 403.
    """
    claimed_id = body.get("firebaseId") if isinstance(body, dict) else None
    if claimed_id != claim.uid:
        logger.warning(
            "firebaseId does not match token",
            extra={"firebase_id": claim.uid, "step": "upsert_user"},
        )
        raise Forbidden("Unauthorized: Token does not match firebaseId")

    payload = UpsertUserRequest.model_validate(body)
    user = directory.upsert_user(
        db,
        firebase_id=payload.firebase_id,
        email=payload.email,
        display_name=payload.display_name,
        photo_url=payload.photo_url,
    )
    return {"success": True, "user": dump_user(user)}
