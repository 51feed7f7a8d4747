# backend/portal/services/directory.py
"""
User and Company persistence.

Uniqueness constraints in the database are the only concurrency mechanism:
races on insert surface as IntegrityError and are either recovered by
re-reading the winning row or reported as Conflict.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import Conflict, NotFound, ValidationError
from ..models.company import Company
from ..models.user import User

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 20

USER_UPDATABLE_FIELDS = ("name", "title", "photo_url", "company_id", "division", "unit")


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

def find_user(db: Session, firebase_id: str) -> Optional[User]:
    return db.query(User).filter(User.firebase_id == firebase_id).first()


def upsert_user(
    db: Session,
    *,
    firebase_id: str,
    email: str,
    display_name: str | None = None,
    photo_url: str | None = None,
) -> User:
    """
    Create the user on first sign-in, otherwise refresh email and (when
    provided) name/photo. Stored name/photo are never blanked by a sign-in.
    """
    if not firebase_id or not email:
        raise ValidationError("firebaseId and email are required")

    user = find_user(db, firebase_id)
    if user:
        user.email = email
        if display_name:
            user.name = display_name
        if photo_url:
            user.photo_url = photo_url
        db.commit()
        db.refresh(user)
        return user

    user = User(
        firebase_id=firebase_id,
        email=email,
        name=display_name,
        photo_url=photo_url,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning(
            "Duplicate user on upsert",
            extra={"firebase_id": firebase_id, "step": "upsert_user"},
        )
        raise Conflict("User already exists") from exc

    db.refresh(user)
    logger.info("User created", extra={"firebase_id": firebase_id, "step": "upsert_user"})
    return user


def get_user(db: Session, firebase_id: str) -> User:
    user = find_user(db, firebase_id)
    if not user:
        raise NotFound("User not found")
    return user


def update_user(db: Session, firebase_id: str, changes: Dict[str, Any]) -> User:
    """
    Apply a partial update. `changes` holds only the fields the caller sent;
    everything else on the row is left untouched.
    """
    user = get_user(db, firebase_id)

    unknown = set(changes) - set(USER_UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

    company_id = changes.get("company_id")
    if company_id is not None and db.get(Company, company_id) is None:
        raise NotFound("Company not found")

    for field, value in changes.items():
        setattr(user, field, value)

    db.commit()
    db.refresh(user)
    return user


# ---------------------------------------------------------------------------
# Companies
# ---------------------------------------------------------------------------

def search_companies(db: Session, query: str, limit: int = SEARCH_LIMIT) -> List[Company]:
    if not query:
        raise ValidationError("query must not be empty")

    return (
        db.query(Company)
        .filter(func.lower(Company.name).contains(query.lower(), autoescape=True))
        .order_by(Company.name.asc())
        .limit(max(1, min(limit, SEARCH_LIMIT)))
        .all()
    )


def get_company(db: Session, company_id: UUID) -> Company:
    company = db.get(Company, company_id)
    if not company:
        raise NotFound("Company not found")
    return company


def find_company_by_name_or_domain(
    db: Session, name: str, domain: str | None = None
) -> Optional[Company]:
    clauses = [func.lower(Company.name) == name.lower()]
    if domain:
        clauses.append(Company.domain == domain)
    return (
        db.query(Company)
        .filter(or_(*clauses))
        .order_by(Company.created_at.asc())
        .first()
    )


def create_company(
    db: Session, *, name: str, domain: str | None = None
) -> tuple[Company, bool]:
    """
    Lookup-or-create by name (case-insensitive) or domain.

    Returns (company, already_exists).
    """
    if not name:
        raise ValidationError("name must not be empty")

    existing = find_company_by_name_or_domain(db, name, domain)
    if existing:
        return existing, True

    company = Company(name=name, domain=domain)
    db.add(company)
    try:
        db.commit()
    except IntegrityError as exc:
        # Lost a race against a concurrent create: return the winner
        db.rollback()
        existing = find_company_by_name_or_domain(db, name, domain)
        if existing:
            return existing, True
        raise Conflict("Company already exists") from exc

    db.refresh(company)
    logger.info(
        "Company created",
        extra={"company_id": str(company.id), "step": "create_company"},
    )
    return company, False


# ---------------------------------------------------------------------------
# Enrichment persistence
# ---------------------------------------------------------------------------

class LookupKey(str, enum.Enum):
    NAME = "name"            # primary unique key
    APOLLO_ID = "apollo_id"  # alternate unique key


@dataclass(frozen=True)
class Found:
    by: LookupKey
    record: Company


@dataclass(frozen=True)
class Missing:
    pass


CompanyLookup = Union[Found, Missing]


def lookup_company(db: Session, *, apollo_id: str | None, name: str | None) -> CompanyLookup:
    if apollo_id:
        by_apollo = db.query(Company).filter(Company.apollo_id == apollo_id).first()
        if by_apollo:
            return Found(by=LookupKey.APOLLO_ID, record=by_apollo)
    if name:
        by_name = (
            db.query(Company)
            .filter(func.lower(Company.name) == name.lower())
            .first()
        )
        if by_name:
            return Found(by=LookupKey.NAME, record=by_name)
    return Missing()


def _commit_enrichment(db: Session, company: Company) -> Company:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("Enriched company conflicts with an existing company") from exc
    db.refresh(company)
    logger.info(
        "Company enriched",
        extra={"company_id": str(company.id), "step": "enrich_company"},
    )
    return company


def upsert_enriched_company(
    db: Session, fields: Dict[str, Any], fallback_name: str | None = None
) -> Company:
    """
    Persist a mapped provider record: update the row matched by Apollo id or
    name, else insert a new one.
    """
    fields = dict(fields)
    if not fields.get("name"):
        if not fallback_name:
            raise ValidationError("Enriched company has no name")
        fields["name"] = fallback_name

    lookup = lookup_company(db, apollo_id=fields.get("apollo_id"), name=fields["name"])

    if isinstance(lookup, Found):
        company = lookup.record
        for key, value in fields.items():
            setattr(company, key, value)
    else:
        company = Company(**fields)
        db.add(company)

    return _commit_enrichment(db, company)


def apply_enrichment(db: Session, company_id: UUID, fields: Dict[str, Any]) -> Company:
    """
    Enrich a specific stored company. Its name is kept: the record the user
    picked stays the same logical company even if Apollo spells it differently.
    """
    company = get_company(db, company_id)
    for key, value in fields.items():
        if key == "name":
            continue
        # Keep what we have when Apollo has nothing for identity-ish fields
        if key in ("domain", "apollo_id") and value is None:
            continue
        setattr(company, key, value)
    return _commit_enrichment(db, company)
