# backend/portal/schemas/user.py
from urllib.parse import urlparse
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator
from pydantic.alias_generators import to_camel

from .company import CompanyRefOut, MAX_URL_LEN

MAX_TEXT_FIELD_LEN = 200


def _validate_http_url(v: str | None) -> str | None:
    """Accept absolute http(s) URLs unchanged; reject anything else."""
    if v is None:
        return None
    if len(v) > MAX_URL_LEN:
        raise ValueError("URL is too long")
    parsed = urlparse(v)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("must be an absolute http(s) URL")
    return v


class UpsertUserRequest(BaseModel):
    firebase_id: str
    email: EmailStr
    display_name: str | None = None
    photo_url: str | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("firebase_id")
    @classmethod
    def validate_firebase_id(cls, v: str) -> str:
        if not v:
            raise ValueError("firebaseId must not be empty")
        return v

    @field_validator("photo_url")
    @classmethod
    def validate_photo_url(cls, v: str | None) -> str | None:
        return _validate_http_url(v)


class UpdateUserRequest(BaseModel):
    """
    Partial profile update. Only keys present in the body are applied.
    An explicit null clears photoUrl, companyId, division and unit; name
    and title may be omitted but not nulled.
    """
    name: str | None = None
    title: str | None = None
    photo_url: str | None = None
    company_id: UUID | None = None
    division: str | None = None
    unit: str | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    # Only runs for keys present in the body, so omitting name/title is fine
    @field_validator("name", "title", mode="before")
    @classmethod
    def reject_null(cls, v):
        if v is None:
            raise ValueError("must be a string")
        return v

    @field_validator("name", "title", "division", "unit")
    @classmethod
    def validate_text(cls, v: str | None) -> str | None:
        if v is not None and len(v) > MAX_TEXT_FIELD_LEN:
            raise ValueError(f"must be at most {MAX_TEXT_FIELD_LEN} characters")
        return v

    @field_validator("photo_url")
    @classmethod
    def validate_photo_url(cls, v: str | None) -> str | None:
        return _validate_http_url(v)


class UserOut(BaseModel):
    id: UUID
    firebase_id: str
    email: str
    name: str | None = None
    photo_url: str | None = None
    title: str | None = None
    company_id: UUID | None = None
    division: str | None = None
    unit: str | None = None
    company: CompanyRefOut | None = None

    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )


def dump_user(user) -> dict:
    return UserOut.model_validate(user).model_dump(by_alias=True, mode="json")
