# backend/portal/schemas/company.py
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator, model_validator, constr
from pydantic.alias_generators import to_camel

from ..services.connectors.base import normalise_domain

MAX_COMPANY_NAME_LEN = 200
MAX_QUERY_LEN = 200
MAX_URL_LEN = 2048


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateCompanyRequest(_CamelModel):
    name: str
    domain: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be empty")
        if len(v) > MAX_COMPANY_NAME_LEN:
            raise ValueError(
                f"name must be at most {MAX_COMPANY_NAME_LEN} characters"
            )
        return v

    @field_validator("domain")
    @classmethod
    def validate_domain(cls, v: str | None) -> str | None:
        return normalise_domain(v)


class SearchCompaniesRequest(_CamelModel):
    query: constr(min_length=1, max_length=MAX_QUERY_LEN)


class GetCompanyRequest(_CamelModel):
    company_id: UUID


class EnrichCompanyRequest(_CamelModel):
    """
    Two shapes are accepted:

    - {"companyId": ...}: enrich a stored company using its domain or name.
    - {"name"?, "domain"?, "linkedinUrl"?}: look the company up by key and
      upsert the result.
    """
    company_id: UUID | None = None
    name: str | None = None
    domain: str | None = None
    linkedin_url: str | None = None

    @field_validator("name", "domain", "linkedin_url", mode="before")
    @classmethod
    def _blank_to_none(cls, v):
        if v is None:
            return None
        if isinstance(v, str):
            stripped = v.strip()
            return stripped or None
        return v

    @field_validator("domain")
    @classmethod
    def validate_domain(cls, v: str | None) -> str | None:
        return normalise_domain(v)

    @field_validator("linkedin_url")
    @classmethod
    def validate_linkedin_url(cls, v: str | None) -> str | None:
        if v is not None and len(v) > MAX_URL_LEN:
            raise ValueError("linkedinUrl is too long")
        return v

    @model_validator(mode="after")
    def validate_lookup(self):
        if not (self.company_id or self.name or self.domain or self.linkedin_url):
            raise ValueError(
                "Missing search parameter. Provide companyId, name, domain, or linkedinUrl"
            )
        return self


class CompanySummaryOut(_CamelModel):
    id: UUID
    name: str
    domain: str | None = None
    industry: str | None = None
    size: str | None = None
    logo_url: str | None = None

    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )


class CompanyOut(CompanySummaryOut):
    apollo_id: str | None = None
    enriched_at: datetime | None = None
    website: str | None = None
    linkedin_url: str | None = None
    description: str | None = None
    sub_industry: str | None = None
    company_type: str | None = None
    employee_count: int | None = None
    employee_range: str | None = None
    founded_year: int | None = None
    revenue: str | None = None
    hq_city: str | None = None
    hq_state: str | None = None
    hq_country: str | None = None
    phone: str | None = None
    twitter_url: str | None = None
    facebook_url: str | None = None


class CompanyRefOut(_CamelModel):
    id: UUID
    name: str

    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )


def dump_company(company, *, full: bool = True) -> dict:
    schema = CompanyOut if full else CompanySummaryOut
    return schema.model_validate(company).model_dump(by_alias=True, mode="json")
