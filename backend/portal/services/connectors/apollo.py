# backend/portal/services/connectors/apollo.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

import httpx

from tenacity import (
    retry,
    wait_exponential,
    stop_after_attempt,
    retry_if_exception_type,
)

from .base import BaseConnector, ConnectorResult, normalise_domain
from ...core.config import Settings
from ...core.errors import ConfigurationError, ProviderError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class ApolloCompany:
    """Provider-side view of an organization, already de-aliased."""

    id: str
    name: str
    domain: Optional[str] = None
    website_url: Optional[str] = None
    linkedin_url: Optional[str] = None
    description: Optional[str] = None
    logo_url: Optional[str] = None
    industry: Optional[str] = None
    sub_industry: Optional[str] = None
    type: Optional[str] = None
    estimated_num_employees: Optional[int] = None
    employee_range: Optional[str] = None
    founded_year: Optional[int] = None
    revenue: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    phone: Optional[str] = None
    twitter_url: Optional[str] = None
    facebook_url: Optional[str] = None


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def parse_apollo_company(org: Dict[str, Any]) -> ApolloCompany:
    """
    Collapse the key variants Apollo uses across endpoints/plans into one shape.
    The exact key names can vary; be defensive.
    """
    address = org.get("organization_raw_address") or org.get("location")
    if not isinstance(address, dict):
        address = {}

    return ApolloCompany(
        id=_as_str(org.get("id") or org.get("apollo_id")) or "",
        name=_as_str(org.get("name")) or "",
        domain=_as_str(org.get("primary_domain") or org.get("domain")),
        website_url=_as_str(org.get("website_url") or org.get("website")),
        linkedin_url=_as_str(org.get("linkedin_url")),
        description=_as_str(org.get("description") or org.get("short_description")),
        logo_url=_as_str(org.get("logo_url") or org.get("logo")),
        industry=_as_str(org.get("industry") or org.get("industry_tag")),
        sub_industry=_as_str(org.get("sub_industry")),
        type=_as_str(org.get("type") or org.get("company_type")),
        estimated_num_employees=_as_int(
            org.get("estimated_num_employees") or org.get("num_employees")
        ),
        employee_range=_as_str(org.get("employee_range")),
        founded_year=_as_int(org.get("founded_year")),
        revenue=_as_str(org.get("revenue")),
        city=_as_str(address.get("city")),
        state=_as_str(address.get("state")),
        country=_as_str(address.get("country")),
        phone=_as_str(org.get("phone") or org.get("phone_number")),
        twitter_url=_as_str(org.get("twitter_url") or org.get("twitter")),
        facebook_url=_as_str(org.get("facebook_url") or org.get("facebook")),
    )


def map_apollo_to_company_fields(
    a: ApolloCompany,
    enriched_at: datetime | None = None,
) -> Dict[str, Any]:
    """Map an ApolloCompany onto Company column names."""
    size = a.employee_range
    if size is None and a.estimated_num_employees is not None:
        size = str(a.estimated_num_employees)

    return {
        "apollo_id": a.id or None,
        "name": a.name,
        "domain": normalise_domain(a.domain),
        "website": a.website_url,
        "linkedin_url": a.linkedin_url,
        "description": a.description,
        "logo_url": a.logo_url,
        "industry": a.industry,
        "sub_industry": a.sub_industry,
        "company_type": a.type,
        "employee_count": a.estimated_num_employees,
        "employee_range": a.employee_range,
        "size": size,
        "founded_year": a.founded_year,
        "revenue": a.revenue,
        "hq_city": a.city,
        "hq_state": a.state,
        "hq_country": a.country,
        "phone": a.phone,
        "twitter_url": a.twitter_url,
        "facebook_url": a.facebook_url,
        "enriched_at": enriched_at or datetime.utcnow(),
    }


class ApolloConnector(BaseConnector):
    """
    Apollo.io organization lookup used to enrich Company records.

    - Exactly one search per lookup (page 1, one result).
    - Non-2xx responses surface as ProviderError; they are not retried.
    - Zero matches is a legitimate outcome and returns None.
    """
    name = "apollo"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://api.apollo.io/v1",
        timeout: float = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "ApolloConnector":
        return cls(
            api_key=settings.APOLLO_API_KEY,
            base_url=settings.APOLLO_BASE_URL,
            timeout=settings.APOLLO_TIMEOUT_SECONDS,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _auth_headers(self) -> Dict[str, str]:
        return {
            "X-Api-Key": self.api_key or "",
            "Content-Type": "application/json",
            "Cache-Control": "no-cache",
            "accept": "application/json",
        }

    def require_configured(self) -> None:
        if not self.api_key:
            raise ConfigurationError("Apollo API key not configured")

    @staticmethod
    def build_query(
        name: str | None = None,
        domain: str | None = None,
        linkedin_url: str | None = None,
    ) -> str:
        # Precedence: domain, then LinkedIn URL, then name
        domain = normalise_domain(domain)
        if domain:
            return f"domain:{domain}"
        if linkedin_url:
            return f"linkedin_url:{linkedin_url}"
        if name and name.strip():
            return f'name:"{name.strip()}"'
        raise ValidationError(
            "At least one search parameter (name, domain, or linkedinUrl) is required"
        )

    # Only connection establishment is retried: the request never reached Apollo.
    @retry(
        wait=wait_exponential(multiplier=1, min=1, max=10),
        stop=stop_after_attempt(3),
        retry=retry_if_exception_type((httpx.ConnectError, httpx.ConnectTimeout)),
        reraise=True,
    )
    async def _search(self, client: httpx.AsyncClient, query: str) -> Dict[str, Any]:
        resp = await client.post(
            f"{self.base_url}/mixed_companies/search",
            headers=self._auth_headers(),
            json={"q_keywords": query, "page": 1, "per_page": 1},
        )

        if resp.status_code < 200 or resp.status_code >= 300:
            logger.warning(
                "Apollo %s returned %s: %s",
                "mixed_companies/search",
                resp.status_code,
                resp.text[:500],
                extra={"status_code": resp.status_code, "step": "apollo_search"},
            )
            raise ProviderError(f"Apollo API error: {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as exc:
            logger.warning(
                "Apollo returned a non-JSON body: %s",
                resp.text[:200],
                extra={"status_code": resp.status_code, "step": "apollo_search"},
            )
            raise ProviderError("Invalid response from Apollo") from exc

        if data is None:
            return {}
        if not isinstance(data, dict):
            logger.warning(
                "Apollo returned %s instead of an object",
                type(data).__name__,
                extra={"status_code": resp.status_code, "step": "apollo_search"},
            )
            raise ProviderError("Invalid response from Apollo")
        return data

    # ------------------------------------------------------------------
    # Public entrypoints
    # ------------------------------------------------------------------

    async def fetch_company(
        self,
        *,
        name: str | None = None,
        domain: str | None = None,
        linkedin_url: str | None = None,
    ) -> Optional[ApolloCompany]:
        self.require_configured()
        query = self.build_query(name=name, domain=domain, linkedin_url=linkedin_url)

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                data = await self._search(client, query)
        except httpx.HTTPError as exc:
            logger.warning(
                "Apollo request failed: %s", exc.__class__.__name__,
                extra={"step": "apollo_search"},
            )
            raise ProviderError("Apollo request failed") from exc

        orgs = data.get("organizations") or data.get("companies") or []
        if not isinstance(orgs, list):
            raise ProviderError("Invalid response from Apollo")
        if not orgs or not isinstance(orgs[0], dict):
            return None

        return parse_apollo_company(orgs[0])

    async def fetch(self, **kwargs: Any) -> Optional[ConnectorResult]:
        """
        Connector-style entrypoint.

        Expected params: name, domain (or company_domain / website), linkedin_url.
        Returns the mapped Company fields or None when Apollo has no match.
        """
        company = await self.fetch_company(
            name=kwargs.get("name"),
            domain=kwargs.get("domain")
            or kwargs.get("company_domain")
            or kwargs.get("website"),
            linkedin_url=kwargs.get("linkedin_url"),
        )
        if company is None:
            return None
        return ConnectorResult(map_apollo_to_company_fields(company))
