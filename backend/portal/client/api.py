# backend/portal/client/api.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
from pydantic.alias_generators import to_camel

from .gateway import RequestGateway

logger = logging.getLogger(__name__)


class PortalAPIError(Exception):
    """A `{success: false}` (or non-JSON) response from the portal API."""

    def __init__(self, status_code: int, error: str, details: Any = None) -> None:
        super().__init__(f"{status_code}: {error}")
        self.status_code = status_code
        self.error = error
        self.details = details

    @property
    def is_auth_failure(self) -> bool:
        return self.status_code in (401, 403)


@dataclass
class CreateCompanyResult:
    company: Dict[str, Any]
    already_exists: bool
    enriched: Optional[Dict[str, Any]] = None
    enrichment_error: Optional[PortalAPIError] = None


class PortalClient:
    """Typed calls over the gateway. Mirrors the /api routes one-to-one."""

    def __init__(self, gateway: RequestGateway) -> None:
        self.gateway = gateway

    async def _call(self, method: str, path: str, json: Any = None) -> Dict[str, Any]:
        resp = await self.gateway.request(method, path, json=json)
        try:
            body = resp.json()
        except ValueError:
            raise PortalAPIError(resp.status_code, "Invalid response from server")

        if not isinstance(body, dict):
            raise PortalAPIError(resp.status_code, "Invalid response from server")
        if resp.status_code >= 400 or not body.get("success"):
            raise PortalAPIError(
                resp.status_code,
                body.get("error") or "Request failed",
                body.get("details"),
            )
        return body

    # -- users ---------------------------------------------------------

    async def upsert_user(
        self,
        firebase_id: str,
        email: Optional[str],
        display_name: Optional[str] = None,
        photo_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        body = await self._call(
            "POST",
            "/user/upsert",
            json={
                "firebaseId": firebase_id,
                "email": email,
                "displayName": display_name,
                "photoUrl": photo_url,
            },
        )
        return body["user"]

    async def get_user(self) -> Dict[str, Any]:
        body = await self._call("GET", "/user/get")
        return body["user"]

    async def update_user(self, **changes: Any) -> Dict[str, Any]:
        """update_user(title="CTO", company_id=None) -> only those keys are sent."""
        payload = {
            to_camel(k): (str(v) if k == "company_id" and v is not None else v)
            for k, v in changes.items()
        }
        body = await self._call("POST", "/user/update", json=payload)
        return body["user"]

    # -- companies -----------------------------------------------------

    async def search_companies(self, query: str) -> List[Dict[str, Any]]:
        body = await self._call("POST", "/company/search", json={"query": query})
        return body["companies"]

    async def get_company(self, company_id: str) -> Dict[str, Any]:
        body = await self._call("POST", "/company/get", json={"companyId": str(company_id)})
        return body["company"]

    async def enrich_company(
        self,
        company_id: Optional[str] = None,
        *,
        name: Optional[str] = None,
        domain: Optional[str] = None,
        linkedin_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        if company_id is not None:
            payload: Dict[str, Any] = {"companyId": str(company_id)}
        else:
            payload = {
                k: v
                for k, v in {
                    "name": name,
                    "domain": domain,
                    "linkedinUrl": linkedin_url,
                }.items()
                if v
            }
        body = await self._call("POST", "/company/enrich", json=payload)
        return body["company"]

    async def create_company(
        self,
        name: str,
        domain: Optional[str] = None,
        *,
        enrich: bool = False,
    ) -> CreateCompanyResult:
        """
        Create (or find) a company. With enrich=True an Apollo enrichment is
        attempted afterwards; its failure is reported on the result and
        never fails the creation.
        """
        body = await self._call(
            "POST", "/company/create", json={"name": name, "domain": domain}
        )
        result = CreateCompanyResult(
            company=body["company"],
            already_exists=bool(body.get("alreadyExists")),
        )
        if not enrich:
            return result

        try:
            result.enriched = await self.enrich_company(result.company["id"])
        except (PortalAPIError, httpx.HTTPError) as exc:
            logger.warning(
                "Company enrichment failed: %s", exc,
                extra={"company_id": result.company["id"], "step": "enrich_company"},
            )
            if isinstance(exc, PortalAPIError):
                result.enrichment_error = exc
            else:
                result.enrichment_error = PortalAPIError(0, str(exc))
        return result
