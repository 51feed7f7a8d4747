import logging

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..core.errors import ConfigurationError, NotFound
from ..schemas.company import (
    CreateCompanyRequest,
    EnrichCompanyRequest,
    GetCompanyRequest,
    SearchCompaniesRequest,
    dump_company,
)
from ..services import directory
from ..services.connectors import ApolloConnector, map_apollo_to_company_fields
from ..services.identity import IdentityClaim
from .auth import require_claim

router = APIRouter(prefix="/company", tags=["company"])
logger = logging.getLogger(__name__)


def get_apollo_connector(request: Request) -> ApolloConnector:
    connector = getattr(request.app.state, "apollo_connector", None)
    if connector is None:
        raise ConfigurationError("Apollo API key not configured")
    return connector


@router.post("/create")
def create_company(
    payload: CreateCompanyRequest,
    db: Session = Depends(get_db),
    claim: IdentityClaim = Depends(require_claim),
):
    company, already_exists = directory.create_company(
        db, name=payload.name, domain=payload.domain
    )
    logger.info(
        "Company create requested",
        extra={
            "firebase_id": claim.uid,
            "company_id": str(company.id),
            "step": "create_company",
        },
    )
    return {
        "success": True,
        "company": dump_company(company, full=False),
        "alreadyExists": already_exists,
    }


@router.post("/search")
def search_companies(
    payload: SearchCompaniesRequest,
    db: Session = Depends(get_db),
    _: IdentityClaim = Depends(require_claim),
):
    companies = directory.search_companies(db, payload.query)
    return {
        "success": True,
        "companies": [dump_company(c, full=False) for c in companies],
    }


@router.post("/get")
def get_company(
    payload: GetCompanyRequest,
    db: Session = Depends(get_db),
    _: IdentityClaim = Depends(require_claim),
):
    company = directory.get_company(db, payload.company_id)
    return {"success": True, "company": dump_company(company)}


@router.post("/enrich")
async def enrich_company(
    payload: EnrichCompanyRequest,
    db: Session = Depends(get_db),
    claim: IdentityClaim = Depends(require_claim),
    apollo: ApolloConnector = Depends(get_apollo_connector),
):
    """
    Enrich from Apollo.io and persist.

    - {"companyId"}: look up the stored company by its domain (or name) and
      update that row.
    - {"name"?, "domain"?, "linkedinUrl"?}: look up by key and upsert by
      Apollo id, then by name.
    """
    # Fail before touching the database when the key is missing
    apollo.require_configured()

    if payload.company_id:
        stored = await run_in_threadpool(directory.get_company, db, payload.company_id)
        lookup = {"name": stored.name, "domain": stored.domain}
    else:
        lookup = {
            "name": payload.name,
            "domain": payload.domain,
            "linkedin_url": payload.linkedin_url,
        }

    apollo_company = await apollo.fetch_company(**lookup)
    if apollo_company is None:
        raise NotFound("No company found in Apollo.io")

    fields = map_apollo_to_company_fields(apollo_company)

    if payload.company_id:
        company = await run_in_threadpool(
            directory.apply_enrichment, db, payload.company_id, fields
        )
    else:
        company = await run_in_threadpool(
            directory.upsert_enriched_company, db, fields, payload.name
        )

    logger.info(
        "Company enrichment stored",
        extra={
            "firebase_id": claim.uid,
            "company_id": str(company.id),
            "step": "enrich_company",
        },
    )
    return {"success": True, "company": dump_company(company)}
