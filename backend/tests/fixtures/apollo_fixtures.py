"""
Apollo.io response bodies used across connector and route tests.

Shapes follow /v1/mixed_companies/search, including the key aliases Apollo
returns on different plans.
"""
from typing import Any, Dict


ACME_ORG: Dict[str, Any] = {
    "id": "apollo-acme-1",
    "name": "Acme",
    "primary_domain": "acme.com",
    "website_url": "https://www.acme.com",
    "linkedin_url": "https://www.linkedin.com/company/acme",
    "short_description": "Anvils and rockets.",
    "logo_url": "https://logos.example.com/acme.png",
    "industry": "Manufacturing",
    "sub_industry": "Heavy Machinery",
    "type": "Private",
    "estimated_num_employees": 120,
    "employee_range": "51-200",
    "founded_year": 1949,
    "revenue": "10M-50M",
    "organization_raw_address": {
        "city": "Phoenix",
        "state": "Arizona",
        "country": "United States",
    },
    "phone_number": "+1 555 0100",
    "twitter": "https://twitter.com/acme",
    "facebook_url": "https://facebook.com/acme",
    "some_future_field": "ignored",
}

# Alias-heavy variant with no employee_range and a nested "location"
GLOBEX_ORG: Dict[str, Any] = {
    "apollo_id": "apollo-globex-7",
    "name": "Globex Corporation",
    "domain": "WWW.Globex.com",
    "website": "https://globex.com",
    "logo": "https://logos.example.com/globex.png",
    "industry_tag": "Energy",
    "company_type": "Public",
    "num_employees": "5000",
    "location": {"city": "Cypress Creek", "country": "United States"},
    "twitter_url": None,
}

MINIMAL_ORG: Dict[str, Any] = {"id": "apollo-min-3", "name": "Initech"}


def search_body(*orgs: Dict[str, Any]) -> Dict[str, Any]:
    return {"organizations": list(orgs), "pagination": {"page": 1, "total_pages": 1}}


EMPTY_SEARCH: Dict[str, Any] = {"organizations": [], "pagination": {"page": 1}}
