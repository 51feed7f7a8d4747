from .base import BaseConnector, ConnectorResult, normalise_domain
from .apollo import ApolloCompany, ApolloConnector, map_apollo_to_company_fields

__all__ = [
    "ApolloCompany",
    "ApolloConnector",
    "BaseConnector",
    "ConnectorResult",
    "map_apollo_to_company_fields",
    "normalise_domain",
]
