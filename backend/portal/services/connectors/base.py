from abc import ABC, abstractmethod
from typing import Any, Optional

class ConnectorResult(dict):
    """Light wrapper, but can add metadata later."""

class BaseConnector(ABC):
    name: str

    @abstractmethod
    async def fetch(self, **kwargs: Any) -> Optional[ConnectorResult]:
        ...


def normalise_domain(raw: str | None) -> Optional[str]:
    """'https://www.Acme.com:443/about' -> 'acme.com'."""
    if not raw:
        return None
    d = raw.strip().lower()
    if "://" in d:
        d = d.split("://", 1)[1]
    # Strip path/query
    d = d.split("/", 1)[0]
    # Strip port
    d = d.split(":", 1)[0]
    if d.startswith("www."):
        d = d[4:]
    return d or None
