"""
POS Integration Layer — Public API
======================================
Gateway to the collaborators the register depends on:
catalog/stock, sale ledger, printer/drawer.

The register never trusts a raw reply; replies are coerced into
ServiceResult and malformed ones raise MalformedResponseError.
"""

from integration.adapters import (
    IntegrationError,
    MalformedResponseError,
    ServiceResult,
    ServiceUnavailableError,
    coerce_service_result,
)
from integration.ports import (
    CatalogService,
    PrintService,
    SalePersistenceService,
)

__all__ = [
    "IntegrationError",
    "MalformedResponseError",
    "ServiceUnavailableError",
    "ServiceResult",
    "coerce_service_result",
    "CatalogService",
    "SalePersistenceService",
    "PrintService",
]
