"""
Consent management module
Consent records, storage, retention and the lifecycle manager
"""

from .models import (
    ConsentRecord, ConsentReceipt, ConsentStatus, ProcessingBasis, ReceiptOperation,
    GrantConsentRequest, ConsentUpdate, ConsentQueryFilters, ConsentResult,
    VerificationResult,
)
from .retention import parse_retention_period, compute_expiry
from .store import ConsentStore, InMemoryConsentStore, SQLConsentStore
from .manager import ConsentManager

__all__ = [
    "ConsentRecord",
    "ConsentReceipt",
    "ConsentStatus",
    "ProcessingBasis",
    "ReceiptOperation",
    "GrantConsentRequest",
    "ConsentUpdate",
    "ConsentQueryFilters",
    "ConsentResult",
    "VerificationResult",
    "parse_retention_period",
    "compute_expiry",
    "ConsentStore",
    "InMemoryConsentStore",
    "SQLConsentStore",
    "ConsentManager",
]
