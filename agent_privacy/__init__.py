"""
Agent Privacy - consent and privacy-compliance engine
Consent lifecycle, agent privacy policies and an append-only audit trail
for agent marketplaces
"""

__version__ = "0.1.0"

# Core exports
from .config import PrivacyConfig, get_privacy_config, update_privacy_config
from .exceptions import PrivacyError, ValidationError, NotFoundError, ConflictError

# Consent management
from .consent import (
    ConsentRecord, ConsentReceipt, ConsentStatus, ProcessingBasis, ReceiptOperation,
    GrantConsentRequest, ConsentUpdate, ConsentQueryFilters, ConsentResult,
    VerificationResult, ConsentStore, InMemoryConsentStore, SQLConsentStore,
    ConsentManager, parse_retention_period, compute_expiry,
)

# Audit trail
from .audit import AuditAction, AuditEntry, AuditLog

# Privacy policies
from .policy import (
    DataCollectionItem, SharingPolicy, PrivacyPolicy, create_default_policy, PolicyRegistry
)

# Facade
from .service import PrivacyService, create_privacy_service

# Utilities
from .utils import configure_logging

__all__ = [
    # Config
    "PrivacyConfig",
    "get_privacy_config",
    "update_privacy_config",
    
    # Errors
    "PrivacyError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    
    # Consent
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
    "ConsentStore",
    "InMemoryConsentStore",
    "SQLConsentStore",
    "ConsentManager",
    "parse_retention_period",
    "compute_expiry",
    
    # Audit
    "AuditAction",
    "AuditEntry",
    "AuditLog",
    
    # Policy
    "DataCollectionItem",
    "SharingPolicy",
    "PrivacyPolicy",
    "create_default_policy",
    "PolicyRegistry",
    
    # Facade
    "PrivacyService",
    "create_privacy_service",
    
    # Utils
    "configure_logging",
]
