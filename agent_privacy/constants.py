"""
Constants for the agent privacy engine

Centralized identifiers, retention vocabulary, audit actions
and error codes.
"""

from typing import Final, Tuple

# =============================================================================
# SERVICE IDENTIFICATION
# =============================================================================

SERVICE_NAME: Final[str] = "agent-privacy"
SERVICE_VERSION: Final[str] = "0.1.0"

# =============================================================================
# IDENTIFIER PREFIXES
# =============================================================================

class IdPrefixes:
    """Prefixes for generated identifiers"""
    CONSENT: Final[str] = "consent"
    RECEIPT: Final[str] = "rcpt"
    AUDIT: Final[str] = "audit"


# =============================================================================
# RETENTION PERIODS
# =============================================================================

class RetentionDefaults:
    """Retention period vocabulary and day-count conventions"""
    DEFAULT_PERIOD: Final[str] = "6_months"
    DAYS_PER_WEEK: Final[int] = 7
    DAYS_PER_MONTH: Final[int] = 30
    DAYS_PER_YEAR: Final[int] = 365
    
    # Specifiers that mean "no expiry"
    INDEFINITE_MARKERS: Final[Tuple[str, ...]] = (
        "", "indefinite", "until_withdrawn", "permanent", "none"
    )


# =============================================================================
# AUDIT ACTIONS
# =============================================================================

class AuditActions:
    """Consent lifecycle actions recorded in the audit log"""
    GRANTED: Final[str] = "granted"
    REVOKED: Final[str] = "revoked"
    UPDATED: Final[str] = "updated"
    VERIFIED: Final[str] = "verified"
    EXPIRED: Final[str] = "expired"


# =============================================================================
# ERROR CODES
# =============================================================================

class ErrorCodes:
    """Standardized error codes for the privacy engine"""
    PRIVACY_ERROR: Final[str] = "PRIVACY_ERROR"
    VALIDATION_ERROR: Final[str] = "VALIDATION_ERROR"
    NOT_FOUND: Final[str] = "NOT_FOUND"
    CONFLICT: Final[str] = "CONFLICT"


# =============================================================================
# DEFAULT POLICY CONTENT
# =============================================================================

DEFAULT_USER_RIGHTS: Final[Tuple[str, ...]] = (
    "Right to access your data",
    "Right to rectification",
    "Right to erasure",
    "Right to data portability",
    "Right to object to processing",
    "Right to withdraw consent",
)

DEFAULT_POLICY_PURPOSES: Final[Tuple[str, ...]] = (
    "service_delivery", "billing", "service_improvement"
)
