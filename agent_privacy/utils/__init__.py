"""
Utility functions for the privacy engine
ID generation, validation, hashing and logging helpers
"""

from .ids import generate_consent_id, generate_receipt_id, generate_audit_id, validate_id
from .validators import validate_required_text, validate_string_list, normalize_limit
from .hashing import canonical_json, secure_hash, chain_hash
from .log import configure_logging

__all__ = [
    # ID generation
    "generate_consent_id",
    "generate_receipt_id",
    "generate_audit_id",
    "validate_id",
    # Validators
    "validate_required_text",
    "validate_string_list",
    "normalize_limit",
    # Hashing
    "canonical_json",
    "secure_hash",
    "chain_hash",
    # Logging
    "configure_logging",
]
