"""
ID generation utilities for the privacy engine
Unique identifiers for consent records, receipts and audit entries
"""

import uuid
from typing import Optional

from ..constants import IdPrefixes


def generate_consent_id() -> str:
    """Generate consent record ID"""
    return f"{IdPrefixes.CONSENT}_{uuid.uuid4()}"


def generate_receipt_id() -> str:
    """Generate consent receipt ID"""
    return f"{IdPrefixes.RECEIPT}_{uuid.uuid4()}"


def generate_audit_id() -> str:
    """Generate audit entry ID"""
    return f"{IdPrefixes.AUDIT}_{uuid.uuid4()}"


def validate_id(id_value: str, expected_prefix: Optional[str] = None) -> bool:
    """Validate ID format"""
    if not id_value or not isinstance(id_value, str):
        return False
    
    if expected_prefix and not id_value.startswith(f"{expected_prefix}_"):
        return False
    
    parts = id_value.split("_", 1)
    if len(parts) < 2 or not parts[1]:
        return False
    
    return True
