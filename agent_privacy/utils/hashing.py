"""
Hashing utilities for receipts and the audit hash chain
"""

import hashlib
import json
from typing import Any, Optional


def canonical_json(data: Any) -> str:
    """Serialize data deterministically for hashing"""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)


def secure_hash(data: bytes) -> str:
    """Hex-encoded SHA-256 of data"""
    return hashlib.sha256(data).hexdigest()


def chain_hash(payload: str, previous_hash: Optional[str] = None) -> str:
    """Hash a payload linked to the previous entry's hash"""
    combined = f"{previous_hash}:{payload}" if previous_hash else payload
    return secure_hash(combined.encode("utf-8"))
