"""
Audit subpackage for the privacy engine

Append-only consent audit trail with hash-chain integrity checks.
"""

from .log import AuditAction, AuditEntry, AuditLog

__all__ = [
    "AuditAction",
    "AuditEntry",
    "AuditLog",
]
