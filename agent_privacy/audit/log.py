"""
Consent audit trail
Append-only, hash-chained log of consent lifecycle events
"""

import itertools
import threading
from datetime import datetime, UTC
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field

from ..constants import AuditActions
from ..utils.hashing import canonical_json, chain_hash
from ..utils.ids import generate_audit_id
from ..utils.validators import normalize_limit

logger = structlog.get_logger(__name__)


class AuditAction(str, Enum):
    """Consent lifecycle actions"""
    GRANTED = AuditActions.GRANTED
    REVOKED = AuditActions.REVOKED
    UPDATED = AuditActions.UPDATED
    VERIFIED = AuditActions.VERIFIED
    EXPIRED = AuditActions.EXPIRED


class AuditEntry(BaseModel):
    """Immutable record of one lifecycle event"""
    model_config = ConfigDict(frozen=True)
    
    id: str
    sequence: int
    consent_id: str
    action: AuditAction
    agent_id: str
    user_id: str
    timestamp: datetime
    details: str = ""
    
    # Integrity
    previous_hash: Optional[str] = None
    hash: str = ""
    
    def to_audit_string(self) -> str:
        """Canonical form used for hashing"""
        return canonical_json({
            "id": self.id,
            "sequence": self.sequence,
            "consent_id": self.consent_id,
            "action": self.action.value,
            "agent_id": self.agent_id,
            "user_id": self.user_id,
            "timestamp": self.timestamp.isoformat(),
            "details": self.details,
        })
    
    def compute_hash(self) -> str:
        return chain_hash(self.to_audit_string(), self.previous_hash)


def _sort_key(entry: AuditEntry):
    return entry.sequence


class AuditLog:
    """
    Append-only consent audit log.
    
    Entries are ordered by their append sequence. Timestamps never go
    backwards: a clock that steps back is clamped to the previous
    entry's timestamp, so timestamp order and append order agree.
    """
    
    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._lock = threading.RLock()
        self._entries: List[AuditEntry] = []
        self._sequence = itertools.count(1)
        self._clock = clock or (lambda: datetime.now(UTC))
        self._last_hash: Optional[str] = None
        self._last_timestamp: Optional[datetime] = None
    
    def append(self, consent_id: str, action: AuditAction, agent_id: str,
               user_id: str, details: str = "") -> AuditEntry:
        """Append one entry; assigns id, timestamp, sequence and hash"""
        with self._lock:
            timestamp = self._clock()
            if self._last_timestamp is not None and timestamp < self._last_timestamp:
                timestamp = self._last_timestamp
            
            draft = AuditEntry(
                id=generate_audit_id(),
                sequence=next(self._sequence),
                consent_id=consent_id,
                action=AuditAction(action),
                agent_id=agent_id,
                user_id=user_id,
                timestamp=timestamp,
                details=details,
                previous_hash=self._last_hash,
            )
            entry = draft.model_copy(update={"hash": draft.compute_hash()})
            self._entries.append(entry)
            self._last_hash = entry.hash
            self._last_timestamp = entry.timestamp
        
        logger.info("Audit entry appended",
                    audit_id=entry.id,
                    consent_id=consent_id,
                    action=entry.action.value,
                    agent_id=agent_id,
                    user_id=user_id)
        return entry
    
    def query(self, agent_id: Optional[str] = None, user_id: Optional[str] = None,
              consent_id: Optional[str] = None, action: Optional[AuditAction] = None,
              limit: Optional[int] = None) -> List[AuditEntry]:
        """Filtered entries, most recent first"""
        with self._lock:
            entries = list(self._entries)
        
        if agent_id:
            entries = [e for e in entries if e.agent_id == agent_id]
        if user_id:
            entries = [e for e in entries if e.user_id == user_id]
        if consent_id:
            entries = [e for e in entries if e.consent_id == consent_id]
        if action:
            entries = [e for e in entries if e.action == AuditAction(action)]
        
        entries.sort(key=_sort_key, reverse=True)
        
        limit = normalize_limit(limit)
        if limit is not None:
            entries = entries[:limit]
        return entries
    
    def verify_integrity(self) -> bool:
        """Recompute the hash chain over every entry in append order"""
        with self._lock:
            entries = list(self._entries)
        
        previous_hash: Optional[str] = None
        for entry in entries:
            if entry.previous_hash != previous_hash or entry.hash != entry.compute_hash():
                logger.error("Audit integrity violation",
                             audit_id=entry.id,
                             sequence=entry.sequence)
                return False
            previous_hash = entry.hash
        
        logger.debug("Audit integrity verified", entry_count=len(entries))
        return True
    
    def export(self, user_id: Optional[str] = None) -> Dict[str, Any]:
        """Export the audit trail for compliance requests"""
        entries = self.query(user_id=user_id)
        return {
            "exported_at": self._clock().isoformat(),
            "user_id": user_id,
            "entry_count": len(entries),
            "entries": [e.model_dump(mode="json") for e in entries],
            "integrity_verified": self.verify_integrity(),
        }
    
    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
