"""
Consent lifecycle manager for the agent marketplace
Validation, expiry derivation, state transitions and audit emission
"""

import threading
from datetime import datetime, UTC
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import structlog

from .models import (
    ConsentQueryFilters,
    ConsentReceipt,
    ConsentRecord,
    ConsentResult,
    ConsentStatus,
    ConsentUpdate,
    GrantConsentRequest,
    ReceiptOperation,
    VerificationResult,
    coerce_model,
)
from .retention import compute_expiry
from .store import ConsentStore, InMemoryConsentStore
from ..audit.log import AuditAction, AuditLog
from ..config import PrivacyConfig, get_privacy_config
from ..constants import IdPrefixes
from ..exceptions import ConflictError, NotFoundError, PrivacyError, ValidationError
from ..utils.ids import validate_id
from ..utils.validators import validate_required_text, validate_string_list

logger = structlog.get_logger(__name__)

DEFAULT_REVOCATION_REASON = "User requested revocation"
WITHDRAWAL_REASON = "Consent withdrawn by user"


class ConsentManager:
    """
    Core consent state machine.
    
    Active -> Withdrawn is the only caller-triggered transition.
    Active -> Expired is derived: expiry is evaluated lazily on every
    read and write, and expire_consents() can persist it explicitly.
    Every mutation holds the manager lock from validation through the
    audit append, so per-record audit order matches the order in which
    operations took effect.
    """
    
    def __init__(self, store: Optional[ConsentStore] = None,
                 audit_log: Optional[AuditLog] = None,
                 config: Optional[PrivacyConfig] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.store = store if store is not None else InMemoryConsentStore()
        self.config = config or get_privacy_config()
        self._clock = clock or (lambda: datetime.now(UTC))
        self.audit_log = audit_log if audit_log is not None else AuditLog(clock=self._clock)
        self._lock = threading.RLock()
    
    def _now(self) -> datetime:
        return self._clock()
    
    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    
    def grant_consent(self, request: Union[GrantConsentRequest, Mapping[str, Any]]) -> ConsentResult:
        """Create a new Active consent record. Not idempotent."""
        try:
            request = coerce_model(GrantConsentRequest, request)
            user_id = validate_required_text(request.user_id, "user_id")
            agent_id = validate_required_text(request.agent_id, "agent_id")
            purposes = validate_string_list(request.purposes, "purposes")
            jurisdiction = validate_required_text(request.jurisdiction, "jurisdiction")
            data_types = validate_string_list(request.data_types, "data_types", required=False)
        except ValidationError as e:
            logger.warning("Consent grant rejected", error=e.message, field=e.field)
            raise
        
        retention_period = request.retention_period
        if retention_period is None:
            retention_period = self.config.default_retention_period
        
        with self._lock:
            now = self._now()
            record = ConsentRecord(
                user_id=user_id,
                agent_id=agent_id,
                purposes=purposes,
                data_types=data_types,
                jurisdiction=jurisdiction,
                legal_basis=request.legal_basis,
                consent_method=request.consent_method,
                withdrawal_method=request.withdrawal_method,
                notice_reference=request.notice_reference,
                retention_period=retention_period,
                consent_timestamp=now,
                expiry_date=compute_expiry(now, retention_period, self.config),
                updated_at=now,
            )
            self.store.put(record)
            receipt = ConsentReceipt.issue(record, ReceiptOperation.GRANTED, now)
            self.audit_log.append(
                consent_id=record.consent_id,
                action=AuditAction.GRANTED,
                agent_id=agent_id,
                user_id=user_id,
                details=f"Consent granted for purposes: {', '.join(purposes)}",
            )
        
        logger.info("Granted consent", consent_id=record.consent_id, user_id=user_id,
                    agent_id=agent_id, purposes=purposes, expiry_date=record.expiry_date)
        return ConsentResult(consent=record, receipt=receipt)
    
    def revoke_consent(self, consent_id: str, reason: Optional[str] = None) -> ConsentResult:
        """Withdraw an active consent with a stated reason"""
        reason = reason or DEFAULT_REVOCATION_REASON
        return self._withdraw(consent_id, reason, ReceiptOperation.REVOKED,
                              f"Consent revoked: {reason}")
    
    def withdraw_consent(self, consent_id: str) -> ConsentResult:
        """Withdraw an active consent at the subject's request"""
        return self._withdraw(consent_id, WITHDRAWAL_REASON, ReceiptOperation.WITHDRAWN,
                              WITHDRAWAL_REASON)
    
    def _withdraw(self, consent_id: str, reason: str, operation: ReceiptOperation,
                  details: str) -> ConsentResult:
        try:
            with self._lock:
                record = self._require(consent_id)
                now = self._now()
                status = record.effective_status(now)
                if status != ConsentStatus.ACTIVE:
                    raise ConflictError(
                        f"Consent {consent_id} is already revoked/withdrawn (status: {status.value})",
                        consent_id=consent_id,
                        status=status.value,
                    )
                
                record.withdraw(reason, now)
                self.store.put(record)
                receipt = ConsentReceipt.issue(record, operation, now)
                self.audit_log.append(
                    consent_id=consent_id,
                    action=AuditAction.REVOKED,
                    agent_id=record.agent_id,
                    user_id=record.user_id,
                    details=details,
                )
        except PrivacyError as e:
            logger.warning("Consent withdrawal failed", consent_id=consent_id,
                           operation=operation.value, error=e.message)
            raise
        
        logger.info("Withdrew consent", consent_id=consent_id, operation=operation.value,
                    reason=reason)
        return ConsentResult(consent=record, receipt=receipt)
    
    def update_consent(self, consent_id: str,
                       patch: Union[ConsentUpdate, Mapping[str, Any]]) -> ConsentResult:
        """Apply a partial update to an active record"""
        try:
            patch = coerce_model(ConsentUpdate, patch)
            changes = self._validate_changes(patch.changes())
            
            with self._lock:
                record = self._require(consent_id)
                now = self._now()
                status = record.effective_status(now)
                if status != ConsentStatus.ACTIVE:
                    raise ConflictError(
                        f"Consent {consent_id} is not active (status: {status.value})",
                        consent_id=consent_id,
                        status=status.value,
                    )
                
                for field, value in changes.items():
                    setattr(record, field, value)
                if "retention_period" in changes:
                    record.expiry_date = compute_expiry(
                        record.consent_timestamp, record.retention_period, self.config
                    )
                record.updated_at = now
                
                self.store.put(record)
                receipt = ConsentReceipt.issue(record, ReceiptOperation.UPDATED, now)
                self.audit_log.append(
                    consent_id=consent_id,
                    action=AuditAction.UPDATED,
                    agent_id=record.agent_id,
                    user_id=record.user_id,
                    details=f"Consent updated: {', '.join(sorted(changes))}",
                )
        except PrivacyError as e:
            logger.warning("Consent update failed", consent_id=consent_id, error=e.message)
            raise
        
        logger.info("Updated consent", consent_id=consent_id, fields=sorted(changes))
        return ConsentResult(consent=record, receipt=receipt)
    
    def _validate_changes(self, changes: Dict[str, Any]) -> Dict[str, Any]:
        # Explicit None means "leave unchanged"
        changes = {k: v for k, v in changes.items() if v is not None}
        if not changes:
            raise ValidationError("update must change at least one field", field="patch")
        
        if "purposes" in changes:
            changes["purposes"] = validate_string_list(changes["purposes"], "purposes")
        if "data_types" in changes:
            changes["data_types"] = validate_string_list(
                changes["data_types"], "data_types", required=False
            )
        if "jurisdiction" in changes:
            changes["jurisdiction"] = validate_required_text(changes["jurisdiction"], "jurisdiction")
        return changes
    
    def expire_consents(self) -> List[ConsentRecord]:
        """Persist Expired status on every time-expired Active record"""
        expired: List[ConsentRecord] = []
        with self._lock:
            now = self._now()
            for record in self.store.list_all():
                if record.status != ConsentStatus.ACTIVE or not record.is_time_expired(now):
                    continue
                record.expire(now)
                self.store.put(record)
                self.audit_log.append(
                    consent_id=record.consent_id,
                    action=AuditAction.EXPIRED,
                    agent_id=record.agent_id,
                    user_id=record.user_id,
                    details=f"Consent expired after retention period {record.retention_period}",
                )
                expired.append(record)
        
        if expired:
            logger.info("Expired consents", count=len(expired))
        return expired
    
    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    
    def verify_consent(self, user_id: str, purpose: str) -> VerificationResult:
        """Check whether a subject has an in-effect consent covering purpose"""
        try:
            with self._lock:
                now = self._now()
                for record in self.store.list_by_user(user_id):
                    if record.covers(purpose, now):
                        if self.config.audit_verifications:
                            self.audit_log.append(
                                consent_id=record.consent_id,
                                action=AuditAction.VERIFIED,
                                agent_id=record.agent_id,
                                user_id=record.user_id,
                                details=f"Consent verified for purpose: {purpose}",
                            )
                        return VerificationResult(consented=True, consent=record)
            return VerificationResult(consented=False)
        
        except Exception as e:
            logger.error("Error verifying consent", user_id=user_id, purpose=purpose, error=str(e))
            return VerificationResult(consented=False)
    
    check_consent = verify_consent
    
    def get_consent(self, consent_id: str) -> Optional[ConsentRecord]:
        return self.store.get(consent_id)
    
    def list_consents(self, user_id: str,
                      filters: Union[ConsentQueryFilters, Mapping[str, Any], None] = None
                      ) -> List[ConsentRecord]:
        """A subject's records in creation order, optionally filtered"""
        records = self.store.list_by_user(user_id)
        if filters is None:
            return records
        
        try:
            filters = coerce_model(ConsentQueryFilters, filters)
        except ValidationError as e:
            logger.warning("Ignoring consent listing with invalid filters", user_id=user_id,
                           error=e.message, field=e.field)
            return []
        
        now = self._now()
        return [r for r in records if filters.matches(r, now)]
    
    def list_active_consents(self, agent_id: str) -> List[ConsentRecord]:
        """An agent's records that are Active and not past expiry"""
        now = self._now()
        return [r for r in self.store.list_by_agent(agent_id) if r.is_valid(now)]
    
    def _require(self, consent_id: str) -> ConsentRecord:
        if not validate_id(consent_id, IdPrefixes.CONSENT):
            raise NotFoundError(consent_id)
        record = self.store.get(consent_id)
        if record is None:
            raise NotFoundError(consent_id)
        return record
