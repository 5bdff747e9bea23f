"""
Consent data models for the agent marketplace
Consent records, receipts and request/filter structures
"""

from collections.abc import Mapping
from datetime import datetime, UTC
from enum import Enum
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import ValidationError
from ..utils.ids import generate_consent_id, generate_receipt_id
from ..utils.hashing import canonical_json, secure_hash


class ConsentStatus(str, Enum):
    """Consent record status"""
    ACTIVE = "Active"
    WITHDRAWN = "Withdrawn"
    EXPIRED = "Expired"


class ProcessingBasis(str, Enum):
    """Legal basis for processing (GDPR Article 6)"""
    CONSENT = "Consent"
    CONTRACT = "Contract"
    LEGAL_OBLIGATION = "LegalObligation"
    VITAL_INTERESTS = "VitalInterests"
    PUBLIC_TASK = "PublicTask"
    LEGITIMATE_INTEREST = "LegitimateInterest"


class ReceiptOperation(str, Enum):
    """Operation a receipt is proof of"""
    GRANTED = "granted"
    REVOKED = "revoked"
    WITHDRAWN = "withdrawn"
    UPDATED = "updated"


class ConsentRecord(BaseModel):
    """One subject's consent grant to one agent"""
    consent_id: str = Field(default_factory=generate_consent_id)
    user_id: str = Field(..., description="Data subject identifier")
    agent_id: str = Field(..., description="Data processing agent identifier")
    
    purposes: List[str] = Field(..., description="Purposes covered by the grant")
    data_types: List[str] = Field(default_factory=list)
    jurisdiction: str = Field(..., description="Regulatory region code")
    legal_basis: ProcessingBasis = Field(default=ProcessingBasis.CONSENT)
    
    # Provenance
    consent_method: str = Field(default="")
    withdrawal_method: str = Field(default="")
    notice_reference: str = Field(default="")
    
    retention_period: str = Field(default="")
    
    # Timestamps
    consent_timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    expiry_date: Optional[datetime] = Field(default=None)
    revoked_at: Optional[datetime] = Field(default=None)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    
    status: ConsentStatus = Field(default=ConsentStatus.ACTIVE)
    revocation_reason: Optional[str] = Field(default=None)
    
    def is_time_expired(self, now: Optional[datetime] = None) -> bool:
        """Check whether the expiry date has passed"""
        if self.expiry_date is None:
            return False
        return (now or datetime.now(UTC)) >= self.expiry_date
    
    def effective_status(self, now: Optional[datetime] = None) -> ConsentStatus:
        """Status with lazy expiry applied"""
        if self.status == ConsentStatus.ACTIVE and self.is_time_expired(now):
            return ConsentStatus.EXPIRED
        return self.status
    
    def is_valid(self, now: Optional[datetime] = None) -> bool:
        """Check if consent is currently in effect"""
        return self.effective_status(now) == ConsentStatus.ACTIVE
    
    def covers(self, purpose: str, now: Optional[datetime] = None) -> bool:
        """Exact, case-sensitive purpose match on a valid record"""
        return self.is_valid(now) and purpose in self.purposes
    
    def withdraw(self, reason: str, now: Optional[datetime] = None) -> None:
        """Withdraw consent"""
        now = now or datetime.now(UTC)
        self.status = ConsentStatus.WITHDRAWN
        self.revocation_reason = reason
        self.revoked_at = now
        self.updated_at = now
    
    def expire(self, now: Optional[datetime] = None) -> None:
        """Mark consent as expired"""
        self.status = ConsentStatus.EXPIRED
        self.updated_at = now or datetime.now(UTC)
    
    def digest(self) -> str:
        """SHA-256 over the canonical JSON form of this record"""
        return secure_hash(canonical_json(self.model_dump(mode="json")).encode("utf-8"))


class ConsentReceipt(BaseModel):
    """Immutable proof of a consent operation"""
    model_config = ConfigDict(frozen=True)
    
    receipt_id: str = Field(default_factory=generate_receipt_id)
    consent_id: str
    operation: ReceiptOperation
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    user_id: str
    agent_id: str
    digest: str = Field(..., description="SHA-256 of the record snapshot")
    
    @classmethod
    def issue(cls, record: ConsentRecord, operation: ReceiptOperation,
              timestamp: Optional[datetime] = None) -> "ConsentReceipt":
        """Issue a receipt for the record's current state"""
        return cls(
            consent_id=record.consent_id,
            operation=operation,
            timestamp=timestamp or datetime.now(UTC),
            user_id=record.user_id,
            agent_id=record.agent_id,
            digest=record.digest(),
        )
    
    def matches(self, record: ConsentRecord) -> bool:
        """Check the receipt against a record snapshot"""
        return self.consent_id == record.consent_id and self.digest == record.digest()


class GrantConsentRequest(BaseModel):
    """Input to a consent grant; semantic checks happen in the manager"""
    user_id: str
    agent_id: str
    purposes: List[str] = Field(default_factory=list)
    data_types: List[str] = Field(default_factory=list)
    jurisdiction: str = ""
    legal_basis: ProcessingBasis = ProcessingBasis.CONSENT
    consent_method: str = "api_request"
    retention_period: Optional[str] = None
    withdrawal_method: str = "api_revoke"
    notice_reference: str = ""


class ConsentUpdate(BaseModel):
    """Partial update to an active consent record"""
    purposes: Optional[List[str]] = None
    data_types: Optional[List[str]] = None
    jurisdiction: Optional[str] = None
    legal_basis: Optional[ProcessingBasis] = None
    retention_period: Optional[str] = None
    consent_method: Optional[str] = None
    withdrawal_method: Optional[str] = None
    notice_reference: Optional[str] = None
    
    def changes(self) -> Dict[str, Any]:
        """Fields explicitly set on this patch"""
        return self.model_dump(exclude_unset=True)


class ConsentQueryFilters(BaseModel):
    """Filters for listing a subject's consents"""
    agent_id: Optional[str] = None
    status: Optional[ConsentStatus] = None
    purpose: Optional[str] = None
    
    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> Any:
        # Status names match case-insensitively
        if isinstance(value, str):
            for status in ConsentStatus:
                if status.value.lower() == value.strip().lower():
                    return status
        return value
    
    def matches(self, record: ConsentRecord, now: Optional[datetime] = None) -> bool:
        if self.agent_id and record.agent_id != self.agent_id:
            return False
        if self.status and record.effective_status(now) != self.status:
            return False
        if self.purpose and not any(self.purpose in p for p in record.purposes):
            return False
        return True


class ConsentResult(BaseModel):
    """A consent record together with the receipt for the operation"""
    consent: ConsentRecord
    receipt: ConsentReceipt


class VerificationResult(BaseModel):
    """Outcome of a consent check"""
    consented: bool
    consent: Optional[ConsentRecord] = None


def coerce_model(model_cls, data: Any):
    """Build model_cls from a mapping, raising the engine's ValidationError"""
    if isinstance(data, model_cls):
        return data
    if data is None:
        data = {}
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    if not isinstance(data, Mapping):
        raise ValidationError(f"{model_cls.__name__} must be a mapping")
    data = dict(data)
    try:
        return model_cls(**data)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise ValidationError(
            f"{field or model_cls.__name__}: {first.get('msg', 'invalid value')}",
            field=field,
        ) from exc
