"""
Privacy service facade

The single entry point external collaborators use. Composes the consent
manager, audit log and policy registry; owns no state of its own.
"""

from datetime import datetime, UTC
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import structlog

from .audit.log import AuditEntry, AuditLog
from .config import PrivacyConfig, get_privacy_config
from .consent.manager import ConsentManager
from .consent.models import (
    ConsentQueryFilters,
    ConsentRecord,
    ConsentResult,
    ConsentUpdate,
    GrantConsentRequest,
    VerificationResult,
    coerce_model,
)
from .consent.store import ConsentStore, InMemoryConsentStore, SQLConsentStore
from .constants import SERVICE_NAME, SERVICE_VERSION
from .policy.models import PrivacyPolicy
from .policy.registry import PolicyRegistry

logger = structlog.get_logger(__name__)


class PrivacyService:
    """Unified API for consent, privacy policy and audit trail operations"""
    
    def __init__(self, consent_manager: Optional[ConsentManager] = None,
                 policy_registry: Optional[PolicyRegistry] = None,
                 audit_log: Optional[AuditLog] = None,
                 config: Optional[PrivacyConfig] = None,
                 store: Optional[ConsentStore] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.config = config or get_privacy_config()
        if consent_manager is None:
            clock = clock or (lambda: datetime.now(UTC))
            consent_manager = ConsentManager(
                store=store if store is not None else InMemoryConsentStore(),
                audit_log=audit_log if audit_log is not None else AuditLog(clock=clock),
                config=self.config,
                clock=clock,
            )
        else:
            if store is not None and store is not consent_manager.store:
                raise ValueError("store must be the consent manager's store")
            if audit_log is not None and audit_log is not consent_manager.audit_log:
                raise ValueError("audit_log must be the consent manager's audit log")
        
        self.consent_manager = consent_manager
        self.audit_log = consent_manager.audit_log
        self.policy_registry = policy_registry if policy_registry is not None else PolicyRegistry()
    
    # ----------------------------------------------------------
    # Consent operations
    # ----------------------------------------------------------
    
    def grant_consent(self, request: Union[GrantConsentRequest, Mapping[str, Any]]) -> ConsentResult:
        return self.consent_manager.grant_consent(request)
    
    def revoke_consent(self, consent_id: str, reason: Optional[str] = None) -> ConsentResult:
        return self.consent_manager.revoke_consent(consent_id, reason)
    
    def withdraw_consent(self, consent_id: str) -> ConsentResult:
        return self.consent_manager.withdraw_consent(consent_id)
    
    def update_consent(self, consent_id: str,
                       patch: Union[ConsentUpdate, Mapping[str, Any]]) -> ConsentResult:
        return self.consent_manager.update_consent(consent_id, patch)
    
    def expire_consents(self) -> List[ConsentRecord]:
        return self.consent_manager.expire_consents()
    
    def verify_consent(self, user_id: str, purpose: str) -> VerificationResult:
        return self.consent_manager.verify_consent(user_id, purpose)
    
    def check_consent(self, user_id: str, purpose: str) -> VerificationResult:
        return self.consent_manager.verify_consent(user_id, purpose)
    
    def get_consent(self, consent_id: str) -> Optional[ConsentRecord]:
        return self.consent_manager.get_consent(consent_id)
    
    def list_consents(self, user_id: str,
                      filters: Union[ConsentQueryFilters, Mapping[str, Any], None] = None
                      ) -> List[ConsentRecord]:
        return self.consent_manager.list_consents(user_id, filters)
    
    def list_active_consents(self, agent_id: str) -> List[ConsentRecord]:
        return self.consent_manager.list_active_consents(agent_id)
    
    # ----------------------------------------------------------
    # Privacy policy operations
    # ----------------------------------------------------------
    
    def register_policy(self, policy: Union[PrivacyPolicy, Mapping[str, Any]]) -> None:
        policy = coerce_model(PrivacyPolicy, policy)
        self.policy_registry.register(policy)
    
    def get_policy(self, agent_id: str) -> Optional[PrivacyPolicy]:
        return self.policy_registry.get(agent_id)
    
    def get_all_policies(self) -> List[PrivacyPolicy]:
        return self.policy_registry.list_all()
    
    # ----------------------------------------------------------
    # Audit trail
    # ----------------------------------------------------------
    
    def get_audit_log(self, agent_id: Optional[str] = None, user_id: Optional[str] = None,
                      limit: Optional[int] = None) -> List[AuditEntry]:
        """Audit entries, most recent first"""
        return self.audit_log.query(agent_id=agent_id, user_id=user_id, limit=limit)
    
    def verify_audit_integrity(self) -> bool:
        return self.audit_log.verify_integrity()
    
    def export_consent_history(self, user_id: str) -> Dict[str, Any]:
        """Export a subject's consent records and audit trail for access requests"""
        consents = self.consent_manager.list_consents(user_id)
        audit = self.audit_log.export(user_id=user_id)
        
        logger.info("Exported consent history", user_id=user_id, consent_count=len(consents))
        return {
            "user_id": user_id,
            "exported_at": audit["exported_at"],
            "consents": [c.model_dump(mode="json") for c in consents],
            "audit_trail": audit["entries"],
            "integrity_verified": audit["integrity_verified"],
        }


def create_privacy_service(config: Optional[PrivacyConfig] = None) -> PrivacyService:
    """Build a PrivacyService with the storage backend named in config"""
    config = config or get_privacy_config()
    backend = config.storage_backend.lower()
    
    if backend == "memory":
        store: ConsentStore = InMemoryConsentStore()
    elif backend == "sql":
        store = SQLConsentStore(config.database_url)
    else:
        raise ValueError(f"Unsupported storage backend: {config.storage_backend}")
    
    logger.info("Privacy service created", service=SERVICE_NAME, version=SERVICE_VERSION,
                storage_backend=backend)
    return PrivacyService(config=config, store=store)
