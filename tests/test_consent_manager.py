"""Tests for the consent lifecycle manager."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from types import MappingProxyType
from typing import Any, Dict

import pytest

from agent_privacy.audit.log import AuditAction, AuditLog
from agent_privacy.config import PrivacyConfig
from agent_privacy.consent.manager import ConsentManager
from agent_privacy.consent.models import (
    ConsentStatus, ConsentUpdate, GrantConsentRequest, ProcessingBasis, ReceiptOperation,
)
from agent_privacy.consent.store import InMemoryConsentStore, SQLConsentStore
from agent_privacy.exceptions import ConflictError, NotFoundError, ValidationError


def grant_payload(**overrides) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "user_id": "user-1",
        "agent_id": "agent-1",
        "purposes": ["analytics"],
        "data_types": ["task_data"],
        "jurisdiction": "US",
        "legal_basis": ProcessingBasis.CONSENT,
        "consent_method": "api_request",
        "retention_period": "30_days",
        "withdrawal_method": "api_revoke",
        "notice_reference": "/privacy/policy?agentId=agent-1",
    }
    payload.update(overrides)
    return payload


class TestGrantConsent:
    """Test consent grants."""
    
    def setup_method(self) -> None:
        self.store = InMemoryConsentStore()
        self.audit_log = AuditLog()
        self.manager = ConsentManager(store=self.store, audit_log=self.audit_log)
    
    def test_grant_creates_active_record(self) -> None:
        """Grant returns an Active record and a matching receipt."""
        result = self.manager.grant_consent(grant_payload())
        
        consent = result.consent
        assert consent.status == "Active"
        assert consent.user_id == "user-1"
        assert consent.purposes == ["analytics"]
        assert consent.revocation_reason is None
        assert result.receipt.operation == ReceiptOperation.GRANTED
        assert result.receipt.consent_id == consent.consent_id
        assert result.receipt.matches(consent)
        
        assert self.store.get(consent.consent_id) is not None
    
    def test_grant_accepts_request_model(self) -> None:
        """A GrantConsentRequest is accepted as well as a mapping."""
        result = self.manager.grant_consent(GrantConsentRequest(**grant_payload()))
        assert result.consent.status == ConsentStatus.ACTIVE
    
    def test_expiry_from_retention(self) -> None:
        """30_days retention puts expiry 29-31 days out."""
        consent = self.manager.grant_consent(grant_payload()).consent
        
        diff = consent.expiry_date - consent.consent_timestamp
        assert timedelta(days=29) <= diff <= timedelta(days=31)
    
    def test_indefinite_retention_has_no_expiry(self) -> None:
        """Indefinite retention leaves expiry unset."""
        consent = self.manager.grant_consent(grant_payload(retention_period="indefinite")).consent
        assert consent.expiry_date is None
    
    def test_default_retention_from_config(self) -> None:
        """Missing retention falls back to the configured default."""
        manager = ConsentManager(config=PrivacyConfig(default_retention_period="1_year"))
        payload = grant_payload()
        del payload["retention_period"]
        
        consent = manager.grant_consent(payload).consent
        assert consent.retention_period == "1_year"
        assert consent.expiry_date - consent.consent_timestamp == timedelta(days=365)
    
    def test_duplicate_purposes_collapse(self) -> None:
        """Duplicate purposes are not meaningful."""
        consent = self.manager.grant_consent(
            grant_payload(purposes=["analytics", "billing", "analytics"])
        ).consent
        assert consent.purposes == ["analytics", "billing"]
    
    def test_empty_purposes_rejected(self) -> None:
        """Empty purposes fail with a ValidationError naming purposes."""
        with pytest.raises(ValidationError) as exc_info:
            self.manager.grant_consent(grant_payload(purposes=[]))
        
        assert "purposes" in str(exc_info.value)
        assert exc_info.value.field == "purposes"
    
    def test_empty_jurisdiction_rejected(self) -> None:
        """Blank jurisdiction fails with a ValidationError naming jurisdiction."""
        with pytest.raises(ValidationError) as exc_info:
            self.manager.grant_consent(grant_payload(jurisdiction=""))
        
        assert "jurisdiction" in str(exc_info.value)
        assert exc_info.value.details["field"] == "jurisdiction"
    
    def test_failed_grant_writes_nothing(self) -> None:
        """A rejected grant leaves store and audit log untouched."""
        with pytest.raises(ValidationError):
            self.manager.grant_consent(grant_payload(purposes=[]))
        
        assert len(self.store) == 0
        assert len(self.audit_log) == 0
    
    def test_grant_is_not_idempotent(self) -> None:
        """Identical grants create distinct records."""
        first = self.manager.grant_consent(grant_payload()).consent
        second = self.manager.grant_consent(grant_payload()).consent
        
        assert first.consent_id != second.consent_id
        assert len(self.manager.list_consents("user-1")) == 2
    
    def test_grant_emits_one_audit_entry(self) -> None:
        """Each grant emits exactly one granted entry."""
        consent = self.manager.grant_consent(grant_payload(purposes=["a", "b"])).consent
        
        entries = self.audit_log.query()
        assert len(entries) == 1
        assert entries[0].action == AuditAction.GRANTED
        assert entries[0].consent_id == consent.consent_id
        assert entries[0].details == "Consent granted for purposes: a, b"


class TestRevokeConsent:
    """Test revocation and withdrawal."""
    
    def setup_method(self) -> None:
        self.manager = ConsentManager()
        self.consent = self.manager.grant_consent(grant_payload()).consent
    
    def test_revoke(self) -> None:
        """Revoking sets Withdrawn and records the reason."""
        result = self.manager.revoke_consent(self.consent.consent_id, "no longer needed")
        
        assert result.consent.status == "Withdrawn"
        assert result.consent.revocation_reason == "no longer needed"
        assert result.receipt.operation == ReceiptOperation.REVOKED
        assert not self.manager.verify_consent("user-1", "analytics").consented
    
    def test_revoke_twice_conflicts(self) -> None:
        """A second revoke fails with ConflictError."""
        self.manager.revoke_consent(self.consent.consent_id, "first")
        
        with pytest.raises(ConflictError) as exc_info:
            self.manager.revoke_consent(self.consent.consent_id, "second")
        
        assert "already revoked/withdrawn" in str(exc_info.value)
        stored = self.manager.get_consent(self.consent.consent_id)
        assert stored.revocation_reason == "first"
    
    def test_revoke_unknown(self) -> None:
        """Revoking an unknown ID fails with NotFoundError."""
        with pytest.raises(NotFoundError) as exc_info:
            self.manager.revoke_consent("nonexistent-id", "x")
        
        assert "not found" in str(exc_info.value)
    
    def test_withdraw(self) -> None:
        """Withdraw needs no reason and yields a withdrawn receipt."""
        result = self.manager.withdraw_consent(self.consent.consent_id)
        
        assert result.consent.status == ConsentStatus.WITHDRAWN
        assert result.consent.revocation_reason == "Consent withdrawn by user"
        assert result.receipt.operation == ReceiptOperation.WITHDRAWN
    
    def test_withdraw_after_revoke_conflicts(self) -> None:
        """Withdrawn is terminal for every withdrawal path."""
        self.manager.revoke_consent(self.consent.consent_id, "done")
        
        with pytest.raises(ConflictError):
            self.manager.withdraw_consent(self.consent.consent_id)
    
    def test_revoke_audit_entry(self) -> None:
        """Revocation emits a revoked entry carrying the reason."""
        self.manager.revoke_consent(self.consent.consent_id, "Privacy concern")
        
        entries = self.manager.audit_log.query(user_id="user-1")
        assert [e.action.value for e in entries] == ["revoked", "granted"]
        assert "Privacy concern" in entries[0].details


class TestUpdateConsent:
    """Test partial updates."""
    
    def setup_method(self) -> None:
        self.manager = ConsentManager()
        self.consent = self.manager.grant_consent(grant_payload()).consent
    
    def test_update_purposes(self) -> None:
        """Purposes can be broadened on an active record."""
        result = self.manager.update_consent(
            self.consent.consent_id, {"purposes": ["analytics", "billing", "marketing"]}
        )
        
        updated = result.consent
        assert updated.purposes == ["analytics", "billing", "marketing"]
        assert updated.consent_id == self.consent.consent_id
        assert updated.consent_timestamp == self.consent.consent_timestamp
        assert updated.status == ConsentStatus.ACTIVE
        assert result.receipt.operation == ReceiptOperation.UPDATED
        assert self.manager.verify_consent("user-1", "marketing").consented
    
    def test_update_retention_recomputes_expiry(self) -> None:
        """A new retention period re-derives expiry from the original timestamp."""
        updated = self.manager.update_consent(
            self.consent.consent_id, ConsentUpdate(retention_period="1_year")
        ).consent
        
        assert updated.expiry_date == updated.consent_timestamp + timedelta(days=365)
    
    def test_update_emits_audit_entry(self) -> None:
        """Updates are recorded in the audit log."""
        self.manager.update_consent(self.consent.consent_id, {"jurisdiction": "EU"})
        
        latest = self.manager.audit_log.query(limit=1)[0]
        assert latest.action == AuditAction.UPDATED
        assert "jurisdiction" in latest.details
    
    def test_update_validates_patch(self) -> None:
        """Patched purposes and jurisdiction are re-validated."""
        with pytest.raises(ValidationError):
            self.manager.update_consent(self.consent.consent_id, {"purposes": []})
        with pytest.raises(ValidationError):
            self.manager.update_consent(self.consent.consent_id, {"jurisdiction": "  "})
        with pytest.raises(ValidationError):
            self.manager.update_consent(self.consent.consent_id, {})
    
    def test_update_withdrawn_conflicts(self) -> None:
        """Non-active records cannot be updated."""
        self.manager.withdraw_consent(self.consent.consent_id)
        
        with pytest.raises(ConflictError) as exc_info:
            self.manager.update_consent(self.consent.consent_id, {"purposes": ["billing"]})
        assert "not active" in str(exc_info.value)
    
    def test_update_unknown(self) -> None:
        """Updating an unknown record fails with NotFoundError."""
        with pytest.raises(NotFoundError):
            self.manager.update_consent("consent_missing", {"purposes": ["billing"]})


class TestReads:
    """Test verification and listing."""
    
    def setup_method(self) -> None:
        self.manager = ConsentManager()
    
    def test_verify_matching_purpose(self) -> None:
        """Verification finds an active record covering the purpose."""
        consent = self.manager.grant_consent(grant_payload(purposes=["analytics", "billing"])).consent
        
        result = self.manager.verify_consent("user-1", "billing")
        assert result.consented
        assert result.consent.consent_id == consent.consent_id
    
    def test_verify_non_matching(self) -> None:
        """Unknown purposes, wrong case and unknown users do not match."""
        self.manager.grant_consent(grant_payload(purposes=["billing"]))
        
        assert not self.manager.verify_consent("user-1", "marketing").consented
        assert not self.manager.verify_consent("user-1", "Billing").consented
        assert self.manager.verify_consent("nobody", "billing").consent is None
    
    def test_verify_is_idempotent(self) -> None:
        """Back-to-back verifications agree and write nothing."""
        self.manager.grant_consent(grant_payload())
        
        first = self.manager.verify_consent("user-1", "analytics")
        second = self.manager.verify_consent("user-1", "analytics")
        assert first == second
        assert len(self.manager.audit_log) == 1
    
    def test_check_consent_alias(self) -> None:
        """check_consent is the same operation as verify_consent."""
        self.manager.grant_consent(grant_payload())
        assert self.manager.check_consent("user-1", "analytics").consented
    
    def test_verified_entries_when_enabled(self) -> None:
        """Verification can be audited when configured."""
        manager = ConsentManager(config=PrivacyConfig(audit_verifications=True))
        manager.grant_consent(grant_payload())
        
        manager.verify_consent("user-1", "analytics")
        manager.verify_consent("user-1", "marketing")
        
        actions = [e.action for e in manager.audit_log.query()]
        assert actions == [AuditAction.VERIFIED, AuditAction.GRANTED]
    
    def test_list_consents_with_filters(self) -> None:
        """Listing supports agent, status and purpose filters."""
        first = self.manager.grant_consent(grant_payload(agent_id="agent-1")).consent
        self.manager.grant_consent(grant_payload(agent_id="agent-2", purposes=["billing_v2"]))
        self.manager.revoke_consent(first.consent_id, "done")
        
        assert len(self.manager.list_consents("user-1")) == 2
        assert [c.agent_id for c in self.manager.list_consents("user-1", {"agent_id": "agent-2"})] == ["agent-2"]
        assert [c.consent_id for c in self.manager.list_consents("user-1", {"status": "Withdrawn"})] == [first.consent_id]
        assert [c.agent_id for c in self.manager.list_consents("user-1", {"purpose": "billing"})] == ["agent-2"]
        assert self.manager.list_consents("unknown-user") == []
    
    def test_list_active_consents(self) -> None:
        """Only active records for the agent are listed."""
        keep = self.manager.grant_consent(grant_payload(user_id="user-1")).consent
        gone = self.manager.grant_consent(grant_payload(user_id="user-2")).consent
        self.manager.grant_consent(grant_payload(agent_id="agent-2"))
        self.manager.withdraw_consent(gone.consent_id)
        
        active = self.manager.list_active_consents("agent-1")
        assert [c.consent_id for c in active] == [keep.consent_id]
        assert self.manager.list_active_consents("unknown-agent") == []


class TestLazyExpiry:
    """Test time-based expiry without a background sweep."""
    
    def setup_method(self) -> None:
        self.store = InMemoryConsentStore()
    
    def make_manager(self, clock) -> ConsentManager:
        return ConsentManager(store=self.store, clock=clock)
    
    def test_expired_record_fails_verification(self, clock) -> None:
        """Verification rejects records past expiry."""
        manager = self.make_manager(clock)
        consent = manager.grant_consent(grant_payload()).consent
        assert manager.verify_consent("user-1", "analytics").consented
        
        clock.advance(days=31)
        
        assert not manager.verify_consent("user-1", "analytics").consented
        assert manager.get_consent(consent.consent_id).status == ConsentStatus.ACTIVE
    
    def test_expiry_boundary(self, clock) -> None:
        """Consent lapses exactly at the expiry instant."""
        manager = self.make_manager(clock)
        manager.grant_consent(grant_payload(retention_period="1_day"))
        
        clock.advance(days=1, seconds=-1)
        assert manager.verify_consent("user-1", "analytics").consented
        clock.advance(seconds=1)
        assert not manager.verify_consent("user-1", "analytics").consented
    
    def test_expired_record_excluded_from_active_list(self, clock) -> None:
        """list_active_consents drops lazily expired records."""
        manager = self.make_manager(clock)
        manager.grant_consent(grant_payload(retention_period="30_days"))
        lasting = manager.grant_consent(grant_payload(retention_period="1_year")).consent
        
        clock.advance(days=45)
        
        active = manager.list_active_consents("agent-1")
        assert [c.consent_id for c in active] == [lasting.consent_id]
        assert len(manager.list_consents("user-1", {"status": "Expired"})) == 1
    
    def test_revoking_expired_record_conflicts(self, clock) -> None:
        """Writes treat time-expired records as Expired."""
        manager = self.make_manager(clock)
        consent = manager.grant_consent(grant_payload()).consent
        clock.advance(days=31)
        
        with pytest.raises(ConflictError) as exc_info:
            manager.revoke_consent(consent.consent_id, "too late")
        assert "already revoked/withdrawn" in str(exc_info.value)
        assert exc_info.value.status == "Expired"
        
        with pytest.raises(ConflictError):
            manager.update_consent(consent.consent_id, {"purposes": ["billing"]})
        
        assert len(manager.audit_log) == 1
    
    def test_expire_sweep(self, clock) -> None:
        """The explicit sweep persists Expired and audits it once."""
        manager = self.make_manager(clock)
        expiring = manager.grant_consent(grant_payload(retention_period="30_days")).consent
        manager.grant_consent(grant_payload(retention_period="indefinite"))
        withdrawn = manager.grant_consent(grant_payload(retention_period="1_day")).consent
        manager.withdraw_consent(withdrawn.consent_id)
        
        clock.advance(days=60)
        expired = manager.expire_consents()
        
        assert [c.consent_id for c in expired] == [expiring.consent_id]
        assert manager.get_consent(expiring.consent_id).status == ConsentStatus.EXPIRED
        assert manager.get_consent(withdrawn.consent_id).status == ConsentStatus.WITHDRAWN
        assert manager.audit_log.query(limit=1)[0].action == AuditAction.EXPIRED
        assert manager.expire_consents() == []


class TestSQLBackedManager:
    """The manager works unchanged over the SQL store."""
    
    def test_lifecycle(self) -> None:
        """Grant, update and revoke through SQLAlchemy storage."""
        manager = ConsentManager(store=SQLConsentStore("sqlite://"))
        consent = manager.grant_consent(grant_payload()).consent
        
        manager.update_consent(consent.consent_id, {"purposes": ["analytics", "billing"]})
        assert manager.verify_consent("user-1", "billing").consented
        
        manager.revoke_consent(consent.consent_id, "no longer needed")
        stored = manager.get_consent(consent.consent_id)
        assert stored.status == ConsentStatus.WITHDRAWN
        assert stored.revocation_reason == "no longer needed"
        assert manager.list_active_consents("agent-1") == []


class TestListingFilters:
    """Listing never fails on filter input."""
    
    def setup_method(self) -> None:
        self.manager = ConsentManager()
        self.active = self.manager.grant_consent(grant_payload()).consent
        self.withdrawn = self.manager.grant_consent(grant_payload()).consent
        self.manager.withdraw_consent(self.withdrawn.consent_id)
    
    def test_status_matches_case_insensitively(self) -> None:
        """Lowercase status names select the same records."""
        active = self.manager.list_consents("user-1", {"status": "active"})
        withdrawn = self.manager.list_consents("user-1", {"status": "WITHDRAWN"})
        
        assert [c.consent_id for c in active] == [self.active.consent_id]
        assert [c.consent_id for c in withdrawn] == [self.withdrawn.consent_id]
    
    def test_unknown_status_returns_empty(self) -> None:
        """An unrecognised status yields no records instead of an error."""
        assert self.manager.list_consents("user-1", {"status": "bogus"}) == []
    
    def test_non_mapping_filters_return_empty(self) -> None:
        """Filters that are not a mapping yield no records."""
        assert self.manager.list_consents("user-1", "active") == []
        assert self.manager.list_consents("user-1", ["status"]) == []
    
    def test_read_only_mapping_accepted(self) -> None:
        """Any Mapping works for requests, patches and filters."""
        manager = ConsentManager()
        consent = manager.grant_consent(MappingProxyType(grant_payload())).consent
        manager.update_consent(consent.consent_id, MappingProxyType({"purposes": ["billing"]}))
        
        listed = manager.list_consents("user-1", MappingProxyType({"purpose": "billing"}))
        assert [c.consent_id for c in listed] == [consent.consent_id]


class TestVerificationAuditOrdering:
    """Verified entries never follow the revocation of the same consent."""
    
    def test_verify_racing_revoke(self) -> None:
        """Concurrent checks and a revoke keep a causal audit trail."""
        manager = ConsentManager(config=PrivacyConfig(audit_verifications=True))
        consent = manager.grant_consent(grant_payload()).consent
        
        def work(i: int) -> None:
            if i == 25:
                manager.revoke_consent(consent.consent_id, "racing")
            else:
                manager.verify_consent("user-1", "analytics")
        
        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(work, range(50)))
        
        actions = [e.action for e in reversed(manager.audit_log.query(consent_id=consent.consent_id))]
        revoked_at = actions.index(AuditAction.REVOKED)
        assert AuditAction.VERIFIED not in actions[revoked_at:]
        assert actions[0] == AuditAction.GRANTED
        assert manager.audit_log.verify_integrity()
