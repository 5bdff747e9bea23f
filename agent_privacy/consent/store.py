"""
Consent storage adapters

ConsentStore is keyed storage with secondary lookup by subject and by
agent. It holds no business logic; ConsentManager enforces every
invariant. Stores hand out copies so stored state only changes via put().
"""

import json
import threading
from abc import ABC, abstractmethod
from datetime import datetime, UTC
from typing import Dict, List, Optional

import structlog
from sqlalchemy import create_engine, Column, DateTime, Integer, String, Text
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import ConsentRecord, ConsentStatus, ProcessingBasis

logger = structlog.get_logger(__name__)

Base = declarative_base()


class ConsentStore(ABC):
    """Storage interface for consent records"""
    
    @abstractmethod
    def put(self, record: ConsentRecord) -> None:
        """Insert or replace a record by consent_id"""
    
    @abstractmethod
    def get(self, consent_id: str) -> Optional[ConsentRecord]:
        """Get a record by ID"""
    
    @abstractmethod
    def list_by_user(self, user_id: str) -> List[ConsentRecord]:
        """All records for a subject, in creation order"""
    
    @abstractmethod
    def list_by_agent(self, agent_id: str) -> List[ConsentRecord]:
        """All records for an agent, in creation order"""
    
    @abstractmethod
    def list_all(self) -> List[ConsentRecord]:
        """Every stored record, in creation order"""


class InMemoryConsentStore(ConsentStore):
    """Process-lifetime storage guarded by a single lock"""
    
    def __init__(self):
        self._lock = threading.RLock()
        self._records: Dict[str, ConsentRecord] = {}
        self._by_user: Dict[str, List[str]] = {}
        self._by_agent: Dict[str, List[str]] = {}
    
    def put(self, record: ConsentRecord) -> None:
        with self._lock:
            is_new = record.consent_id not in self._records
            self._records[record.consent_id] = record.model_copy(deep=True)
            
            if is_new:
                self._by_user.setdefault(record.user_id, []).append(record.consent_id)
                self._by_agent.setdefault(record.agent_id, []).append(record.consent_id)
    
    def get(self, consent_id: str) -> Optional[ConsentRecord]:
        with self._lock:
            record = self._records.get(consent_id)
            return record.model_copy(deep=True) if record else None
    
    def _collect(self, ids: List[str]) -> List[ConsentRecord]:
        return [self._records[cid].model_copy(deep=True) for cid in ids if cid in self._records]
    
    def list_by_user(self, user_id: str) -> List[ConsentRecord]:
        with self._lock:
            return self._collect(self._by_user.get(user_id, []))
    
    def list_by_agent(self, agent_id: str) -> List[ConsentRecord]:
        with self._lock:
            return self._collect(self._by_agent.get(agent_id, []))
    
    def list_all(self) -> List[ConsentRecord]:
        with self._lock:
            return self._collect(list(self._records))
    
    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class ConsentRecordDB(Base):
    """SQLAlchemy model for consent records"""
    __tablename__ = "consent_records"
    
    seq = Column(Integer, primary_key=True, autoincrement=True)
    consent_id = Column(String, nullable=False, unique=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    agent_id = Column(String, nullable=False, index=True)
    
    purposes = Column(Text, nullable=False)  # JSON list
    data_types = Column(Text, nullable=False)  # JSON list
    jurisdiction = Column(String, nullable=False)
    legal_basis = Column(String, nullable=False)
    
    consent_method = Column(String)
    withdrawal_method = Column(String)
    notice_reference = Column(Text)
    retention_period = Column(String)
    
    consent_timestamp = Column(DateTime(timezone=True), nullable=False)
    expiry_date = Column(DateTime(timezone=True))
    revoked_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True), nullable=False)
    
    status = Column(String, nullable=False)
    revocation_reason = Column(Text)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on the way back out
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class SQLConsentStore(ConsentStore):
    """SQLAlchemy-backed consent storage"""
    
    def __init__(self, database_url: str = "sqlite://"):
        self.database_url = database_url
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # Single shared connection so every session sees the same in-memory DB
            self.engine = create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(database_url)
        self.SessionLocal = sessionmaker(bind=self.engine)
        self._lock = threading.RLock()
        
        Base.metadata.create_all(bind=self.engine)
    
    def _apply(self, row: ConsentRecordDB, record: ConsentRecord) -> None:
        row.consent_id = record.consent_id
        row.user_id = record.user_id
        row.agent_id = record.agent_id
        row.purposes = json.dumps(record.purposes)
        row.data_types = json.dumps(record.data_types)
        row.jurisdiction = record.jurisdiction
        row.legal_basis = record.legal_basis.value
        row.consent_method = record.consent_method
        row.withdrawal_method = record.withdrawal_method
        row.notice_reference = record.notice_reference
        row.retention_period = record.retention_period
        row.consent_timestamp = record.consent_timestamp
        row.expiry_date = record.expiry_date
        row.revoked_at = record.revoked_at
        row.updated_at = record.updated_at
        row.status = record.status.value
        row.revocation_reason = record.revocation_reason
    
    def _from_db_model(self, row: ConsentRecordDB) -> ConsentRecord:
        """Convert database model to ConsentRecord"""
        return ConsentRecord(
            consent_id=row.consent_id,
            user_id=row.user_id,
            agent_id=row.agent_id,
            purposes=json.loads(row.purposes),
            data_types=json.loads(row.data_types),
            jurisdiction=row.jurisdiction,
            legal_basis=ProcessingBasis(row.legal_basis),
            consent_method=row.consent_method or "",
            withdrawal_method=row.withdrawal_method or "",
            notice_reference=row.notice_reference or "",
            retention_period=row.retention_period or "",
            consent_timestamp=_as_utc(row.consent_timestamp),
            expiry_date=_as_utc(row.expiry_date),
            revoked_at=_as_utc(row.revoked_at),
            updated_at=_as_utc(row.updated_at),
            status=ConsentStatus(row.status),
            revocation_reason=row.revocation_reason,
        )
    
    def put(self, record: ConsentRecord) -> None:
        with self._lock, self.SessionLocal() as session:
            row = session.query(ConsentRecordDB).filter_by(consent_id=record.consent_id).first()
            if row is None:
                row = ConsentRecordDB()
                session.add(row)
            self._apply(row, record)
            session.commit()
            
            logger.debug("Stored consent record", consent_id=record.consent_id,
                         status=record.status.value)
    
    def get(self, consent_id: str) -> Optional[ConsentRecord]:
        with self._lock, self.SessionLocal() as session:
            row = session.query(ConsentRecordDB).filter_by(consent_id=consent_id).first()
            return self._from_db_model(row) if row else None
    
    def _list(self, **criteria) -> List[ConsentRecord]:
        with self._lock, self.SessionLocal() as session:
            query = session.query(ConsentRecordDB)
            if criteria:
                query = query.filter_by(**criteria)
            rows = query.order_by(ConsentRecordDB.seq).all()
            return [self._from_db_model(row) for row in rows]
    
    def list_by_user(self, user_id: str) -> List[ConsentRecord]:
        return self._list(user_id=user_id)
    
    def list_by_agent(self, agent_id: str) -> List[ConsentRecord]:
        return self._list(agent_id=agent_id)
    
    def list_all(self) -> List[ConsentRecord]:
        return self._list()
