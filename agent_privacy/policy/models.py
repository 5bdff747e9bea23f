"""
Privacy policy documents published by marketplace agents
"""

from datetime import datetime, UTC
from typing import List
from pydantic import BaseModel, Field

from ..constants import DEFAULT_POLICY_PURPOSES, DEFAULT_USER_RIGHTS, RetentionDefaults


class DataCollectionItem(BaseModel):
    """One category of data an agent collects"""
    category: str
    description: str
    required: bool = False
    legal_basis: str


class SharingPolicy(BaseModel):
    """Whether and how collected data leaves the agent"""
    shares_with_third_parties: bool = False
    third_parties: List[str] = Field(default_factory=list)
    safeguards: List[str] = Field(default_factory=list)


class PrivacyPolicy(BaseModel):
    """An agent's published description of its data practices"""
    agent_id: str
    agent_name: str
    version: str
    effective_date: datetime = Field(default_factory=lambda: datetime.now(UTC))
    data_collected: List[DataCollectionItem] = Field(default_factory=list)
    purposes: List[str] = Field(default_factory=list)
    retention_period: str
    sharing_policy: SharingPolicy = Field(default_factory=SharingPolicy)
    user_rights: List[str] = Field(default_factory=list)
    contact: str = ""
    jurisdiction: str
    last_updated: datetime = Field(default_factory=lambda: datetime.now(UTC))


def create_default_policy(agent_id: str, agent_name: str) -> PrivacyPolicy:
    """Standard policy for marketplace agents that have not published their own"""
    now = datetime.now(UTC)
    return PrivacyPolicy(
        agent_id=agent_id,
        agent_name=agent_name,
        version="1.0.0",
        effective_date=now,
        data_collected=[
            DataCollectionItem(
                category="Task Data",
                description="Input data provided for skill execution",
                required=True,
                legal_basis="Contract performance",
            ),
            DataCollectionItem(
                category="Usage Analytics",
                description="Aggregated usage statistics for service improvement",
                required=False,
                legal_basis="Legitimate interest",
            ),
            DataCollectionItem(
                category="Account Information",
                description="Account ID for payment processing",
                required=True,
                legal_basis="Contract performance",
            ),
        ],
        purposes=list(DEFAULT_POLICY_PURPOSES),
        retention_period=RetentionDefaults.DEFAULT_PERIOD,
        sharing_policy=SharingPolicy(
            shares_with_third_parties=False,
            third_parties=[],
            safeguards=["End-to-end encryption", "Immutable audit trail"],
        ),
        user_rights=list(DEFAULT_USER_RIGHTS),
        contact="privacy@example.com",
        jurisdiction="US",
        last_updated=now,
    )
