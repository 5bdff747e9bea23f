"""
Privacy policy registry
One policy document per agent, last write wins
"""

import threading
from typing import Dict, List, Optional

import structlog

from .models import PrivacyPolicy

logger = structlog.get_logger(__name__)


class PolicyRegistry:
    """Keyed storage of agent privacy policies"""
    
    def __init__(self):
        self._lock = threading.RLock()
        self._policies: Dict[str, PrivacyPolicy] = {}
    
    def register(self, policy: PrivacyPolicy) -> None:
        """Insert or replace the policy for policy.agent_id"""
        with self._lock:
            replaced = policy.agent_id in self._policies
            self._policies[policy.agent_id] = policy.model_copy(deep=True)
        
        logger.info("Privacy policy registered",
                    agent_id=policy.agent_id,
                    version=policy.version,
                    replaced=replaced)
    
    def get(self, agent_id: str) -> Optional[PrivacyPolicy]:
        with self._lock:
            policy = self._policies.get(agent_id)
            return policy.model_copy(deep=True) if policy else None
    
    def list_all(self) -> List[PrivacyPolicy]:
        with self._lock:
            return [p.model_copy(deep=True) for p in self._policies.values()]
    
    def remove(self, agent_id: str) -> bool:
        """Drop an agent's policy; returns False if none was registered"""
        with self._lock:
            removed = self._policies.pop(agent_id, None) is not None
        
        if removed:
            logger.info("Privacy policy removed", agent_id=agent_id)
        return removed
    
    def __len__(self) -> int:
        with self._lock:
            return len(self._policies)
