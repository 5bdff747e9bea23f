"""
Tests for privacy policy documents and the registry
"""

from agent_privacy.policy.models import PrivacyPolicy, create_default_policy
from agent_privacy.policy.registry import PolicyRegistry


class TestDefaultPolicy:
    """Test the standard marketplace policy"""
    
    def test_creates_valid_default_policy(self):
        """Test default policy content"""
        policy = create_default_policy("agent-default", "DefaultAgent")
        
        assert policy.agent_id == "agent-default"
        assert policy.agent_name == "DefaultAgent"
        assert policy.version == "1.0.0"
        assert len(policy.data_collected) == 3
        assert "service_delivery" in policy.purposes
        assert policy.retention_period == "6_months"
        assert policy.sharing_policy.shares_with_third_parties is False
        assert len(policy.user_rights) == 6
        assert policy.jurisdiction == "US"


class TestPolicyRegistry:
    """Test policy registration and lookup"""
    
    def setup_method(self):
        self.registry = PolicyRegistry()
    
    def test_register_and_get(self):
        """Test registering and retrieving a policy"""
        self.registry.register(create_default_policy("agent-001", "TestBot"))
        
        policy = self.registry.get("agent-001")
        assert policy is not None
        assert policy.agent_name == "TestBot"
        assert policy.data_collected
    
    def test_unknown_agent(self):
        """Test unknown agents have no policy"""
        assert self.registry.get("nonexistent-agent") is None
    
    def test_register_replaces(self):
        """Test registering again for the same agent replaces the policy"""
        self.registry.register(create_default_policy("agent-001", "TestBot"))
        
        updated = create_default_policy("agent-001", "TestBot").model_copy(
            update={"version": "2.0.0"}
        )
        self.registry.register(updated)
        
        assert self.registry.get("agent-001").version == "2.0.0"
        assert len(self.registry) == 1
    
    def test_list_all(self):
        """Test listing every registered policy"""
        self.registry.register(create_default_policy("agent-a", "AgentA"))
        self.registry.register(create_default_policy("agent-b", "AgentB"))
        
        agents = sorted(p.agent_id for p in self.registry.list_all())
        assert agents == ["agent-a", "agent-b"]
    
    def test_remove(self):
        """Test removing a policy"""
        self.registry.register(create_default_policy("agent-a", "AgentA"))
        
        assert self.registry.remove("agent-a")
        assert not self.registry.remove("agent-a")
        assert self.registry.get("agent-a") is None
    
    def test_stored_policy_is_isolated(self):
        """Test callers cannot mutate the registered copy"""
        policy = create_default_policy("agent-a", "AgentA")
        self.registry.register(policy)
        policy.purposes.append("marketing")
        
        fetched = self.registry.get("agent-a")
        fetched.user_rights.clear()
        
        stored = self.registry.get("agent-a")
        assert "marketing" not in stored.purposes
        assert len(stored.user_rights) == 6
    
    def test_custom_policy(self):
        """Test registering a hand-built policy"""
        policy = PrivacyPolicy(
            agent_id="agent-eu",
            agent_name="EuroBot",
            version="0.3.1",
            retention_period="1_year",
            jurisdiction="EU",
            purposes=["translation"],
            data_collected=[{
                "category": "Documents",
                "description": "Text submitted for translation",
                "required": True,
                "legal_basis": "Contract performance",
            }],
            sharing_policy={
                "shares_with_third_parties": True,
                "third_parties": ["Cloud MT provider"],
                "safeguards": ["Standard contractual clauses"],
            },
        )
        self.registry.register(policy)
        
        stored = self.registry.get("agent-eu")
        assert stored.sharing_policy.third_parties == ["Cloud MT provider"]
        assert stored.data_collected[0].required is True
