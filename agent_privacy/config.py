"""
Privacy engine configuration for the agent marketplace
Retention conventions, audit toggles, storage and logging settings
"""

from pydantic_settings import BaseSettings
from pydantic import Field

from .constants import RetentionDefaults


class PrivacyConfig(BaseSettings):
    """Consent and privacy engine configuration settings"""
    
    # Consent defaults
    default_retention_period: str = Field(default=RetentionDefaults.DEFAULT_PERIOD)
    
    # Duration conventions used when parsing retention periods
    days_per_month: int = Field(default=RetentionDefaults.DAYS_PER_MONTH, ge=1)
    days_per_year: int = Field(default=RetentionDefaults.DAYS_PER_YEAR, ge=1)
    
    # Audit settings
    audit_verifications: bool = Field(
        default=False,
        description="Record a 'verified' audit entry for every positive consent check"
    )
    
    # Storage backend: "memory" or "sql"
    storage_backend: str = Field(default="memory")
    database_url: str = Field(default="sqlite://")
    
    # Logging
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=True)
    
    model_config = {"env_prefix": "AGENT_PRIVACY_", "case_sensitive": False}


# Global configuration instance
privacy_config = PrivacyConfig()


def get_privacy_config() -> PrivacyConfig:
    """Get the global privacy configuration instance"""
    return privacy_config


def update_privacy_config(**kwargs) -> PrivacyConfig:
    """Update privacy configuration with new values"""
    global privacy_config
    for key, value in kwargs.items():
        if hasattr(privacy_config, key):
            setattr(privacy_config, key, value)
    return privacy_config
