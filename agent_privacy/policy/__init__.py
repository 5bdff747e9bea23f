"""
Privacy policy management
Per-agent policy documents and their registry
"""

from .models import DataCollectionItem, SharingPolicy, PrivacyPolicy, create_default_policy
from .registry import PolicyRegistry

__all__ = [
    "DataCollectionItem",
    "SharingPolicy",
    "PrivacyPolicy",
    "create_default_policy",
    "PolicyRegistry",
]
