from registry_retention.config.config import RetentionConfigDocument, RetentionConfig, RetentionSettings
from registry_retention.retention.policy import PolicySet, RepoRule, TagRule
from registry_retention.config.registry import Registry

__all__ = [
    "RetentionConfig",
    "RetentionConfigDocument",
    "RetentionSettings",
    "PolicySet",
    "RepoRule",
    "TagRule",
    "Registry",
]
