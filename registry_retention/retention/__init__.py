from registry_retention.retention.models import Decision, PurgeReport, RepositoryReport, RetentionGroup, TaggedArtifact
from registry_retention.retention.policy import PolicySet, RepoRule, TagRule
from registry_retention.retention.purge import PurgeOrchestrator, run
from registry_retention.retention.resolver import resolve_repo_rule, resolve_tag_rule

__all__ = [
    "Decision",
    "PolicySet",
    "PurgeOrchestrator",
    "PurgeReport",
    "RepoRule",
    "RepositoryReport",
    "RetentionGroup",
    "TagRule",
    "TaggedArtifact",
    "resolve_repo_rule",
    "resolve_tag_rule",
    "run",
]
