from dataclasses import dataclass, field
from datetime import datetime, timezone

from registry_retention.error import DeleteFailureError
from registry_retention.retention.policy import TagRule


@dataclass(frozen=True)
class TaggedArtifact:
    """A tag of a repository and the creation time of the image it points to."""

    name: str
    created_at: datetime

    def __post_init__(self):
        # Registries report UTC; naive values are treated as such.
        if self.created_at.tzinfo is None:
            object.__setattr__(self, "created_at", self.created_at.replace(tzinfo=timezone.utc))

    def __str__(self) -> str:
        return f'"{self.name} <{self.created_at.strftime("%Y-%m-%d %H:%M:%S")}>"'


@dataclass
class RetentionGroup:
    """Tags of one repository resolved to the same tag rule.

    The rule is identified by its index in the repository rule's tag rules, never by its value.
    """

    rule_index: int
    rule: TagRule
    artifacts: list[TaggedArtifact] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.artifacts)


@dataclass(frozen=True)
class Decision:
    """Keep and purge lists of tag names, both ordered from newest to oldest."""

    keep: tuple[str, ...] = ()
    purge: tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.keep) + len(self.purge)

    @classmethod
    def merge(cls, decisions: list["Decision"]) -> "Decision":
        """Combines the decisions of several groups of the same repository."""
        keep = []
        purge = []
        for decision in decisions:
            keep.extend(decision.keep)
            purge.extend(decision.purge)
        return cls(keep=tuple(keep), purge=tuple(purge))


@dataclass
class RepositoryReport:
    """Outcome of the scan of a single repository."""

    repository: str
    rule_index: int | None = None
    decision: Decision = field(default_factory=Decision)
    skipped_tags: list[str] = field(default_factory=list)
    missing_metadata: list[str] = field(default_factory=list)
    protected_tags: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    delete_failures: list[DeleteFailureError] = field(default_factory=list)
    error: Exception | None = None


@dataclass
class PurgeReport:
    """Aggregated outcome of a purge run over the registry catalog."""

    dry_run: bool
    now: datetime
    repositories: list[RepositoryReport] = field(default_factory=list)

    @property
    def kept(self) -> int:
        return sum(len(r.decision.keep) for r in self.repositories)

    @property
    def purged(self) -> int:
        return sum(len(r.decision.purge) for r in self.repositories)

    @property
    def deleted(self) -> int:
        return sum(len(r.deleted) for r in self.repositories)

    @property
    def protected(self) -> int:
        return sum(len(r.protected_tags) for r in self.repositories)

    @property
    def delete_failures(self) -> list[DeleteFailureError]:
        failures = []
        for r in self.repositories:
            failures.extend(r.delete_failures)
        return failures

    @property
    def errors(self) -> list[Exception]:
        return [r.error for r in self.repositories if r.error is not None]

    @property
    def ok(self) -> bool:
        return not self.delete_failures and not self.errors
