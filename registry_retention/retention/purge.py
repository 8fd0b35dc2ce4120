"""Purge orchestration.

Scans every repository of a registry catalog, resolves the retention rules applying to each repository and tag,
partitions the tags into keep and purge lists and deletes the purged tags unless running in dry-run mode.

Every repository is processed independently. Errors are logged and recorded in the run report; none of them aborts
the scan of the remaining repositories.
"""

import logging
import re
from datetime import datetime, timezone

from rich.markup import escape

from registry_retention.error import DeleteFailureError, MetadataUnavailableError, RetentionConfigError
from registry_retention.registry_management.base import RegistryClient, full_repository_name
from registry_retention.retention.models import (
    Decision,
    PurgeReport,
    RepositoryReport,
    RetentionGroup,
    TaggedArtifact,
)
from registry_retention.retention.partition import partition
from registry_retention.retention.policy import PolicySet, RepoRule
from registry_retention.retention.resolver import resolve_repo_rule_index, resolve_tag_rule_index

log = logging.getLogger(__name__)


class PurgeOrchestrator:
    """Drives a purge run over the catalog of a registry.

    :var client: Registry client used to list, inspect and delete tags.
    :var policy_set: Rules applied to repositories, catch-all included.
    :var dry_run: If True, decisions are computed and reported but no tag is deleted.
    :var now: Reference time for tag ages, fixed for the whole run.
    """

    def __init__(
        self,
        client: RegistryClient,
        policy_set: PolicySet,
        dry_run: bool = False,
        now: datetime | None = None,
        repository_filter: str | None = None,
    ):
        """Initializes the orchestrator.

        :param client: Registry client used to list, inspect and delete tags.
        :param policy_set: Rules applied to repositories.
        :param dry_run: If True, no tag is deleted.
        :param now: Reference time for tag ages. Defaults to the current time.
        :param repository_filter: Optional regex pattern; repositories not matching it are not scanned.

        :raises RetentionConfigError: If the repository filter does not compile.
        """
        self.client = client
        self.policy_set = policy_set
        self.dry_run = dry_run
        if now is None:
            now = datetime.now(timezone.utc)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        self.now = now

        self.repository_filter = None
        if repository_filter is not None:
            try:
                self.repository_filter = re.compile(repository_filter)
            except re.error as e:
                raise RetentionConfigError(f"Invalid repository filter: {e}", repository_filter) from e

    def run(self) -> PurgeReport:
        """Scans every repository of the registry catalog.

        :return: The report of the run.
        """
        report = PurgeReport(dry_run=self.dry_run, now=self.now)
        if self.dry_run:
            log.warning("Dry-run mode enabled.")

        log.info(f"Scanning {self.client.REGISTRY_NAME} registry for repositories, tags and their creation dates...")
        catalog = self.client.list_repositories()
        for namespace, repositories in catalog.items():
            for name in repositories:
                repository = full_repository_name(namespace, name)
                if self.repository_filter is not None and not self.repository_filter.search(repository):
                    log.debug(f"{repository}: Excluded by repository filter")
                    continue
                report.repositories.append(self.process_repository(repository))

        log.info(
            f"Done. {report.kept} tag(s) kept, {report.purged} tag(s) "
            f"{'to purge' if self.dry_run else 'purged'} across {len(report.repositories)} repositories."
        )
        return report

    def process_repository(self, repository: str) -> RepositoryReport:
        """Analyzes a repository and applies the resulting decision.

        :param repository: Full repository name.
        :return: The report of the repository.
        """
        log.info(f"{repository}: Processing repo {repository}")
        report = RepositoryReport(repository=repository)
        try:
            self.analyze_repository(report)
        except RetentionConfigError as e:
            log.warning(f"{repository}: Skipping repo because a regex does not compile: {escape(str(e))}")
            report.error = e
            report.decision = Decision()
            return report
        except Exception as e:
            log.error(f"{repository}: Failed to scan repo: {escape(str(e))}")
            report.error = e
            report.decision = Decision()
            return report

        self.apply(report)
        return report

    def analyze_repository(self, report: RepositoryReport) -> None:
        """Resolves the rules of a repository and computes its decision.

        :param report: Report of the repository, updated in place.

        :raises RetentionConfigError: If a rule evaluated for the repository or one of its tags does not compile.
        """
        repository = report.repository
        resolved = resolve_repo_rule_index(repository, self.policy_set)
        if resolved is None:
            log.info(f"{repository}: No match found for repo, skipping it")
            return
        report.rule_index, repo_rule = resolved

        tags = self.client.list_tags(repository)
        log.info(f"{repository}: Scanning {len(tags)} tags...")

        groups = self.group_tags(report, repo_rule, tags)
        decisions = []
        for group in groups:
            decision = partition(group, self.now)
            log.debug(f"{repository}: Tag rule #{group.rule_index + 1} ({escape(str(group.rule))}): {decision}")
            decisions.append(decision)
        report.decision = Decision.merge(decisions)

        all_tags = [str(a) for group in groups for a in group.artifacts]
        log.info(f"{repository}: All {len(all_tags)}: {all_tags}")
        log.info(f"{repository}: Keep {len(report.decision.keep)}: {list(report.decision.keep)}")
        log.info(f"{repository}: Purge {len(report.decision.purge)}: {list(report.decision.purge)}")

    def group_tags(self, report: RepositoryReport, repo_rule: RepoRule, tags: list[str]) -> list[RetentionGroup]:
        """Resolves the tag rule of every tag and groups the tags by rule.

        Tags matching no rule, and tags whose creation time cannot be retrieved, are recorded in the report and left
        out of every group.

        :param report: Report of the repository, updated in place.
        :param repo_rule: Repository rule resolved for the repository.
        :param tags: Tag names of the repository.
        :return: The groups, ordered by tag rule.
        """
        repository = report.repository
        groups: dict[int, RetentionGroup] = {}
        for tag in tags:
            resolved = resolve_tag_rule_index(tag, repo_rule, repository)
            if resolved is None:
                log.debug(f"{repository}: Skipping tag {tag} because it doesn't match any tag rule")
                report.skipped_tags.append(tag)
                continue
            rule_index, tag_rule = resolved

            created_at = self.fetch_creation_time(repository, tag)
            if created_at is None:
                report.missing_metadata.append(tag)
                continue

            group = groups.setdefault(rule_index, RetentionGroup(rule_index=rule_index, rule=tag_rule))
            group.artifacts.append(TaggedArtifact(name=tag, created_at=created_at))

        return [groups[index] for index in sorted(groups)]

    def fetch_creation_time(self, repository: str, tag: str) -> datetime | None:
        """Retrieves the creation time of a tag, or None if it is unavailable."""
        try:
            created_at = self.client.get_tag_creation_time(repository, tag)
        except MetadataUnavailableError as e:
            log.warning(f"{repository}: Missing metadata for tag {tag}: {e}")
            return None
        except Exception as e:
            log.warning(f"{repository}: Failed to retrieve metadata for tag {tag}: {e}")
            return None
        if created_at is None:
            log.warning(f"{repository}: Missing creation time for tag {tag}, skipping it")
        return created_at

    def protected_digests(self, report: RepositoryReport) -> dict[str, str]:
        """Collects the manifest digests of the tags a deletion must leave in place.

        Registries deleting manifests by digest remove every tag sharing the digest, so a purged tag sharing its
        digest with a kept, skipped or undated tag cannot be deleted.

        :param report: Report of the repository.
        :return: Mapping of digest to one of the tags pointing to it.
        """
        repository = report.repository
        protected = {}
        for tag in [*report.decision.keep, *report.skipped_tags, *report.missing_metadata]:
            try:
                digest = self.client.get_tag_digest(repository, tag)
            except Exception as e:
                log.warning(f"{repository}: Failed to retrieve the digest of tag {tag}: {escape(str(e))}")
                continue
            if digest is not None:
                protected.setdefault(digest, tag)
        return protected

    def apply(self, report: RepositoryReport) -> None:
        """Deletes the purged tags of a repository, or reports them in dry-run mode.

        Purged tags sharing their manifest with a tag left in place are not deleted and are recorded as protected.

        :param report: Report of the repository, updated in place.
        """
        repository = report.repository
        purge_tags = report.decision.purge
        if not purge_tags:
            return

        log.info(f"{repository}: Purging {len(purge_tags)} tags...{' skipped' if self.dry_run else ''}")
        protected = self.protected_digests(report)
        deleted_digests = set()
        for tag in purge_tags:
            try:
                digest = self.client.get_tag_digest(repository, tag)
            except Exception as e:
                if self.dry_run:
                    log.warning(f"{repository}: Failed to retrieve the digest of tag {tag}: {escape(str(e))}")
                else:
                    self.record_delete_failure(report, tag, e)
                continue

            if digest is not None and digest in protected:
                log.warning(
                    f"{repository}: Not purging tag {tag}, its manifest {digest} is also tagged {protected[digest]}"
                )
                report.protected_tags.append(tag)
                continue

            if self.dry_run:
                log.info(f"{repository}: Would purge tag {tag}")
                continue

            if digest is not None and digest in deleted_digests:
                log.debug(f"{repository}: Tag {tag} was deleted along with manifest {digest}")
                report.deleted.append(tag)
                continue

            try:
                self.client.delete_tag(repository, tag)
            except Exception as e:
                self.record_delete_failure(report, tag, e)
                continue
            if digest is not None:
                deleted_digests.add(digest)
            report.deleted.append(tag)

    @staticmethod
    def record_delete_failure(report: RepositoryReport, tag: str, cause: Exception) -> None:
        failure = DeleteFailureError(report.repository, tag, cause)
        log.error(escape(str(failure)))
        report.delete_failures.append(failure)


def run(
    client: RegistryClient,
    dry_run: bool,
    default_keep_days: int,
    default_keep_count: int,
    policy_config: list[RepoRule | dict] | None = None,
    now: datetime | None = None,
    repository_filter: str | None = None,
) -> PurgeReport:
    """Purges old tags from every repository of a registry.

    :param client: Registry client used to list, inspect and delete tags.
    :param dry_run: If True, decisions are computed and reported but no tag is deleted.
    :param default_keep_days: Age threshold of the catch-all rule.
    :param default_keep_count: Count floor of the catch-all rule.
    :param policy_config: Repository rules evaluated in order before the catch-all rule.
    :param now: Reference time for tag ages. Defaults to the current time.
    :param repository_filter: Optional regex pattern; repositories not matching it are not scanned.
    :return: The report of the run.
    """
    policy_set = PolicySet.build(policy_config, default_keep_days, default_keep_count)
    orchestrator = PurgeOrchestrator(
        client, policy_set, dry_run=dry_run, now=now, repository_filter=repository_filter
    )
    return orchestrator.run()
