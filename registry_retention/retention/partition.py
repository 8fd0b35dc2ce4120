import logging
from datetime import datetime, timedelta, timezone

from registry_retention.retention.models import Decision, RetentionGroup, TaggedArtifact

log = logging.getLogger(__name__)


def sort_newest_first(artifacts: list[TaggedArtifact]) -> list[TaggedArtifact]:
    """Sorts artifacts by creation time from newest to oldest. Ties keep their input order."""
    return sorted(artifacts, key=lambda a: a.created_at, reverse=True)


def age_in_days(artifact: TaggedArtifact, now: datetime) -> int:
    """Whole days elapsed between the creation of an artifact and now, rounded down."""
    return (now - artifact.created_at) // timedelta(days=1)


def partition(group: RetentionGroup, now: datetime) -> Decision:
    """Splits a retention group into tags to keep and tags to purge.

    Tags older than ``keep_days`` are purge candidates. If fewer than ``keep_count`` tags survive the age threshold,
    the newest purge candidates are kept until the floor is reached or no candidates are left.

    :param group: Tags sharing the same tag rule.
    :param now: Reference time for tag ages.
    :return: The keep and purge lists, each ordered from newest to oldest.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    keep_days = group.rule.keep_days
    keep_count = group.rule.keep_count

    keep = []
    purge = []
    for artifact in sort_newest_first(group.artifacts):
        if age_in_days(artifact, now) > keep_days:
            purge.append(artifact.name)
        else:
            keep.append(artifact.name)

    # Keep a minimal count of tags no matter how old they are.
    shortfall = keep_count - len(keep)
    if shortfall > 0 and purge:
        rescued = purge[:shortfall]
        log.debug(f"Keeping {len(rescued)} stale tag(s) to honor keep_count={keep_count}: {rescued}")
        keep.extend(rescued)
        purge = purge[shortfall:]

    return Decision(keep=tuple(keep), purge=tuple(purge))
