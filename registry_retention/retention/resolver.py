"""First match resolution of repository and tag rules."""

import logging
import re

from rich.markup import escape

from registry_retention.error import RetentionConfigError
from registry_retention.retention.policy import PolicySet, RepoRule, TagRule

log = logging.getLogger(__name__)


def _search(pattern: str, value: str, repository: str | None) -> bool:
    """Matches a pattern anywhere in a value.

    :raises RetentionConfigError: If the pattern does not compile.
    """
    try:
        return re.search(pattern, value) is not None
    except re.error as e:
        raise RetentionConfigError(f"Regular expression does not compile: {e}", pattern, repository) from e


def resolve_repo_rule_index(repo_name: str, policy_set: PolicySet) -> tuple[int, RepoRule] | None:
    """Finds the first repository rule matching a repository name.

    :param repo_name: Full name of the repository.
    :param policy_set: Rules in evaluation order.
    :return: The index and the rule that matched, or None if no rule matches.

    :raises RetentionConfigError: If a pattern evaluated before the first match does not compile.
    """
    for index, rule in enumerate(policy_set.rules):
        log.debug(f"{repo_name}: Repo regex: {escape(rule.repo_regex)}")
        if _search(rule.repo_regex, repo_name, repo_name):
            return index, rule
    return None


def resolve_repo_rule(repo_name: str, policy_set: PolicySet) -> RepoRule | None:
    """Finds the first repository rule matching a repository name.

    :param repo_name: Full name of the repository.
    :param policy_set: Rules in evaluation order.
    :return: The rule that matched, or None if no rule matches.

    :raises RetentionConfigError: If a pattern evaluated before the first match does not compile.
    """
    resolved = resolve_repo_rule_index(repo_name, policy_set)
    if resolved is None:
        return None
    return resolved[1]


def resolve_tag_rule_index(
    tag_name: str, repo_rule: RepoRule, repo_name: str | None = None
) -> tuple[int, TagRule] | None:
    """Finds the first tag rule of a repository rule matching a tag name.

    :param tag_name: Name of the tag.
    :param repo_rule: Repository rule owning the tag rules.
    :param repo_name: Repository name, used for error reporting.
    :return: The index and the tag rule that matched, or None if the tag should be left untouched.

    :raises RetentionConfigError: If a pattern evaluated before the first match does not compile.
    """
    for index, tag_rule in enumerate(repo_rule.tag_rules):
        if _search(tag_rule.tag_regex, tag_name, repo_name):
            return index, tag_rule
    return None


def resolve_tag_rule(tag_name: str, repo_rule: RepoRule, repo_name: str | None = None) -> TagRule | None:
    """Finds the first tag rule of a repository rule matching a tag name.

    :param tag_name: Name of the tag.
    :param repo_rule: Repository rule owning the tag rules.
    :param repo_name: Repository name, used for error reporting.
    :return: The tag rule that matched, or None if the tag should be left untouched.

    :raises RetentionConfigError: If a pattern evaluated before the first match does not compile.
    """
    resolved = resolve_tag_rule_index(tag_name, repo_rule, repo_name)
    if resolved is None:
        return None
    return resolved[1]
