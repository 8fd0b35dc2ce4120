"""Retention policy models.

A policy set is an ordered list of repository rules. Each repository rule owns an ordered list of tag rules carrying
the retention thresholds. Rules are evaluated in declared order and the first match wins, so the position of a rule
is its identity.
"""

import logging
from typing import Annotated, Any, Self

from pydantic import Field, field_validator, model_validator

from registry_retention.shared import RetentionYAMLModel, warn_if_invalid_pattern
from registry_retention.const import CATCH_ALL_PATTERN, DEFAULT_KEEP_COUNT, DEFAULT_KEEP_DAYS

log = logging.getLogger(__name__)

# Keys of the single tag rule form, mapped to their TagRule field names.
LEGACY_TAG_RULE_KEYS = {
    "tags_regex": "tag_regex",
    "tags_keep_days": "keep_days",
    "tags_keep_count": "keep_count",
}


class TagRule(RetentionYAMLModel):
    """Model representing the retention thresholds applied to tags matching a pattern."""

    tag_regex: Annotated[
        str,
        Field(
            default=CATCH_ALL_PATTERN,
            description="Regular expression matched anywhere in the tag name.",
            examples=["^v[0-9]+$", ".*"],
        ),
    ]
    keep_days: Annotated[
        int,
        Field(
            default=DEFAULT_KEEP_DAYS,
            description="Tags older than this many whole days are purged. Negative values make every tag stale.",
        ),
    ]
    keep_count: Annotated[
        int,
        Field(
            default=DEFAULT_KEEP_COUNT,
            ge=0,
            description="Minimum number of matching tags kept regardless of their age. Zero disables the floor.",
        ),
    ]

    @field_validator("tag_regex", mode="after")
    @classmethod
    def check_tag_regex(cls, tag_regex: str) -> str:
        return warn_if_invalid_pattern(tag_regex, "tag_regex")

    def __str__(self) -> str:
        return f"tag_regex='{self.tag_regex}' keep_days={self.keep_days} keep_count={self.keep_count}"


class RepoRule(RetentionYAMLModel):
    """Model representing a repository pattern and the tag rules applied to the repositories it matches."""

    repo_regex: Annotated[
        str,
        Field(
            description="Regular expression matched anywhere in the full repository name.",
            examples=["^library$", "^team/"],
        ),
    ]
    tag_rules: Annotated[
        tuple[TagRule, ...],
        Field(
            min_length=1,
            description="Tag rules evaluated in order; the first matching rule applies to a tag.",
        ),
    ]

    @model_validator(mode="before")
    @classmethod
    def collapse_single_tag_rule(cls, data: Any) -> Any:
        """Converts the single tag rule form into a one element tag_rules list.

        ``{repo_regex, tags_regex, tags_keep_days, tags_keep_count}`` becomes
        ``{repo_regex, tag_rules: [{tag_regex, keep_days, keep_count}]}``.
        """
        if not isinstance(data, dict):
            return data
        legacy = {key: data[key] for key in LEGACY_TAG_RULE_KEYS if key in data}
        if not legacy:
            return data
        if "tag_rules" in data:
            raise ValueError(
                f"Repository rule '{data.get('repo_regex')}' mixes 'tag_rules' with "
                f"{', '.join(repr(k) for k in legacy)}. Use one form or the other."
            )
        data = {key: value for key, value in data.items() if key not in LEGACY_TAG_RULE_KEYS}
        data["tag_rules"] = [{LEGACY_TAG_RULE_KEYS[key]: value for key, value in legacy.items()}]
        return data

    @field_validator("repo_regex", mode="after")
    @classmethod
    def check_repo_regex(cls, repo_regex: str) -> str:
        return warn_if_invalid_pattern(repo_regex, "repo_regex")


class PolicySet(RetentionYAMLModel):
    """Ordered, immutable collection of repository rules.

    Use :meth:`build` to create a policy set with the trailing catch-all rule applying the default thresholds.
    """

    rules: Annotated[tuple[RepoRule, ...], Field(default_factory=tuple)]

    @classmethod
    def build(
        cls,
        rules: list[RepoRule | dict] | None = None,
        default_keep_days: int = DEFAULT_KEEP_DAYS,
        default_keep_count: int = DEFAULT_KEEP_COUNT,
    ) -> Self:
        """Creates a policy set from configured rules and appends the catch-all rule.

        :param rules: Repository rules in evaluation order.
        :param default_keep_days: Age threshold of the catch-all rule.
        :param default_keep_count: Count floor of the catch-all rule.
        :return: The policy set.
        """
        catch_all = RepoRule(
            repo_regex=CATCH_ALL_PATTERN,
            tag_rules=[
                TagRule(tag_regex=CATCH_ALL_PATTERN, keep_days=default_keep_days, keep_count=default_keep_count)
            ],
        )
        return cls(rules=[*(rules or []), catch_all])
