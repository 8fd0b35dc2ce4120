import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.markup import escape
from rich.table import Table

from registry_retention.cli.common import load_config, with_verbosity_flags
from registry_retention.config import RetentionSettings
from registry_retention.error import RetentionConfigError
from registry_retention.log import stderr_console, stdout_console
from registry_retention.retention.policy import PolicySet
from registry_retention.retention.resolver import resolve_repo_rule_index, resolve_tag_rule_index
from registry_retention.util import auto_path

log = logging.getLogger(__name__)


def policy_table(policy_set: PolicySet) -> Table:
    """Builds a table of the rules of a policy set in evaluation order."""
    table = Table(title="Retention rules")
    table.add_column("#", justify="right")
    table.add_column("Repository regex")
    table.add_column("Tag regex")
    table.add_column("Keep days", justify="right")
    table.add_column("Keep count", justify="right")

    for index, repo_rule in enumerate(policy_set.rules):
        for tag_index, tag_rule in enumerate(repo_rule.tag_rules):
            table.add_row(
                str(index + 1) if tag_index == 0 else "",
                escape(repo_rule.repo_regex) if tag_index == 0 else "",
                escape(tag_rule.tag_regex),
                str(tag_rule.keep_days),
                str(tag_rule.keep_count),
                end_section=tag_index == len(repo_rule.tag_rules) - 1,
            )
    return table


@with_verbosity_flags
def check(
    repository: Annotated[
        Optional[str], typer.Argument(show_default=False, help="Repository name to resolve the rules for.")
    ] = None,
    tag: Annotated[Optional[str], typer.Argument(show_default=False, help="Tag name to resolve the rules for.")] = None,
    context: Annotated[
        Path,
        typer.Option(
            exists=True,
            file_okay=True,
            dir_okay=True,
            readable=True,
            resolve_path=True,
            help="Path to retention.yaml or its directory. Defaults to the current working directory where invoked.",
        ),
    ] = auto_path(),
    keep_days: Annotated[
        Optional[int], typer.Option(show_default=False, help="Age threshold in days of the catch-all rule.")
    ] = None,
    keep_count: Annotated[
        Optional[int], typer.Option(show_default=False, min=0, help="Minimum tag count of the catch-all rule.")
    ] = None,
) -> None:
    """Validates retention.yaml and shows the rules in evaluation order

    If a repository name is given, prints the rule the repository resolves to. If a tag name is given as well, prints
    the tag rule applying to the tag.
    """
    settings = RetentionSettings(keep_days=keep_days, keep_count=keep_count)
    config = load_config(context, settings)
    policy_set = config.policy_set

    stdout_console.print(policy_table(policy_set))
    if repository is None:
        return

    try:
        resolved = resolve_repo_rule_index(repository, policy_set)
        if resolved is None:
            stdout_console.print(f"No rule matches repository [bold]{escape(repository)}")
            return
        repo_index, repo_rule = resolved
        stdout_console.print(f"Repository [bold]{escape(repository)}[/bold] resolves to rule #{repo_index + 1}")
        if tag is None:
            return

        resolved_tag = resolve_tag_rule_index(tag, repo_rule, repository)
    except RetentionConfigError as e:
        stderr_console.print(f"❌ {escape(str(e))}", style="error")
        raise typer.Exit(code=1)

    if resolved_tag is None:
        stdout_console.print(f"Tag [bold]{escape(tag)}[/bold] matches no tag rule and is left untouched")
    else:
        tag_index, tag_rule = resolved_tag
        stdout_console.print(
            f"Tag [bold]{escape(tag)}[/bold] resolves to tag rule #{tag_index + 1}: {escape(str(tag_rule))}"
        )
