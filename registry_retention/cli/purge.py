import logging
from enum import Enum
from pathlib import Path
from typing import Annotated, Optional

import requests
import typer
from rich.markup import escape
from rich.table import Table

from registry_retention.cli.common import load_config, with_verbosity_flags
from registry_retention.config import RetentionSettings
from registry_retention.const import RegistryTypeEnum
from registry_retention.error import RetentionConfigError, RetentionDeleteErrorGroup
from registry_retention.log import stderr_console, stdout_console
from registry_retention.retention.models import PurgeReport
from registry_retention.util import auto_path

log = logging.getLogger(__name__)


class RichHelpPanelEnum(str, Enum):
    """Enum for categorizing options into rich help panels."""

    REGISTRY = "Registry"
    RETENTION = "Retention"


def report_table(report: PurgeReport) -> Table:
    """Builds the summary table of a purge run."""
    table = Table(title="Dry-run summary" if report.dry_run else "Purge summary")
    table.add_column("Repository", no_wrap=True)
    table.add_column("Rule", justify="right")
    table.add_column("Kept", justify="right", style="keep")
    table.add_column("Purged", justify="right", style="purge")
    table.add_column("Skipped", justify="right", style="quiet")
    table.add_column("Status")

    for r in report.repositories:
        if r.error is not None:
            status = "[error]error"
        elif r.delete_failures:
            status = f"[error]{len(r.delete_failures)} failed"
        elif report.dry_run and r.decision.purge:
            status = "[quiet]dry-run"
        else:
            status = "[success]ok"
        table.add_row(
            escape(r.repository),
            str(r.rule_index + 1) if r.rule_index is not None else "-",
            str(len(r.decision.keep)),
            str(len(r.decision.purge)),
            str(len(r.skipped_tags) + len(r.missing_metadata) + len(r.protected_tags)),
            status,
        )
    return table


@with_verbosity_flags
def purge(
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
    registry: Annotated[
        Optional[str],
        typer.Option(
            show_default=False,
            envvar="RETENTION_REGISTRY",
            help="Registry URL to purge, overriding the config *(ex. registry.example.com)*.",
            rich_help_panel=RichHelpPanelEnum.REGISTRY,
        ),
    ] = None,
    registry_type: Annotated[
        Optional[RegistryTypeEnum],
        typer.Option(
            show_default=False,
            help="Registry API implementation, overriding the config.",
            rich_help_panel=RichHelpPanelEnum.REGISTRY,
        ),
    ] = None,
    quiet_client: Annotated[
        Optional[bool],
        typer.Option(
            "--quiet-client",
            help="Only log errors from the registry client.",
            rich_help_panel=RichHelpPanelEnum.REGISTRY,
        ),
    ] = False,
    keep_days: Annotated[
        Optional[int],
        typer.Option(
            show_default=False,
            envvar="RETENTION_KEEP_DAYS",
            help="Age threshold in days of the catch-all rule, overriding the config.",
            rich_help_panel=RichHelpPanelEnum.RETENTION,
        ),
    ] = None,
    keep_count: Annotated[
        Optional[int],
        typer.Option(
            show_default=False,
            min=0,
            envvar="RETENTION_KEEP_COUNT",
            help="Minimum tag count of the catch-all rule, overriding the config.",
            rich_help_panel=RichHelpPanelEnum.RETENTION,
        ),
    ] = None,
    repository: Annotated[
        Optional[str],
        typer.Option(
            show_default=False,
            help="A regex pattern limiting which repositories are scanned.",
            rich_help_panel=RichHelpPanelEnum.RETENTION,
        ),
    ] = None,
    dry_run: Annotated[
        Optional[bool],
        typer.Option(
            "--dry-run/--no-dry-run",
            show_default=False,
            envvar="RETENTION_DRY_RUN",
            help="Print what would be deleted without deleting, overriding the config.",
        ),
    ] = None,
) -> None:
    """Purges old tags from a registry according to retention rules

    Repositories are matched against the `rules` of `retention.yaml` in order, and the first matching rule applies.
    Within a rule, each tag is matched against the rule's tag rules in order. Tags matching no tag rule are left
    untouched. Tags older than `keep_days` are purged, but at least `keep_count` tags of every rule are kept.

    Repositories matching no configured rule fall back to the catch-all rule using `--keep-days` and `--keep-count`.
    """
    settings = RetentionSettings(
        registry_url=registry,
        registry_type=registry_type,
        dry_run=dry_run,
        keep_days=keep_days,
        keep_count=keep_count,
        repository_filter=repository,
        client_log_level=logging.ERROR if quiet_client else None,
    )
    config = load_config(context, settings)

    try:
        client = config.create_client()
    except (ValueError, requests.RequestException) as e:
        stderr_console.print(f"❌ {escape(str(e))}", style="error")
        raise typer.Exit(code=1)

    try:
        with client:
            report = config.purge(client)
    except RetentionConfigError as e:
        stderr_console.print(f"❌ {escape(str(e))}", style="error")
        raise typer.Exit(code=1)
    except requests.RequestException as e:
        stderr_console.print(f"❌ Failed to read the registry catalog: {escape(str(e))}", style="error")
        raise typer.Exit(code=1)

    stdout_console.print(report_table(report))

    if report.delete_failures:
        errors = RetentionDeleteErrorGroup("Tag deletions failed", report.delete_failures)
        stderr_console.print(escape(str(errors)))
    if not report.ok:
        stderr_console.print(
            f"❌ Purge completed with {len(report.errors)} repository error(s) and "
            f"{len(report.delete_failures)} failed deletion(s)",
            style="error",
        )
        raise typer.Exit(code=1)

    if report.dry_run:
        stderr_console.print(f"✅ Dry-run completed, {report.purged} tag(s) would be purged", style="success")
    else:
        stderr_console.print(f"✅ Purge completed, {report.deleted} tag(s) deleted", style="success")
    if report.protected:
        stderr_console.print(
            f"{report.protected} purged tag(s) left in place because their manifest is shared with a retained tag",
            style="purge",
        )
