import typer

from registry_retention.cli import check, purge, version
from registry_retention.const import APP_NAME

app = typer.Typer(
    name=APP_NAME,
    no_args_is_help=True,
    rich_markup_mode="markdown",
    help="A tool for applying retention rules to container image registries",
)

# Since "purge" is a single command, we import the function directly rather than adding it as a typer subgroup
app.command(
    name="purge",
    help="Purge old tags from a registry (aliases: p)",
    rich_help_panel="Retention",
)(purge.purge)
app.command(name="p", hidden=True)(purge.purge)

app.command(
    name="check",
    help="Validate the retention config and resolve rules for a repository or tag",
    rich_help_panel="Retention",
)(check.check)

# Import the "version" subcommand
app.command(name="version", help="Show the registry-retention version")(version.version)
