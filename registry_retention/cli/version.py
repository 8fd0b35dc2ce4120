import typer

from registry_retention import __version__
from registry_retention.log import stdout_console


def version():
    """Display the version of registry-retention"""
    stdout_console.print(f"registry-retention v{__version__}", highlight=False)
    raise typer.Exit()
