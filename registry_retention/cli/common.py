import functools
import inspect
import logging
from pathlib import Path
from typing import Annotated, Optional

import pydantic
import typer
from rich.markup import escape

from registry_retention.config import RetentionConfig, RetentionSettings
from registry_retention.error import RetentionConfigNotFoundError, RetentionFileError
from registry_retention.log import init_logging, stderr_console

log = logging.getLogger(__name__)


def with_verbosity_flags(fn):
    @functools.wraps(fn)
    def wrapper(
        *args,
        verbose: Annotated[Optional[bool], typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
        quiet: Annotated[
            Optional[bool], typer.Option("--quiet", "-q", help="Supress all output except errors")
        ] = False,
        **kwargs,
    ):
        if verbose and quiet:
            raise typer.BadParameter("Cannot set both --verbose and --quiet flags.")

        log_level: str | int = logging.INFO
        if verbose:
            log_level = logging.DEBUG
        elif quiet:
            log_level = logging.ERROR

        init_logging(log_level)
        return fn(*args, **kwargs)

    # Update signature with verbosity flags
    sig = inspect.signature(wrapper)
    params = list(sig.parameters.values())
    params.extend(
        [
            inspect.Parameter(
                "verbose",
                inspect.Parameter.KEYWORD_ONLY,
                default=False,
                annotation=Annotated[Optional[bool], typer.Option("--verbose", "-v", help="Enable debug logging")],
            ),
            inspect.Parameter(
                "quiet",
                inspect.Parameter.KEYWORD_ONLY,
                default=False,
                annotation=Annotated[
                    Optional[bool], typer.Option("--quiet", "-q", help="Supress all output except errors")
                ],
            ),
        ]
    )
    sig = sig.replace(parameters=params)
    wrapper.__signature__ = sig

    return wrapper


def load_config(context: Path, settings: RetentionSettings) -> RetentionConfig:
    """Loads the retention config from the context, or builds it from the settings alone.

    A configuration file is optional when a registry URL is given on the command line; the rules then reduce to the
    catch-all rule.

    :param context: Path to a retention.yaml file or the directory containing it.
    :param settings: Command line overrides.
    """
    try:
        return RetentionConfig.from_context(context, settings)
    except RetentionConfigNotFoundError as e:
        if settings.registry_url is None:
            stderr_console.print(f"❌ {escape(e.message)}", style="error")
            raise typer.Exit(code=1)
        log.info("No retention.yaml found, applying default retention to every repository")
        return RetentionConfig(settings=settings)
    except (RetentionFileError, pydantic.ValidationError, FileNotFoundError) as e:
        stderr_console.print(f"❌ Invalid retention config: {escape(str(e))}", style="error")
        raise typer.Exit(code=1)
