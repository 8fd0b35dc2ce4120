import logging

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

default_theme = Theme(
    {
        "info": "bright_blue",
        "error": "bright_red",
        "success": "green3",
        "quiet": "bright_black",
        "purge": "orange3",
        "keep": "green3",
    }
)

stdout_console = Console(theme=default_theme)
stderr_console = Console(stderr=True, theme=default_theme)

# Third-party loggers that log every registry request at DEBUG/INFO level.
HTTP_LOGGERS = ["urllib3", "requests", "python_on_whales"]


def init_logging(log_level: str | int = logging.INFO) -> None:
    """Initialize logging for the retention CLI

    Every registry request is logged by the HTTP stack, so its loggers are limited to warnings unless debugging.

    :param log_level: The log level to use, as a number or a level name
    """
    if isinstance(log_level, str):
        log_level = logging.getLevelNamesMapping()[log_level.upper()]
    debug = log_level <= logging.DEBUG

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=stderr_console,
                markup=True,
                rich_tracebacks=True,
                tracebacks_suppress=[typer],
                tracebacks_max_frames=20 if debug else 0,
                tracebacks_show_locals=debug,
            ),
        ],
    )
    for name in HTTP_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)
