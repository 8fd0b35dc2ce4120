import logging
import re

from pydantic import BaseModel, ConfigDict
from rich.markup import escape

log = logging.getLogger(__name__)


class RetentionYAMLModel(BaseModel):
    """Base model for retention configuration models."""

    model_config = ConfigDict(extra="forbid", frozen=True)


def warn_if_invalid_pattern(pattern: str, field_name: str) -> str:
    """Logs a warning if a pattern does not compile, but keeps the pattern.

    Invalid patterns are reported again when a repository evaluation reaches them, so loading the configuration must
    not fail because of them.

    :param pattern: The regular expression to check.
    :param field_name: Name of the configuration field, used in the warning.
    :return: The unmodified pattern.
    """
    try:
        re.compile(pattern)
    except re.error as e:
        log.warning(f"Invalid regular expression in '{field_name}': '{escape(pattern)}' ({e})")
    return pattern
