from enum import Enum

APP_NAME = "registry-retention"

# Repositories in this namespace are addressed by their bare name.
DEFAULT_NAMESPACE = "library"

DEFAULT_KEEP_DAYS = 90
DEFAULT_KEEP_COUNT = 5

CATCH_ALL_PATTERN = ".*"

CONFIG_FILENAMES = ["retention.yaml", "retention.yml"]


class RegistryTypeEnum(str, Enum):
    """Enum for supported registry client implementations."""

    DISTRIBUTION = "distribution"
    DOCKERHUB = "dockerhub"
