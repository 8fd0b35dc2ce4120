import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Annotated

import pydantic
from pydantic import BaseModel, Field, field_validator
from rich.markup import escape
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from registry_retention.retention.policy import PolicySet, RepoRule
from registry_retention.config.registry import Registry
from registry_retention.shared import RetentionYAMLModel
from registry_retention.const import CONFIG_FILENAMES, DEFAULT_KEEP_COUNT, DEFAULT_KEEP_DAYS, RegistryTypeEnum
from registry_retention.error import RetentionConfigNotFoundError, RetentionFileError
from registry_retention.registry_management.base import RegistryClient
from registry_retention.registry_management.distribution.api import DistributionClient
from registry_retention.registry_management.dockerhub.api import DockerhubClient
from registry_retention.retention import purge
from registry_retention.retention.models import PurgeReport

log = logging.getLogger(__name__)


class RetentionConfigDocument(RetentionYAMLModel):
    """Model representation of the top-level retention.yaml configuration document."""

    registry: Annotated[Registry | None, Field(default=None, description="Registry to apply the retention rules to.")]
    dry_run: Annotated[bool, Field(default=False, description="Compute and report decisions without deleting.")]
    keep_days: Annotated[
        int, Field(default=DEFAULT_KEEP_DAYS, description="Age threshold in days of the catch-all rule.")
    ]
    keep_count: Annotated[
        int, Field(default=DEFAULT_KEEP_COUNT, ge=0, description="Count floor of the catch-all rule.")
    ]
    rules: Annotated[
        tuple[RepoRule, ...],
        Field(default_factory=tuple, description="Repository rules evaluated in order before the catch-all rule."),
    ]

    @field_validator("rules", mode="after")
    @classmethod
    def check_duplicate_patterns(cls, rules: tuple[RepoRule, ...]) -> tuple[RepoRule, ...]:
        """Warns about repository rules that can never match because an identical pattern precedes them.

        :param rules: Repository rules in evaluation order.
        """
        seen_patterns = set()
        for index, rule in enumerate(rules):
            if rule.repo_regex in seen_patterns:
                log.warning(
                    f"Repository rule #{index + 1} '{escape(rule.repo_regex)}' is shadowed by an earlier identical rule"
                )
            seen_patterns.add(rule.repo_regex)
        return rules


class RetentionSettings(BaseModel):
    """Container for settings overriding the values of the retention.yaml document."""

    registry_url: Annotated[str | None, Field(default=None, description="Registry URL override.")]
    registry_type: Annotated[RegistryTypeEnum | None, Field(default=None, description="Registry type override.")]
    dry_run: Annotated[bool | None, Field(default=None, description="Dry-run override.")]
    keep_days: Annotated[int | None, Field(default=None, description="Catch-all age threshold override.")]
    keep_count: Annotated[int | None, Field(default=None, ge=0, description="Catch-all count floor override.")]
    repository_filter: Annotated[
        str | None, Field(default=None, description="Regex pattern limiting which repositories are scanned.")
    ]
    client_log_level: Annotated[
        int | None, Field(default=None, description="Log level of the registry client logger.")
    ]


class RetentionConfig:
    """Manager for the retention.yaml configuration file and operations against the configuration.

    :var yaml: The YAML parser used to read the retention.yaml file.
    :var config_file: Path to the retention.yaml configuration file, None if the configuration is built in memory.
    :var model: The RetentionConfigDocument model representation of the retention.yaml file.
    :var settings: Overrides applied on top of the document.
    """

    def __init__(self, config_file: str | Path | os.PathLike | None = None, settings: RetentionSettings | None = None):
        """Initializes the RetentionConfig with the given config file path.

        :param config_file: Path to the target retention.yaml configuration file. If None, an empty document is used
            and every value comes from the settings or the defaults.
        :param settings: Optional RetentionSettings overriding values of the document.

        :raises FileNotFoundError: If the config file does not exist.
        """
        if settings is None:
            settings = RetentionSettings()
        self.settings = settings

        self.yaml = YAML(typ="safe")
        self.config_file = None
        config_yaml = dict()
        if config_file is not None:
            self.config_file = Path(config_file).resolve()
            if not self.config_file.exists():
                raise FileNotFoundError(f"File '{self.config_file}' does not exist.")
            try:
                config_yaml = self.yaml.load(self.config_file) or dict()
            except YAMLError as e:
                raise RetentionFileError(f"Failed to parse YAML in {self.config_file}: {e}", self.config_file) from e

        try:
            self.model = RetentionConfigDocument(**config_yaml)
        except pydantic.ValidationError as e:
            log.error(f"Failed to load configuration from {str(self.config_file)}")
            raise e

    @classmethod
    def from_context(
        cls, context: str | Path | os.PathLike, settings: RetentionSettings | None = None
    ) -> "RetentionConfig":
        """Creates a RetentionConfig instance from a given context path.

        :param context: The path to the retention.yaml file or its parent directory.
        :param settings: Optional RetentionSettings overriding values of the document.

        :return: A RetentionConfig instance.

        :raises RetentionConfigNotFoundError: If no retention.yaml or retention.yml file is found in the context path.
        """
        context = Path(context).resolve()
        if context.is_file():
            return cls(context, settings)

        search_paths = [context / filename for filename in CONFIG_FILENAMES]
        for file in search_paths:
            if file.is_file():
                log.info(f"Loading retention config from [bold]{file}")
                return cls(file, settings)

        raise RetentionConfigNotFoundError(
            f"No retention.yaml file found in the context path '{context}'.", search_paths
        )

    @property
    def dry_run(self) -> bool:
        if self.settings.dry_run is not None:
            return self.settings.dry_run
        return self.model.dry_run

    @property
    def keep_days(self) -> int:
        if self.settings.keep_days is not None:
            return self.settings.keep_days
        return self.model.keep_days

    @property
    def keep_count(self) -> int:
        if self.settings.keep_count is not None:
            return self.settings.keep_count
        return self.model.keep_count

    @property
    def registry(self) -> Registry:
        """Returns the registry to operate on, with settings overrides applied.

        :raises ValueError: If no registry URL is configured.
        """
        registry = self.model.registry
        if self.settings.registry_url is not None:
            values = registry.model_dump() if registry is not None else {}
            values["url"] = self.settings.registry_url
            registry = Registry(**values)
        if registry is None:
            raise ValueError("No registry configured. Set 'registry.url' in retention.yaml or pass a registry URL.")
        if self.settings.registry_type is not None:
            registry = registry.model_copy(update={"type": self.settings.registry_type})
        return registry

    @property
    def policy_set(self) -> PolicySet:
        """Returns the policy set built from the configured rules and the catch-all defaults."""
        return PolicySet.build(list(self.model.rules), self.keep_days, self.keep_count)

    def create_client(self) -> RegistryClient:
        """Creates the registry client for the configured registry.

        :raises ValueError: If no registry is configured, or a Docker Hub URL has no namespace.
        """
        registry = self.registry
        if registry.type == RegistryTypeEnum.DOCKERHUB:
            if registry.namespace is None:
                raise ValueError(f"Docker Hub registry URL must include a namespace: {registry.url}")
            return DockerhubClient(
                namespace=registry.namespace,
                timeout=registry.timeout,
                log_level=self.settings.client_log_level,
            )
        return DistributionClient(
            registry.base_url,
            timeout=registry.timeout,
            verify_tls=registry.verify_tls,
            log_level=self.settings.client_log_level,
        )

    def purge(self, client: RegistryClient | None = None, now: datetime | None = None) -> PurgeReport:
        """Applies the retention rules to every repository of the registry.

        :param client: Registry client to use. Defaults to a client for the configured registry.
        :param now: Reference time for tag ages. Defaults to the current time.
        :return: The report of the run.
        """
        if client is None:
            with self.create_client() as client:
                return self.purge(client, now)
        return purge.run(
            client,
            dry_run=self.dry_run,
            default_keep_days=self.keep_days,
            default_keep_count=self.keep_count,
            policy_config=list(self.model.rules),
            now=now,
            repository_filter=self.settings.repository_filter,
        )
