"""Base classes for registry clients.

This module provides the abstract interface the retention engine uses to enumerate repositories and tags, read tag
creation times and delete tags, enabling consistent retention behavior across different registry providers.
"""

import abc
import logging
from datetime import datetime

from registry_retention.const import DEFAULT_NAMESPACE

log = logging.getLogger(__name__)


def full_repository_name(namespace: str, name: str) -> str:
    """Returns the name a repository is addressed by.

    Repositories of the default namespace are addressed by their bare name.

    :param namespace: Namespace of the repository.
    :param name: Name of the repository within the namespace.
    """
    if namespace == DEFAULT_NAMESPACE:
        return name
    return f"{namespace}/{name}"


def split_repository_name(repository: str) -> tuple[str, str]:
    """Splits a full repository name into its namespace and name.

    Names without a namespace belong to the default namespace.

    :param repository: Full repository name, e.g. ``team/app`` or ``nginx``.
    """
    namespace, sep, name = repository.partition("/")
    if not sep:
        return DEFAULT_NAMESPACE, repository
    return namespace, name


class RegistryClient(abc.ABC):
    """Abstract base class for registry clients.

    Subclasses implement registry-specific calls. Missing tag metadata is reported as None by
    :meth:`get_tag_creation_time`; any other failure is raised.

    :var log: Logger of this client. Its level is set once at construction from ``log_level``.
    """

    REGISTRY_NAME: str  # e.g., "Distribution", "Docker Hub"

    def __init__(self, log_level: int | str | None = None):
        self.log = logging.getLogger(f"{type(self).__module__}.{type(self).__name__}")
        if log_level is not None:
            self.log.setLevel(log_level)

    @abc.abstractmethod
    def list_repositories(self) -> dict[str, list[str]]:
        """Enumerate the registry catalog.

        :return: Mapping of namespace to the names of its repositories.
        """
        pass

    @abc.abstractmethod
    def list_tags(self, repository: str) -> list[str]:
        """List the tags of a repository.

        :param repository: Full repository name.
        :return: Tag names.
        """
        pass

    @abc.abstractmethod
    def get_tag_creation_time(self, repository: str, tag: str) -> datetime | None:
        """Retrieve the creation time of the image a tag points to.

        :param repository: Full repository name.
        :param tag: Tag name.
        :return: The creation time, or None if the manifest or its metadata is missing.
        """
        pass

    @abc.abstractmethod
    def delete_tag(self, repository: str, tag: str) -> None:
        """Delete a tag from a repository.

        :param repository: Full repository name.
        :param tag: Tag name.
        :raises Exception: If the registry rejects or fails the deletion.
        """
        pass

    def get_tag_digest(self, repository: str, tag: str) -> str | None:
        """Retrieve the digest of the manifest a tag points to, for registries that delete manifests by digest.

        Deleting a tag on such a registry removes every tag sharing its digest. Clients deleting tags by name return
        None, the default.

        :param repository: Full repository name.
        :param tag: Tag name.
        :return: The manifest digest, or None if tags are deleted by name.
        """
        return None

    def close(self) -> None:
        """Release the resources held by the client."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
