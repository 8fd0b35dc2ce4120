import datetime

from registry_retention.registry_management.base import RegistryClient, split_repository_name

CONST_DATETIME_NOW = datetime.datetime(2025, 1, 1, 0, 0, 0, tzinfo=datetime.UTC)


def days_ago(days: float, now: datetime.datetime = CONST_DATETIME_NOW) -> datetime.datetime:
    """Return the time a number of days before now."""
    return now - datetime.timedelta(days=days)


class FakeRegistryClient(RegistryClient):
    """In-memory registry client.

    :var repositories: Mapping of full repository name to a mapping of tag name to creation time. A creation time of
        None simulates a tag with missing metadata.
    :var digests: Optional mapping of full repository name to a mapping of tag name to manifest digest. When set, the
        client deletes by digest like a distribution registry: deleting a tag removes every tag sharing its digest.
    :var failing_deletes: Tags, as ``repository:tag``, whose deletion raises.
    :var failing_repositories: Repositories whose tag listing raises.
    :var deleted: Tags deleted so far, as ``repository:tag``.
    :var closed: Whether the client was closed.
    """

    REGISTRY_NAME = "Fake"

    def __init__(
        self,
        repositories: dict[str, dict[str, datetime.datetime | None]],
        failing_deletes: list[str] | None = None,
        failing_repositories: list[str] | None = None,
        digests: dict[str, dict[str, str]] | None = None,
    ):
        super().__init__()
        self.repositories = repositories
        self.digests = digests or {}
        self.failing_deletes = failing_deletes or []
        self.failing_repositories = failing_repositories or []
        self.deleted = []
        self.delete_calls = []
        self.closed = False

    def list_repositories(self) -> dict[str, list[str]]:
        catalog = {}
        for repository in self.repositories:
            namespace, name = split_repository_name(repository)
            catalog.setdefault(namespace, []).append(name)
        return catalog

    def list_tags(self, repository: str) -> list[str]:
        if repository in self.failing_repositories:
            raise ConnectionError(f"Connection reset while listing {repository}")
        return list(self.repositories[repository])

    def get_tag_creation_time(self, repository: str, tag: str) -> datetime.datetime | None:
        return self.repositories[repository][tag]

    def get_tag_digest(self, repository: str, tag: str) -> str | None:
        return self.digests.get(repository, {}).get(tag)

    def delete_tag(self, repository: str, tag: str) -> None:
        if f"{repository}:{tag}" in self.failing_deletes:
            raise RuntimeError("405 Method Not Allowed")
        self.delete_calls.append(f"{repository}:{tag}")
        digest = self.get_tag_digest(repository, tag)
        if digest is None:
            removed = [tag]
        else:
            removed = [t for t, d in self.digests[repository].items() if d == digest]
        for name in removed:
            self.repositories[repository].pop(name, None)
            self.deleted.append(f"{repository}:{name}")

    def close(self) -> None:
        self.closed = True
