import os
from datetime import datetime, timedelta
from urllib.parse import urljoin

import requests

from registry_retention.registry_management.base import RegistryClient, split_repository_name
from registry_retention.util import parse_timestamp


class DockerhubClient(RegistryClient):
    REGISTRY_NAME = "Docker Hub"
    BASE_URL = "https://hub.docker.com/v2"
    ENDPOINTS = {
        "auth": "/auth/token",
        "repositories": "/namespaces/{namespace}/repositories",
        "repository": "/namespaces/{namespace}/repositories/{repository}",
        "tags": "/namespaces/{namespace}/repositories/{repository}/tags",
        "tag": "/namespaces/{namespace}/repositories/{repository}/tags/{tag}",
    }

    def __init__(
        self,
        namespace: str | None = None,
        identifier: str | None = None,
        secret: str | None = None,
        timeout: float = 30.0,
        log_level: int | str | None = None,
    ):
        super().__init__(log_level=log_level)
        self.identifier = identifier or os.getenv("DOCKERHUB_USERNAME")
        if not self.identifier:
            raise ValueError(
                "Docker Hub login identifier (username or organization) must be provided as an argument or using the "
                "environment variable 'DOCKERHUB_USERNAME'."
            )
        self.secret = secret or os.getenv("DOCKERHUB_PASSWORD")
        if not self.secret:
            raise ValueError(
                "Docker Hub login secret (password, PAT, or OAT) must be provided as an argument or using the "
                "environment variable 'DOCKERHUB_PASSWORD'."
            )
        self.namespace = namespace or self.identifier
        self.timeout = timeout

        self.token_expiration = datetime.now() + timedelta(minutes=10)
        self.access_token = self.create_token(self.identifier, self.secret, self.timeout)

    @classmethod
    def endpoint(cls, endpoint_name: str, **kwargs) -> str:
        endpoint_template = cls.ENDPOINTS.get(endpoint_name)
        if endpoint_template is None:
            raise ValueError(f"Endpoint '{endpoint_name}' not found.")
        return cls.BASE_URL + endpoint_template.format(**kwargs)

    @classmethod
    def create_token(cls, identifier: str, secret: str, timeout: float = 30.0) -> str:
        target = cls.endpoint("auth")
        params = {"identifier": identifier, "secret": secret}

        response = requests.post(target, json=params, timeout=timeout)
        response.raise_for_status()

        access_token = response.json().get("access_token")
        if access_token is None:
            raise Exception("Failed to obtain access token from Docker Hub")

        return access_token

    def _get_headers(self) -> dict:
        if datetime.now() >= self.token_expiration:
            self.token_expiration = datetime.now() + timedelta(minutes=10)
            self.access_token = self.create_token(self.identifier, self.secret, self.timeout)
        return {"Authorization": f"Bearer {self.access_token}"}

    def _get_all_pages(self, target: str) -> list[dict]:
        self.log.debug(f"GET {target}")
        response = requests.get(target, headers=self._get_headers(), params={"page_size": 100}, timeout=self.timeout)
        response.raise_for_status()
        response_data = response.json()
        results = response_data["results"]
        while response_data.get("next"):
            self.log.debug(f"GET {response_data['next']}")
            response = requests.get(
                urljoin(self.BASE_URL, response_data["next"]), headers=self._get_headers(), timeout=self.timeout
            )
            response.raise_for_status()
            response_data = response.json()
            results.extend(response_data["results"])

        return results

    def get_repositories(self, namespace: str | None = None) -> list[dict]:
        if namespace is None:
            namespace = self.namespace
        return self._get_all_pages(self.endpoint("repositories", namespace=namespace))

    def get_tags(self, namespace: str | None = None, repository: str | None = None) -> list[dict]:
        if namespace is None:
            namespace = self.namespace
        if repository is None:
            raise ValueError("Repository name must be provided.")
        return self._get_all_pages(self.endpoint("tags", namespace=namespace, repository=repository))

    def get_tag(
        self, namespace: str | None = None, repository: str | None = None, tag: str | None = None
    ) -> dict | None:
        if namespace is None:
            namespace = self.namespace
        if repository is None:
            raise ValueError("Repository name must be provided.")
        if tag is None:
            raise ValueError("Tag name must be provided.")
        target = self.endpoint("tag", namespace=namespace, repository=repository, tag=tag)

        self.log.debug(f"GET {target}")
        response = requests.get(target, headers=self._get_headers(), timeout=self.timeout)
        if response.status_code == 404:
            return None
        response.raise_for_status()

        return response.json()

    def _delete_tag(self, namespace: str | None = None, repository: str | None = None, tag: str | None = None) -> None:
        if namespace is None:
            namespace = self.namespace
        if repository is None:
            raise ValueError("Repository name must be provided.")
        if tag is None:
            raise ValueError("Tag name must be provided.")
        target = self.endpoint("tag", namespace=namespace, repository=repository, tag=tag)

        self.log.debug(f"DELETE {target}")
        response = requests.delete(target, headers=self._get_headers(), timeout=self.timeout)
        response.raise_for_status()

    def list_repositories(self) -> dict[str, list[str]]:
        return {self.namespace: [r["name"] for r in self.get_repositories(self.namespace)]}

    def list_tags(self, repository: str) -> list[str]:
        namespace, name = split_repository_name(repository)
        return [t["name"] for t in self.get_tags(namespace, name)]

    def get_tag_creation_time(self, repository: str, tag: str) -> datetime | None:
        namespace, name = split_repository_name(repository)
        tag_data = self.get_tag(namespace, name, tag)
        if tag_data is None:
            self.log.warning(f"{repository}: Tag {tag} not found")
            return None
        return parse_timestamp(tag_data.get("tag_last_pushed") or tag_data.get("last_updated"))

    def delete_tag(self, repository: str, tag: str) -> None:
        namespace, name = split_repository_name(repository)
        self._delete_tag(namespace, name, tag)
