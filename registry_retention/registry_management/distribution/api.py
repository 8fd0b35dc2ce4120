import os
from datetime import datetime
from urllib.parse import quote, urljoin

import pydantic
import requests

from registry_retention.error import MetadataUnavailableError
from registry_retention.registry_management.base import RegistryClient, split_repository_name
from registry_retention.registry_management.distribution.models import (
    DistributionCatalog,
    DistributionImageConfig,
    DistributionManifest,
    DistributionTagList,
)

MEDIA_TYPE_MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"
MEDIA_TYPE_MANIFEST_V1 = "application/vnd.docker.distribution.manifest.v1+prettyjws"
MEDIA_TYPE_OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
MEDIA_TYPE_MANIFEST_LIST = "application/vnd.docker.distribution.manifest.list.v2+json"
MEDIA_TYPE_OCI_INDEX = "application/vnd.oci.image.index.v1+json"

MANIFEST_MEDIA_TYPES = [
    MEDIA_TYPE_OCI_INDEX,
    MEDIA_TYPE_MANIFEST_LIST,
    MEDIA_TYPE_OCI_MANIFEST,
    MEDIA_TYPE_MANIFEST_V2,
    MEDIA_TYPE_MANIFEST_V1,
]


class DistributionClient(RegistryClient):
    """Client for registries implementing the Docker Registry HTTP API v2."""

    REGISTRY_NAME = "Distribution"
    ENDPOINTS = {
        "catalog": "/v2/_catalog",
        "tags": "/v2/{repository}/tags/list",
        "manifest": "/v2/{repository}/manifests/{reference}",
        "blob": "/v2/{repository}/blobs/{digest}",
    }

    def __init__(
        self,
        base_url: str,
        username: str | None = None,
        password: str | None = None,
        timeout: float = 30.0,
        verify_tls: bool = True,
        page_size: int = 100,
        log_level: int | str | None = None,
        session: requests.Session | None = None,
    ):
        super().__init__(log_level=log_level)
        if "://" not in base_url:
            base_url = f"https://{base_url}"
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.page_size = page_size

        # Sessions passed in are owned, and closed, by the caller.
        self._owns_session = session is None
        self.session = session or requests.Session()
        self.session.verify = verify_tls
        username = username or os.getenv("REGISTRY_USERNAME")
        password = password or os.getenv("REGISTRY_PASSWORD")
        if username and password:
            self.session.auth = (username, password)

    def endpoint(self, endpoint_name: str, **kwargs) -> str:
        endpoint_template = self.ENDPOINTS.get(endpoint_name)
        if endpoint_template is None:
            raise ValueError(f"Endpoint '{endpoint_name}' not found.")
        # Repository names keep their slashes in the path, tags and digests are quoted.
        kwargs = {k: quote(v, safe="/" if k == "repository" else ":") for k, v in kwargs.items()}
        return self.base_url + endpoint_template.format(**kwargs)

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        self.log.debug(f"{method} {url}")
        return self.session.request(method, url, timeout=self.timeout, **kwargs)

    def _get_paginated(self, url: str, params: dict | None = None) -> list[dict]:
        """Follows RFC 5988 Link headers until the last page."""
        pages = []
        while url:
            response = self._request("GET", url, params=params)
            response.raise_for_status()
            pages.append(response.json())
            next_link = response.links.get("next", {}).get("url")
            url = urljoin(self.base_url + "/", next_link) if next_link else None
            # The next link carries its own query string.
            params = None
        return pages

    def list_repositories(self) -> dict[str, list[str]]:
        catalog = {}
        pages = self._get_paginated(self.endpoint("catalog"), params={"n": self.page_size})
        for page in pages:
            for repository in DistributionCatalog.model_validate(page).repositories:
                namespace, name = split_repository_name(repository)
                catalog.setdefault(namespace, []).append(name)
        self.log.debug(f"Catalog has {sum(len(v) for v in catalog.values())} repositories")
        return catalog

    def list_tags(self, repository: str) -> list[str]:
        tags = []
        pages = self._get_paginated(self.endpoint("tags", repository=repository), params={"n": self.page_size})
        for page in pages:
            tags.extend(DistributionTagList.model_validate(page).tags or [])
        return tags

    def get_manifest(self, repository: str, reference: str) -> DistributionManifest | None:
        """Get the image manifest of a tag or digest, or None if the registry does not know it."""
        response = self._request(
            "GET",
            self.endpoint("manifest", repository=repository, reference=reference),
            headers={"Accept": ", ".join(MANIFEST_MEDIA_TYPES)},
        )
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return DistributionManifest.model_validate(response.json())

    def get_image_config(self, repository: str, digest: str) -> DistributionImageConfig:
        response = self._request("GET", self.endpoint("blob", repository=repository, digest=digest))
        response.raise_for_status()
        return DistributionImageConfig.model_validate(response.json())

    def get_index_image_manifest(
        self, repository: str, tag: str, index: DistributionManifest
    ) -> DistributionManifest | None:
        """Get the first image manifest of an image index or manifest list.

        Attestation manifests, whose platform is unknown/unknown, are not images and are passed over.

        :param repository: Full repository name.
        :param tag: Tag pointing to the index, used in log messages.
        :param index: The image index.
        :return: The image manifest, or None if the index references no image.
        """
        image_manifests = index.image_manifests()
        if not image_manifests:
            self.log.warning(f"{repository}: Index of tag {tag} references no image manifest")
            return None
        manifest = self.get_manifest(repository, image_manifests[0].digest)
        if manifest is None:
            self.log.warning(f"{repository}: Missing image manifest {image_manifests[0].digest} of tag {tag}")
        return manifest

    def get_tag_creation_time(self, repository: str, tag: str) -> datetime | None:
        try:
            manifest = self.get_manifest(repository, tag)
            if manifest is None:
                self.log.warning(f"{repository}: Missing manifest for tag {tag}")
                return None
            if manifest.schema_version == 1:
                if not manifest.history:
                    self.log.warning(f"{repository}: Manifest v1 of tag {tag} has no history")
                    return None
                return manifest.history[0].created
            if manifest.is_index:
                manifest = self.get_index_image_manifest(repository, tag, manifest)
                if manifest is None:
                    return None
            if manifest.config is None:
                self.log.warning(f"{repository}: Manifest of tag {tag} has no image config")
                return None
            return self.get_image_config(repository, manifest.config.digest).created_at
        except (pydantic.ValidationError, ValueError) as e:
            self.log.warning(f"{repository}: Unreadable metadata for tag {tag}: {e}")
            return None

    def get_digest(self, repository: str, tag: str) -> str:
        """Get the content digest of the manifest a tag points to.

        :raises MetadataUnavailableError: If the registry does not return a digest.
        """
        response = self._request(
            "HEAD",
            self.endpoint("manifest", repository=repository, reference=tag),
            headers={"Accept": ", ".join(MANIFEST_MEDIA_TYPES)},
        )
        response.raise_for_status()
        digest = response.headers.get("Docker-Content-Digest")
        if not digest:
            raise MetadataUnavailableError(f"No digest returned for {repository}:{tag}", repository, tag)
        return digest

    def get_tag_digest(self, repository: str, tag: str) -> str | None:
        return self.get_digest(repository, tag)

    def delete_tag(self, repository: str, tag: str) -> None:
        # Deleting by digest also removes every other tag pointing to the same manifest.
        digest = self.get_digest(repository, tag)
        response = self._request("DELETE", self.endpoint("manifest", repository=repository, reference=digest))
        response.raise_for_status()
        self.log.debug(f"{repository}: Deleted tag {tag} ({digest})")

    def close(self) -> None:
        if self._owns_session:
            self.session.close()
