import json
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from registry_retention.util import parse_timestamp


class DistributionCatalog(BaseModel):
    """Represents a page of the /v2/_catalog response."""

    repositories: list[str] = Field(default_factory=list)


class DistributionTagList(BaseModel):
    """Represents the /v2/<name>/tags/list response."""

    name: str
    # The registry returns null for repositories whose tags were all deleted.
    tags: list[str] | None = None


class DistributionManifestHistory(BaseModel):
    """Represents a history entry of a schema 1 image manifest."""

    model_config = ConfigDict(populate_by_name=True)

    v1_compatibility: str = Field(alias="v1Compatibility")

    @property
    def created(self) -> datetime | None:
        return parse_timestamp(json.loads(self.v1_compatibility).get("created"))


class DistributionPlatform(BaseModel):
    """Represents the platform of a manifest referenced by an image index."""

    architecture: str
    os: str
    variant: str | None = None

    @property
    def is_unknown(self) -> bool:
        """Whether the platform marks an attestation manifest rather than an image."""
        return self.architecture == "unknown" and self.os == "unknown"


class DistributionDescriptor(BaseModel):
    """Represents a content descriptor referenced by a manifest."""

    model_config = ConfigDict(populate_by_name=True)

    media_type: str | None = Field(default=None, alias="mediaType")
    digest: str
    size: int | None = None
    platform: DistributionPlatform | None = None


class DistributionManifest(BaseModel):
    """Represents an image manifest. Only the fields needed to locate the image creation time are kept."""

    model_config = ConfigDict(populate_by_name=True)

    schema_version: int = Field(alias="schemaVersion")
    media_type: str | None = Field(default=None, alias="mediaType")
    history: list[DistributionManifestHistory] = Field(default_factory=list)
    config: DistributionDescriptor | None = None
    manifests: list[DistributionDescriptor] | None = None

    @property
    def is_index(self) -> bool:
        """Whether the manifest is a manifest list or an OCI image index."""
        return self.manifests is not None

    def image_manifests(self) -> list[DistributionDescriptor]:
        """Descriptors of the image manifests of an index, attestation manifests excluded."""
        return [m for m in self.manifests or [] if m.platform is None or not m.platform.is_unknown]


class DistributionImageConfig(BaseModel):
    """Represents an image configuration blob."""

    created: str | None = None

    @property
    def created_at(self) -> datetime | None:
        return parse_timestamp(self.created)
