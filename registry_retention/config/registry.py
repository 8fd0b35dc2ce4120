from typing import Annotated

from pydantic import Field, field_validator

from registry_retention.shared import RetentionYAMLModel
from registry_retention.const import RegistryTypeEnum


class Registry(RetentionYAMLModel):
    """Model representing the registry a retention run is applied to."""

    url: Annotated[
        str,
        Field(
            description="Base URL of a distribution registry, or docker.io/<namespace> for Docker Hub.",
            examples=["https://registry.example.com", "localhost:5000", "docker.io/posit"],
        ),
    ]
    type: Annotated[
        RegistryTypeEnum,
        Field(default=RegistryTypeEnum.DISTRIBUTION, description="Registry API implementation to use."),
    ]
    timeout: Annotated[
        float, Field(default=30.0, gt=0, description="Timeout in seconds applied to each registry request.")
    ]
    verify_tls: Annotated[bool, Field(default=True, description="Verify TLS certificates of the registry.")]

    @field_validator("url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, url: str) -> str:
        return url.rstrip("/")

    @property
    def base_url(self) -> str:
        """Get the base URL for the registry, including the scheme.

        :return: The registry URL, prefixed with https:// when no scheme is given.
        """
        if "://" in self.url:
            return self.url
        return f"https://{self.url}"

    @property
    def namespace(self) -> str | None:
        """Get the namespace part of a docker.io/<namespace> URL."""
        _, _, path = self.url.split("://", 1)[-1].partition("/")
        return path.split("/")[0] or None
