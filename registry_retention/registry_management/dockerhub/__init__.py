from registry_retention.registry_management.dockerhub.api import DockerhubClient

__all__ = ["DockerhubClient"]
