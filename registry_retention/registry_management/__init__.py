from registry_retention.registry_management.base import RegistryClient, full_repository_name, split_repository_name

__all__ = [
    "RegistryClient",
    "full_repository_name",
    "split_repository_name",
]
