from registry_retention.services.registry_container import RegistryContainer

__all__ = ["RegistryContainer"]
