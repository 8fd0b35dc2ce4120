from registry_retention.registry_management.distribution.api import DistributionClient

__all__ = ["DistributionClient"]
