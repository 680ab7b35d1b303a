"""External system adapters behind capability interfaces."""

from tenantctl.providers.base import (
    AssetPublisher,
    CommandResult,
    IdentityChecker,
    ImageBuilder,
    ImageRegistry,
    InfrastructureProvider,
    RegistryAuthorization,
    SiteBuilder,
)

__all__ = [
    "AssetPublisher",
    "CommandResult",
    "IdentityChecker",
    "ImageBuilder",
    "ImageRegistry",
    "InfrastructureProvider",
    "RegistryAuthorization",
    "SiteBuilder",
]
