"""Data models for pvect."""
from pvect.models.app import AppContainer, AppDefinition, AppNetwork, GuestStep
from pvect.models.container import (
    AcquiredResource,
    ContainerSpec,
    NetworkConfig,
    ProvisionContext,
    ResourceKind,
    RootVolume,
    StoragePool,
)

__all__ = [
    'AppContainer',
    'AppDefinition',
    'AppNetwork',
    'GuestStep',
    'AcquiredResource',
    'ContainerSpec',
    'NetworkConfig',
    'ProvisionContext',
    'ResourceKind',
    'RootVolume',
    'StoragePool',
]
