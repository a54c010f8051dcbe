from cadwire.autowire import constructor
from cadwire.container import Container
from cadwire.container_interface import IResolver, IServiceContainer
from cadwire.exceptions import (
    CadWireBackendUnavailableError,
    CadWireCircularDependencyError,
    CadWireConstructionError,
    CadWireContainerBuiltError,
    CadWireError,
    CadWireInvalidRegistrationError,
    CadWireNoPublicConstructorError,
    CadWireScopeDisposedError,
    CadWireServiceNotRegisteredError,
    CadWireUnresolvedDependencyError,
)
from cadwire.injector_container import ContainerStatistics, InjectorContainer, InjectorScope
from cadwire.locator import ServiceLocator, service_locator
from cadwire.registry import ProvisionKind, ServiceDescriptor
from cadwire.resolution import Resolution
from cadwire.scope import ServiceScope
from cadwire.settings import LocatorSettings
from cadwire.types import ContainerMode, Lifetime

__all__ = [
    "CadWireBackendUnavailableError",
    "CadWireCircularDependencyError",
    "CadWireConstructionError",
    "CadWireContainerBuiltError",
    "CadWireError",
    "CadWireInvalidRegistrationError",
    "CadWireNoPublicConstructorError",
    "CadWireScopeDisposedError",
    "CadWireServiceNotRegisteredError",
    "CadWireUnresolvedDependencyError",
    "Container",
    "ContainerMode",
    "ContainerStatistics",
    "IResolver",
    "IServiceContainer",
    "InjectorContainer",
    "InjectorScope",
    "Lifetime",
    "LocatorSettings",
    "ProvisionKind",
    "Resolution",
    "ServiceDescriptor",
    "ServiceLocator",
    "ServiceScope",
    "constructor",
    "service_locator",
]
