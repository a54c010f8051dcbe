from collections.abc import Callable, Hashable
from enum import Enum
from typing import Any, Protocol, TypeAlias, runtime_checkable


class Lifetime(str, Enum):
    """Defines the lifetime of a service in the container."""

    TRANSIENT = "transient"
    """A new instance is created every time the service is requested."""

    SINGLETON = "singleton"
    """A single instance is created and shared for the lifetime of the container."""

    SCOPED = "scoped"
    """Instance is shared within a scope, different instances across scopes.

    Resolved directly on a root container (outside any scope) it behaves like
    ``TRANSIENT``.
    """


ServiceKey: TypeAlias = Hashable
"""A key identifying a service contract, usually a class or protocol."""

Factory: TypeAlias = Callable[[Any], Any]
"""A factory receives the current resolver and returns the service instance."""


@runtime_checkable
class SupportsClose(Protocol):
    """Resource-holding object released when its owning cache is disposed."""

    def close(self) -> None: ...


class ContainerMode(str, Enum):
    """Selects which container back-end the service locator builds."""

    AUTO = "auto"
    """Try the injector back-end and fall back to the reflection-based one."""

    PREFER_RICH = "prefer_rich"
    """Use the injector back-end."""

    PREFER_MINIMAL = "prefer_minimal"
    """Use the reflection-based back-end."""
