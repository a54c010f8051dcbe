from __future__ import annotations

from typing import Any


def _describe(value: Any) -> str:
    return getattr(value, "__qualname__", None) or repr(value)


class CadWireError(Exception):
    """Represent a base class for all cadwire-specific failures.

    Catch this type when you want to handle any cadwire error path without
    matching each concrete exception class individually. ``Container.get``
    swallows exactly this family of errors.
    """


class CadWireInvalidRegistrationError(CadWireError):
    """Signal an invalid registration call.

    Raised by the registration surface when a descriptor is inconsistent, for
    example a ``None`` instance, a non-callable factory, or an implementation
    that is abstract or does not subclass its contract.
    """


class CadWireServiceNotRegisteredError(CadWireError):
    """Signal that a service key has no descriptor and cannot be auto-wired.

    Raised by ``resolve`` for abstract contracts, protocols, ignored builtins
    and non-class keys that were never registered.

    Typical fix is registering the contract explicitly at the composition root.
    """

    def __init__(self, service_key: Any) -> None:
        self.service_key = service_key
        super().__init__(f"Service {_describe(service_key)} is not registered")


class CadWireUnresolvedDependencyError(CadWireError):
    """Signal that auto-wiring could not satisfy a constructor parameter.

    The parameter had no default value and its annotated type could not be
    resolved (or it had no annotation at all).
    """

    def __init__(
        self,
        service_key: Any,
        parameter_name: str,
        parameter_type: Any,
        cause: BaseException | None = None,
    ) -> None:
        self.service_key = service_key
        self.parameter_name = parameter_name
        self.parameter_type = parameter_type
        self.cause = cause
        type_name = "no-annotation" if parameter_type is None else _describe(parameter_type)
        super().__init__(
            f"Cannot satisfy constructor parameter '{parameter_name}' ({type_name}) "
            f"of {_describe(service_key)}",
        )


class CadWireNoPublicConstructorError(CadWireError):
    """Signal that a concrete class exposes no constructor cadwire can introspect."""

    def __init__(self, service_key: Any) -> None:
        self.service_key = service_key
        super().__init__(f"Type {_describe(service_key)} has no usable constructor")


class CadWireConstructionError(CadWireError):
    """Wrap an exception raised by a constructor or factory.

    The original exception is available as ``cause`` and as ``__cause__``.
    """

    def __init__(self, service_key: Any, cause: BaseException) -> None:
        self.service_key = service_key
        self.cause = cause
        super().__init__(
            f"Failed to construct {_describe(service_key)}: {type(cause).__name__}: {cause}",
        )


class CadWireCircularDependencyError(CadWireError):
    """Signal a dependency cycle in the constructor graph.

    ``path`` lists the keys being resolved when the cycle was detected,
    ending with the key that closed the cycle.
    """

    def __init__(self, service_key: Any, path: list[Any]) -> None:
        self.service_key = service_key
        self.path = [*path, service_key]
        chain = " -> ".join(_describe(key) for key in self.path)
        super().__init__(f"Circular dependency detected: {chain}")


class CadWireScopeDisposedError(CadWireError):
    """Signal resolution through a scope that has already been closed."""

    def __init__(self, service_key: Any) -> None:
        self.service_key = service_key
        super().__init__(
            f"Cannot resolve {_describe(service_key)}: the scope has already been disposed",
        )


class CadWireContainerBuiltError(CadWireError):
    """Signal a registration against a container that has already been built.

    Back-ends that compile a resolution plan are sealed by ``build()`` (which
    also runs implicitly on first resolution).
    """


class CadWireBackendUnavailableError(CadWireError):
    """Signal that a container back-end could not be constructed.

    Raised inside the service locator and recovered there by falling back to
    the minimal back-end.
    """

    def __init__(self, backend: str, cause: BaseException) -> None:
        self.backend = backend
        self.cause = cause
        super().__init__(f"Container back-end '{backend}' is unavailable: {cause}")
