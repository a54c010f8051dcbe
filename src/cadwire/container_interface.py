from __future__ import annotations

import inspect
import logging
import types
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any, TypeVar, overload

from cadwire.registry import ServiceDescriptor
from cadwire.types import Factory, Lifetime, ServiceKey
from cadwire.validators import RegistrationValidator, is_concrete_class, is_contract

if TYPE_CHECKING:
    from typing_extensions import Self

    from cadwire.resolution import Resolution

T = TypeVar("T")

ServiceEntry = tuple[ServiceKey, type, Lifetime]
"""A ``(contract, implementation, lifetime)`` triple accepted by ``register_services``."""


class IResolver(ABC):
    """Interface for objects that resolve services: containers and scopes.

    ``try_resolve`` is the single resolution core. ``resolve`` and ``get`` are
    the two call styles over it: the first raises the captured error, the
    second logs it and returns a default.
    """

    _logger: logging.Logger

    @abstractmethod
    def try_resolve(self, key: ServiceKey) -> Resolution[Any]:
        """Resolve ``key`` and capture the outcome instead of raising."""

    @overload
    def resolve(self, key: type[T]) -> T: ...

    @overload
    def resolve(self, key: Any) -> Any: ...

    def resolve(self, key: Any) -> Any:
        """Resolve a required service.

        Raises:
            CadWireServiceNotRegisteredError: If ``key`` is not registered and
                cannot be auto-wired.
            CadWireUnresolvedDependencyError: If a constructor parameter could
                not be satisfied.
            CadWireError: For any other resolution failure.

        """
        return self.try_resolve(key).unwrap()

    @overload
    def get(self, key: type[T], default: None = None) -> T | None: ...

    @overload
    def get(self, key: type[T], default: T) -> T: ...

    @overload
    def get(self, key: Any, default: Any = None) -> Any: ...

    def get(self, key: Any, default: Any = None) -> Any:
        """Resolve an optional service, returning ``default`` on any resolution failure."""
        result = self.try_resolve(key)
        if result.ok:
            return result.value
        self._logger.warning("Failed to get service %r: %s", key, result.error)
        return default

    @abstractmethod
    def get_all(self, key: ServiceKey) -> list[Any]:
        """Resolve every instance available for ``key``; empty when none."""

    @abstractmethod
    def is_registered(self, key: ServiceKey) -> bool:
        """Check whether ``key`` has an explicit registration."""

    @abstractmethod
    def create_scope(self) -> IResolver:
        """Open a child resolution scope; the caller must close it."""

    @abstractmethod
    def close(self) -> None:
        """Release cached resource-holding instances owned by this resolver."""

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: types.TracebackType | None,
    ) -> None:
        self.close()


class IServiceContainer(IResolver):
    """Interface for container back-ends: resolution plus the registration surface.

    Back-ends implement ``register``; every other registration method builds a
    validated ``ServiceDescriptor`` and funnels through it.
    """

    _validator = RegistrationValidator()

    @abstractmethod
    def register(self, descriptor: ServiceDescriptor) -> Self:
        """Store ``descriptor``, replacing any previous one for the same key."""

    @property
    @abstractmethod
    def registration_count(self) -> int:
        """Number of service keys with an explicit registration."""

    def register_transient(self, contract: ServiceKey, implementation: type | None = None) -> Self:
        return self._register_implementation(contract, implementation, Lifetime.TRANSIENT)

    def register_singleton(self, contract: ServiceKey, implementation: type | None = None) -> Self:
        return self._register_implementation(contract, implementation, Lifetime.SINGLETON)

    def register_scoped(self, contract: ServiceKey, implementation: type | None = None) -> Self:
        return self._register_implementation(contract, implementation, Lifetime.SCOPED)

    def register_instance(self, contract: ServiceKey, instance: Any) -> Self:
        """Register a pre-built instance (always a singleton)."""
        self._validator.validate_instance(contract, instance)
        return self.register(ServiceDescriptor.for_instance(contract, instance))

    def register_factory(
        self,
        contract: ServiceKey,
        factory: Factory,
        lifetime: Lifetime = Lifetime.TRANSIENT,
    ) -> Self:
        """Register a factory called with the current resolver as its only argument."""
        self._validator.validate_factory(contract, factory)
        return self.register(ServiceDescriptor.for_factory(contract, factory, lifetime))

    def register_if(
        self,
        condition: bool,  # noqa: FBT001
        contract: ServiceKey,
        implementation: type | None = None,
        lifetime: Lifetime = Lifetime.TRANSIENT,
    ) -> Self:
        """Register only when ``condition`` holds; otherwise leave the container untouched."""
        if not condition:
            return self
        return self._register_implementation(contract, implementation, lifetime)

    def register_services(self, *entries: ServiceEntry) -> Self:
        """Register several ``(contract, implementation, lifetime)`` triples at once."""
        for contract, implementation, lifetime in entries:
            self._register_implementation(contract, implementation, lifetime)
        return self

    def register_module_types(
        self,
        module: types.ModuleType,
        predicate: Callable[[type], bool] | None = None,
        lifetime: Lifetime = Lifetime.TRANSIENT,
    ) -> Self:
        """Register the concrete classes defined in ``module`` against their contracts.

        Each concrete class accepted by ``predicate`` is registered once for
        every abstract base class or protocol in its MRO. Classes without such
        contracts are skipped.
        """
        registered = 0
        for cls in _module_classes(module):
            if predicate is not None and not predicate(cls):
                continue
            for contract in cls.__mro__[1:]:
                if is_contract(contract):
                    self._register_implementation(contract, cls, lifetime)
                    registered += 1
        self._logger.info(
            "Registered %d service(s) from module %s",
            registered,
            module.__name__,
        )
        return self

    def _register_implementation(
        self,
        contract: ServiceKey,
        implementation: type | None,
        lifetime: Lifetime,
    ) -> Self:
        concrete = contract if implementation is None else implementation
        self._validator.validate_implementation(contract, concrete)
        return self.register(ServiceDescriptor.for_implementation(contract, concrete, lifetime))


def _module_classes(module: types.ModuleType) -> Iterable[type]:
    for _, cls in inspect.getmembers(module, inspect.isclass):
        if cls.__module__ == module.__name__ and is_concrete_class(cls):
            yield cls
