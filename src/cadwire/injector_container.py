"""Container back-end compiled onto the ``injector`` library.

Registrations are collected in a descriptor table while the container is
open. ``build()`` seals it and installs a module that binds every descriptor
into an ``injector.Injector``:

- each descriptor registered for a key gets a private slot binding, so that
  ``get_all`` can return one instance per registration;
- the public key aliases the last slot, so the last registration wins;
- lifetimes map onto ``injector`` scopes. Singletons live in one cache shared
  by the root injector and every child injector, scoped services live in a
  cache owned by each child injector, and transients use ``NoScope``.

Resolution scopes wrap child injectors. All construction goes through the
same auto-wiring used by the reflection-based ``Container``, so both
back-ends honour the same constructor selection rules.

``injector`` is optional: without it this module still imports, and
constructing an ``InjectorContainer`` raises ``CadWireBackendUnavailableError``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from cadwire.autowire import Autowirer
from cadwire.cache import dispose_all
from cadwire.container_interface import IResolver, IServiceContainer
from cadwire.defaults import (
    DEFAULT_AUTOREGISTER_IGNORES,
    DEFAULT_AUTOREGISTER_LIFETIME,
    autoregistration_descriptor,
)
from cadwire.exceptions import (
    CadWireBackendUnavailableError,
    CadWireConstructionError,
    CadWireContainerBuiltError,
    CadWireError,
    CadWireScopeDisposedError,
    CadWireServiceNotRegisteredError,
)
from cadwire.registry import DescriptorTable, ProvisionKind, ServiceDescriptor
from cadwire.resolution import Resolution
from cadwire.types import Lifetime, ServiceKey
from cadwire.validators import is_concrete_class

_injector_import_error: ImportError | None = None
try:
    from injector import Error as InjectorError
    from injector import Injector, UnsatisfiedRequirement

    from cadwire.integrations.injector_bindings import (
        AllOf,
        DescriptorModule,
        ScopedCacheScope,
        SingletonCacheScope,
        Slot,
        bind_child_injector,
        bind_descriptors,
        provide,
    )
except ImportError as e:  # pragma: no cover - depends on the installed extras
    _injector_import_error = e

if TYPE_CHECKING:
    from typing_extensions import Self

logger = logging.getLogger(__name__)

_BACKEND = "injector"


@dataclass(frozen=True, slots=True)
class ContainerStatistics:
    """Diagnostic snapshot of an ``InjectorContainer``."""

    registered_services_count: int
    is_built: bool
    container_type: str
    created_at: datetime


class InjectorContainer(IServiceContainer):
    """Dependency injection container backed by ``injector``.

    This is the rich back-end. Unlike ``Container`` it is sealed once built:
    ``build()`` runs explicitly or on the first resolution, scope creation or
    ``get_all`` call, and registering afterwards raises
    ``CadWireContainerBuiltError``. In exchange it keeps every registration of
    a key, so ``get_all`` returns one instance per registration.

    Example:
        >>> container = InjectorContainer()
        >>> container.register_singleton(ILogger, ConsoleLogger)
        >>> container.register_transient(IRepository, Repository)
        >>> repo = container.resolve(IRepository)

    """

    def __init__(
        self,
        *,
        log: logging.Logger | None = None,
        autoregister_ignores: frozenset[type[Any]] | None = None,
        autoregister_registration_factories: dict[type[Any], Callable[[Any], ServiceDescriptor]]
        | None = None,
        autoregister_default_lifetime: Lifetime = DEFAULT_AUTOREGISTER_LIFETIME,
    ) -> None:
        if _injector_import_error is not None:
            raise CadWireBackendUnavailableError(_BACKEND, _injector_import_error)

        self._logger = log or logger
        self._autoregister_ignores = (
            DEFAULT_AUTOREGISTER_IGNORES if autoregister_ignores is None else autoregister_ignores
        )
        self._autoregister_registration_factories = autoregister_registration_factories
        self._autoregister_default_lifetime = autoregister_default_lifetime

        self._descriptors = DescriptorTable(keep_history=True)
        self._autowirer = Autowirer(log=self._logger)
        self._created_at = datetime.now(timezone.utc)

        self._injector: Injector | None = None
        self._singleton_scope: SingletonCacheScope | None = None
        self._scoped_slots: list[tuple[Slot, ServiceDescriptor]] = []
        self._build_lock = threading.Lock()

        # Unregistered concrete classes bound on demand after build.
        self._implicit_keys: set[ServiceKey] = set()
        self._implicit_lock = threading.Lock()

        self._closed = False
        self._close_lock = threading.Lock()

        self.register_instance(IServiceContainer, self)
        self.register_instance(IResolver, self)
        self.register_instance(type(self), self)

    @property
    def is_built(self) -> bool:
        return self._injector is not None

    @property
    def registration_count(self) -> int:
        return len(self._descriptors)

    def register(self, descriptor: ServiceDescriptor) -> Self:
        with self._build_lock:
            if self._injector is not None:
                msg = f"Cannot register {descriptor.service_key!r}: the container is already built."
                raise CadWireContainerBuiltError(msg)
            self._descriptors.register(descriptor)
        self._logger.debug(
            "Registered %r as %s (%s)",
            descriptor.service_key,
            descriptor.kind.value,
            descriptor.lifetime.value,
        )
        return self

    def build(self) -> Self:
        """Seal the container and bind its registrations into an injector.

        Idempotent; concurrent callers build exactly once.
        """
        self._ensure_built()
        return self

    def statistics(self) -> ContainerStatistics:
        return ContainerStatistics(
            registered_services_count=self.registration_count,
            is_built=self.is_built,
            container_type=type(self).__name__,
            created_at=self._created_at,
        )

    def is_registered(self, key: ServiceKey) -> bool:
        return self._descriptors.is_registered(key)

    def try_resolve(self, key: ServiceKey) -> Resolution[Any]:
        try:
            return Resolution.success(key, self._resolve_raw(key))
        except CadWireError as e:
            return Resolution.failure(key, e)

    def get_all(self, key: ServiceKey) -> list[Any]:
        """Resolve one instance per registration of ``key``, in registration order."""
        return self._get_all_in(self._ensure_built(), key)

    def create_scope(self) -> InjectorScope:
        return InjectorScope(self, self._ensure_built())

    def close(self) -> None:
        """Close cached singletons and registered instances that hold resources.

        Registered instances are closed whether or not they were ever resolved.
        Resolving from a closed container raises ``CadWireScopeDisposedError``.
        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        released = 0
        seen: set[int] = set()
        if self._singleton_scope is not None:
            seen = {id(instance) for instance in self._singleton_scope.values()}
            released = self._singleton_scope.dispose(
                self._logger,
                skip=lambda instance: instance is self,
            )

        registered: list[Any] = []
        for descriptor in self._descriptors:
            instance = descriptor.instance
            if descriptor.kind is not ProvisionKind.INSTANCE or instance is self or id(instance) in seen:
                continue
            seen.add(id(instance))
            registered.append(instance)
        released += dispose_all(reversed(registered), self._logger)
        self._logger.debug("Injector container closed, released %d instance(s)", released)

    def _resolve_raw(self, key: ServiceKey) -> Any:
        return self._resolve_in(self._ensure_built(), key)

    def _ensure_built(self) -> Injector:
        injector = self._injector
        if injector is not None:
            return injector

        with self._build_lock:
            # Second check after acquiring lock - another thread may have built it
            if self._injector is not None:
                return self._injector

            for descriptor in self._descriptors:
                if descriptor.kind is ProvisionKind.IMPLEMENTATION:
                    assert descriptor.implementation is not None
                    self._autowirer.planner.plans_for(descriptor.implementation)

            injector = Injector(auto_bind=False)
            singleton_scope = SingletonCacheScope(injector)
            injector.binder.install(DescriptorModule(self, singleton_scope))

            self._singleton_scope = singleton_scope
            self._injector = injector

        self._logger.info(
            "Built injector container with %d registration(s)",
            len(self._descriptors),
        )
        return injector

    def _resolve_in(self, injector: Injector, key: ServiceKey) -> Any:
        if self._closed:
            raise CadWireScopeDisposedError(key)
        self._ensure_bound(key)
        try:
            return provide(injector, key)
        except UnsatisfiedRequirement as e:
            raise CadWireServiceNotRegisteredError(key) from e
        except InjectorError as e:
            self._logger.error("Injector failed to provide %r", key, exc_info=True)
            raise CadWireConstructionError(key, e) from e

    def _get_all_in(self, injector: Injector, key: ServiceKey) -> list[Any]:
        if self._closed:
            raise CadWireScopeDisposedError(key)
        try:
            self._ensure_bound(key)
        except CadWireServiceNotRegisteredError:
            return []
        return provide(injector, AllOf(key))

    def _ensure_bound(self, key: ServiceKey) -> None:
        """Bind an unregistered concrete class on first use."""
        if self._descriptors.is_registered(key) or key in self._implicit_keys:
            return

        if not is_concrete_class(key) or key in self._autoregister_ignores:
            raise CadWireServiceNotRegisteredError(key)

        with self._implicit_lock:
            if key in self._implicit_keys:
                return
            descriptor = autoregistration_descriptor(
                key,
                self._autoregister_registration_factories,
                self._autoregister_default_lifetime,
            )
            assert self._injector is not None
            bind_descriptors(self._injector.binder, self, key, (descriptor,))
            self._implicit_keys.add(key)
        self._logger.debug("Auto-bound %r (%s)", key, descriptor.lifetime.value)


class InjectorScope(IResolver):
    """A resolution scope of an ``InjectorContainer`` wrapping a child injector.

    Scoped services are cached in the child injector's own scope, singletons
    come from the container-wide cache and transients are built fresh with
    this scope as their resolver.
    """

    def __init__(
        self,
        root: InjectorContainer,
        parent_injector: Injector,
        parent: InjectorScope | None = None,
    ) -> None:
        self._root = root
        self._parent = parent
        self._logger = root._logger  # noqa: SLF001
        self._injector = parent_injector.create_child_injector(auto_bind=False)
        self._scoped_cache = ScopedCacheScope(self._injector)
        bind_child_injector(self._injector, root, self, self._scoped_cache)

        self._closed = False
        self._close_lock = threading.Lock()

    @property
    def parent(self) -> InjectorScope | None:
        return self._parent

    @property
    def closed(self) -> bool:
        return self._closed

    def try_resolve(self, key: ServiceKey) -> Resolution[Any]:
        try:
            return Resolution.success(key, self._resolve_raw(key))
        except CadWireError as e:
            return Resolution.failure(key, e)

    def get_all(self, key: ServiceKey) -> list[Any]:
        if self._closed:
            raise CadWireScopeDisposedError(key)
        return self._root._get_all_in(self._injector, key)  # noqa: SLF001

    def is_registered(self, key: ServiceKey) -> bool:
        return self._root.is_registered(key)

    def create_scope(self) -> InjectorScope:
        if self._closed:
            raise CadWireScopeDisposedError(IResolver)
        return InjectorScope(self._root, self._injector, parent=self)

    def close(self) -> None:
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        released = self._scoped_cache.dispose(self._logger)
        self._logger.debug("Scope closed, released %d instance(s)", released)

    def _resolve_raw(self, key: ServiceKey) -> Any:
        if self._closed:
            raise CadWireScopeDisposedError(key)
        if key is IResolver:
            return self
        return self._root._resolve_in(self._injector, key)  # noqa: SLF001
