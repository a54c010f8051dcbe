from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from functools import partial
from typing import TYPE_CHECKING, Any

from cadwire.autowire import Autowirer
from cadwire.cache import InstanceCache
from cadwire.container_interface import IResolver, IServiceContainer
from cadwire.defaults import (
    DEFAULT_AUTOREGISTER_IGNORES,
    DEFAULT_AUTOREGISTER_LIFETIME,
    autoregistration_descriptor,
)
from cadwire.exceptions import (
    CadWireError,
    CadWireScopeDisposedError,
    CadWireServiceNotRegisteredError,
)
from cadwire.registry import DescriptorTable, ProvisionKind, ServiceDescriptor
from cadwire.resolution import Resolution, collect_single
from cadwire.scope import ServiceScope
from cadwire.types import Lifetime, ServiceKey
from cadwire.validators import is_concrete_class

if TYPE_CHECKING:
    from typing_extensions import Self

logger = logging.getLogger(__name__)


class Container(IServiceContainer):
    """Reflection-based dependency injection container.

    This is the minimal back-end: it has no optional dependencies, is always
    open for registrations, and builds concrete classes by introspecting their
    constructors on every transient resolution.

    Lifetimes:
        - ``TRANSIENT``: a new instance per resolution.
        - ``SINGLETON``: one instance per container, created at most once even
          under concurrent first access.
        - ``SCOPED``: one instance per ``ServiceScope``; resolved on the
          container itself it behaves like ``TRANSIENT``.

    Unregistered concrete classes are auto-wired as transients. Abstract
    classes, protocols and ignored builtins must be registered.
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
        self._logger = log or logger
        self._autoregister_ignores = (
            DEFAULT_AUTOREGISTER_IGNORES if autoregister_ignores is None else autoregister_ignores
        )
        self._autoregister_registration_factories = autoregister_registration_factories
        self._autoregister_default_lifetime = autoregister_default_lifetime

        self._descriptors = DescriptorTable()
        self._singletons = InstanceCache()
        # Descriptors synthesized for auto-wired classes; not reported by is_registered.
        self._implicit_descriptors: dict[ServiceKey, ServiceDescriptor] = {}
        self._autowirer = Autowirer(log=self._logger)
        self._closed = False
        self._close_lock = threading.Lock()

        self.register_instance(IServiceContainer, self)
        self.register_instance(IResolver, self)
        self.register_instance(type(self), self)

    @property
    def registration_count(self) -> int:
        return len(self._descriptors)

    def register(self, descriptor: ServiceDescriptor) -> Self:
        key = descriptor.service_key
        self._descriptors.register(descriptor)
        # A new registration must be observed even if the previous one was already cached.
        if descriptor.kind is ProvisionKind.INSTANCE:
            self._singletons.set(key, descriptor.instance)
        else:
            self._singletons.evict(key)
        self._logger.debug(
            "Registered %r as %s (%s)",
            key,
            descriptor.kind.value,
            descriptor.lifetime.value,
        )
        return self

    def is_registered(self, key: ServiceKey) -> bool:
        return self._descriptors.is_registered(key)

    def try_resolve(self, key: ServiceKey) -> Resolution[Any]:
        try:
            return Resolution.success(key, self._resolve_raw(key))
        except CadWireError as e:
            return Resolution.failure(key, e)

    def get_all(self, key: ServiceKey) -> list[Any]:
        """Resolve ``key`` as a list: this back-end keeps one binding per key."""
        return collect_single(self.try_resolve(key))

    def create_scope(self) -> ServiceScope:
        return ServiceScope(self)

    def close(self) -> None:
        """Close cached singletons that hold resources and clear all registrations.

        Resolving from a closed container raises ``CadWireScopeDisposedError``.
        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        released = self._singletons.dispose(self._logger, skip=lambda instance: instance is self)
        self._descriptors.clear()
        self._implicit_descriptors.clear()
        self._logger.debug("Service container closed, released %d instance(s)", released)

    def _resolve_raw(self, key: ServiceKey) -> Any:
        return self._resolve(key, self, None)

    def _resolve(
        self,
        key: ServiceKey,
        resolver: Container | ServiceScope,
        scoped_cache: InstanceCache | None,
    ) -> Any:
        """Resolve ``key`` on behalf of ``resolver``.

        ``scoped_cache`` is the cache of the scope ``resolver`` represents, or
        ``None`` when resolving on the container itself.
        """
        if self._closed:
            raise CadWireScopeDisposedError(key)

        descriptor = self._get_descriptor(key)

        if descriptor.lifetime is Lifetime.SINGLETON:
            # Singletons are always built by the container, never by a scope.
            return self._singletons.get_or_create(
                key,
                partial(self._activate, descriptor, self),
            )

        if descriptor.lifetime is Lifetime.SCOPED and scoped_cache is not None:
            return scoped_cache.get_or_create(
                key,
                partial(self._activate, descriptor, resolver),
            )

        return self._activate(descriptor, resolver)

    def _activate(self, descriptor: ServiceDescriptor, resolver: Container | ServiceScope) -> Any:
        return self._autowirer.activate(descriptor, resolver, resolver._resolve_raw)  # noqa: SLF001

    def _get_descriptor(self, key: ServiceKey) -> ServiceDescriptor:
        descriptor = self._descriptors.try_get(key)
        if descriptor is not None:
            return descriptor

        descriptor = self._implicit_descriptors.get(key)
        if descriptor is not None:
            return descriptor

        if not is_concrete_class(key) or key in self._autoregister_ignores:
            raise CadWireServiceNotRegisteredError(key)

        descriptor = autoregistration_descriptor(
            key,
            self._autoregister_registration_factories,
            self._autoregister_default_lifetime,
        )
        return self._implicit_descriptors.setdefault(key, descriptor)
