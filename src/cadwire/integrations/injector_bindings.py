"""Bindings of cadwire descriptors onto the ``injector`` library.

Importing this module requires ``injector`` (the ``cadwire[injector]`` extra).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, Any

from injector import Binder, Injector, InstanceProvider, Module, NoScope, Provider, Scope

from cadwire.cache import InstanceCache
from cadwire.registry import ServiceDescriptor
from cadwire.types import Lifetime, ServiceKey

if TYPE_CHECKING:
    from cadwire.injector_container import InjectorContainer


@dataclass(frozen=True, slots=True)
class Slot:
    """Binding key of the ``index``-th registration of ``service_key``."""

    service_key: ServiceKey
    index: int


@dataclass(frozen=True, slots=True)
class AllOf:
    """Binding key returning every registration of ``service_key``."""

    service_key: ServiceKey


class ActiveResolver:
    """Binding key of the resolver (container or scope) owning an injector."""


def provide(injector: Injector, key: Any) -> Any:
    """Resolve ``key`` in ``injector`` without ``Injector.get``'s process-wide lock.

    The scope instance is looked up in the binder that owns the binding, as
    ``Injector.get`` does. Cached scopes make construction atomic per key.
    """
    binding, binder = injector.binder.get_binding(key)
    scope_binding, _ = binder.get_binding(binding.scope)
    scope = scope_binding.provider.get(injector)
    return scope.get(key, binding.provider).get(injector)


class CachingScope(Scope):
    """``injector`` scope that caches providers' results in an ``InstanceCache``."""

    def __init__(self, injector: Injector, *, caching: bool = True) -> None:
        self._caching = caching
        super().__init__(injector)

    def configure(self) -> None:
        self._cache = InstanceCache()

    def get(self, key: Any, provider: Provider[Any]) -> Provider[Any]:
        if not self._caching:
            return provider
        instance = self._cache.get_or_create(key, partial(provider.get, self.injector))
        return InstanceProvider(instance)

    def values(self) -> list[Any]:
        return self._cache.values()

    def dispose(self, log: logging.Logger, *, skip: Callable[[Any], bool] | None = None) -> int:
        return self._cache.dispose(log, skip=skip)


class SingletonCacheScope(CachingScope):
    """One cache per container, shared with every child injector."""


class ScopedCacheScope(CachingScope):
    """One cache per child injector; pass-through on the root injector."""


LIFETIME_SCOPES: dict[Lifetime, type[Scope]] = {
    Lifetime.TRANSIENT: NoScope,
    Lifetime.SINGLETON: SingletonCacheScope,
    Lifetime.SCOPED: ScopedCacheScope,
}


class DescriptorProvider(Provider[Any]):
    """Provide one descriptor through the resolver bound in the calling injector."""

    def __init__(self, container: InjectorContainer, descriptor: ServiceDescriptor) -> None:
        self._container = container
        self._descriptor = descriptor

    def get(self, injector: Injector) -> Any:
        resolver = provide(injector, ActiveResolver)
        return self._container._autowirer.activate(  # noqa: SLF001
            self._descriptor,
            resolver,
            resolver._resolve_raw,  # noqa: SLF001
        )


class AliasProvider(Provider[Any]):
    def __init__(self, target: Any) -> None:
        self._target = target

    def get(self, injector: Injector) -> Any:
        return provide(injector, self._target)


class AllOfProvider(Provider[list[Any]]):
    def __init__(self, slots: list[Slot]) -> None:
        self._slots = slots

    def get(self, injector: Injector) -> list[Any]:
        return [provide(injector, slot) for slot in self._slots]


class DescriptorModule(Module):
    """Binds the registrations of a sealed container into the root injector."""

    def __init__(self, container: InjectorContainer, singleton_scope: SingletonCacheScope) -> None:
        self._container = container
        self._singleton_scope = singleton_scope

    def configure(self, binder: Binder) -> None:
        binder.bind(SingletonCacheScope, to=InstanceProvider(self._singleton_scope))
        binder.bind(
            ScopedCacheScope,
            to=InstanceProvider(ScopedCacheScope(binder.injector, caching=False)),
        )
        binder.bind(ActiveResolver, to=InstanceProvider(self._container))

        descriptors = self._container._descriptors  # noqa: SLF001
        for key in descriptors.keys():
            bind_descriptors(binder, self._container, key, descriptors.history(key))


def bind_descriptors(
    binder: Binder,
    container: InjectorContainer,
    service_key: ServiceKey,
    history: tuple[ServiceDescriptor, ...],
) -> None:
    """Bind every registration of ``service_key`` plus its alias and all-of keys."""
    slots: list[Slot] = []
    for index, descriptor in enumerate(history):
        slot = Slot(service_key, index)
        bind_slot(binder, container, slot, descriptor)
        slots.append(slot)
    binder.bind(service_key, to=AliasProvider(slots[-1]), scope=NoScope)
    binder.bind(AllOf(service_key), to=AllOfProvider(slots), scope=NoScope)


def bind_slot(
    binder: Binder,
    container: InjectorContainer,
    slot: Slot,
    descriptor: ServiceDescriptor,
) -> None:
    binder.bind(
        slot,
        to=DescriptorProvider(container, descriptor),
        scope=LIFETIME_SCOPES[descriptor.lifetime],
    )
    if descriptor.lifetime is Lifetime.SCOPED:
        # Child injectors rebind these so the scope is looked up in their own binder.
        container._scoped_slots.append((slot, descriptor))  # noqa: SLF001


def bind_child_injector(
    injector: Injector,
    container: InjectorContainer,
    resolver: Any,
    scoped_cache: ScopedCacheScope,
) -> None:
    """Prepare a child injector to act as one resolution scope of ``container``."""
    binder = injector.binder
    # Scope instances are looked up per binder; share the singleton cache explicitly.
    binder.bind(SingletonCacheScope, to=InstanceProvider(container._singleton_scope))  # noqa: SLF001
    binder.bind(ScopedCacheScope, to=InstanceProvider(scoped_cache))
    binder.bind(ActiveResolver, to=InstanceProvider(resolver))
    for slot, descriptor in list(container._scoped_slots):  # noqa: SLF001
        binder.bind(slot, to=DescriptorProvider(container, descriptor), scope=ScopedCacheScope)
