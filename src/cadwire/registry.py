from __future__ import annotations

import threading
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any

from cadwire.exceptions import CadWireInvalidRegistrationError
from cadwire.types import Factory, Lifetime, ServiceKey


class ProvisionKind(str, Enum):
    """How a descriptor produces its service."""

    INSTANCE = "instance"
    FACTORY = "factory"
    IMPLEMENTATION = "implementation"


@dataclass(frozen=True, slots=True)
class ServiceDescriptor:
    """Recipe for producing a service: exactly one payload matching ``kind``."""

    service_key: ServiceKey
    kind: ProvisionKind
    lifetime: Lifetime
    instance: Any = None
    factory: Factory | None = None
    implementation: type | None = None

    def __post_init__(self) -> None:
        payloads = {
            ProvisionKind.INSTANCE: self.instance is not None,
            ProvisionKind.FACTORY: self.factory is not None,
            ProvisionKind.IMPLEMENTATION: self.implementation is not None,
        }
        if not payloads[self.kind] or sum(payloads.values()) != 1:
            msg = f"Descriptor for {self.service_key!r} must carry exactly one {self.kind.value} payload."
            raise CadWireInvalidRegistrationError(msg)
        if self.kind is ProvisionKind.INSTANCE and self.lifetime is not Lifetime.SINGLETON:
            msg = f"Instance descriptor for {self.service_key!r} must be a singleton."
            raise CadWireInvalidRegistrationError(msg)

    @classmethod
    def for_instance(cls, service_key: ServiceKey, instance: Any) -> ServiceDescriptor:
        return cls(
            service_key=service_key,
            kind=ProvisionKind.INSTANCE,
            lifetime=Lifetime.SINGLETON,
            instance=instance,
        )

    @classmethod
    def for_factory(
        cls,
        service_key: ServiceKey,
        factory: Factory,
        lifetime: Lifetime = Lifetime.TRANSIENT,
    ) -> ServiceDescriptor:
        return cls(
            service_key=service_key,
            kind=ProvisionKind.FACTORY,
            lifetime=lifetime,
            factory=factory,
        )

    @classmethod
    def for_implementation(
        cls,
        service_key: ServiceKey,
        implementation: type,
        lifetime: Lifetime = Lifetime.TRANSIENT,
    ) -> ServiceDescriptor:
        return cls(
            service_key=service_key,
            kind=ProvisionKind.IMPLEMENTATION,
            lifetime=lifetime,
            implementation=implementation,
        )


class DescriptorTable:
    """Map of service keys to their current descriptor.

    Writes are serialized by a lock. Reads go straight to the underlying dicts
    and never block; a registration becomes visible to concurrent resolvers as
    soon as the write completes. Re-registering a key replaces its descriptor
    (last write wins). With ``keep_history`` the table also remembers every
    descriptor ever registered for a key, which multi-binding back-ends use
    for ``get_all``; otherwise ``history`` only holds the current descriptor.
    """

    __slots__ = ("_current", "_history", "_keep_history", "_lock")

    def __init__(self, *, keep_history: bool = False) -> None:
        self._keep_history = keep_history
        self._current: dict[ServiceKey, ServiceDescriptor] = {}
        self._history: dict[ServiceKey, tuple[ServiceDescriptor, ...]] = {}
        self._lock = threading.Lock()

    def register(self, descriptor: ServiceDescriptor) -> None:
        key = descriptor.service_key
        with self._lock:
            self._current[key] = descriptor
            if self._keep_history:
                self._history[key] = (*self._history.get(key, ()), descriptor)

    def is_registered(self, service_key: ServiceKey) -> bool:
        return service_key in self._current

    def try_get(self, service_key: ServiceKey) -> ServiceDescriptor | None:
        return self._current.get(service_key)

    def history(self, service_key: ServiceKey) -> tuple[ServiceDescriptor, ...]:
        if self._keep_history:
            return self._history.get(service_key, ())
        current = self._current.get(service_key)
        return () if current is None else (current,)

    def keys(self) -> list[ServiceKey]:
        return list(self._current)

    def clear(self) -> None:
        with self._lock:
            self._current.clear()
            self._history.clear()

    def __len__(self) -> int:
        return len(self._current)

    def __iter__(self) -> Iterator[ServiceDescriptor]:
        return iter(list(self._current.values()))
