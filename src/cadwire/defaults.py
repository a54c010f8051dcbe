from collections.abc import Callable
from typing import Any

from pydantic_settings import BaseSettings

from cadwire.registry import ServiceDescriptor
from cadwire.types import Lifetime

DEFAULT_AUTOREGISTER_IGNORES: frozenset[type[Any]] = frozenset(
    {
        int,
        str,
        float,
        bool,
        bytes,
        complex,
        list,
        dict,
        set,
        frozenset,
        tuple,
        object,
        type,
    },
)
"""Builtins that are never auto-wired; parameters of these types need a default or a registration."""

DEFAULT_AUTOREGISTER_LIFETIME = Lifetime.TRANSIENT

DEFAULT_AUTOREGISTER_REGISTRATION_FACTORIES: dict[type[Any], Callable[[Any], ServiceDescriptor]] = {
    BaseSettings: lambda cls: ServiceDescriptor.for_factory(
        cls,
        lambda _resolver: cls(),
        Lifetime.SINGLETON,
    ),
}
"""Unregistered subclasses of these bases get the returned descriptor instead of plain auto-wiring."""


def autoregistration_descriptor(
    cls: type[Any],
    registration_factories: dict[type[Any], Callable[[Any], ServiceDescriptor]] | None = None,
    default_lifetime: Lifetime = DEFAULT_AUTOREGISTER_LIFETIME,
) -> ServiceDescriptor:
    """Build the implicit descriptor used when an unregistered concrete class is resolved."""
    factories = (
        DEFAULT_AUTOREGISTER_REGISTRATION_FACTORIES
        if registration_factories is None
        else registration_factories
    )
    for base_cls, registration_factory in factories.items():
        if issubclass(cls, base_cls):
            return registration_factory(cls)
    return ServiceDescriptor.for_implementation(cls, cls, default_lifetime)
