from __future__ import annotations

import inspect
import types
from typing import Any, TypeGuard

from typing_extensions import is_protocol

from cadwire.exceptions import CadWireInvalidRegistrationError
from cadwire.types import ServiceKey


def is_runtime_class(candidate: object) -> TypeGuard[type[Any]]:
    """Return true when candidate is a runtime class safe for class-only operations."""
    return isinstance(candidate, type) and not isinstance(candidate, types.GenericAlias)


def is_concrete_class(candidate: object) -> TypeGuard[type[Any]]:
    """Return true for classes that can be instantiated: not abstract, not a protocol."""
    return (
        is_runtime_class(candidate)
        and not inspect.isabstract(candidate)
        and not is_protocol(candidate)
    )


def is_contract(candidate: object) -> bool:
    """Return true for abstract base classes and protocols."""
    return is_runtime_class(candidate) and (inspect.isabstract(candidate) or is_protocol(candidate))


class RegistrationValidator:
    """Validates registrations before descriptors are stored."""

    def validate_implementation(self, contract: ServiceKey, implementation: object) -> None:
        """Validate that ``implementation`` is instantiable and fulfils ``contract``."""
        if not is_runtime_class(implementation):
            msg = f"Implementation must be a class, got {implementation!r}."
            raise CadWireInvalidRegistrationError(msg)

        if not is_concrete_class(implementation):
            msg = f"Implementation '{implementation.__qualname__}' cannot be abstract or a protocol."
            raise CadWireInvalidRegistrationError(msg)

        # Protocols are structural; only nominal contracts can be checked here.
        if is_runtime_class(contract) and not is_protocol(contract):
            if not issubclass(implementation, contract):
                msg = (
                    f"Implementation '{implementation.__qualname__}' must be a subclass of "
                    f"'{contract.__qualname__}'."
                )
                raise CadWireInvalidRegistrationError(msg)

    def validate_instance(self, contract: ServiceKey, instance: object) -> None:
        if instance is None:
            msg = f"Instance registered for {contract!r} must not be None."
            raise CadWireInvalidRegistrationError(msg)

        if is_runtime_class(contract) and not is_protocol(contract) and not isinstance(instance, contract):
            msg = f"Instance {type(instance).__qualname__} is not an instance of '{contract.__qualname__}'."
            raise CadWireInvalidRegistrationError(msg)

    def validate_factory(self, contract: ServiceKey, factory: object) -> None:
        if not callable(factory):
            msg = f"Factory registered for {contract!r} must be callable, got {factory!r}."
            raise CadWireInvalidRegistrationError(msg)
