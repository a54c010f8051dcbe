from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from cadwire.exceptions import CadWireError, CadWireServiceNotRegisteredError
from cadwire.types import ServiceKey

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Resolution(Generic[T]):
    """Outcome of a single resolution: either a value or a typed error.

    ``Container.resolve`` and ``Container.get`` are thin wrappers over this
    result; call ``try_resolve`` directly to branch on failures without
    exceptions.
    """

    service_key: ServiceKey
    value: T | None = None
    error: CadWireError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value or raise the captured error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    def value_or(self, default: Any) -> T | Any:
        return default if self.error is not None else self.value

    @classmethod
    def success(cls, service_key: ServiceKey, value: T) -> Resolution[T]:
        return cls(service_key=service_key, value=value)

    @classmethod
    def failure(cls, service_key: ServiceKey, error: CadWireError) -> Resolution[T]:
        return cls(service_key=service_key, error=error)


def collect_single(result: Resolution[Any]) -> list[Any]:
    """List form of a single-binding resolution.

    An unregistered key yields an empty list; any other failure is raised.
    """
    if result.ok:
        return [result.value]
    if isinstance(result.error, CadWireServiceNotRegisteredError):
        return []
    raise result.error  # type: ignore[misc]
