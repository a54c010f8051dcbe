from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from cadwire.exceptions import CadWireCircularDependencyError
from cadwire.types import ServiceKey

# Keys currently being constructed in this execution context (thread or task).
# Stored as an immutable tuple so a copied context never shares mutations.
_resolution_path: ContextVar[tuple[ServiceKey, ...]] = ContextVar(
    "cadwire_resolution_path",
    default=(),
)


def current_path() -> tuple[ServiceKey, ...]:
    return _resolution_path.get()


@contextmanager
def resolving(service_key: ServiceKey) -> Iterator[None]:
    """Mark ``service_key`` as in progress for the duration of its construction.

    Raises:
        CadWireCircularDependencyError: If the key is already being constructed
            further up the current path.

    """
    path = _resolution_path.get()
    if service_key in path:
        raise CadWireCircularDependencyError(service_key, list(path))
    token = _resolution_path.set((*path, service_key))
    try:
        yield
    finally:
        _resolution_path.reset(token)
