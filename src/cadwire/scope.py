from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any

from cadwire.cache import InstanceCache
from cadwire.container_interface import IResolver
from cadwire.exceptions import CadWireError, CadWireScopeDisposedError
from cadwire.resolution import Resolution, collect_single
from cadwire.types import ServiceKey

if TYPE_CHECKING:
    from cadwire.container import Container


class ServiceScope(IResolver):
    """A resolution scope of a ``Container``.

    Scoped services are cached per scope, singletons are shared with the
    container, and transients are built fresh. Closing a scope releases only
    the scoped instances it created; nested scopes are owned by whoever opened
    them and must be closed separately.

    Resolving ``IResolver`` inside a scope returns the scope itself, so
    factories and constructors asking for a resolver stay inside it.
    """

    def __init__(self, root: Container, parent: ServiceScope | None = None) -> None:
        self._root = root
        self._parent = parent
        self._logger = root._logger  # noqa: SLF001
        self._cache = InstanceCache()
        self._closed = False
        self._close_lock = threading.Lock()

    @property
    def parent(self) -> ServiceScope | None:
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
        return collect_single(self.try_resolve(key))

    def is_registered(self, key: ServiceKey) -> bool:
        return self._root.is_registered(key)

    def create_scope(self) -> ServiceScope:
        if self._closed:
            raise CadWireScopeDisposedError(IResolver)
        return ServiceScope(self._root, parent=self)

    def close(self) -> None:
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        released = self._cache.dispose(self._logger)
        self._logger.debug("Scope closed, released %d instance(s)", released)

    def _resolve_raw(self, key: ServiceKey) -> Any:
        if self._closed:
            raise CadWireScopeDisposedError(key)
        if key is IResolver:
            return self
        return self._root._resolve(key, self, self._cache)  # noqa: SLF001
