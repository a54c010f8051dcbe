from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from typing import Any

from cadwire.exceptions import CadWireCircularDependencyError
from cadwire.resolution_stack import current_path
from cadwire.types import ServiceKey, SupportsClose

logger = logging.getLogger(__name__)

# Thread ident -> key lock that thread is blocked on. Guarded by _wait_graph_lock.
_waiting_for: dict[int, _KeyLock] = {}
_wait_graph_lock = threading.Lock()


class _KeyLock:
    """Reentrant construction lock of one cache key that knows its owner thread.

    A thread about to block follows the owner of the lock, the lock that owner
    is blocked on, and so on. Reaching itself means the threads are building
    each other's dependencies, so it raises instead of deadlocking.
    """

    __slots__ = ("_depth", "_lock", "key", "owner")

    def __init__(self, key: ServiceKey) -> None:
        self.key = key
        self.owner: int | None = None
        self._depth = 0
        self._lock = threading.RLock()

    def __enter__(self) -> None:
        me = threading.get_ident()
        if not self._lock.acquire(blocking=False):
            self._wait(me)
        with _wait_graph_lock:
            self.owner = me
            self._depth += 1

    def __exit__(self, *exc_info: object) -> None:
        with _wait_graph_lock:
            self._depth -= 1
            if self._depth == 0:
                self.owner = None
        self._lock.release()

    def _wait(self, me: int) -> None:
        with _wait_graph_lock:
            chain = [self.key]
            owner = self.owner
            seen: set[int] = set()
            while owner is not None and owner != me and owner not in seen:
                seen.add(owner)
                blocked_on = _waiting_for.get(owner)
                if blocked_on is None:
                    break
                chain.append(blocked_on.key)
                owner = blocked_on.owner
            if owner == me:
                raise CadWireCircularDependencyError(chain[-1], [*current_path(), *chain[:-1]])
            _waiting_for[me] = self
        try:
            self._lock.acquire()
        finally:
            with _wait_graph_lock:
                del _waiting_for[me]


def dispose_all(instances: Iterable[Any], log: logging.Logger | None = None) -> int:
    """Close every resource-holding instance, isolating failures.

    One instance failing to close is logged and does not stop the others from
    being closed. Returns the number of instances closed successfully.
    """
    log = log or logger
    closed = 0
    for instance in instances:
        if not isinstance(instance, SupportsClose) or not callable(instance.close):
            continue
        try:
            instance.close()
        except Exception:
            log.warning("Failed to close %s", type(instance).__qualname__, exc_info=True)
        else:
            closed += 1
    return closed


class InstanceCache:
    """Cache of resolved instances with atomic get-or-create per key.

    Each key gets its own lock, created with double-checked locking, so that
    construction of a given key runs at most once while unrelated keys never
    wait on each other. Cached reads take no lock.
    """

    __slots__ = ("_instances", "_key_locks", "_key_locks_lock")

    def __init__(self) -> None:
        self._instances: dict[ServiceKey, Any] = {}
        self._key_locks: dict[ServiceKey, _KeyLock] = {}
        self._key_locks_lock = threading.Lock()

    def get_or_create(self, key: ServiceKey, create: Callable[[], Any]) -> Any:
        try:
            return self._instances[key]
        except KeyError:
            pass

        with self._get_key_lock(key):
            # Second check after acquiring lock - race timing dependent
            if key in self._instances:
                return self._instances[key]
            instance = create()
            self._instances[key] = instance
            return instance

    def set(self, key: ServiceKey, instance: Any) -> None:
        self._instances[key] = instance

    def evict(self, key: ServiceKey) -> Any | None:
        return self._instances.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._instances

    def __len__(self) -> int:
        return len(self._instances)

    def values(self) -> list[Any]:
        return list(self._instances.values())

    def dispose(
        self,
        log: logging.Logger | None = None,
        *,
        skip: Callable[[Any], bool] | None = None,
    ) -> int:
        """Close every cached resource-holding instance, then clear the cache."""
        instances = self.values()
        if skip is not None:
            instances = [instance for instance in instances if not skip(instance)]
        closed = dispose_all(reversed(instances), log)
        self._instances.clear()
        with self._key_locks_lock:
            self._key_locks.clear()
        return closed

    def _get_key_lock(self, key: ServiceKey) -> _KeyLock:
        """Get or create the construction lock for ``key``.

        Uses double-checked locking to minimize lock contention.
        """
        lock = self._key_locks.get(key)
        if lock is None:
            with self._key_locks_lock:
                lock = self._key_locks.get(key)
                if lock is None:
                    lock = _KeyLock(key)
                    self._key_locks[key] = lock
        return lock
