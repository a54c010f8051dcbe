"""Tests for releasing resource-holding instances."""

import logging

import pytest

from cadwire.cache import InstanceCache, dispose_all
from cadwire.container import Container
from cadwire.container_interface import IServiceContainer
from cadwire.types import Lifetime


class Connection:
    def __init__(self) -> None:
        self.closed = False

    def close(self) -> None:
        self.closed = True


class FaultyConnection:
    def close(self) -> None:
        raise OSError("socket already gone")


class NotClosable:
    close = "not callable"


class Recorder:
    def __init__(self, name: str, log: list[str]) -> None:
        self.name = name
        self.log = log

    def close(self) -> None:
        self.log.append(self.name)


class ScopedRecorder(Recorder):
    def __init__(self, log: list) -> None:
        super().__init__("scoped", log)


class TestDisposeAll:
    def test_closes_each_instance(self) -> None:
        first, second = Connection(), Connection()

        assert dispose_all([first, object(), second]) == 2
        assert first.closed
        assert second.closed

    def test_failure_isolated_and_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        after = Connection()

        with caplog.at_level(logging.WARNING):
            closed = dispose_all([FaultyConnection(), after])

        assert closed == 1
        assert after.closed
        assert "Failed to close FaultyConnection" in caplog.text

    def test_non_callable_close_ignored(self) -> None:
        assert dispose_all([NotClosable()]) == 0


class TestInstanceCache:
    def test_get_or_create_caches(self) -> None:
        cache = InstanceCache()
        calls: list[int] = []

        def create() -> Connection:
            calls.append(1)
            return Connection()

        first = cache.get_or_create("db", create)

        assert cache.get_or_create("db", create) is first
        assert calls == [1]
        assert "db" in cache
        assert len(cache) == 1

    def test_failed_creation_not_cached(self) -> None:
        cache = InstanceCache()

        def create() -> Connection:
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            cache.get_or_create("db", create)

        assert "db" not in cache

    def test_dispose_reverse_order_and_clear(self) -> None:
        cache = InstanceCache()
        log: list[str] = []
        for name in ("first", "second", "third"):
            cache.set(name, Recorder(name, log))

        assert cache.dispose() == 3
        assert log == ["third", "second", "first"]
        assert len(cache) == 0

    def test_evict(self) -> None:
        cache = InstanceCache()
        connection = Connection()
        cache.set("db", connection)

        assert cache.evict("db") is connection
        assert cache.evict("db") is None


class TestContainerDisposal:
    def test_close_releases_singletons(self, any_container: IServiceContainer) -> None:
        any_container.register_singleton(Connection)
        connection = any_container.resolve(Connection)

        any_container.close()

        assert connection.closed

    def test_close_skips_transients(self, any_container: IServiceContainer) -> None:
        any_container.register_transient(Connection)
        connection = any_container.resolve(Connection)

        any_container.close()

        assert not connection.closed

    def test_close_releases_registered_instances(self, any_container: IServiceContainer) -> None:
        connection = Connection()
        any_container.register_instance(Connection, connection)

        any_container.close()

        assert connection.closed

    def test_close_continues_after_failure(
        self,
        any_container: IServiceContainer,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        any_container.register_singleton(Connection)
        any_container.register_singleton(FaultyConnection)
        connection = any_container.resolve(Connection)
        any_container.resolve(FaultyConnection)

        with caplog.at_level(logging.WARNING):
            any_container.close()

        assert connection.closed
        assert "Failed to close FaultyConnection" in caplog.text

    def test_close_is_idempotent(self) -> None:
        container = Container()
        log: list[str] = []
        container.register_factory(Recorder, lambda _: Recorder("db", log), lifetime=Lifetime.SINGLETON)
        container.resolve(Recorder)

        container.close()
        container.close()

        assert log == ["db"]

    def test_scope_close_releases_only_scoped(self, any_container: IServiceContainer) -> None:
        any_container.register_singleton(Connection)
        any_container.register_scoped(Recorder, ScopedRecorder)
        log: list[str] = []
        any_container.register_instance(list, log)

        singleton = any_container.resolve(Connection)
        with any_container.create_scope() as scope:
            scope.resolve(Connection)
            scoped = scope.resolve(Recorder)

        assert log == [scoped.name]
        assert not singleton.closed

    def test_scope_close_continues_after_failure(
        self,
        any_container: IServiceContainer,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Both scoped resources are released even though the first one closed raises."""
        any_container.register_scoped(Connection)
        any_container.register_scoped(FaultyConnection)
        scope = any_container.create_scope()
        connection = scope.resolve(Connection)
        scope.resolve(FaultyConnection)

        with caplog.at_level(logging.WARNING):
            scope.close()

        assert connection.closed
        assert "Failed to close FaultyConnection" in caplog.text

    def test_nested_scope_not_closed_by_parent(self, any_container: IServiceContainer) -> None:
        any_container.register_scoped(Connection)

        outer = any_container.create_scope()
        inner = outer.create_scope()
        inner_connection = inner.resolve(Connection)
        outer_connection = outer.resolve(Connection)

        outer.close()

        assert outer_connection.closed
        assert not inner_connection.closed
        inner.close()
        assert inner_connection.closed
