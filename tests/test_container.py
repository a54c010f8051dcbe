"""Tests for registration and resolution shared by both back-ends."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Protocol

import pytest
from pydantic_settings import BaseSettings

from cadwire.container import Container
from cadwire.container_interface import IResolver, IServiceContainer
from cadwire.exceptions import (
    CadWireConstructionError,
    CadWireServiceNotRegisteredError,
    CadWireUnresolvedDependencyError,
)
from cadwire.resolution import Resolution
from cadwire.types import Lifetime


class ILogger(ABC):
    @abstractmethod
    def log(self, message: str) -> None: ...


class ConsoleLogger(ILogger):
    def __init__(self) -> None:
        self.messages: list[str] = []

    def log(self, message: str) -> None:
        self.messages.append(message)


class FileLogger(ILogger):
    def log(self, message: str) -> None:
        pass


class IRepository(ABC):
    @abstractmethod
    def save(self, item: str) -> None: ...


class Repository(IRepository):
    def __init__(self, logger: ILogger) -> None:
        self.logger = logger

    def save(self, item: str) -> None:
        self.logger.log(f"saved {item}")


class ClockProtocol(Protocol):
    def now(self) -> float: ...


class FixedClock:
    def now(self) -> float:
        return 42.0


class ExportSettings(BaseSettings):
    precision: int = 3


class Exporter:
    def __init__(self, settings: ExportSettings) -> None:
        self.settings = settings


@dataclass
class DrawingService:
    repository: IRepository
    tags: list[str] = field(default_factory=list)


class TestComposition:
    def test_singleton_logger_shared_by_transient_repositories(
        self,
        any_container: IServiceContainer,
    ) -> None:
        """Transient repositories get distinct instances sharing one singleton logger."""
        any_container.register_singleton(ILogger, ConsoleLogger)
        any_container.register_transient(IRepository, Repository)

        first = any_container.resolve(IRepository)
        second = any_container.resolve(IRepository)

        assert isinstance(first, Repository)
        assert isinstance(second, Repository)
        assert first is not second
        assert first.logger is second.logger
        assert first.logger is any_container.resolve(ILogger)

    def test_unregistered_concrete_class_is_autowired(
        self,
        any_container: IServiceContainer,
    ) -> None:
        any_container.register_singleton(ILogger, ConsoleLogger)
        any_container.register_transient(IRepository, Repository)

        service = any_container.resolve(DrawingService)

        assert isinstance(service.repository, Repository)
        assert service.tags == []
        assert not any_container.is_registered(DrawingService)

    def test_autowired_class_is_transient(self, any_container: IServiceContainer) -> None:
        assert any_container.resolve(ConsoleLogger) is not any_container.resolve(ConsoleLogger)

    def test_settings_class_autowired_as_singleton(
        self,
        any_container: IServiceContainer,
    ) -> None:
        first = any_container.resolve(Exporter)
        second = any_container.resolve(Exporter)

        assert first is not second
        assert first.settings is second.settings
        assert first.settings.precision == 3
        assert not any_container.is_registered(ExportSettings)

    def test_protocol_contract(self, any_container: IServiceContainer) -> None:
        any_container.register_singleton(ClockProtocol, FixedClock)

        assert any_container.resolve(ClockProtocol).now() == 42.0

    def test_string_keys(self, any_container: IServiceContainer) -> None:
        any_container.register_instance("drawing.units", "mm")

        assert any_container.resolve("drawing.units") == "mm"


class TestRegistration:
    def test_last_registration_wins(self, any_container: IServiceContainer) -> None:
        any_container.register_transient(ILogger, ConsoleLogger)
        any_container.register_transient(ILogger, FileLogger)

        assert isinstance(any_container.resolve(ILogger), FileLogger)

    def test_register_instance_returns_same_object(self, any_container: IServiceContainer) -> None:
        logger = ConsoleLogger()
        any_container.register_instance(ILogger, logger)

        assert any_container.resolve(ILogger) is logger
        assert any_container.resolve(ILogger) is logger

    def test_factory_receives_resolver(self, any_container: IServiceContainer) -> None:
        seen: list[IResolver] = []

        def make_repository(resolver: IResolver) -> IRepository:
            seen.append(resolver)
            return Repository(resolver.resolve(ILogger))

        any_container.register_singleton(ILogger, ConsoleLogger)
        any_container.register_factory(IRepository, make_repository)

        repository = any_container.resolve(IRepository)

        assert seen == [any_container]
        assert repository.logger is any_container.resolve(ILogger)

    def test_factory_lifetime(self, any_container: IServiceContainer) -> None:
        any_container.register_factory(ILogger, lambda _: ConsoleLogger(), Lifetime.SINGLETON)

        assert any_container.resolve(ILogger) is any_container.resolve(ILogger)

    def test_self_registration_is_contract(self, any_container: IServiceContainer) -> None:
        any_container.register_singleton(ConsoleLogger)

        assert any_container.is_registered(ConsoleLogger)
        assert any_container.resolve(ConsoleLogger) is any_container.resolve(ConsoleLogger)

    def test_is_registered(self, any_container: IServiceContainer) -> None:
        assert not any_container.is_registered(ILogger)

        any_container.register_transient(ILogger, ConsoleLogger)

        assert any_container.is_registered(ILogger)

    def test_registration_methods_chain(self, any_container: IServiceContainer) -> None:
        result = any_container.register_singleton(ILogger, ConsoleLogger).register_transient(
            IRepository,
            Repository,
        )

        assert result is any_container

    def test_container_registers_itself(self, any_container: IServiceContainer) -> None:
        assert any_container.resolve(IServiceContainer) is any_container
        assert any_container.resolve(IResolver) is any_container
        assert any_container.resolve(type(any_container)) is any_container


class TestResolutionSurface:
    def test_resolve_unregistered_contract_raises(self, any_container: IServiceContainer) -> None:
        with pytest.raises(CadWireServiceNotRegisteredError) as exc_info:
            any_container.resolve(ILogger)

        assert exc_info.value.service_key is ILogger

    def test_try_resolve_success(self, any_container: IServiceContainer) -> None:
        any_container.register_singleton(ILogger, ConsoleLogger)

        result = any_container.try_resolve(ILogger)

        assert isinstance(result, Resolution)
        assert result.ok
        assert isinstance(result.value, ConsoleLogger)
        assert result.error is None

    def test_try_resolve_failure_captures_error(self, any_container: IServiceContainer) -> None:
        result = any_container.try_resolve(ILogger)

        assert not result.ok
        assert isinstance(result.error, CadWireServiceNotRegisteredError)
        assert result.value_or("fallback") == "fallback"
        with pytest.raises(CadWireServiceNotRegisteredError):
            result.unwrap()

    def test_get_returns_default_and_logs_warning(
        self,
        any_container: IServiceContainer,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        fallback = ConsoleLogger()

        with caplog.at_level(logging.WARNING):
            assert any_container.get(ILogger) is None
            assert any_container.get(ILogger, fallback) is fallback

        assert "Failed to get service" in caplog.text

    def test_get_swallows_construction_errors(self, any_container: IServiceContainer) -> None:
        def broken(_: IResolver) -> ILogger:
            raise RuntimeError("disk full")

        any_container.register_factory(ILogger, broken)

        assert any_container.get(ILogger) is None
        with pytest.raises(CadWireConstructionError):
            any_container.resolve(ILogger)

    def test_unresolved_dependency_reports_parameter(
        self,
        any_container: IServiceContainer,
    ) -> None:
        any_container.register_transient(IRepository, Repository)

        with pytest.raises(CadWireUnresolvedDependencyError) as exc_info:
            any_container.resolve(IRepository)

        assert exc_info.value.parameter_name == "logger"
        assert exc_info.value.parameter_type is ILogger
        assert isinstance(exc_info.value.cause, CadWireServiceNotRegisteredError)

    def test_get_all_single_binding(self, container: Container) -> None:
        container.register_singleton(ILogger, ConsoleLogger)

        assert container.get_all(ILogger) == [container.resolve(ILogger)]

    def test_get_all_unregistered_is_empty(self, any_container: IServiceContainer) -> None:
        assert any_container.get_all(ILogger) == []

    def test_context_manager_closes(self) -> None:
        with Container() as container:
            container.register_singleton(ILogger, ConsoleLogger)
            container.resolve(ILogger)

        assert container.registration_count == 0
