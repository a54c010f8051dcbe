"""Shared pytest fixtures for cadwire tests."""

from collections.abc import Iterator

import pytest

from cadwire.container import Container
from cadwire.container_interface import IServiceContainer
from cadwire.injector_container import InjectorContainer


@pytest.fixture()
def container() -> Iterator[Container]:
    """Reflection-based container."""
    container = Container()
    yield container
    container.close()


@pytest.fixture()
def injector_container() -> Iterator[InjectorContainer]:
    """Container backed by ``injector``."""
    container = InjectorContainer()
    yield container
    container.close()


@pytest.fixture(params=[Container, InjectorContainer], ids=["minimal", "injector"])
def any_container(request: pytest.FixtureRequest) -> Iterator[IServiceContainer]:
    """Each back-end in turn, for behaviour both must share."""
    container: IServiceContainer = request.param()
    yield container
    container.close()
