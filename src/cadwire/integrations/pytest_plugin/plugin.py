from __future__ import annotations

from collections.abc import Iterator

import pytest

from cadwire.container import Container
from cadwire.locator import ServiceLocator
from cadwire.types import ContainerMode


@pytest.fixture()
def cadwire_container() -> Iterator[Container]:
    """Create a per-test container, closed when the test finishes.

    The fixture is function-scoped, so registrations are isolated between
    tests unless users override fixture scope explicitly.

    Yields:
        A new reflection-based ``Container``.

    """
    container = Container()
    yield container
    container.close()


@pytest.fixture()
def cadwire_locator() -> Iterator[ServiceLocator]:
    """Create a per-test service locator in ``AUTO`` mode, reset after the test.

    Use it instead of the process-wide ``cadwire.service_locator`` so tests do
    not leak the active container between each other.

    Yields:
        A new ``ServiceLocator``.

    """
    locator = ServiceLocator(ContainerMode.AUTO)
    yield locator
    locator.reset()
