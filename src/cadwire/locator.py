"""Runtime selection between the container back-ends.

``ServiceLocator`` builds the active container lazily according to its
``ContainerMode``:

- ``AUTO`` tries the ``injector`` back-end and falls back to the
  reflection-based ``Container`` when it cannot be constructed;
- ``PREFER_RICH`` and ``PREFER_MINIMAL`` pick one back-end directly.

Whatever happens, the locator always hands out a usable container: if the
selected back-end fails to construct, a bare ``Container`` is used instead.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from cadwire.container import Container
from cadwire.container_interface import IServiceContainer
from cadwire.exceptions import CadWireBackendUnavailableError
from cadwire.injector_container import InjectorContainer
from cadwire.settings import LocatorSettings
from cadwire.types import ContainerMode

logger = logging.getLogger(__name__)

ContainerFactory = Callable[[], IServiceContainer]

_RICH_BACKEND = "injector"


class ServiceLocator:
    """Hold the active container and choose its back-end.

    The container is created on first access of ``current`` with
    double-checked locking; once created, reads take no lock. Replacing it
    (``set_mode(..., force=True)`` or ``reset()``) happens under the lock and
    the old container is closed best-effort.

    Args:
        mode: Back-end selection mode. Defaults to ``LocatorSettings().mode``,
            read when first needed.
        settings: Settings used when ``mode`` is not given.
        rich_factory: Builds the rich back-end. Defaults to ``InjectorContainer``.
        minimal_factory: Builds the minimal back-end. Defaults to ``Container``.
        log: Logger for selection and fallback messages.

    """

    def __init__(
        self,
        mode: ContainerMode | None = None,
        *,
        settings: LocatorSettings | None = None,
        rich_factory: ContainerFactory | None = None,
        minimal_factory: ContainerFactory | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self._mode = mode
        self._settings = settings
        self._rich_factory: ContainerFactory = rich_factory or InjectorContainer
        self._minimal_factory: ContainerFactory = minimal_factory or Container
        self._logger = log or logger
        self._container: IServiceContainer | None = None
        self._lock = threading.Lock()

    @property
    def mode(self) -> ContainerMode:
        if self._mode is None:
            self._mode = (self._settings or LocatorSettings()).mode
        return self._mode

    @property
    def current(self) -> IServiceContainer:
        """The active container, created on first access."""
        container = self._container
        if container is not None:
            return container

        with self._lock:
            if self._container is None:
                self._container = self._create_container()
            return self._container

    def set_mode(self, mode: ContainerMode, *, force: bool = False) -> None:
        """Change the back-end used for future containers.

        With ``force`` an active container is replaced immediately and the
        previous one closed; without it, or when no container has been built
        yet, the change applies to the next container built.
        """
        with self._lock:
            self._mode = mode
            if not force:
                return
            previous = self._container
            if previous is None:
                return
            self._container = self._create_container()
        self._logger.info("Container mode forced to %s", mode.value)
        self._close_quietly(previous)

    def reset(self) -> None:
        """Close and forget the active container; the next access builds a new one."""
        with self._lock:
            previous, self._container = self._container, None
        if previous is not None:
            self._close_quietly(previous)

    def configure_services(
        self,
        configure: Callable[[IServiceContainer], object],
    ) -> IServiceContainer:
        container = self.current
        configure(container)
        return container

    def container_info(self) -> str:
        """Describe the active back-end for diagnostics."""
        container = self.current
        info = (
            f"{type(container).__name__} (mode={self.mode.value}, "
            f"registrations={container.registration_count}"
        )
        if isinstance(container, InjectorContainer):
            info += f", built={container.statistics().is_built}"
        return info + ")"

    def _create_container(self) -> IServiceContainer:
        mode = self.mode
        try:
            if mode is ContainerMode.PREFER_MINIMAL:
                container = self._minimal_factory()
            elif mode is ContainerMode.PREFER_RICH:
                container = self._rich_factory()
            else:
                container = self._create_auto()
        except Exception:
            self._logger.error(
                "Failed to create a container for mode %s, using a bare Container",
                mode.value,
                exc_info=True,
            )
            return Container(log=self._logger)

        self._logger.info("Using %s (mode=%s)", type(container).__name__, mode.value)
        return container

    def _create_auto(self) -> IServiceContainer:
        try:
            return self._create_rich()
        except CadWireBackendUnavailableError as e:
            self._logger.warning("%s; falling back to the reflection-based container", e)
            return self._minimal_factory()

    def _create_rich(self) -> IServiceContainer:
        try:
            return self._rich_factory()
        except CadWireBackendUnavailableError:
            raise
        except Exception as e:
            raise CadWireBackendUnavailableError(_RICH_BACKEND, e) from e

    def _close_quietly(self, container: IServiceContainer) -> None:
        try:
            container.close()
        except Exception:
            self._logger.warning(
                "Failed to close %s",
                type(container).__name__,
                exc_info=True,
            )


service_locator = ServiceLocator()
"""Process-wide locator for hosts that want a single global container."""
