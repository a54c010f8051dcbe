"""Back-end selection: the service locator picks a container at runtime.

``AUTO`` prefers the ``injector`` back-end and falls back to the
reflection-based ``Container`` when it cannot be built. ``CADWIRE_MODE``
sets the default mode.
"""

from __future__ import annotations

from cadwire import ContainerMode, IServiceContainer, ServiceLocator


class Plotter:
    pass


def _injector_unavailable() -> IServiceContainer:
    raise ImportError("injector is not installed")


def main() -> None:
    locator = ServiceLocator(ContainerMode.AUTO)
    locator.configure_services(lambda container: container.register_singleton(Plotter))
    print(locator.container_info())
    # => InjectorContainer (mode=auto, registrations=4, built=False)

    locator.set_mode(ContainerMode.PREFER_MINIMAL, force=True)
    print(locator.container_info())  # => Container (mode=prefer_minimal, registrations=3)

    degraded = ServiceLocator(ContainerMode.AUTO, rich_factory=_injector_unavailable)
    print(f"fallback={type(degraded.current).__name__}")  # => fallback=Container

    locator.reset()
    degraded.reset()


if __name__ == "__main__":
    main()
