"""Quickstart: automatic dependency wiring from type hints.

Register the abstract contracts, resolve only the top-level service, and let
cadwire build the rest of the chain from constructor annotations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from cadwire import Container


class ILogger(ABC):
    @abstractmethod
    def log(self, message: str) -> None: ...


class ConsoleLogger(ILogger):
    def log(self, message: str) -> None:
        print(f"[LOG] {message}")


class DrawingRepository:
    def __init__(self, logger: ILogger) -> None:
        self.logger = logger

    def save(self, name: str) -> None:
        self.logger.log(f"saved {name}")


class DrawingService:
    def __init__(self, repository: DrawingRepository) -> None:
        self.repository = repository


def main() -> None:
    container = Container()
    container.register_singleton(ILogger, ConsoleLogger)

    service = container.resolve(DrawingService)
    service.repository.save("floor-plan.dwg")  # => [LOG] saved floor-plan.dwg

    chain = (
        f"{type(service).__name__}"
        f">{type(service.repository).__name__}"
        f">{type(service.repository.logger).__name__}"
    )
    print(f"chain={chain}")  # => chain=DrawingService>DrawingRepository>ConsoleLogger


if __name__ == "__main__":
    main()
