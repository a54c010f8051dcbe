"""Scopes and cleanup: services with ``close()`` are released by their owner.

Scoped instances are closed when their scope exits; singletons are closed
when the container closes.
"""

from __future__ import annotations

from cadwire import Container


class DocumentLock:
    def __init__(self) -> None:
        self.released = False

    def close(self) -> None:
        self.released = True
        print("document lock released")


class LicenseSession:
    def close(self) -> None:
        print("license session closed")


def main() -> None:
    container = Container()
    container.register_scoped(DocumentLock)
    container.register_singleton(LicenseSession)

    with container.create_scope() as scope:
        lock = scope.resolve(DocumentLock)
        scope.resolve(LicenseSession)
        print(f"released_inside_scope={lock.released}")  # => released_inside_scope=False
    # => document lock released
    print(f"released_after_scope={lock.released}")  # => released_after_scope=True

    container.close()  # => license session closed


if __name__ == "__main__":
    main()
