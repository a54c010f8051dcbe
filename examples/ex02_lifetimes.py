"""Lifetimes: transient, singleton and scoped services side by side."""

from __future__ import annotations

from cadwire import Container, Lifetime


class UnitConverter:
    pass


class Transaction:
    pass


class Command:
    pass


def main() -> None:
    container = Container()
    container.register_singleton(UnitConverter)
    container.register_scoped(Transaction)
    container.register_factory(Command, lambda _resolver: Command(), Lifetime.TRANSIENT)

    print(f"singleton_shared={container.resolve(UnitConverter) is container.resolve(UnitConverter)}")
    # => singleton_shared=True
    print(f"transient_shared={container.resolve(Command) is container.resolve(Command)}")
    # => transient_shared=False

    with container.create_scope() as first, container.create_scope() as second:
        print(f"scoped_within_scope={first.resolve(Transaction) is first.resolve(Transaction)}")
        # => scoped_within_scope=True
        print(f"scoped_across_scopes={first.resolve(Transaction) is second.resolve(Transaction)}")
        # => scoped_across_scopes=False


if __name__ == "__main__":
    main()
