"""Constructor introspection and auto-wiring.

A class can be built through its ``__init__`` and through any classmethod
marked with :func:`constructor`. Candidates are tried widest first: the one
exposing the most parameters is attempted, and when one of its parameters
cannot be resolved the next widest candidate is tried.
"""

from __future__ import annotations

import inspect
import logging
import threading
import types
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar, Union, get_args, get_origin, get_type_hints

from cadwire.exceptions import (
    CadWireConstructionError,
    CadWireError,
    CadWireNoPublicConstructorError,
    CadWireServiceNotRegisteredError,
    CadWireUnresolvedDependencyError,
)
from cadwire.registry import ProvisionKind, ServiceDescriptor
from cadwire.resolution_stack import resolving
from cadwire.types import ServiceKey

logger = logging.getLogger(__name__)

F = TypeVar("F")

_CONSTRUCTOR_MARKER = "__cadwire_constructor__"
_INIT_LABEL = "__init__"
_VARIADIC_KINDS = (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)

# Failures that mean "this parameter cannot be supplied" rather than a broken graph.
UNRESOLVED_ERRORS: tuple[type[CadWireError], ...] = (
    CadWireServiceNotRegisteredError,
    CadWireUnresolvedDependencyError,
    CadWireNoPublicConstructorError,
)


def constructor(func: F) -> F:
    """Mark a classmethod as an alternative constructor for auto-wiring.

    Works on either side of ``@classmethod``::

        class Repository:
            def __init__(self, db: Database, cache: Cache) -> None: ...

            @constructor
            @classmethod
            def without_cache(cls, db: Database) -> Repository: ...
    """
    target = func.__func__ if isinstance(func, classmethod) else func
    setattr(target, _CONSTRUCTOR_MARKER, True)
    return func


@dataclass(frozen=True, slots=True)
class ParameterPlan:
    """How one constructor parameter is supplied."""

    name: str
    kind: inspect._ParameterKind
    annotation: Any
    default: Any = inspect.Parameter.empty
    optional: bool = False

    @property
    def has_default(self) -> bool:
        return self.default is not inspect.Parameter.empty


@dataclass(frozen=True, slots=True)
class ConstructorPlan:
    """A callable able to build ``target`` plus its parameter plans."""

    target: type[Any]
    label: str
    call: Callable[..., Any]
    parameters: tuple[ParameterPlan, ...]

    @property
    def width(self) -> int:
        return len(self.parameters)


class ConstructorPlanner:
    """Build and cache constructor plans per class."""

    __slots__ = ("_cache", "_lock")

    def __init__(self) -> None:
        self._cache: dict[type[Any], tuple[ConstructorPlan, ...]] = {}
        self._lock = threading.Lock()

    def plans_for(self, cls: type[Any]) -> tuple[ConstructorPlan, ...]:
        """Return the constructor plans of ``cls``, widest first."""
        cached = self._cache.get(cls)
        if cached is not None:
            return cached

        plans: list[ConstructorPlan] = []
        init_plan = self._plan_init(cls)
        if init_plan is not None:
            plans.append(init_plan)
        plans.extend(self._plan_marked_classmethods(cls))
        # sorted() is stable, so __init__ wins ties against marked classmethods.
        result = tuple(sorted(plans, key=lambda plan: plan.width, reverse=True))

        with self._lock:
            self._cache.setdefault(cls, result)
        return result

    def _plan_init(self, cls: type[Any]) -> ConstructorPlan | None:
        try:
            signature = inspect.signature(cls)
        except (TypeError, ValueError):
            return None
        hints = _get_type_hints(getattr(cls, "__init__", cls), cls)
        return ConstructorPlan(
            target=cls,
            label=_INIT_LABEL,
            call=cls,
            parameters=_plan_parameters(signature, hints),
        )

    def _plan_marked_classmethods(self, cls: type[Any]) -> list[ConstructorPlan]:
        plans: list[ConstructorPlan] = []
        seen: set[str] = set()
        for klass in cls.__mro__:
            for name, attr in vars(klass).items():
                if name in seen or not isinstance(attr, classmethod):
                    continue
                seen.add(name)
                if not getattr(attr.__func__, _CONSTRUCTOR_MARKER, False):
                    continue
                bound = getattr(cls, name)
                try:
                    signature = inspect.signature(bound)
                except (TypeError, ValueError):
                    continue
                plans.append(
                    ConstructorPlan(
                        target=cls,
                        label=name,
                        call=bound,
                        parameters=_plan_parameters(signature, _get_type_hints(attr.__func__, cls)),
                    ),
                )
        return plans


class Autowirer:
    """Build concrete classes by resolving their constructor parameters."""

    __slots__ = ("_logger", "_planner")

    def __init__(
        self,
        planner: ConstructorPlanner | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self._planner = planner or ConstructorPlanner()
        self._logger = log or logger

    @property
    def planner(self) -> ConstructorPlanner:
        return self._planner

    def activate(
        self,
        descriptor: ServiceDescriptor,
        resolver: Any,
        resolve: Callable[[ServiceKey], Any],
    ) -> Any:
        """Produce the service described by ``descriptor``.

        Factories are called with ``resolver``; implementation types are built
        with their parameters resolved through ``resolve``. Both run inside the
        cycle guard of the current resolution path.
        """
        if descriptor.kind is ProvisionKind.INSTANCE:
            return descriptor.instance

        key = descriptor.service_key
        with resolving(key):
            if descriptor.kind is ProvisionKind.FACTORY:
                return self._call_factory(descriptor, resolver)

            assert descriptor.implementation is not None
            return self.build(descriptor.implementation, resolve, service_key=key)

    def build(
        self,
        cls: type[Any],
        resolve: Callable[[ServiceKey], Any],
        *,
        service_key: ServiceKey | None = None,
    ) -> Any:
        """Instantiate ``cls``, resolving parameters through ``resolve``.

        ``resolve`` raises a ``CadWireError`` when a key cannot be produced.

        Raises:
            CadWireNoPublicConstructorError: If ``cls`` exposes no candidate.
            CadWireUnresolvedDependencyError: If every candidate has a
                parameter that cannot be supplied (reports the widest one).
            CadWireConstructionError: If the selected candidate raised.

        """
        key = cls if service_key is None else service_key
        plans = self._planner.plans_for(cls)
        if not plans:
            raise CadWireNoPublicConstructorError(key)

        widest_error: CadWireUnresolvedDependencyError | None = None
        for plan in plans:
            try:
                args, kwargs = self._collect_arguments(plan, resolve, key)
            except CadWireUnresolvedDependencyError as e:
                if widest_error is None:
                    widest_error = e
                self._logger.debug(
                    "Constructor %s.%s skipped: %s",
                    cls.__qualname__,
                    plan.label,
                    e,
                )
                continue
            return self._invoke(plan, args, kwargs, key)

        assert widest_error is not None
        raise widest_error

    def _call_factory(self, descriptor: ServiceDescriptor, resolver: Any) -> Any:
        assert descriptor.factory is not None
        try:
            return descriptor.factory(resolver)
        except CadWireError:
            raise
        except Exception as e:
            self._logger.error("Factory for %r failed", descriptor.service_key, exc_info=True)
            raise CadWireConstructionError(descriptor.service_key, e) from e

    def _collect_arguments(
        self,
        plan: ConstructorPlan,
        resolve: Callable[[ServiceKey], Any],
        service_key: ServiceKey,
    ) -> tuple[list[Any], dict[str, Any]]:
        args: list[Any] = []
        kwargs: dict[str, Any] = {}
        for param in plan.parameters:
            value = self._resolve_parameter(param, resolve, service_key)
            if param.kind is inspect.Parameter.POSITIONAL_ONLY:
                # Positional slots cannot be skipped without shifting later arguments.
                args.append(param.default if value is inspect.Parameter.empty else value)
            elif value is not inspect.Parameter.empty:
                kwargs[param.name] = value
        return args, kwargs

    def _resolve_parameter(
        self,
        param: ParameterPlan,
        resolve: Callable[[ServiceKey], Any],
        service_key: ServiceKey,
    ) -> Any:
        if param.annotation is None:
            if param.has_default:
                return inspect.Parameter.empty
            raise CadWireUnresolvedDependencyError(service_key, param.name, None)

        try:
            return resolve(param.annotation)
        except UNRESOLVED_ERRORS as e:
            if param.has_default:
                # Leave it out so the callable applies its own default.
                return inspect.Parameter.empty
            if param.optional:
                return None
            raise CadWireUnresolvedDependencyError(
                service_key,
                param.name,
                param.annotation,
                cause=e,
            ) from e

    def _invoke(
        self,
        plan: ConstructorPlan,
        args: list[Any],
        kwargs: dict[str, Any],
        service_key: ServiceKey,
    ) -> Any:
        try:
            instance = plan.call(*args, **kwargs)
        except CadWireError:
            raise
        except Exception as e:
            self._logger.error(
                "Failed to construct %s via %s",
                plan.target.__qualname__,
                plan.label,
                exc_info=True,
            )
            raise CadWireConstructionError(service_key, e) from e
        self._logger.debug("Constructed %s via %s", plan.target.__qualname__, plan.label)
        return instance


def _plan_parameters(
    signature: inspect.Signature,
    hints: dict[str, Any],
) -> tuple[ParameterPlan, ...]:
    plans: list[ParameterPlan] = []
    for name, param in signature.parameters.items():
        if param.kind in _VARIADIC_KINDS:
            continue
        annotation, optional = _unwrap_optional(hints.get(name))
        plans.append(
            ParameterPlan(
                name=name,
                kind=param.kind,
                annotation=annotation,
                default=param.default,
                optional=optional,
            ),
        )
    return tuple(plans)


def _unwrap_optional(annotation: Any) -> tuple[Any, bool]:
    """Turn ``X | None`` into ``(X, True)``; anything else is returned as is."""
    if annotation is None:
        return None, False
    if get_origin(annotation) in (Union, types.UnionType):
        members = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(members) == 1 and len(get_args(annotation)) == 2:  # noqa: PLR2004
            return members[0], True
    return annotation, False


def _get_type_hints(func: Any, cls: type[Any]) -> dict[str, Any]:
    try:
        hints = get_type_hints(func)
    except NameError as exc:
        logger.warning(
            "'%s' name error retrieving %s type hints",
            exc.name,
            cls.__qualname__,
        )
        return {}
    except TypeError:
        return {}
    hints.pop("return", None)
    return hints
