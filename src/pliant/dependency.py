"""Declaring what a service needs.

Dependencies are declared with :data:`typing.Annotated` type hints, using a
:class:`~pliant.identifier.ServiceIdentifier` (or one of the :func:`optional`
and :func:`many` markers) as metadata:

    >>> ILogger = service_identifier("ILogger")
    >>> IPlugin = service_identifier("IPlugin")
    >>>
    >>> class Application:
    ...     settings: Annotated[Settings, optional(ISettings)]
    ...
    ...     def __init__(self, logger: Annotated[Logger, ILogger],
    ...                  plugins: Annotated[list[Plugin], many(IPlugin)]):
    ...         ...

Annotated constructor parameters become *parameter* dependencies, which must
be satisfied before the constructor runs. Annotated class attributes that are
not also constructor parameters become *field* dependencies, which are
assigned after the instance exists and so may form cycles.
"""

import inspect
import weakref
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Callable, Optional, Union, get_args, get_origin, get_type_hints

from pliant.errors import DependencyError
from pliant.identifier import ServiceIdentifier

__all__ = [
    "Cardinality",
    "Requirement",
    "ParameterTarget",
    "FieldTarget",
    "Dependency",
    "optional",
    "many",
    "dependencies_of",
]


class Cardinality(Enum):
    """How many services a dependency accepts."""

    EXACTLY_ONE = "exactly one"
    ZERO_OR_ONE = "zero or one"
    ZERO_OR_MORE = "zero or more"


@dataclass(frozen=True)
class Requirement:
    """Marker placed in ``Annotated`` metadata to request a service."""

    service_id: ServiceIdentifier
    cardinality: Cardinality = Cardinality.EXACTLY_ONE


@dataclass(frozen=True)
class ParameterTarget:
    """A constructor parameter, by position in the signature (``self`` excluded)."""

    index: int
    name: str
    keyword_only: bool = False


@dataclass(frozen=True)
class FieldTarget:
    """An attribute assigned on the instance after construction."""

    name: str


@dataclass(frozen=True)
class Dependency:
    """A recorded requirement that a parameter or field receive a service.

    Attributes:
        service_id: The identifier of the required service.
        target: Where the resolved value goes.
        cardinality: How many matching services are acceptable.
    """

    service_id: ServiceIdentifier
    target: Union[ParameterTarget, FieldTarget]
    cardinality: Cardinality = Cardinality.EXACTLY_ONE

    @property
    def is_parameter(self) -> bool:
        return isinstance(self.target, ParameterTarget)

    @property
    def is_field(self) -> bool:
        return isinstance(self.target, FieldTarget)


_cache: "weakref.WeakKeyDictionary[Callable, tuple[Dependency, ...]]" = weakref.WeakKeyDictionary()


def optional(service_id: ServiceIdentifier) -> Requirement:
    """Request zero or one service; ``None`` is injected when there is none."""
    return Requirement(service_id, Cardinality.ZERO_OR_ONE)


def many(service_id: ServiceIdentifier) -> Requirement:
    """Request every registered service, as a list in registration order."""
    return Requirement(service_id, Cardinality.ZERO_OR_MORE)


def dependencies_of(target: Callable) -> tuple[Dependency, ...]:
    """Extract the dependencies declared by a class or factory function.

    Args:
        target: The class or function to analyze.

    Returns:
        Parameter dependencies in signature order, followed by field
        dependencies in annotation order.

    Raises:
        DependencyError: If a ``*args`` or ``**kwargs`` parameter is annotated
            as a dependency.
    """
    try:
        return _cache[target]
    except (KeyError, TypeError):
        pass

    dependencies = _collect_dependencies(target)
    try:
        _cache[target] = dependencies
    except TypeError:
        # not weakly referenceable
        pass
    return dependencies


def _collect_dependencies(target: Callable) -> tuple[Dependency, ...]:
    class_hints = get_type_hints(target, include_extras=True) if inspect.isclass(target) else {}
    parameter_hints = _parameter_hints(target)

    dependencies = []
    parameter_names = set()
    for index, parameter in enumerate(_parameters(target)):
        parameter_names.add(parameter.name)
        requirement = _requirement_from(
            parameter_hints.get(parameter.name, class_hints.get(parameter.name))
        )
        if requirement is None:
            continue
        if parameter.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            raise DependencyError(
                f"Dependency <{parameter.name}> of <{_target_name(target)}> "
                "cannot be a variadic parameter"
            )
        keyword_only = parameter.kind is inspect.Parameter.KEYWORD_ONLY
        dependencies.append(
            Dependency(
                requirement.service_id,
                ParameterTarget(index, parameter.name, keyword_only),
                requirement.cardinality,
            )
        )

    for name, annotation in class_hints.items():
        if name in parameter_names:
            continue
        requirement = _requirement_from(annotation)
        if requirement is not None:
            dependencies.append(
                Dependency(requirement.service_id, FieldTarget(name), requirement.cardinality)
            )

    return tuple(dependencies)


def _parameters(target: Callable) -> list[inspect.Parameter]:
    try:
        signature = inspect.signature(target)
    except ValueError:
        # builtins without an introspectable signature take no injected parameters
        return []
    return list(signature.parameters.values())


def _parameter_hints(target: Callable) -> dict[str, Any]:
    func = target.__init__ if inspect.isclass(target) else target
    if not (inspect.isfunction(func) or inspect.ismethod(func)):
        return {}
    return get_type_hints(func, include_extras=True)


def _requirement_from(annotation: Any) -> Optional[Requirement]:
    if get_origin(annotation) is not Annotated:
        return None
    _, *metadata = get_args(annotation)
    for item in metadata:
        if isinstance(item, Requirement):
            return item
        if isinstance(item, ServiceIdentifier):
            return Requirement(item)
    return None


def _target_name(target: Callable) -> str:
    return getattr(target, "__qualname__", None) or repr(target)
