"""Descriptors: instructions for producing the value of a service.

A descriptor is either a value recipe (:class:`InstanceDescriptor`), holding a
pre-built instance, or a constructor recipe (:class:`ConstructorDescriptor`),
holding a class or factory function, the leading arguments bound to it and the
dependencies it declares. Descriptors are immutable; their dependency list is
fixed when they are created.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence

from pliant.dependency import Dependency, dependencies_of

__all__ = ["ServiceDescriptor", "ConstructorDescriptor", "InstanceDescriptor"]

logger = logging.getLogger(__name__)


class ServiceDescriptor(ABC):
    """Describes a service that has not yet been instantiated.

    Every descriptor exposes ``name``, ``dependencies``, ``deferrable`` and
    ``profiles``.
    """

    name: str
    dependencies: tuple[Dependency, ...]
    deferrable: bool
    profiles: tuple[str, ...]

    @abstractmethod
    def activate(
        self, dependencies: Sequence[Any], keyword_dependencies: Mapping[str, Any]
    ) -> Any:
        """Produce the service.

        Args:
            dependencies: Values for positional parameter dependencies, in
                ascending parameter order.
            keyword_dependencies: Values for keyword-only parameter
                dependencies, by parameter name.
        """

    @property
    def parameter_dependencies(self) -> list[Dependency]:
        """Parameter dependencies in ascending parameter order."""
        return sorted(
            (dependency for dependency in self.dependencies if dependency.is_parameter),
            key=lambda dependency: dependency.target.index,
        )

    @property
    def field_dependencies(self) -> list[Dependency]:
        return [dependency for dependency in self.dependencies if dependency.is_field]

    @staticmethod
    def for_class(
        cls: type,
        static_arguments: Sequence[Any] = (),
        deferrable: bool = False,
        profiles: Sequence[str] = (),
    ) -> "ConstructorDescriptor":
        return ConstructorDescriptor(cls, tuple(static_arguments), deferrable, tuple(profiles))

    @staticmethod
    def for_factory(
        factory: Callable[..., Any],
        static_arguments: Sequence[Any] = (),
        profiles: Sequence[str] = (),
    ) -> "ConstructorDescriptor":
        return ConstructorDescriptor(factory, tuple(static_arguments), False, tuple(profiles))

    @staticmethod
    def for_instance(instance: Any, profiles: Sequence[str] = ()) -> "InstanceDescriptor":
        return InstanceDescriptor(instance, tuple(profiles))


@dataclass(frozen=True, eq=False)
class ConstructorDescriptor(ServiceDescriptor):
    """A class or factory function plus the arguments bound to it.

    Attributes:
        ctor: The class or function called to produce the service.
        static_arguments: Leading arguments that are supplied as-is rather
            than injected.
        deferrable: If True, the service is handed out as a
            :class:`~pliant.lazy.DeferredProxy` and only constructed on first
            use, which lets it take part in constructor cycles.
        profiles: Profiles under which the descriptor is active.
    """

    ctor: Callable[..., Any]
    static_arguments: tuple[Any, ...] = ()
    deferrable: bool = False
    profiles: tuple[str, ...] = ()
    dependencies: tuple[Dependency, ...] = field(init=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, "static_arguments", tuple(self.static_arguments))
        object.__setattr__(self, "profiles", tuple(self.profiles))
        object.__setattr__(self, "dependencies", dependencies_of(self.ctor))

    @property
    def name(self) -> str:
        return getattr(self.ctor, "__name__", None) or repr(self.ctor)

    def bind(self, *args: Any) -> "ConstructorDescriptor":
        """Return a copy with ``args`` appended to the static arguments."""
        return ConstructorDescriptor(
            self.ctor, self.static_arguments + args, self.deferrable, self.profiles
        )

    def activate(
        self, dependencies: Sequence[Any], keyword_dependencies: Mapping[str, Any]
    ) -> Any:
        args = list(self.static_arguments)

        positional = [d for d in self.parameter_dependencies if not d.target.keyword_only]
        first_injected = positional[0].target.index if positional else len(args)
        if len(args) != first_injected:
            logger.warning(
                "First service dependency of %s at position %d conflicts with %d static arguments",
                self.name,
                first_injected + 1,
                len(args),
            )
            if first_injected > len(args):
                args.extend([None] * (first_injected - len(args)))
            else:
                del args[first_injected:]

        return self.ctor(*args, *dependencies, **keyword_dependencies)


@dataclass(frozen=True, eq=False)
class InstanceDescriptor(ServiceDescriptor):
    """A pre-built value. Activation returns it unchanged."""

    instance: Any
    profiles: tuple[str, ...] = ()
    dependencies: tuple[Dependency, ...] = field(default=(), init=False, repr=False)
    deferrable: bool = field(default=False, init=False, repr=False)

    @property
    def name(self) -> str:
        return f"instance of {type(self.instance).__name__}"

    def activate(
        self, dependencies: Sequence[Any], keyword_dependencies: Mapping[str, Any]
    ) -> Any:
        return self.instance
