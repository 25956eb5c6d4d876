"""The catalog of descriptors a container resolves services from."""

import inspect
from typing import Any, Callable, Iterable, Iterator, Optional, Sequence, Union

from pliant.descriptor import ServiceDescriptor
from pliant.errors import DependencyError
from pliant.identifier import ServiceIdentifier

__all__ = ["ServiceCollection", "profiles_match"]

Descriptors = Union[ServiceDescriptor, Sequence[ServiceDescriptor]]
# module level: inside the class body ``set`` is the registration method
ProfileSelection = Optional[set[str]]


class ServiceCollection:
    """Multimap from :class:`ServiceIdentifier` to an ordered list of descriptors.

    ``set`` methods replace whatever is registered for an identifier, ``add``
    methods append to it. Appending affects cardinality: a dependency that
    expects exactly one service fails once two are registered.

    Example:
        >>> services = (
        ...     ServiceCollection()
        ...     .add_class(ILocaleService, LocaleService)
        ...     .add_class(ITranslateService, TranslateService)
        ... )
        >>> container = services.create_container()
    """

    def __init__(
        self,
        entries: Optional[Iterable[tuple[ServiceIdentifier, ServiceDescriptor]]] = None,
    ):
        self._entries: dict[ServiceIdentifier, list[ServiceDescriptor]] = {}
        if entries is not None:
            for service_id, descriptor in entries:
                self.add(service_id, descriptor)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, service_id: ServiceIdentifier) -> bool:
        return self.has(service_id)

    def __iter__(self) -> Iterator[tuple[ServiceIdentifier, ServiceDescriptor]]:
        return self.entries()

    def has(self, service_id: ServiceIdentifier) -> bool:
        return service_id in self._entries

    def get(self, service_id: ServiceIdentifier) -> Optional[list[ServiceDescriptor]]:
        """Return a copy of the descriptors registered for ``service_id``, if any."""
        descriptors = self._entries.get(service_id)
        return list(descriptors) if descriptors is not None else None

    def keys(self) -> Iterator[ServiceIdentifier]:
        return iter(list(self._entries))

    def entries(self) -> Iterator[tuple[ServiceIdentifier, ServiceDescriptor]]:
        for service_id, descriptors in list(self._entries.items()):
            for descriptor in descriptors:
                yield service_id, descriptor

    def set(self, service_id: ServiceIdentifier, descriptor: Descriptors) -> "ServiceCollection":
        """Replace the descriptors for ``service_id``.

        Raises:
            ValueError: If an empty list of descriptors is given.
        """
        descriptors = _as_list(descriptor)
        if not descriptors:
            raise ValueError("A list of descriptors must not be empty.")
        self._entries[service_id] = descriptors
        return self

    def add(self, service_id: ServiceIdentifier, descriptor: Descriptors) -> "ServiceCollection":
        """Append one or more descriptors for ``service_id``.

        Raises:
            ValueError: If an empty list of descriptors is given.
        """
        descriptors = _as_list(descriptor)
        if not descriptors:
            raise ValueError("A list of descriptors must not be empty.")
        self._entries.setdefault(service_id, []).extend(descriptors)
        return self

    def set_instance(self, service_id: ServiceIdentifier, value: Any) -> "ServiceCollection":
        return self.set(service_id, ServiceDescriptor.for_instance(value))

    def add_instance(self, service_id: ServiceIdentifier, value: Any) -> "ServiceCollection":
        return self.add(service_id, ServiceDescriptor.for_instance(value))

    def set_factory(
        self, service_id: ServiceIdentifier, factory: Callable[..., Any]
    ) -> "ServiceCollection":
        return self.set(service_id, ServiceDescriptor.for_factory(factory))

    def add_factory(
        self, service_id: ServiceIdentifier, factory: Callable[..., Any]
    ) -> "ServiceCollection":
        return self.add(service_id, ServiceDescriptor.for_factory(factory))

    def set_class(
        self,
        service_id: ServiceIdentifier,
        cls: type,
        static_arguments: Sequence[Any] = (),
        deferrable: bool = False,
    ) -> "ServiceCollection":
        """Register ``cls`` as the only descriptor for ``service_id``.

        Args:
            service_id: The identifier for the service.
            cls: The class constructor.
            static_arguments: Leading constructor arguments that are not injected.
            deferrable: Hand the service out as a proxy that constructs it on
                first use, so it can take part in constructor cycles.
        """
        return self.set(
            service_id, ServiceDescriptor.for_class(cls, static_arguments, deferrable)
        )

    def add_class(
        self,
        service_id: ServiceIdentifier,
        cls: type,
        static_arguments: Sequence[Any] = (),
        deferrable: bool = False,
    ) -> "ServiceCollection":
        """Append ``cls`` to the descriptors for ``service_id``; see :meth:`set_class`."""
        return self.add(
            service_id, ServiceDescriptor.for_class(cls, static_arguments, deferrable)
        )

    def provides(
        self,
        service_id: ServiceIdentifier,
        static_arguments: Sequence[Any] = (),
        deferrable: bool = False,
        profiles: Optional[Sequence[str]] = None,
    ) -> Callable:
        """Decorator registering a class or factory function for ``service_id``.

        Args:
            service_id: The identifier the decorated object provides.
            static_arguments: Leading arguments that are not injected.
            deferrable: For classes, hand the service out as a deferred proxy.
            profiles: Optional list of profiles for which the provider is active.

        Returns:
            A decorator that registers its target and returns it unchanged.

        Example:
            @services.provides(IDatabase, profiles=["!test"])
            class PostgresDatabase:
                ...
        """

        def decorator(obj):
            if inspect.isclass(obj):
                descriptor = ServiceDescriptor.for_class(
                    obj, static_arguments, deferrable, profiles or ()
                )
            elif callable(obj):
                if deferrable:
                    raise DependencyError(f"Factory {obj.__name__} cannot be deferrable")
                descriptor = ServiceDescriptor.for_factory(obj, static_arguments, profiles or ())
            else:
                raise DependencyError(f"{obj} is not a class or function")

            self.add(service_id, descriptor)
            return obj

        return decorator

    def for_profiles(self, profiles: ProfileSelection) -> "ServiceCollection":
        """Return a collection holding only descriptors active in ``profiles``.

        Identifiers whose descriptors are all inactive are left out. ``None``
        selects everything.
        """
        if profiles is None:
            return ServiceCollection(self)
        return ServiceCollection(
            (service_id, descriptor)
            for service_id, descriptor in self
            if profiles_match(descriptor.profiles, profiles)
        )

    def create_container(self, parent=None, profiles: ProfileSelection = None):
        """Create a :class:`~pliant.container.ServiceContainer` from this collection.

        Args:
            parent: An optional parent container; the new container becomes its child.
            profiles: Optional profile selection used to filter descriptors.
        """
        if parent is not None:
            return parent.create_child(self, profiles)

        from pliant.container import ServiceContainer

        return ServiceContainer(self, profiles)


def profiles_match(stated: Sequence[str], selected: set[str]) -> bool:
    """Check if a descriptor's profile requirements match the selected profiles.

    Profile matching supports inclusion and exclusion patterns:
    - Normal profiles ("dev", "prod") must be in the selected set
    - Exclusion profiles ("!test") must NOT be in the selected set
    - Empty stated profiles match all selected profiles

    Example:
        >>> profiles_match(["dev"], {"dev"})          # True
        >>> profiles_match(["!test"], {"dev"})        # True
        >>> profiles_match(["!test"], {"test"})       # False
        >>> profiles_match(["prod"], {"dev"})         # False
    """
    provided = [p for p in stated if not p.startswith("!")]
    excluded = [p[1:] for p in stated if p.startswith("!")]

    return not any(e in selected for e in excluded) and (
        not provided or any(p in selected for p in provided)
    )


def _as_list(descriptor: Descriptors) -> list[ServiceDescriptor]:
    if isinstance(descriptor, ServiceDescriptor):
        return [descriptor]
    return list(descriptor)
