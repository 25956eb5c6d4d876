"""The service container: resolves identifiers into live, wired instances.

Resolving a service that is not cached yet builds a
:class:`~pliant.graph.CompositionGraph` rooted at it:

1. Dependencies are discovered outward from the root. Each one is matched to
   an already cached value (wrapped as an immutable node), to a descriptor
   registered in the owning container or one of its ancestors (a new pending
   node), or, for optional dependencies, to a shared empty node.
2. Cycles made only of constructor parameters are rejected.
3. Nodes are instantiated in rounds; a node is built once all of its
   parameter dependencies are. Values are recorded in the graph and in the
   cache of the container that owns the descriptor.
4. Field dependencies are bound once both ends exist.

The whole run happens inside a
:class:`~pliant.transaction.CompositionTransaction`, so a failure anywhere
leaves every container's cache exactly as it was before.

Containers form a hierarchy. A child sees its ancestors' services, and a
service is always built and cached by the nearest container whose catalog
registers it, so siblings share whatever their common parent owns.
"""

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence, Union

from pliant.cardinality import check_cardinality
from pliant.collection import ServiceCollection
from pliant.dependency import Cardinality, Dependency
from pliant.descriptor import ConstructorDescriptor, InstanceDescriptor, ServiceDescriptor
from pliant.errors import (
    CyclicDependencyError,
    DependencyError,
    DisposalError,
    IncompleteCompositionError,
    ObjectDisposedError,
    ReentrantResolutionError,
    UnknownServiceError,
)
from pliant.graph import CompositionGraph, CompositionNode
from pliant.identifier import ServiceIdentifier
from pliant.lazy import DeferredProxy, is_realized, unwrap
from pliant.provider import IScopedServiceProvider, IServiceProvider
from pliant.transaction import CompositionTransaction

__all__ = ["ServiceContainer"]

logger = logging.getLogger(__name__)


@dataclass
class _InstanceSet:
    """Cached values for one identifier; complete once ``remaining`` is empty."""

    remaining: set[int]
    values: list[Any]


class ServiceContainer:
    """Resolves services registered in a :class:`ServiceCollection`.

    The container copies the collection it is given (filtered by
    ``profiles``, if any) and registers itself under
    :data:`~pliant.provider.IServiceProvider` and
    :data:`~pliant.provider.IScopedServiceProvider`.

    Args:
        services: The descriptors this container owns.
        profiles: Optional set of active profiles used to filter descriptors.
            ``None`` keeps every descriptor.

    Example:
        >>> services = ServiceCollection().add_class(IGreeter, Greeter)
        >>> with ServiceContainer(services) as container:
        ...     container.get_service(IGreeter).greet("Alice")
    """

    def __init__(
        self,
        services: Optional[ServiceCollection] = None,
        profiles: Optional[set[str]] = None,
    ):
        if services is None:
            services = ServiceCollection()
        self._services = services.for_profiles(profiles)
        self._services.set(IServiceProvider, InstanceDescriptor(self))
        self._services.set(IScopedServiceProvider, InstanceDescriptor(self))
        self._profiles = profiles
        self._instances: dict[ServiceIdentifier, _InstanceSet] = {}
        self._disposables: list[tuple[Any, Callable[[], Any]]] = []
        self._parent: Optional["ServiceContainer"] = None
        self._disposed = False

    def __repr__(self) -> str:
        return f"<ServiceContainer with {len(self._services)} services>"

    def __enter__(self) -> "ServiceContainer":
        self._throw_if_disposed()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> bool:
        self.dispose()
        return False

    @property
    def parent(self) -> Optional["ServiceContainer"]:
        return self._parent

    @property
    def disposed(self) -> bool:
        return self._disposed

    def create_instance(
        self, ctor: Union[Callable[..., Any], ConstructorDescriptor], *args: Any
    ) -> Any:
        """Build an object without registering it, injecting its declared dependencies.

        The result is not cached and not disposed by the container.

        Args:
            ctor: A class, a factory function or a :class:`ConstructorDescriptor`.
            args: Leading arguments that are not injected. For a descriptor
                they are appended to its bound static arguments.
        """
        self._throw_if_disposed()
        if isinstance(ctor, ConstructorDescriptor):
            descriptor = ctor.bind(*args) if args else ctor
        else:
            descriptor = ConstructorDescriptor(ctor, args)
        return self._create_instance(descriptor)

    def has_service(self, service_id: ServiceIdentifier) -> bool:
        """True if this container or one of its ancestors registers ``service_id``."""
        self._throw_if_disposed()
        return self._has_service(service_id)

    def get_services(self, service_id: ServiceIdentifier) -> list[Any]:
        """Get every service registered for ``service_id``, in registration order.

        Raises:
            UnknownServiceError: If no container in the chain registers it.
        """
        self._throw_if_disposed()
        if not self._has_service(service_id):
            raise UnknownServiceError(service_id)
        instances = self._get_or_create_service_instances(service_id)
        return list(check_cardinality(instances, service_id, Cardinality.ZERO_OR_MORE))

    def get_service(self, service_id: ServiceIdentifier) -> Any:
        """Get the single service registered for ``service_id``.

        Raises:
            UnknownServiceError: If no container in the chain registers it.
            CardinalityError: If more than one service is registered.
        """
        self._throw_if_disposed()
        if not self._has_service(service_id):
            raise UnknownServiceError(service_id)
        instances = self._get_or_create_service_instances(service_id)
        return check_cardinality(instances, service_id, Cardinality.EXACTLY_ONE)

    def try_get_service(self, service_id: ServiceIdentifier) -> Optional[Any]:
        """Get the service registered for ``service_id``, or None if it resolved to nothing.

        Raises:
            UnknownServiceError: If no container in the chain registers it.
            CardinalityError: If more than one service is registered.
        """
        self._throw_if_disposed()
        if not self._has_service(service_id):
            raise UnknownServiceError(service_id)
        instances = self._get_or_create_service_instances(service_id)
        return check_cardinality(instances, service_id, Cardinality.ZERO_OR_ONE)

    def create_child(
        self,
        services: Optional[ServiceCollection] = None,
        profiles: Optional[set[str]] = None,
    ) -> "ServiceContainer":
        """Create a nested container with additional services.

        Args:
            services: Descriptors owned by the child.
            profiles: Profile selection for the child; defaults to this
                container's selection.
        """
        self._throw_if_disposed()
        child = ServiceContainer(services, self._profiles if profiles is None else profiles)
        child._parent = self
        logger.debug("Created child %r of %r", child, self)
        return child

    def dispose(self) -> None:
        """Dispose every disposable service this container produced.

        Services are disposed in reverse order of creation. All of them are
        attempted even if some fail. Disposing twice does nothing.

        Raises:
            DisposalError: If more than one service failed to dispose. A
                single failure is re-raised unchanged.
        """
        if self._disposed:
            return
        self._disposed = True
        self._instances.clear()
        disposables, self._disposables = self._disposables, []
        logger.debug("Disposing %r (%d disposables)", self, len(disposables))

        errors = []
        for _, dispose in reversed(disposables):
            try:
                dispose()
            except Exception as e:
                errors.append(e)

        if len(errors) == 1:
            raise errors[0]
        if errors:
            raise DisposalError(errors)

    def _throw_if_disposed(self):
        if self._disposed:
            raise ObjectDisposedError("Object is disposed.")
        if self._parent is not None:
            self._parent._throw_if_disposed()

    def _has_service(self, service_id: ServiceIdentifier) -> bool:
        if self._services.has(service_id):
            return True
        return self._parent is not None and self._parent._has_service(service_id)

    def _snapshot(self) -> tuple[dict[ServiceIdentifier, _InstanceSet], list]:
        instances = {
            service_id: _InstanceSet(set(entry.remaining), list(entry.values))
            for service_id, entry in self._instances.items()
        }
        return instances, list(self._disposables)

    def _restore(self, snapshot: tuple[dict[ServiceIdentifier, _InstanceSet], list]) -> None:
        self._instances, self._disposables = snapshot

    def _get_instances(self, service_id: ServiceIdentifier) -> Optional[list[Any]]:
        entry = self._instances.get(service_id)
        if entry is None:
            return None
        if entry.remaining:
            raise ReentrantResolutionError(
                f"Service {service_id.format(quoted=True)} is currently initializing"
            )
        return entry.values

    def _get_or_create_service_instances(self, service_id: ServiceIdentifier) -> list[Any]:
        instances = self._get_instances(service_id)
        if instances is not None:
            return instances
        descriptors = self._services.get(service_id)
        if descriptors is not None:
            return self._create_and_cache_service_instances(service_id, descriptors)
        if self._parent is not None:
            return self._parent._get_or_create_service_instances(service_id)
        return []

    def _reserve_service_instances(self, service_id: ServiceIdentifier) -> _InstanceSet:
        """Create the cache entry for ``service_id`` with every slot still pending.

        Until the last slot is set, reading the entry raises
        :class:`ReentrantResolutionError`.
        """
        descriptors = self._services.get(service_id)
        if descriptors is None:
            if self._parent is None:
                raise DependencyError(f"No container owns service {service_id.format(quoted=True)}")
            return self._parent._reserve_service_instances(service_id)

        entry = self._instances.get(service_id)
        if entry is None:
            entry = self._instances[service_id] = _InstanceSet(
                set(range(len(descriptors))), [None] * len(descriptors)
            )
        return entry

    def _set_service_instance(
        self, service_id: ServiceIdentifier, instance: Any, index: int
    ) -> None:
        if not self._services.has(service_id):
            if self._parent is None:
                raise DependencyError(f"No container owns service {service_id.format(quoted=True)}")
            self._parent._set_service_instance(service_id, instance, index)
            return

        entry = self._reserve_service_instances(service_id)
        if index not in entry.remaining:
            raise DependencyError("Service instance already set")
        entry.remaining.discard(index)
        entry.values[index] = instance
        self._track_disposable(instance)

    def _track_disposable(self, instance: Any) -> None:
        if instance is self:
            return
        if isinstance(instance, DeferredProxy):
            self._disposables.append((instance, lambda: _dispose_deferred(instance)))
            return
        dispose = _disposer_for(instance)
        if dispose is not None:
            self._disposables.append((instance, dispose))

    def _create_and_cache_service_instances(
        self, service_id: ServiceIdentifier, descriptors: Sequence[ServiceDescriptor]
    ) -> list[Any]:
        if not self._services.has(service_id):
            raise DependencyError("Invalid operation")

        logger.debug("Composing %s in %r", service_id, self)
        graph = CompositionGraph()
        with CompositionTransaction() as transaction:
            root = graph.create_node(service_id, self, descriptors)
            remaining_work = self._discover(graph, root)

            cycle = graph.find_parameter_cycle()
            if cycle is not None:
                raise CyclicDependencyError(
                    "Cyclic dependency in graph: " + " -> ".join(str(i) for i in cycle),
                    cycle,
                )

            logger.debug("Instantiating %d services for %s", len(remaining_work), service_id)
            self._instantiate(remaining_work, transaction)
            _validate_instantiated(graph)
            _bind_remaining_fields(graph)
            return list(root.instances)

    def _discover(self, graph: CompositionGraph, root: CompositionNode) -> list[CompositionNode]:
        """Expand the graph outward from ``root`` until every dependency has a node.

        Returns:
            Every pending node, in the order it was discovered.
        """
        stack = [root]
        remaining_work = [root]
        while stack:
            node = stack.pop()
            for index, descriptor in enumerate(node.descriptors):
                # deferred services resolve their own dependencies when first used
                if descriptor.deferrable:
                    continue
                for dependency in descriptor.dependencies:
                    target = graph.get_node(dependency.service_id)
                    if target is None:
                        target = self._discover_node(graph, node, dependency)
                        if not target.immutable:
                            stack.append(target)
                            remaining_work.append(target)
                    node.add_dependency(index, target, dependency)
        return remaining_work

    def _discover_node(
        self, graph: CompositionGraph, node: CompositionNode, dependency: Dependency
    ) -> CompositionNode:
        composing = str(node.service_id)
        container = node.container
        while container is not None:
            instances = container._get_instances(dependency.service_id)
            if instances is not None:
                check_cardinality(instances, dependency.service_id, dependency.cardinality, composing)
                return graph.create_immutable_node(dependency.service_id, container, instances)
            descriptors = container._services.get(dependency.service_id)
            if descriptors is not None:
                check_cardinality(descriptors, dependency.service_id, dependency.cardinality, composing)
                return graph.create_node(dependency.service_id, container, descriptors)
            container = container._parent

        if dependency.cardinality is not Cardinality.EXACTLY_ONE:
            return graph.empty_node(self)
        check_cardinality(None, dependency.service_id, dependency.cardinality, composing)
        raise DependencyError(f"Unsatisfiable dependency on {dependency.service_id}")

    def _instantiate(
        self, remaining_work: list[CompositionNode], transaction: CompositionTransaction
    ) -> None:
        # discovery order reversed is most likely the order instantiation needs
        remaining_work = list(dict.fromkeys(reversed(remaining_work)))
        while remaining_work:
            current_work, remaining_work = remaining_work, []
            for node in current_work:
                if node.has_unsatisfied_parameters():
                    remaining_work.append(node)
                    continue

                owner = node.container
                transaction.enlist(owner)
                owner._reserve_service_instances(node.service_id)
                for index, descriptor in enumerate(node.descriptors):
                    instance = owner._create_service_instance_with_owner(node, descriptor, index)
                    owner._set_service_instance(node.service_id, instance, index)
                    node.set_instance(instance, index)

            if len(remaining_work) == len(current_work):
                stalled = [str(node.service_id) for node in remaining_work]
                raise CyclicDependencyError(
                    f"Cyclic dependency in graph: could not instantiate {', '.join(stalled)}",
                    [node.service_id for node in remaining_work],
                )

    def _create_service_instance_with_owner(
        self, node: CompositionNode, descriptor: ServiceDescriptor, index: int
    ) -> Any:
        descriptors = self._services.get(node.service_id)
        if descriptors is None or descriptors[index] is not descriptor:
            raise DependencyError("Invalid operation")
        entry = self._instances.get(node.service_id)
        if entry is not None and index not in entry.remaining:
            raise DependencyError("Invalid operation")

        if descriptor.deferrable:
            return DeferredProxy(lambda: self._realize_deferred(descriptor), descriptor.name)

        positional, keyword = [], {}
        for dependency in descriptor.parameter_dependencies:
            target = node.target_of(index, dependency)
            value = check_cardinality(
                target.instances if target is not None else None,
                dependency.service_id,
                dependency.cardinality,
                descriptor.name,
            )
            _place(dependency, value, positional, keyword)
        return descriptor.activate(positional, keyword)

    def _realize_deferred(self, descriptor: ServiceDescriptor) -> Any:
        self._throw_if_disposed()
        return self._create_instance(descriptor)

    def _create_instance(self, descriptor: ServiceDescriptor) -> Any:
        positional, keyword = [], {}
        for dependency in descriptor.parameter_dependencies:
            instances = self._get_or_create_service_instances(dependency.service_id)
            value = check_cardinality(
                instances, dependency.service_id, dependency.cardinality, descriptor.name
            )
            _place(dependency, value, positional, keyword)

        instance = descriptor.activate(positional, keyword)

        for dependency in descriptor.field_dependencies:
            instances = self._get_or_create_service_instances(dependency.service_id)
            value = check_cardinality(
                instances, dependency.service_id, dependency.cardinality, descriptor.name
            )
            setattr(instance, dependency.target.name, value)
        return instance


def _place(dependency: Dependency, value: Any, positional: list, keyword: dict) -> None:
    if dependency.target.keyword_only:
        keyword[dependency.target.name] = value
    else:
        positional.append(value)


def _validate_instantiated(graph: CompositionGraph) -> None:
    unsatisfied = [link.describe() for link in graph.unsatisfied_parameters()]
    if unsatisfied:
        raise IncompleteCompositionError("Not all parameters were instantiated", unsatisfied)

    uninstantiated = [str(node.service_id) for node in graph.uninstantiated_nodes()]
    if uninstantiated:
        raise IncompleteCompositionError("Not all services were instantiated", uninstantiated)


def _bind_remaining_fields(graph: CompositionGraph) -> None:
    for link in list(graph.unbound_fields()):
        if link.bind_field():
            link.delete()

    unbound = [link.describe() for link in graph.unbound_fields()]
    if unbound:
        raise IncompleteCompositionError("Not all fields were bound", unbound)


def _disposer_for(instance: Any) -> Optional[Callable[[], Any]]:
    if instance is None or inspect.isclass(instance):
        return None
    for name in ("dispose", "close"):
        method = getattr(instance, name, None)
        if callable(method):
            return method
    return None


def _dispose_deferred(proxy: DeferredProxy) -> None:
    if not is_realized(proxy):
        return
    dispose = _disposer_for(unwrap(proxy))
    if dispose is not None:
        dispose()
