"""The transient graph built while composing one requested service.

A :class:`CompositionGraph` has one :class:`CompositionNode` per service
identifier touched by a resolution and one :class:`CompositionLink` per
dependency that is not yet satisfied. Parameter links must be satisfied before
the dependent's constructor can run and may never form a cycle. Field links
are bound once both ends exist, and cycles through them are how services come
to reference each other.

Links are removed as they are satisfied, so after a successful composition
the graph is empty of links. Anything left over is reported as an error.
"""

from enum import Enum
from typing import Any, Iterator, Optional, Sequence

from pliant.cardinality import check_cardinality, format_field_name
from pliant.dependency import Dependency
from pliant.descriptor import ServiceDescriptor
from pliant.identifier import IdentifierRegistry, ServiceIdentifier

__all__ = ["LinkKind", "CompositionGraph", "CompositionNode", "CompositionLink"]

_EMPTY_ID = IdentifierRegistry().create("[]")


class LinkKind(Enum):
    PARAMETER = "parameter"
    FIELD = "field"


class CompositionNode:
    """A service identifier, the container that owns it and its instances.

    A node is *immutable* when it wraps values that already existed before
    this resolution (cached instances, or the shared empty result); such a
    node is never instantiated again and never receives field bindings.
    Otherwise it is *pending* until every descriptor slot has a value.
    """

    def __init__(
        self,
        graph: "CompositionGraph",
        service_id: ServiceIdentifier,
        container: Any,
        descriptors: Sequence[ServiceDescriptor],
    ):
        self.graph = graph
        self.service_id = service_id
        self.container = container
        self.descriptors = list(descriptors)
        self.pending: set[int] = set(range(len(self.descriptors)))
        self.instances: list[Any] = [None] * len(self.descriptors)
        self.immutable = False
        self.targets: dict[tuple[int, Dependency], "CompositionNode"] = {}
        self.outgoing: dict["CompositionLink", None] = {}
        self.incoming: dict["CompositionLink", None] = {}

    def __repr__(self) -> str:
        state = "immutable" if self.immutable else f"{len(self.pending)} pending"
        return f"<CompositionNode {self.service_id} ({state})>"

    @property
    def instantiated(self) -> bool:
        return not self.pending

    def target_of(self, index: int, dependency: Dependency) -> Optional["CompositionNode"]:
        """The node satisfying ``dependency`` of descriptor slot ``index``, if any."""
        return self.targets.get((index, dependency))

    def has_unsatisfied_parameters(self) -> bool:
        return any(link.kind is LinkKind.PARAMETER for link in self.outgoing)

    def links(self, kind: LinkKind, incoming: bool = False) -> list["CompositionLink"]:
        links = self.incoming if incoming else self.outgoing
        return [link for link in links if link.kind is kind]

    def add_dependency(
        self, index: int, target: "CompositionNode", dependency: Dependency
    ) -> Optional["CompositionLink"]:
        """Record that slot ``index`` needs ``target``, linking them if still needed.

        A parameter link is only added while the target is uninstantiated, and
        a field link only while this node is not immutable.
        """
        self.targets[(index, dependency)] = target
        if dependency.is_parameter:
            needed = not target.instantiated
        else:
            needed = not self.immutable
        if needed:
            return self.graph.add_link(self, target, dependency, index)
        return None

    def set_instance(self, value: Any, index: int) -> None:
        """Record the value produced for descriptor slot ``index``.

        When the last slot is filled, incoming parameter links are dropped and
        every field link that became bindable is bound.

        Raises:
            TypeError: If the node is immutable, already instantiated, or the
                slot already has a value.
        """
        if self.immutable:
            raise TypeError("Node is immutable")
        if self.instantiated:
            raise TypeError("Node already instantiated")
        if index not in self.pending:
            raise TypeError("Service descriptor already satisfied")

        self.pending.discard(index)
        self.instances[index] = value
        if self.pending:
            return

        for link in self.links(LinkKind.PARAMETER, incoming=True):
            link.delete()

        field_links = self.links(LinkKind.FIELD) + self.links(LinkKind.FIELD, incoming=True)
        for link in dict.fromkeys(field_links):
            if link.bind_field():
                link.delete()


class CompositionLink:
    """A dependency from ``source`` slot ``index`` onto ``target``."""

    def __init__(
        self,
        source: CompositionNode,
        target: CompositionNode,
        dependency: Dependency,
        index: int,
    ):
        self.source = source
        self.target = target
        self.dependency = dependency
        self.index = index
        self.kind = LinkKind.PARAMETER if dependency.is_parameter else LinkKind.FIELD

    def __repr__(self) -> str:
        return f"<CompositionLink {self.describe()} -> {self.target.service_id}>"

    def describe(self) -> str:
        """Human-readable name of the dependent slot, for error messages."""
        if self.kind is LinkKind.PARAMETER:
            return f"{self.source.service_id} parameter #{self.dependency.target.index}"
        return f"{self.source.service_id}{format_field_name(self.dependency.target.name, dotted=True)}"

    def delete(self) -> None:
        self.source.graph.remove_link(self)

    def bind_field(self) -> bool:
        """Assign the target's value(s) to the source's field.

        Returns:
            True if the field was bound, False if either end is not yet
            instantiated.

        Raises:
            TypeError: If this is not a field link, if the source is a
                pre-existing instance, or if the field cannot be set.
            CardinalityError: If the target's values do not fit the field.
        """
        if self.kind is not LinkKind.FIELD:
            raise TypeError("This operation is only valid for field dependencies")
        if not self.target.instantiated or not self.source.instantiated:
            return False
        if self.source.immutable:
            raise TypeError("Cannot set a field on a pre-existing dependency")

        descriptor = self.source.descriptors[self.index]
        instance = self.source.instances[self.index]
        value = check_cardinality(
            self.target.instances,
            self.dependency.service_id,
            self.dependency.cardinality,
            descriptor.name,
        )
        field_name = self.dependency.target.name
        try:
            setattr(instance, field_name, value)
        except (AttributeError, TypeError) as e:
            raise TypeError(
                f"Cannot set field {format_field_name(field_name, quoted=True)} "
                f"on service {self.source.service_id.format(quoted=True)}"
            ) from e
        return True


class CompositionGraph:
    """Nodes and unsatisfied links for a single top-level resolution."""

    def __init__(self):
        self._nodes: dict[ServiceIdentifier, CompositionNode] = {}
        self._links: dict[CompositionLink, None] = {}
        self._empty: Optional[CompositionNode] = None

    def __len__(self) -> int:
        return len(self._nodes)

    def get_node(self, service_id: ServiceIdentifier) -> Optional[CompositionNode]:
        return self._nodes.get(service_id)

    def create_node(
        self,
        service_id: ServiceIdentifier,
        container: Any,
        descriptors: Sequence[ServiceDescriptor],
    ) -> CompositionNode:
        if service_id in self._nodes:
            raise ValueError(f"Node already exists for {service_id.format(quoted=True)}")
        node = self._nodes[service_id] = CompositionNode(self, service_id, container, descriptors)
        return node

    def create_immutable_node(
        self, service_id: ServiceIdentifier, container: Any, instances: Sequence[Any]
    ) -> CompositionNode:
        node = self.create_node(
            service_id, container, [ServiceDescriptor.for_instance(i) for i in instances]
        )
        node.instances = list(instances)
        node.pending.clear()
        node.immutable = True
        return node

    def empty_node(self, container: Any) -> CompositionNode:
        """The shared immutable node with no instances, for unmatched optional dependencies."""
        if self._empty is None:
            self._empty = self.create_immutable_node(_EMPTY_ID, container, [])
        return self._empty

    def add_link(
        self,
        source: CompositionNode,
        target: CompositionNode,
        dependency: Dependency,
        index: int,
    ) -> CompositionLink:
        link = CompositionLink(source, target, dependency, index)
        self._links[link] = None
        source.outgoing[link] = None
        target.incoming[link] = None
        return link

    def remove_link(self, link: CompositionLink) -> None:
        self._links.pop(link, None)
        link.source.outgoing.pop(link, None)
        link.target.incoming.pop(link, None)

    def nodes(self) -> Iterator[CompositionNode]:
        return iter(list(self._nodes.values()))

    def uninstantiated_nodes(self) -> Iterator[CompositionNode]:
        return (node for node in self.nodes() if not node.instantiated)

    def unsatisfied_parameters(self) -> Iterator[CompositionLink]:
        return (link for link in list(self._links) if link.kind is LinkKind.PARAMETER)

    def unbound_fields(self) -> Iterator[CompositionLink]:
        return (link for link in list(self._links) if link.kind is LinkKind.FIELD)

    def find_parameter_cycle(self) -> Optional[list[ServiceIdentifier]]:
        """Look for a cycle made only of parameter links.

        Returns:
            The identifiers along the first cycle found, starting and ending
            with the same identifier, or None if there is no such cycle.
        """
        done: set[CompositionNode] = set()
        for start in self.uninstantiated_nodes():
            if start in done:
                continue
            path: list[CompositionNode] = [start]
            on_path = {start}
            stack = [iter(start.links(LinkKind.PARAMETER))]
            while stack:
                link = next(stack[-1], None)
                if link is None:
                    stack.pop()
                    node = path.pop()
                    on_path.discard(node)
                    done.add(node)
                    continue
                target = link.target
                if target in on_path:
                    cycle = path[path.index(target):] + [target]
                    return [node.service_id for node in cycle]
                if target in done:
                    continue
                path.append(target)
                on_path.add(target)
                stack.append(iter(target.links(LinkKind.PARAMETER)))
        return None
