import pytest

from pliant.dependency import Cardinality, Dependency, FieldTarget, ParameterTarget
from pliant.descriptor import ServiceDescriptor
from pliant.errors import CardinalityError
from pliant.graph import CompositionGraph, LinkKind
from pliant.identifier import service_identifier

IFirst = service_identifier("IFirst")
ISecond = service_identifier("ISecond")
IThird = service_identifier("IThird")


class Holder:
    pass


@pytest.fixture
def graph():
    return CompositionGraph()


def pending(graph, service_id, count=1):
    return graph.create_node(service_id, None, [ServiceDescriptor.for_class(Holder)] * count)


def parameter(service_id, index=0):
    return Dependency(service_id, ParameterTarget(index, f"arg{index}"))


def field(service_id, name="other", cardinality=Cardinality.EXACTLY_ONE):
    return Dependency(service_id, FieldTarget(name), cardinality)


def test_duplicate_nodes_are_rejected(graph):
    pending(graph, IFirst)

    with pytest.raises(ValueError, match="Node already exists for 'IFirst'"):
        pending(graph, IFirst)


def test_parameter_link_only_to_uninstantiated_target(graph):
    first = pending(graph, IFirst)
    cached = graph.create_immutable_node(ISecond, None, ["cached"])

    assert first.add_dependency(0, cached, parameter(ISecond)) is None
    assert first.target_of(0, parameter(ISecond)) is cached
    assert not first.has_unsatisfied_parameters()


def test_field_link_only_from_mutable_source(graph):
    cached = graph.create_immutable_node(IFirst, None, ["cached"])
    second = pending(graph, ISecond)

    assert cached.add_dependency(0, second, field(ISecond)) is None
    assert list(graph.unbound_fields()) == []


def test_completed_node_releases_dependents(graph):
    first = pending(graph, IFirst)
    second = pending(graph, ISecond)
    link = first.add_dependency(0, second, parameter(ISecond))

    assert link.kind is LinkKind.PARAMETER
    assert link.describe() == "IFirst parameter #0"
    assert first.has_unsatisfied_parameters()

    second.set_instance(Holder(), 0)

    assert not first.has_unsatisfied_parameters()
    assert list(graph.unsatisfied_parameters()) == []


def test_node_completes_after_every_slot(graph):
    first = pending(graph, IFirst, count=2)

    first.set_instance("a", 1)
    assert not first.instantiated

    first.set_instance("b", 0)
    assert first.instantiated
    assert first.instances == ["b", "a"]


def test_set_instance_misuse(graph):
    first = pending(graph, IFirst, count=2)
    cached = graph.create_immutable_node(ISecond, None, ["cached"])

    with pytest.raises(TypeError, match="Node is immutable"):
        cached.set_instance("other", 0)

    first.set_instance("a", 0)
    with pytest.raises(TypeError, match="Service descriptor already satisfied"):
        first.set_instance("a", 0)

    first.set_instance("b", 1)
    with pytest.raises(TypeError, match="Node already instantiated"):
        first.set_instance("c", 1)


def test_fields_bind_once_both_ends_exist(graph):
    first = pending(graph, IFirst)
    second = pending(graph, ISecond)
    first.add_dependency(0, second, field(ISecond, "second"))
    second.add_dependency(0, first, field(IFirst, "first"))

    a, b = Holder(), Holder()
    first.set_instance(a, 0)
    assert not hasattr(a, "second")
    assert len(list(graph.unbound_fields())) == 2

    second.set_instance(b, 0)
    assert a.second is b
    assert b.first is a
    assert list(graph.unbound_fields()) == []


def test_field_cardinality_is_checked_when_bound(graph):
    first = pending(graph, IFirst)
    many = graph.create_immutable_node(ISecond, None, ["x", "y"])
    first.add_dependency(0, many, field(ISecond, "second"))

    with pytest.raises(CardinalityError, match="when composing Holder"):
        first.set_instance(Holder(), 0)


def test_field_link_describe(graph):
    first = pending(graph, IFirst)
    second = pending(graph, ISecond)

    assert first.add_dependency(0, second, field(ISecond, "odd name")).describe() == "IFirst['odd name']"


def test_bind_field_rejects_parameter_links(graph):
    first = pending(graph, IFirst)
    second = pending(graph, ISecond)
    link = first.add_dependency(0, second, parameter(ISecond))

    with pytest.raises(TypeError, match="only valid for field dependencies"):
        link.bind_field()


def test_empty_node_is_shared(graph):
    empty = graph.empty_node(None)

    assert graph.empty_node(None) is empty
    assert empty.immutable
    assert empty.instantiated
    assert empty.instances == []


def test_parameter_cycle(graph):
    first = pending(graph, IFirst)
    second = pending(graph, ISecond)
    third = pending(graph, IThird)
    first.add_dependency(0, second, parameter(ISecond))
    second.add_dependency(0, third, parameter(IThird))

    assert graph.find_parameter_cycle() is None

    third.add_dependency(0, second, parameter(ISecond))

    assert graph.find_parameter_cycle() == [ISecond, IThird, ISecond]


def test_field_cycles_are_not_parameter_cycles(graph):
    first = pending(graph, IFirst)
    second = pending(graph, ISecond)
    first.add_dependency(0, second, parameter(ISecond))
    second.add_dependency(0, first, field(IFirst))

    assert graph.find_parameter_cycle() is None


def test_listing(graph):
    first = pending(graph, IFirst)
    graph.create_immutable_node(ISecond, None, [])

    assert len(graph) == 2
    assert graph.get_node(IFirst) is first
    assert list(graph.uninstantiated_nodes()) == [first]
