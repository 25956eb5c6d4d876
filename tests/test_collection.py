from typing import Annotated, Any, Optional, get_type_hints

import pytest

from pliant.collection import ServiceCollection, profiles_match
from pliant.container import ServiceContainer
from pliant.descriptor import ConstructorDescriptor, ServiceDescriptor
from pliant.errors import DependencyError
from pliant.identifier import service_identifier

IGreeter = service_identifier("IGreeter")
ILocale = service_identifier("ILocale")


@pytest.fixture
def services():
    return ServiceCollection()


class Greeter:
    def __init__(self, locale: Annotated[str, ILocale]):
        self.locale = locale


def test_add_appends(services):
    services.add_instance(ILocale, "en").add_instance(ILocale, "fr")

    assert [d.instance for d in services.get(ILocale)] == ["en", "fr"]
    assert len(services) == 1
    assert ILocale in services


def test_set_replaces(services):
    services.add_instance(ILocale, "en").set_instance(ILocale, "fr")

    assert [d.instance for d in services.get(ILocale)] == ["fr"]


def test_set_rejects_empty_list(services):
    with pytest.raises(ValueError, match="must not be empty"):
        services.set(ILocale, [])


def test_get_returns_a_copy(services):
    services.add_instance(ILocale, "en")

    services.get(ILocale).clear()

    assert len(services.get(ILocale)) == 1
    assert services.get(IGreeter) is None


def test_registration_helpers(services):
    def make_greeter(locale: Annotated[str, ILocale]):
        return Greeter(locale)

    services.add_class(IGreeter, Greeter, deferrable=True).add_factory(IGreeter, make_greeter)
    by_class, by_factory = services.get(IGreeter)

    assert isinstance(by_class, ConstructorDescriptor)
    assert by_class.ctor is Greeter
    assert by_class.deferrable
    assert by_factory.name == "make_greeter"
    assert not by_factory.deferrable
    assert [d.service_id for d in by_factory.dependencies] == [ILocale]


def test_entries_in_registration_order(services):
    services.add_instance(ILocale, "en").add_class(IGreeter, Greeter).add_instance(ILocale, "fr")

    assert [service_id for service_id, _ in services] == [ILocale, ILocale, IGreeter]
    assert list(services.keys()) == [ILocale, IGreeter]


def test_copy_from_entries(services):
    services.add_instance(ILocale, "en")
    copied = ServiceCollection(services)

    copied.add_instance(ILocale, "fr")

    assert len(services.get(ILocale)) == 1
    assert len(copied.get(ILocale)) == 2


def test_provides_class_and_factory(services):
    @services.provides(ILocale)
    def default_locale():
        return "en-GB"

    @services.provides(IGreeter)
    class DecoratedGreeter(Greeter):
        pass

    assert DecoratedGreeter.__name__ == "DecoratedGreeter"
    assert services.create_container().get_service(IGreeter).locale == "en-GB"


def test_provides_rejects_deferrable_factory(services):
    with pytest.raises(DependencyError, match="cannot be deferrable"):
        @services.provides(ILocale, deferrable=True)
        def default_locale():
            return "en-GB"


def test_provides_rejects_values(services):
    with pytest.raises(DependencyError, match="is not a class or function"):
        services.provides(ILocale)("en-GB")


def test_retrieve_descriptors_by_profile(services):
    @services.provides(ILocale)
    def globally_defined():
        pass

    @services.provides(ILocale, profiles=["test"])
    def test_only():
        pass

    @services.provides(ILocale, profiles=["!test"])
    def not_test():
        pass

    @services.provides(ILocale, profiles=["prod", "uat"])
    def prod_or_uat():
        pass

    def descriptors_in(*profiles):
        return {d.name for d in services.for_profiles(set(profiles)).get(ILocale)}

    assert descriptors_in() == {"globally_defined", "not_test"}
    assert descriptors_in("test") == {"globally_defined", "test_only"}
    assert descriptors_in("prod") == {"globally_defined", "not_test", "prod_or_uat"}
    assert descriptors_in("uat", "test") == {"globally_defined", "test_only", "prod_or_uat"}
    assert len(services.for_profiles(None).get(ILocale)) == 4


def test_for_profiles_drops_empty_identifiers(services):
    services.add(ILocale, ServiceDescriptor.for_instance("en", profiles=["dev"]))

    assert ILocale not in services.for_profiles({"prod"})


def test_profiles_match():
    assert profiles_match([], {"dev"})
    assert profiles_match(["dev"], {"dev"})
    assert profiles_match(["!test"], {"dev"})
    assert not profiles_match(["!test"], {"test"})
    assert not profiles_match(["prod"], {"dev"})
    assert not profiles_match(["dev", "!test"], {"dev", "test"})


def test_create_container(services):
    container = services.add_instance(ILocale, "en").create_container()

    assert isinstance(container, ServiceContainer)
    assert container.get_service(ILocale) == "en"


def test_create_container_with_parent(services):
    parent = ServiceCollection().add_instance(ILocale, "fr").create_container()
    child = services.add_class(IGreeter, Greeter).create_container(parent)

    assert child.parent is parent
    assert child.get_service(IGreeter).locale == "fr"


def test_container_copies_the_collection(services):
    container = services.create_container()

    services.add_instance(ILocale, "en")

    assert not container.has_service(ILocale)


def test_add_rejects_empty_list(services):
    with pytest.raises(ValueError, match="must not be empty"):
        services.add(ILocale, [])

    assert ILocale not in services


def test_profile_selection_annotations_resolve():
    hints = get_type_hints(ServiceCollection.create_container)

    assert hints["profiles"] == Optional[set[str]]
