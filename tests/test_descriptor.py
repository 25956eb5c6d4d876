import logging
from typing import Annotated, Any

import pytest

from pliant.descriptor import ConstructorDescriptor, InstanceDescriptor, ServiceDescriptor
from pliant.identifier import service_identifier

ILocale = service_identifier("ILocale")
ITranslate = service_identifier("ITranslate")


class Message:
    translate: Annotated[Any, ITranslate]

    def __init__(self, text, locale: Annotated[str, ILocale], *, region: Annotated[str, ILocale] = None):
        self.text = text
        self.locale = locale
        self.region = region


@pytest.fixture
def descriptor():
    return ServiceDescriptor.for_class(Message, ["hello"])


def test_instance_descriptor():
    descriptor = ServiceDescriptor.for_instance(42, profiles=["dev"])

    assert isinstance(descriptor, InstanceDescriptor)
    assert descriptor.activate([], {}) == 42
    assert descriptor.name == "instance of int"
    assert descriptor.dependencies == ()
    assert descriptor.profiles == ("dev",)
    assert not descriptor.deferrable


def test_dependency_views(descriptor):
    assert [d.target.name for d in descriptor.parameter_dependencies] == ["locale", "region"]
    assert [d.target.name for d in descriptor.field_dependencies] == ["translate"]


def test_activate(descriptor):
    message = descriptor.activate(["en"], {"region": "GB"})

    assert (message.text, message.locale, message.region) == ("hello", "en", "GB")


def test_bind_appends_static_arguments():
    descriptor = ServiceDescriptor.for_class(Message).bind("hi")

    assert isinstance(descriptor, ConstructorDescriptor)
    assert descriptor.static_arguments == ("hi",)
    assert descriptor.activate(["fr"], {}).text == "hi"


def test_extra_static_arguments_are_dropped(caplog):
    descriptor = ServiceDescriptor.for_class(Message, ["hello", "surplus"])

    with caplog.at_level(logging.WARNING, logger="pliant.descriptor"):
        message = descriptor.activate(["en"], {})

    assert message.text == "hello"
    assert message.locale == "en"
    assert "Message at position 2 conflicts with 2 static arguments" in caplog.text


def test_descriptors_compare_by_identity():
    assert ServiceDescriptor.for_class(Message) != ServiceDescriptor.for_class(Message)
