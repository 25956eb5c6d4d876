import pytest

from example import IHelloService, ILocaleService, services


@pytest.fixture
def container():
    with services.create_container() as container:
        yield container


@pytest.mark.parametrize(
    "locale, expected",
    [
        ("en-US", "Hello, Alice!"),
        ("fr-CA", "Bonjour, Alice!"),
        ("es", "¡Hola, Alice!"),
        ("de-DE", "Hello, Alice!"),
    ],
)
def test_hello_in_locale(container, locale, expected):
    assert container.get_service(ILocaleService).set_locale(locale)

    assert container.get_service(IHelloService).say_hello("Alice") == expected


def test_locale_from_environment(container, monkeypatch):
    monkeypatch.setenv("LANG", "fr_FR.UTF-8")

    assert container.get_service(ILocaleService).locale == "fr-FR"


def test_invalid_locale_is_refused(container):
    assert not container.get_service(ILocaleService).set_locale("not a locale")
