import pytest

from pliant.cardinality import check_cardinality, format_field_name
from pliant.dependency import Cardinality
from pliant.errors import CardinalityError
from pliant.identifier import service_identifier

ILocale = service_identifier("ILocale")


@pytest.mark.parametrize(
    "values, cardinality, expected",
    [
        (["en"], Cardinality.EXACTLY_ONE, "en"),
        (None, Cardinality.ZERO_OR_ONE, None),
        ([], Cardinality.ZERO_OR_ONE, None),
        (["en"], Cardinality.ZERO_OR_ONE, "en"),
        (None, Cardinality.ZERO_OR_MORE, []),
        (["en", "fr"], Cardinality.ZERO_OR_MORE, ["en", "fr"]),
    ],
)
def test_accepted_counts(values, cardinality, expected):
    assert check_cardinality(values, ILocale, cardinality) == expected


def test_missing_exactly_one():
    with pytest.raises(CardinalityError, match="No dependencies satisfied service 'ILocale' when composing Greeter.") as excinfo:
        check_cardinality([], ILocale, Cardinality.EXACTLY_ONE, "Greeter")

    assert excinfo.value.count == 0
    assert excinfo.value.composing == "Greeter"
    assert excinfo.value.service_id is ILocale


@pytest.mark.parametrize("cardinality", [Cardinality.EXACTLY_ONE, Cardinality.ZERO_OR_ONE])
def test_too_many(cardinality):
    with pytest.raises(CardinalityError, match=r"Too many dependencies satisfy service 'ILocale'\. Expected at most one, but received 2 instead\.") as excinfo:
        check_cardinality(["en", "fr"], ILocale, cardinality)

    assert excinfo.value.cardinality is cardinality


def test_many_returns_a_copy():
    values = ["en"]

    assert check_cardinality(values, ILocale, Cardinality.ZERO_OR_MORE) is not values


def test_format_field_name():
    assert format_field_name("locale") == "locale"
    assert format_field_name("locale", dotted=True) == ".locale"
    assert format_field_name("locale", quoted=True) == "'locale'"
    assert format_field_name("odd name", dotted=True) == "['odd name']"
    assert format_field_name("odd name") == "'odd name'"
