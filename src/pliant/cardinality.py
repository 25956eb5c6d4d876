"""Cardinality checks and the formatting helpers used in diagnostics."""

import re
from typing import Any, Optional, Sequence

from pliant.dependency import Cardinality
from pliant.errors import CardinalityError
from pliant.identifier import ServiceIdentifier

__all__ = ["check_cardinality", "format_field_name"]

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def check_cardinality(
    values: Optional[Sequence[Any]],
    service_id: ServiceIdentifier,
    cardinality: Cardinality,
    composing: Optional[str] = None,
) -> Any:
    """Reduce a list of matching services to what the cardinality asks for.

    Args:
        values: The matching services, or ``None`` when nothing matched.
        service_id: The identifier that was looked up, for error messages.
        cardinality: The declared cardinality.
        composing: Name of the descriptor being composed, for error messages.

    Returns:
        The single value for ``EXACTLY_ONE``, the value or ``None`` for
        ``ZERO_OR_ONE`` and the full list for ``ZERO_OR_MORE``.

    Raises:
        CardinalityError: If the number of values does not fit.
    """
    values = list(values) if values is not None else []
    count = len(values)
    when = f" when composing {composing}" if composing is not None else ""

    if cardinality is Cardinality.ZERO_OR_MORE:
        return values

    if cardinality is Cardinality.EXACTLY_ONE and count == 0:
        raise CardinalityError(
            f"No dependencies satisfied service {service_id.format(quoted=True)}{when}.",
            service_id,
            cardinality,
            count,
            composing,
        )

    if count > 1:
        raise CardinalityError(
            f"Too many dependencies satisfy service {service_id.format(quoted=True)}{when}. "
            f"Expected at most one, but received {count} instead.",
            service_id,
            cardinality,
            count,
            composing,
        )

    return values[0] if count == 1 else None


def format_field_name(name: str, dotted: bool = False, quoted: bool = False) -> str:
    """Render a field name the way it would be written in an access expression.

    Example:
        >>> format_field_name("locale", dotted=True)
        '.locale'
        >>> format_field_name("odd name", dotted=True)
        "['odd name']"
        >>> format_field_name("locale", quoted=True)
        "'locale'"
    """
    if not quoted and _IDENTIFIER.match(name):
        return f".{name}" if dotted else name
    return f"['{name}']" if dotted else f"'{name}'"
