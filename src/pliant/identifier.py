"""Interned identifiers naming abstract services.

A :class:`ServiceIdentifier` is the key under which descriptors are registered
and services are requested. Identifiers are interned by name in an
:class:`IdentifierRegistry`, so two calls creating an identifier with the same
name yield the very same object, and equality is plain identity.

Most code uses the process-wide :data:`default_registry` through
:func:`service_identifier`:

    >>> ILogger = service_identifier("ILogger")
    >>> ILogger is service_identifier("ILogger")
    True
"""

from typing import Optional

__all__ = [
    "ServiceIdentifier",
    "IdentifierRegistry",
    "default_registry",
    "service_identifier",
]


class ServiceIdentifier:
    """Opaque token naming a service. Compared and hashed by identity."""

    __slots__ = ("_name", "_registry", "__weakref__")

    def __init__(self, name: Optional[str], registry: "IdentifierRegistry"):
        self._name = name
        self._registry = registry

    @property
    def name(self) -> Optional[str]:
        return self._name

    def format(self, quoted: bool = False) -> str:
        if self._name is None:
            return f"<anonymous service {id(self):#x}>"
        return f"'{self._name}'" if quoted else self._name

    def __str__(self) -> str:
        return self.format()

    def __repr__(self) -> str:
        return f"ServiceIdentifier({self.format(quoted=True)})"

    def __setattr__(self, key, value):
        if hasattr(self, "_registry"):
            raise AttributeError("ServiceIdentifier is immutable")
        super().__setattr__(key, value)

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


class IdentifierRegistry:
    """Interning table from names to :class:`ServiceIdentifier` objects.

    The registry lives as long as the identifiers it hands out. Construct one
    at program start (or use :data:`default_registry`) and share it by
    reference.
    """

    def __init__(self):
        self._known: dict[str, ServiceIdentifier] = {}
        self._anonymous: list[ServiceIdentifier] = []

    def create(self, name: Optional[str] = None) -> ServiceIdentifier:
        """Return the identifier for ``name``, creating it on first use.

        Args:
            name: The service name. If omitted, a fresh anonymous identifier
                is returned that no other call can reproduce.
        """
        if name is None:
            identifier = ServiceIdentifier(None, self)
            self._anonymous.append(identifier)
            return identifier

        identifier = self._known.get(name)
        if identifier is None:
            identifier = self._known[name] = ServiceIdentifier(name, self)
        return identifier

    def get(self, name: str) -> Optional[ServiceIdentifier]:
        return self._known.get(name)

    def is_identifier(self, value: object) -> bool:
        """True if ``value`` is an identifier interned by this registry."""
        if not isinstance(value, ServiceIdentifier):
            return False
        if value.name is None:
            return any(value is anonymous for anonymous in self._anonymous)
        return self._known.get(value.name) is value

    def __contains__(self, name: str) -> bool:
        return name in self._known

    def __len__(self) -> int:
        return len(self._known) + len(self._anonymous)


default_registry = IdentifierRegistry()
"""Registry shared by every module that uses :func:`service_identifier`."""


def service_identifier(name: Optional[str] = None) -> ServiceIdentifier:
    """Intern ``name`` in the :data:`default_registry`."""
    return default_registry.create(name)
