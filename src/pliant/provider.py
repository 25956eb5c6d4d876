"""Identifiers and interfaces under which a container provides itself.

Every :class:`~pliant.container.ServiceContainer` registers itself under
:data:`IServiceProvider` and :data:`IScopedServiceProvider`, so services can
declare a dependency on the container that built them:

    >>> class PluginHost:
    ...     def __init__(self, provider: Annotated[ServiceProvider, IServiceProvider]):
    ...         self._provider = provider
"""

from typing import Any, Callable, Optional, Protocol

from pliant.identifier import service_identifier

__all__ = [
    "IServiceProvider",
    "IScopedServiceProvider",
    "ServiceProvider",
    "ScopedServiceProvider",
]

IServiceProvider = service_identifier("IServiceProvider")
IScopedServiceProvider = service_identifier("IScopedServiceProvider")


class ServiceProvider(Protocol):
    """An object that can provide services."""

    def create_instance(self, ctor: Callable[..., Any], *args: Any) -> Any:
        ...

    def has_service(self, service_id) -> bool:
        ...

    def get_service(self, service_id) -> Any:
        ...

    def try_get_service(self, service_id) -> Optional[Any]:
        ...

    def get_services(self, service_id) -> list[Any]:
        ...

    def create_child(self, services, profiles=None) -> "ServiceProvider":
        ...


class ScopedServiceProvider(ServiceProvider, Protocol):
    """A service provider that owns the services it created and can dispose them."""

    def create_child(self, services, profiles=None) -> "ScopedServiceProvider":
        ...

    def dispose(self) -> None:
        ...
