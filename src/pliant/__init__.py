"""Pliant dependency composition runtime.

Pliant resolves abstract services, named by interned identifiers, into live
instances. Services declare what they need with ``Annotated`` type hints on
constructor parameters and class attributes; the container works out the
rest, building transitive dependencies in order, binding fields after
construction so services may refer to each other, and handing out deferred
proxies to break constructor cycles. A resolution either succeeds as a whole
or leaves no trace in any container's cache.

Key Features:
    - Constructor and field injection with exactly-one, optional and many cardinalities
    - Hierarchical containers: children share the services their parents own
    - Cycle detection, with deferred proxies for services that opt in
    - Transactional caches: failed resolutions are rolled back across containers
    - Profile-based activation of descriptors
    - Disposal of the services a container produced

Basic Usage:
    >>> from typing import Annotated
    >>> from pliant.collection import ServiceCollection
    >>> from pliant.identifier import service_identifier
    >>>
    >>> ILocale = service_identifier("ILocale")
    >>> IGreeter = service_identifier("IGreeter")
    >>>
    >>> class Greeter:
    ...     def __init__(self, locale: Annotated[str, ILocale]):
    ...         self.locale = locale
    >>>
    >>> container = (
    ...     ServiceCollection()
    ...     .add_instance(ILocale, "en-GB")
    ...     .add_class(IGreeter, Greeter)
    ...     .create_container()
    ... )
    >>> container.get_service(IGreeter).locale
    'en-GB'

The framework consists of several core modules:
    - identifier: Interned service identifiers
    - dependency: Declaring dependencies and their cardinality
    - descriptor: Instance and constructor descriptors
    - collection: The catalog of descriptors
    - container: Service resolution, scoping and disposal
    - graph: The per-resolution composition graph
    - transaction: Rollback of container caches on failure
    - lazy: Deferred proxies
    - errors: Framework-specific exceptions
"""
