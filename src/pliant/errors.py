"""Exceptions raised while composing services.

Every failure that happens while resolving a service derives from
:class:`DependencyError`, so callers that only care whether composition
succeeded can catch that single type. The subclasses let tests and callers
tell the failure modes apart.
"""

from typing import Any, Optional

__all__ = [
    "DependencyError",
    "UnknownServiceError",
    "CardinalityError",
    "CyclicDependencyError",
    "IncompleteCompositionError",
    "ReentrantResolutionError",
    "ObjectDisposedError",
    "TransactionError",
    "DisposalError",
]


class DependencyError(Exception):
    """Raised when a service's dependency cannot be resolved or is misdeclared."""

    pass


class UnknownServiceError(DependencyError):
    """Raised when no container in the chain has a descriptor for a service."""

    def __init__(self, service_id: Any):
        super().__init__(f"Unknown service {service_id.format(quoted=True)}.")
        self.service_id = service_id


class CardinalityError(DependencyError):
    """Raised when the number of matching services does not fit the dependency.

    Attributes:
        service_id: The identifier that was looked up.
        cardinality: The cardinality the dependency declared.
        count: How many services actually matched.
        composing: Name of the descriptor being composed, if known.
    """

    def __init__(
        self,
        message: str,
        service_id: Any,
        cardinality: Any,
        count: int,
        composing: Optional[str] = None,
    ):
        super().__init__(message)
        self.service_id = service_id
        self.cardinality = cardinality
        self.count = count
        self.composing = composing


class CyclicDependencyError(DependencyError):
    """Raised when constructor parameters depend on each other in a cycle."""

    def __init__(self, message: str, cycle: Optional[list] = None):
        super().__init__(message)
        self.cycle = cycle or []


class IncompleteCompositionError(DependencyError):
    """Raised when a composition graph still has unsatisfied parts after instantiation."""

    def __init__(self, message: str, unsatisfied: list[str]):
        super().__init__(f"{message}:\n    " + ",\n    ".join(unsatisfied))
        self.unsatisfied = unsatisfied


class ReentrantResolutionError(DependencyError):
    """Raised when a service is read while it is still being instantiated."""

    pass


class ObjectDisposedError(RuntimeError):
    """Raised when a disposed container (or a child of one) is used."""

    pass


class TransactionError(RuntimeError):
    """Raised when a composition transaction is finalized more than once."""

    pass


class DisposalError(Exception):
    """Raised when several disposables fail while a container is disposed.

    Attributes:
        errors: The exceptions raised by the individual disposables, in the
            order they were raised.
    """

    def __init__(self, errors: list[BaseException]):
        super().__init__(f"{len(errors)} errors occurred while disposing services")
        self.errors = errors
