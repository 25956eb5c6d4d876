"""All-or-nothing updates to container caches during one resolution."""

import logging
from typing import Any

from pliant.errors import TransactionError

__all__ = ["CompositionTransaction"]

logger = logging.getLogger(__name__)


class CompositionTransaction:
    """Snapshot every container a resolution touches, and restore them on failure.

    A container is enlisted before its cache is first mutated; the snapshot
    taken then is discarded on :meth:`commit` and written back verbatim on
    :meth:`rollback`. A transaction completes exactly once.

    Used as a context manager, the transaction commits when the block exits
    normally and rolls back when it raises:

        >>> with CompositionTransaction() as transaction:
        ...     transaction.enlist(container)
        ...     ...
    """

    def __init__(self):
        self._snapshots: dict[Any, Any] = {}
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    def enlist(self, container: Any) -> None:
        """Snapshot ``container`` unless it has already been enlisted."""
        self._check_not_done()
        if container not in self._snapshots:
            self._snapshots[container] = container._snapshot()

    def commit(self) -> None:
        self._check_not_done()
        self._done = True
        logger.debug("Committing composition across %d containers", len(self._snapshots))
        self._snapshots.clear()

    def rollback(self) -> None:
        self._check_not_done()
        self._done = True
        logger.debug("Rolling back composition across %d containers", len(self._snapshots))
        for container, snapshot in self._snapshots.items():
            container._restore(snapshot)
        self._snapshots.clear()

    def _check_not_done(self):
        if self._done:
            raise TransactionError("Transaction has already completed")

    def __enter__(self) -> "CompositionTransaction":
        self._check_not_done()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> bool:
        if exc_type is None:
            self.commit()
        else:
            self.rollback()
        return False
