"""Forwarding placeholders for deferred instantiation.

A :class:`DeferredProxy` stands in for a service that has not been built yet.
It holds a factory and nothing else; the first attribute access (read, write
or delete) or use of a forwarded operator builds the real object, exactly
once, and every access from then on is forwarded to it.

Handing out a proxy instead of an instance is how two services whose
constructors need each other can be composed: one side receives the other's
proxy, and by the time the proxy is first used the cycle has already been
broken.
"""

import logging
from typing import Any, Callable

from pliant.errors import ReentrantResolutionError

__all__ = ["DeferredProxy", "is_realized", "unwrap"]

logger = logging.getLogger(__name__)

_FACTORY = "_DeferredProxy__factory"
_NAME = "_DeferredProxy__name"
_TARGET = "_DeferredProxy__target"
_STATE = "_DeferredProxy__state"

_PENDING, _REALIZING, _REALIZED = "pending", "realizing", "realized"


def _realize(proxy: "DeferredProxy") -> Any:
    state = object.__getattribute__(proxy, _STATE)
    if state == _REALIZED:
        return object.__getattribute__(proxy, _TARGET)
    name = object.__getattribute__(proxy, _NAME)
    if state == _REALIZING:
        raise ReentrantResolutionError(
            f"Deferred service {name} was accessed while it was being constructed"
        )

    logger.debug("Realizing deferred service %s", name)
    object.__setattr__(proxy, _STATE, _REALIZING)
    try:
        target = object.__getattribute__(proxy, _FACTORY)()
    except BaseException:
        object.__setattr__(proxy, _STATE, _PENDING)
        raise
    object.__setattr__(proxy, _TARGET, target)
    object.__setattr__(proxy, _STATE, _REALIZED)
    return target


def is_realized(proxy: "DeferredProxy") -> bool:
    """True once the proxy has built its target. Never triggers construction."""
    return object.__getattribute__(proxy, _STATE) == _REALIZED


def unwrap(value: Any) -> Any:
    """Return the real object behind ``value``, building it if needed.

    Values that are not proxies are returned unchanged.
    """
    if isinstance(value, DeferredProxy):
        return _realize(value)
    return value


class DeferredProxy:
    """Placeholder that builds its target on first use and forwards to it.

    Args:
        factory: Zero-argument callable producing the real object. Called at
            most once successfully.
        name: Name of the deferred service, for ``repr`` and error messages.
    """

    __slots__ = ("__factory", "__name", "__target", "__state", "__weakref__")

    def __init__(self, factory: Callable[[], Any], name: str):
        object.__setattr__(self, _FACTORY, factory)
        object.__setattr__(self, _NAME, name)
        object.__setattr__(self, _TARGET, None)
        object.__setattr__(self, _STATE, _PENDING)

    def __getattr__(self, name: str) -> Any:
        return getattr(_realize(self), name)

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(_realize(self), name, value)

    def __delattr__(self, name: str) -> None:
        delattr(_realize(self), name)

    def __repr__(self) -> str:
        if is_realized(self):
            return f"<DeferredProxy for {object.__getattribute__(self, _TARGET)!r}>"
        return f"<DeferredProxy for {object.__getattribute__(self, _NAME)} (unrealized)>"

    def __str__(self) -> str:
        return str(_realize(self))

    def __bool__(self) -> bool:
        return bool(_realize(self))

    def __eq__(self, other: Any) -> bool:
        return _realize(self) == unwrap(other)

    def __ne__(self, other: Any) -> bool:
        return _realize(self) != unwrap(other)

    def __hash__(self) -> int:
        return hash(_realize(self))

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return _realize(self)(*args, **kwargs)

    def __len__(self) -> int:
        return len(_realize(self))

    def __iter__(self):
        return iter(_realize(self))

    def __contains__(self, item: Any) -> bool:
        return item in _realize(self)

    def __getitem__(self, key: Any) -> Any:
        return _realize(self)[key]

    def __setitem__(self, key: Any, value: Any) -> None:
        _realize(self)[key] = value

    def __delitem__(self, key: Any) -> None:
        del _realize(self)[key]

    def __enter__(self) -> Any:
        return _realize(self).__enter__()

    def __exit__(self, exc_type, exc_value, traceback) -> Any:
        return _realize(self).__exit__(exc_type, exc_value, traceback)
