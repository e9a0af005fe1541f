"""Sub-patch name to execution-context bindings.

Resolution is two-tier: once the wildcard is bound, every name resolves to
the wildcard's context, whatever per-name bindings exist. Per-name bindings
stay stored but are unreachable while the wildcard is set.
"""

from __future__ import annotations

import threading
from typing import Any, Mapping, Optional

import structlog

logger = structlog.get_logger()

WILDCARD = "*"


def resolve_context(bindings: Mapping[str, Any], name: str) -> Optional[Any]:
    """Resolve the context a sub-patch should be applied to.

    Args:
        bindings: Sub-patch name -> context handle
        name: Sub-patch name to resolve

    Returns:
        The wildcard context if bound, else the context bound to ``name``,
        else None.
    """
    if WILDCARD in bindings:
        return bindings[WILDCARD]
    return bindings.get(name)


class ClassLoaderBinding:
    """Thread-safe binding table, additive and last-write-wins per key."""

    def __init__(self) -> None:
        self._bindings: dict[str, Any] = {}
        self._lock = threading.Lock()

    def bind(self, name: str, context: Any) -> None:
        """Record or overwrite the binding for ``name``."""
        with self._lock:
            new_bindings = self._bindings.copy()
            new_bindings[name] = context
            self._bindings = new_bindings
        logger.info("context_bound", sub_patch=name, context=repr(context))

    def resolve(self, name: str) -> Optional[Any]:
        return resolve_context(self._bindings, name)

    def has_wildcard(self) -> bool:
        return WILDCARD in self._bindings

    def bindings(self) -> dict[str, Any]:
        """Get a copy of the current bindings."""
        return self._bindings.copy()

    def clear(self) -> None:
        """Drop every binding, wildcard included."""
        with self._lock:
            self._bindings = {}
        logger.info("context_bindings_cleared")
