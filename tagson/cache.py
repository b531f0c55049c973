"""
Pointer type memoization.

Resolving ``*CMYK`` twice must produce the same Pointer instance both
times, including when two threads resolve it at once. PointerTypeCache
provides that with load-or-store semantics: the first Pointer stored for
a base descriptor wins and every later caller gets it back.

The cache also holds the field descriptors of each struct type resolved
through it, so Optional fields point into the same cache.

A process-wide instance (default_pointer_cache) is used unless a codec
is given its own, which is how tests get a fresh cache.
"""

from __future__ import annotations

import logging
import threading

from tagson.stypes import Pointer, TypeDescriptor

logger = logging.getLogger(__name__)


class PointerTypeCache:
    """
    Thread-safe map from a base descriptor to its Pointer descriptor.

    Entries are never evicted: keys are bounded by the number of distinct
    types a process resolves.

    Example:
        >>> cache = PointerTypeCache()
        >>> cache.pointer_to(INT) is cache.pointer_to(INT)
        True
    """

    def __init__(self):
        self._types: dict[TypeDescriptor, Pointer] = {}
        self._fields: dict[type, tuple] = {}
        self._lock = threading.Lock()

    def load(self, base: TypeDescriptor) -> Pointer | None:
        return self._types.get(base)

    def load_or_store(self, base: TypeDescriptor, pointer: Pointer) -> Pointer:
        """Store ``pointer`` unless an entry exists; return the entry in the cache."""
        with self._lock:
            existing = self._types.get(base)
            if existing is not None:
                return existing
            self._types[base] = pointer
        logger.debug("cached pointer type %s", pointer.type_name())
        return pointer

    def pointer_to(self, base: TypeDescriptor) -> Pointer:
        """Return the shared Pointer descriptor for ``base``."""
        cached = self._types.get(base)
        if cached is not None:
            return cached
        return self.load_or_store(base, Pointer(to=base))

    def load_fields(self, cls: type) -> tuple | None:
        return self._fields.get(cls)

    def store_fields(self, cls: type, fields: tuple) -> tuple:
        """Store the field descriptors of ``cls`` unless present; return the stored entry."""
        with self._lock:
            return self._fields.setdefault(cls, fields)

    def clear(self) -> None:
        with self._lock:
            self._types.clear()
            self._fields.clear()

    def __len__(self) -> int:
        return len(self._types)

    def __contains__(self, base: TypeDescriptor) -> bool:
        return base in self._types


default_pointer_cache = PointerTypeCache()
