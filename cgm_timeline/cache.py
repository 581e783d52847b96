"""Memoization table for per-refresh timeline computations."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, Iterable, Tuple, TypeVar

T = TypeVar("T")

_CacheKey = Tuple[str, Tuple[int, ...], Hashable]


@dataclass
class AnalysisCache:
    """In-memory cache keyed by operation name, input identity and parameters.

    Entries hold references to their inputs so an identity cannot be recycled by a
    different sequence while the entry is alive.
    """

    _store: Dict[_CacheKey, Tuple[Tuple[Any, ...], Any]] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self._store)

    def get_or_compute(
        self,
        name: str,
        inputs: Tuple[Any, ...],
        params: Hashable,
        compute: Callable[[], T],
    ) -> T:
        key = (name, tuple(id(item) for item in inputs), params)
        cached = self._store.get(key)
        if cached is not None:
            cached_inputs, value = cached
            if all(a is b for a, b in zip(cached_inputs, inputs)):
                return value
        value = compute()
        self._store[key] = (inputs, value)
        return value

    def prune(self, keep: Iterable[Any]) -> None:
        """Remove entries computed from anything other than the objects in ``keep``."""

        keep_ids = {id(item) for item in keep}
        to_remove = [key for key in self._store if not keep_ids.issuperset(key[1])]
        for key in to_remove:
            del self._store[key]

    def invalidate(self, name: str | None = None) -> None:
        """Drop every entry, or only those of one operation."""

        if name is None:
            self._store.clear()
            return
        to_remove = [key for key in self._store if key[0] == name]
        for key in to_remove:
            del self._store[key]
