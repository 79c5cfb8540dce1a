"""Case-insensitive key lookup over an insertion-ordered mapping."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Generic, TypeVar

V = TypeVar("V")


class CaseInsensitiveMap(Mapping[str, V], Generic[V]):
    """Read-only view keyed by the original spelling, looked up case-insensitively.

    The first key wins when two keys differ only in case.
    """

    def __init__(self, data: Mapping[str, V] | None = None) -> None:
        self._data: dict[str, V] = dict(data or {})
        self._index: dict[str, str] = {}
        for key in self._data:
            self._index.setdefault(key.lower(), key)

    def resolve_key(self, name: str) -> str | None:
        """Return the stored spelling of *name*, or ``None``."""
        return self._index.get(name.lower())

    def __getitem__(self, name: str) -> V:
        key = self.resolve_key(name)
        if key is None:
            raise KeyError(name)
        return self._data[key]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._index

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._data!r})"
