from __future__ import annotations

import sys
from collections.abc import Iterable, Iterator, Mapping
from typing import Any, TypeVar


if sys.version_info >= (3, 11):
    from typing import Self
else:
    from typing_extensions import Self


K = TypeVar("K")
V = TypeVar("V")


class frozendict(Mapping[K, V]):  # noqa: N801
    """Immutable, hashable, insertion-ordered mapping.

    Table declarations keep their columns and relations in frozendicts so
    that a ``TableDef`` is hashable and compares by value. Every "change"
    returns a new instance.

    Example:
        >>> cols = frozendict({"id": "id", "name": "name"})
        >>> cols.copy(email="email_address")
        <frozendict {'id': 'id', 'name': 'name', 'email': 'email_address'}>
        >>> cols.without("name")
        <frozendict {'id': 'id'}>
    """

    __slots__ = ("_dict", "_hash")

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self._dict: dict[K, V] = dict(*args, **kwargs)
        self._hash: int | None = None

    def __getitem__(self, key: K) -> V:
        return self._dict[key]

    def __contains__(self, key: Any) -> bool:
        return key in self._dict

    def copy(self, *args: Any, **add_or_replace: Any) -> Self:
        """Create a new frozendict with additional or replaced items.

        Replaced keys keep their original position.
        """
        merged = dict(self._dict)
        merged.update(*args, **add_or_replace)
        return type(self)(merged)

    def only(self, keys: Iterable[Any]) -> Self:
        """Return a frozendict restricted to *keys*, keeping declaration order."""
        wanted = set(keys)
        return type(self)((k, v) for k, v in self._dict.items() if k in wanted)

    def without(self, *keys: Any) -> Self:
        """Return a frozendict with *keys* removed."""
        dropped = set(keys)
        return type(self)((k, v) for k, v in self._dict.items() if k not in dropped)

    def __iter__(self) -> Iterator[K]:
        return iter(self._dict)

    def __len__(self) -> int:
        return len(self._dict)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._dict!r}>"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, frozendict):
            return self._dict == other._dict

        if isinstance(other, dict):
            return self._dict == other

        return NotImplemented

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = hash(frozenset(self._dict.items()))

        return self._hash
