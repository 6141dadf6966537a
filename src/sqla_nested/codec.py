"""Flat result keys <-> nested rows.

A joined row comes back from the database as one flat mapping whose keys
encode a relation path, e.g. ``{"id": 1, "customers:name": "Ann"}``.
``unflatten`` splits each key on the separator and rebuilds the nested
structure (``{"id": 1, "customers": {"name": "Ann"}}``); ``flatten`` is its
inverse.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Final

from .exceptions import KeyConflictError, UnsafeKeyError
from .schema import DEFAULT_SEPARATOR


RESERVED_SEGMENTS: Final[frozenset[str]] = frozenset({"__proto__", "prototype", "constructor"})


def flatten_key(path: Iterable[str], sep: str = DEFAULT_SEPARATOR) -> str:
    return sep.join(path)


def _is_index(segment: str) -> bool:
    return segment.isascii() and segment.isdigit()


def _get(container: dict[str, Any] | list[Any], segment: str, key: str) -> Any:
    if isinstance(container, list):
        if not _is_index(segment):
            raise KeyConflictError(key, segment)
        index = int(segment)
        return container[index] if index < len(container) else None

    return container.get(segment)


def _put(container: dict[str, Any] | list[Any], segment: str, value: Any, key: str) -> None:
    if isinstance(container, list):
        if not _is_index(segment):
            raise KeyConflictError(key, segment)
        index = int(segment)
        if index >= len(container):
            container.extend([None] * (index + 1 - len(container)))
        container[index] = value
        return

    container[segment] = value


def _deep_set(ctx: dict[str, Any], key: str, value: Any, sep: str) -> None:
    segments = key.split(sep)
    for segment in segments:
        if segment in RESERVED_SEGMENTS:
            raise UnsafeKeyError(key, segment)

    target: dict[str, Any] | list[Any] = ctx
    for segment, following in zip(segments, segments[1:]):
        child = _get(target, segment, key)
        if child is None:
            # numeric next segment: the container is a list
            child = [] if _is_index(following) else {}
            _put(target, segment, child, key)
        elif not isinstance(child, (dict, list)):
            raise KeyConflictError(key, segment)
        target = child

    if isinstance(_get(target, segments[-1], key), (dict, list)):
        raise KeyConflictError(key, segments[-1])
    _put(target, segments[-1], value, key)


def unflatten(obj: Any, sep: str = DEFAULT_SEPARATOR) -> Any:
    """Rebuild nested rows from flat, separator-joined keys.

    Sequences are unflattened element-wise, mappings key by key (values are
    unflattened too), anything else is returned unchanged.

    Args:
        obj: A flat row, a sequence of flat rows, or a scalar.
        sep: Path separator used in the keys.

    Returns:
        The nested structure. Numeric segments create lists.

    Raises:
        UnsafeKeyError: A key contains ``__proto__``, ``prototype`` or ``constructor``.
        KeyConflictError: A key descends through a scalar, would overwrite a
            nested value built by an earlier key, or uses a non-numeric
            segment under a list.

    Example:
        >>> unflatten({"id": 1, "customers:addresses:city": "Oslo"})
        {'id': 1, 'customers': {'addresses': {'city': 'Oslo'}}}
    """
    if isinstance(obj, Mapping):
        ctx: dict[str, Any] = {}
        for key, value in obj.items():
            _deep_set(ctx, str(key), unflatten(value, sep), sep)

        return ctx

    if isinstance(obj, (list, tuple)):
        return [unflatten(item, sep) for item in obj]

    return obj


def _flatten_into(
    flat: dict[str, Any], path: tuple[str, ...], value: Any, sep: str
) -> None:
    if isinstance(value, Mapping) and value:
        items: Iterable[tuple[Any, Any]] = value.items()
    elif isinstance(value, list) and value:
        items = enumerate(value)
    else:
        flat[flatten_key(path, sep)] = value
        return

    for key, item in items:
        _flatten_into(flat, (*path, str(key)), item, sep)


def flatten(obj: Any, sep: str = DEFAULT_SEPARATOR) -> Any:
    """Inverse of :func:`unflatten` for structures without empty containers."""
    if isinstance(obj, (list, tuple)):
        return [flatten(item, sep) for item in obj]

    if isinstance(obj, Mapping):
        flat: dict[str, Any] = {}
        for key, item in obj.items():
            _flatten_into(flat, (str(key),), item, sep)

        return flat

    return obj
