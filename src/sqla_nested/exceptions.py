"""Exceptions raised while planning and reshaping nested selects.

Failures coming from the database or the SQLAlchemy compiler are not
wrapped: they propagate as :class:`sqlalchemy.exc.SQLAlchemyError`
subclasses, exported here as :data:`QueryExecutionError` for convenience.
"""

from __future__ import annotations

from sqlalchemy import exc as sa_exc


QueryExecutionError = sa_exc.SQLAlchemyError


class SqlaNestedError(Exception):
    """Base exception for all sqla_nested errors."""


# --- Unflattening ---


class UnflattenError(SqlaNestedError, ValueError):
    """Base for errors raised while rebuilding nested rows from flat keys."""


class UnsafeKeyError(UnflattenError):
    """Raised when a flat key contains a reserved path segment."""

    def __init__(self, key: str, segment: str) -> None:
        self.key = key
        self.segment = segment
        super().__init__(f"Found banned key {segment!r} in {key!r}")


class KeyConflictError(UnflattenError):
    """Raised when a flat key descends through a value that is not a container."""

    def __init__(self, key: str, segment: str) -> None:
        self.key = key
        self.segment = segment
        super().__init__(f"Cannot descend into {segment!r} while resolving {key!r}")


# --- Relations ---


class RelationConfigError(SqlaNestedError, ValueError):
    """Raised when a declared relation cannot be turned into a valid join."""


class RelationCycleError(RelationConfigError):
    """Raised when a table reappears on its own relation path.

    Declarations are immutable, so a table cannot reference itself by value;
    this only fires for graphs forged around the dataclasses, or for an
    explicit ``ancestors`` chain. A table joined to a same-named table
    (``employees`` -> ``employees``) is not a cycle: its join alias is
    suffixed instead.
    """

    def __init__(self, table_name: str, path: str) -> None:
        self.table_name = table_name
        self.path = path
        super().__init__(f"Relation cycle detected: {table_name!r} is already joined on path {path!r}")
