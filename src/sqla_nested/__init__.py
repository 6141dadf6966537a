"""Nested selects over declared tables for SQLAlchemy.

sqla_nested turns declarative table descriptions (columns, computed
expressions, foreign keys, many-to-many relations) into one joined SELECT
for a root table and everything reachable through foreign keys, rebuilds
the flat result rows into nested dicts, and loads many-to-many relations
with one batched query per relation instead of one per row.
"""

from ._version import __version__, __version_tuple__
from .codec import RESERVED_SEGMENTS, flatten, flatten_key, unflatten
from .core import Selector, create_select, first
from .datastructures import frozendict
from .exceptions import (
    KeyConflictError,
    QueryExecutionError,
    RelationConfigError,
    RelationCycleError,
    SqlaNestedError,
    UnflattenError,
    UnsafeKeyError,
)
from .plan import JoinPlan, JoinStep, ManyToManyTask, build_plan
from .schema import (
    DEFAULT_QUOTES,
    DEFAULT_SEPARATOR,
    Expr,
    ForeignKey,
    ManyToMany,
    TableDef,
    TableOptions,
    expr,
    fk,
    m2m,
    table,
    table_factory,
)
from .tools import add_conditions, by_id, get_table_names, omit, omit_relations, pick


__all__ = (
    "DEFAULT_QUOTES",
    "DEFAULT_SEPARATOR",
    "RESERVED_SEGMENTS",
    "Expr",
    "ForeignKey",
    "JoinPlan",
    "JoinStep",
    "KeyConflictError",
    "ManyToMany",
    "ManyToManyTask",
    "QueryExecutionError",
    "RelationConfigError",
    "RelationCycleError",
    "Selector",
    "SqlaNestedError",
    "TableDef",
    "TableOptions",
    "UnflattenError",
    "UnsafeKeyError",
    "__version__",
    "__version_tuple__",
    "add_conditions",
    "build_plan",
    "by_id",
    "create_select",
    "expr",
    "first",
    "fk",
    "flatten",
    "flatten_key",
    "frozendict",
    "get_table_names",
    "m2m",
    "omit",
    "omit_relations",
    "pick",
    "table",
    "table_factory",
    "unflatten",
)
