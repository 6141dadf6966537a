from __future__ import annotations

import warnings
from collections.abc import Callable, Hashable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from functools import cached_property
from typing import Any, Final, Union

import sqlalchemy as sa

from .datastructures import frozendict
from .exceptions import RelationConfigError


DEFAULT_QUOTES: Final[str] = ""
DEFAULT_SEPARATOR: Final[str] = ":"


@dataclass(frozen=True, slots=True)
class Expr:
    """A computed column: *value* is raw SQL projected under the exposed name."""

    value: str


@dataclass(frozen=True, slots=True)
class ForeignKey:
    """Each parent row references exactly one ``target`` row.

    ``own_column`` is a source column of the declaring table and
    ``target_column`` a source column of ``target``.
    """

    target: TableDef
    own_column: str
    target_column: str = "id"


@dataclass(frozen=True, slots=True)
class ManyToMany:
    """Parent rows relate to zero or more ``target`` rows through ``link``.

    ``own_id`` and ``target_id`` are exposed column names on the owner and
    the target, ``link_own_id`` and ``link_target_id`` are source columns of
    the link table. An empty ``link_own_id`` is resolved to
    ``<owner name>Id`` when the relation is planned.
    """

    target: TableDef
    link: TableDef
    own_id: str = "id"
    link_own_id: str = ""
    target_id: str = "id"
    link_target_id: str = ""


Source = Union[str, Expr]
Relation = Union[ForeignKey, ManyToMany]
Declaration = Union[str, Mapping[str, Union[Source, Relation]]]


@dataclass(frozen=True, slots=True)
class TableOptions:
    quotes: str = DEFAULT_QUOTES
    separator: str = DEFAULT_SEPARATOR
    prefix: str = ""

    def __post_init__(self) -> None:
        if not self.separator:
            raise ValueError("separator must be a non-empty string")


def _declare(
    decls: Iterable[Declaration],
    columns: Mapping[str, Source],
    relations: Mapping[str, Relation],
) -> tuple[frozendict[str, Source], frozendict[str, Relation]]:
    """Fold declarations into column and relation maps.

    Later declarations overwrite earlier ones with the same exposed name,
    also across namespaces, so a name is never both a column and a relation.
    """
    cols = dict(columns)
    rels = dict(relations)

    for decl in decls:
        if isinstance(decl, str):
            items: Iterable[tuple[str, Any]] = ((decl, decl),)
        elif isinstance(decl, Mapping):
            items = decl.items()
        else:
            raise TypeError(f"Unsupported column declaration: {decl!r}")

        for name, value in items:
            if isinstance(value, (str, Expr)):
                rels.pop(name, None)
                cols[name] = value
            elif isinstance(value, (ForeignKey, ManyToMany)):
                cols.pop(name, None)
                rels[name] = value
            else:
                raise TypeError(f"Unsupported declaration for {name!r}: {value!r}")

    return frozendict(cols), frozendict(rels)


@dataclass(frozen=True)
class TableDef:
    """Immutable description of one queryable table.

    Every transformation (``with_``, ``pick``, ``omit``, ``as_``, ``named``,
    ``quotes``, ``separator``) returns a new ``TableDef``; declared tables are
    safe to share between concurrent queries.

    Example:
        >>> roles = table("roles", "id", "name")
        >>> users = table(
        ...     "users",
        ...     "id",
        ...     {"fullName": "name"},
        ...     {"roles": m2m(roles, table("users_roles"))},
        ... )
        >>> users.cols["id"], users.cols["fullName"]
        ('users.id', 'users:fullName')
    """

    name: str
    columns: frozendict[str, Source] = field(default_factory=frozendict)
    relations: frozendict[str, Relation] = field(default_factory=frozendict)
    options: TableOptions = field(default_factory=TableOptions)

    def with_(self, *decls: Declaration) -> TableDef:
        """Add columns and relations; duplicates overwrite earlier ones."""
        columns, relations = _declare(decls, self.columns, self.relations)
        return replace(self, columns=columns, relations=relations)

    def pick(self, *names: str) -> TableDef:
        """Keep only the given exposed names (columns and relations alike)."""
        if unknown := [n for n in names if n not in self.columns and n not in self.relations]:
            warnings.warn(
                f"Unknown names picked from {self.name!r}: {unknown}",
                stacklevel=2,
            )

        return replace(self, columns=self.columns.only(names), relations=self.relations.only(names))

    def omit(self, *names: str) -> TableDef:
        """Drop the given exposed names (columns and relations alike)."""
        return replace(
            self,
            columns=self.columns.without(*names),
            relations=self.relations.without(*names),
        )

    def as_(self, prefix: str) -> TableDef:
        return replace(self, options=replace(self.options, prefix=prefix))

    def named(self, name: str) -> TableDef:
        return replace(self, name=name)

    def quotes(self, quotes: str) -> TableDef:
        return replace(self, options=replace(self.options, quotes=quotes))

    def separator(self, separator: str) -> TableDef:
        return replace(self, options=replace(self.options, separator=separator))

    @property
    def identity(self) -> Hashable:
        """Key identifying this table in a relation graph, ignoring options."""
        return (self.name, self.columns, self.relations)

    def alias_for(self, name: str) -> str:
        """Flat result key of exposed column *name* under this table's prefix."""
        prefix = self.options.prefix
        return f"{prefix}{self.options.separator}{name}" if prefix else name

    def accessor(self, name: str) -> str:
        """Textual reference to exposed column *name* for raw SQL fragments.

        Plain columns on an unaliased table resolve to ``table.column`` so they
        can be used in filters and joins; renamed, computed, or re-prefixed
        columns resolve to their flat alias.
        """
        q = self.options.quotes
        source = self.columns[name]
        if source == name and self.options.prefix in ("", self.name):
            return f"{q}{self.name}{q}.{q}{source}{q}"

        return f"{q}{self.alias_for(name)}{q}"

    @cached_property
    def cols(self) -> frozendict[str, str]:
        return frozendict((name, self.accessor(name)) for name in self.columns)

    @cached_property
    def c(self) -> frozendict[str, sa.ColumnElement[Any]]:
        """Exposed accessors as literal columns, for use in query customizers."""
        return frozendict((name, sa.literal_column(ref)) for name, ref in self.cols.items())

    def from_clause(self, alias: str | None = None, extra: Iterable[str] = ()) -> sa.FromClause:
        """Build the FROM element for this table.

        The element knows every source column referenced by the declared
        columns and foreign keys, plus *extra* (e.g. a join target column).
        """
        names = dict.fromkeys(src for src in self.columns.values() if isinstance(src, str))
        names.update(
            dict.fromkeys(
                rel.own_column for rel in self.relations.values() if isinstance(rel, ForeignKey)
            )
        )
        names.update(dict.fromkeys(extra))

        clause = sa.table(self.name, *(sa.column(n) for n in names))
        return clause.alias(alias) if alias is not None else clause

    def projection(self, clause: sa.FromClause) -> list[sa.ColumnElement[Any]]:
        """Label every declared column of *clause* with its flat alias."""
        out: list[sa.ColumnElement[Any]] = []
        for name, source in self.columns.items():
            element = sa.literal_column(source.value) if isinstance(source, Expr) else clause.c[source]
            out.append(element.label(self.alias_for(name)))

        return out

    @property
    def selection(self) -> tuple[sa.ColumnElement[Any], ...]:
        """This table's own labeled columns, without any relation."""
        return tuple(self.projection(self.from_clause()))

    def __str__(self) -> str:
        q = self.options.quotes
        return f"{q}{self.name}{q}"


def table(
    name: str,
    *decls: Declaration,
    quotes: str = DEFAULT_QUOTES,
    separator: str = DEFAULT_SEPARATOR,
    prefix: str | None = None,
) -> TableDef:
    """Declare a table.

    Each declaration is either a bare column name or a mapping of exposed
    name to a source column name, an :func:`expr`, an :func:`fk`, or an
    :func:`m2m`.

    Args:
        name: Table name in the database.
        *decls: Column and relation declarations.
        quotes: Quote character used in textual accessors.
        separator: Separator of flat result keys.
        prefix: Flat key prefix. Defaults to the table name.
    """
    columns, relations = _declare(decls, frozendict(), frozendict())
    options = TableOptions(quotes=quotes, separator=separator, prefix=name if prefix is None else prefix)

    return TableDef(name=name, columns=columns, relations=relations, options=options)


def table_factory(**defaults: Any) -> Callable[..., TableDef]:
    """Create a :func:`table` variant with preset options.

    Example:
        >>> quoted_table = table_factory(quotes='"')
        >>> str(quoted_table("users", "id"))
        '"users"'
    """

    def _table(name: str, *decls: Declaration, **options: Any) -> TableDef:
        return table(name, *decls, **{**defaults, **options})

    return _table


def _require_table(value: Any, role: str) -> TableDef:
    if not isinstance(value, TableDef):
        raise RelationConfigError(f"{role} must be a TableDef, got {value!r}")

    return value


def expr(value: str) -> Expr:
    return Expr(value)


def fk(target: TableDef, own_column: str | None = None, target_column: str = "id") -> ForeignKey:
    """Declare a foreign key to *target*; ``own_column`` defaults to ``<target>Id``."""
    target = _require_table(target, "Foreign key target")

    return ForeignKey(
        target=target,
        own_column=own_column or f"{target.name}Id",
        target_column=target_column,
    )


def m2m(
    target: TableDef,
    link: TableDef,
    own_id: str = "id",
    link_own_id: str = "",
    target_id: str = "id",
    link_target_id: str | None = None,
) -> ManyToMany:
    """Declare a many-to-many relation to *target* through the *link* table."""
    target = _require_table(target, "Many-to-many target")
    link = _require_table(link, "Many-to-many link table")

    return ManyToMany(
        target=target,
        link=link,
        own_id=own_id,
        link_own_id=link_own_id,
        target_id=target_id,
        link_target_id=link_target_id or f"{target.name}Id",
    )
