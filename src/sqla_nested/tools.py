from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any, TypeVar

import sqlalchemy as sa

from .schema import ManyToMany, TableDef


K = TypeVar("K")
V = TypeVar("V")


def pick(obj: Mapping[K, V], keys: Iterable[K]) -> dict[K, V]:
    """Return the items of *obj* whose key is in *keys*, in *keys* order."""
    return {k: obj[k] for k in keys if k in obj}


def omit(obj: Mapping[K, V], keys: Iterable[K]) -> dict[K, V]:
    """Return the items of *obj* whose key is not in *keys*."""
    dropped = set(keys)
    return {k: v for k, v in obj.items() if k not in dropped}


def omit_relations(row: Mapping[str, Any], table: TableDef) -> dict[str, Any]:
    """Strip the relation keys declared on *table* from a resolved *row*.

    Foreign keys are nested under the target table name, many-to-many
    relations under their declared key.
    """
    keys = {
        name if isinstance(rel, ManyToMany) else rel.target.name
        for name, rel in table.relations.items()
    }
    return omit(row, keys)


def by_id(
    rows: Iterable[Mapping[str, Any]],
    key: str = "id",
) -> dict[Any, Mapping[str, Any]]:
    """Index *rows* by ``row[key]``; later rows win on duplicates."""
    return {row[key]: row for row in rows}


def add_conditions(
    *conditions: sa.ColumnExpressionArgument[bool],
) -> Callable[[sa.Select[Any]], sa.Select[Any]]:
    """Create a query customizer that adds WHERE conditions.

    Example:
        >>> select = create_select(session)
        >>> active = await select(users, add_conditions(users.c["active"] == True))
    """

    def _add(query: sa.Select[Any]) -> sa.Select[Any]:
        return query.where(*conditions)

    return _add


def get_table_names(query: sa.Select[Any]) -> Sequence[str]:
    """List the FROM names of *query* in join order, without duplicates.

    Each alias is followed by the table it aliases, so a plan joining
    ``orders`` to ``customers`` and ``customers:addresses`` yields
    ``["orders", "customers", "customers:addresses", "addresses"]``, and a
    self join yields ``["employees", "employees_2"]``.
    """
    names: dict[str, None] = {}

    def walk(node: sa.FromClause) -> None:
        match node:
            case sa.Join():
                walk(node.left)
                walk(node.right)
            case sa.Alias():
                names.setdefault(node.name)
                walk(node.element)
            case sa.TableClause():
                names.setdefault(node.name)

    for root in query.get_final_froms():
        walk(root)

    return list(names)
