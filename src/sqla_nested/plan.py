from __future__ import annotations

import logging
import sys
from collections import deque
from collections.abc import Callable, Hashable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any


if sys.version_info >= (3, 11):
    from typing import assert_never
else:
    from typing_extensions import assert_never

import sqlalchemy as sa

from .exceptions import RelationConfigError, RelationCycleError
from .schema import Expr, ForeignKey, ManyToMany, TableDef, _require_table


logger = logging.getLogger(__name__)

Customizer = Callable[[sa.Select[Any]], sa.Select[Any]]


@dataclass(frozen=True, slots=True, eq=False)
class JoinStep:
    left: sa.FromClause
    right: sa.FromClause
    onclause: sa.ColumnElement[bool]


@dataclass(frozen=True, slots=True)
class ManyToManyTask:
    """A many-to-many relation queued for batched resolution.

    ``path`` leads from a resolved root row to the object owning the
    relation; ``ancestors`` holds the identities of the tables joined on the
    way there.
    """

    key: str
    relation: ManyToMany
    owner: TableDef
    path: tuple[str, ...]
    link_own_id: str
    link_target_id: str
    ancestors: tuple[Hashable, ...]

    def get_object(self, row: Mapping[str, Any]) -> Any:
        obj: Any = row
        for segment in self.path:
            obj = obj[segment]

        return obj

    def get_id(self, row: Mapping[str, Any]) -> Any:
        return self.get_object(row).get(self.relation.own_id)


@dataclass(frozen=True, slots=True, eq=False)
class JoinPlan:
    """Projection, foreign-key joins and queued many-to-many relations of one table."""

    table: TableDef
    root: sa.FromClause
    projection: tuple[sa.ColumnElement[Any], ...]
    joins: tuple[JoinStep, ...] = ()
    pending: tuple[ManyToManyTask, ...] = ()

    @property
    def separator(self) -> str:
        return self.table.options.separator

    def join_chain(self, query: sa.Select[Any]) -> sa.Select[Any]:
        """Apply every foreign-key join of the plan to *query*."""
        for step in self.joins:
            query = query.join_from(step.left, step.right, step.onclause)

        return query

    def statement(self, query: Customizer | None = None) -> sa.Select[Any]:
        """Compose the base SELECT, then hand it to the *query* customizer."""
        stmt = self.join_chain(sa.select(*self.projection).select_from(self.root))
        return query(stmt) if query is not None else stmt


@dataclass(frozen=True, slots=True, eq=False)
class _Level:
    table: TableDef
    path: str
    object_path: tuple[str, ...]
    clause: sa.FromClause
    chain: tuple[Hashable, ...]


def _plain_column(table: TableDef, name: str, role: str) -> str:
    source = table.columns.get(name)
    if source is None or isinstance(source, Expr):
        raise RelationConfigError(
            f"{role} {name!r} must be a declared plain column of {table.name!r}"
        )

    return source


def _unique_name(name: str, used: set[str]) -> str:
    """Return *name*, or ``name_2``, ``name_3``... when already in the FROM clause."""
    candidate, n = name, 1
    while candidate in used:
        n += 1
        candidate = f"{name}_{n}"

    used.add(candidate)
    return candidate


def _many_to_many_task(key: str, relation: ManyToMany, level: _Level) -> ManyToManyTask:
    owner = level.table
    target = _require_table(relation.target, f"Target of {owner.name}.{key}")
    _require_table(relation.link, f"Link table of {owner.name}.{key}")

    if relation.own_id not in owner.columns:
        raise RelationConfigError(
            f"{owner.name}.{key}: own id {relation.own_id!r} is not a declared column"
        )
    _plain_column(target, relation.target_id, f"{owner.name}.{key}: target id")

    return ManyToManyTask(
        key=key,
        relation=relation,
        owner=owner,
        path=level.object_path,
        link_own_id=relation.link_own_id or f"{owner.name}Id",
        link_target_id=relation.link_target_id or f"{target.name}Id",
        ancestors=level.chain,
    )


def build_plan(
    table: TableDef,
    ancestors: Sequence[Hashable] = (),
    reserved: Iterable[str] = (),
) -> JoinPlan:
    """Walk the foreign-key graph of *table* breadth-first.

    Every reachable level contributes its columns to one flat projection,
    labeled by relation path (``customers:addresses:city``) under the root's
    separator. Foreign keys become inner joins against the target table
    aliased by that path; many-to-many relations are queued instead of
    joined, since joining them would multiply the root rows.

    FROM names are unique within a plan: when a path is already taken (a
    table joined to itself, ``employees`` → ``employees``), the join alias
    gets a numeric suffix (``employees_2``). Result keys still follow the
    relation path.

    Args:
        table: Root table. Its prefix is reset so root columns are unprefixed.
        ancestors: Identities of tables already on the relation path, used
            when planning the far side of a many-to-many relation.
        reserved: FROM names already used by the enclosing statement (the
            link table of a many-to-many batch).

    Returns:
        The compiled ``JoinPlan``.

    Raises:
        RelationConfigError: A relation cannot be turned into a join.
        RelationCycleError: A table reappears on its own relation path.
    """
    root = table.as_("")
    sep = root.options.separator

    if root.identity in ancestors:
        raise RelationCycleError(root.name, "")

    used = set(reserved)
    root_name = _unique_name(root.name, used)
    # unaliased unless reserved: plain accessors (``users.id``) resolve against it
    root_clause = root.from_clause(None if root_name == root.name else root_name)
    queue: deque[_Level] = deque(
        [_Level(root, "", (), root_clause, (*ancestors, root.identity))]
    )
    projection: list[sa.ColumnElement[Any]] = []
    joins: list[JoinStep] = []
    pending: list[ManyToManyTask] = []

    while queue:
        level = queue.popleft()
        current = level.table
        projection.extend(current.projection(level.clause))

        taken = set(current.columns)
        taken.update(k for k, r in current.relations.items() if isinstance(r, ManyToMany))

        for key, relation in current.relations.items():
            match relation:
                case ForeignKey():
                    target = _require_table(relation.target, f"Target of {current.name}.{key}")
                    name = target.name
                    child_path = f"{level.path}{sep}{name}" if level.path else name

                    # rows nest foreign keys under the target table name
                    if name in taken:
                        raise RelationConfigError(
                            f"{current.name}.{key}: {name!r} is already used on path "
                            f"{level.path or '<root>'!r}; join the same table through "
                            "distinct intermediate paths"
                        )
                    taken.add(name)

                    if target.identity in level.chain:
                        raise RelationCycleError(name, child_path)

                    child = target.as_(child_path).separator(sep)
                    child_clause = child.from_clause(
                        _unique_name(child_path, used), extra=(relation.target_column,)
                    )
                    joins.append(
                        JoinStep(
                            left=level.clause,
                            right=child_clause,
                            onclause=level.clause.c[relation.own_column]
                            == child_clause.c[relation.target_column],
                        )
                    )
                    queue.append(
                        _Level(
                            child,
                            child_path,
                            (*level.object_path, name),
                            child_clause,
                            (*level.chain, target.identity),
                        )
                    )

                case ManyToMany():
                    pending.append(_many_to_many_task(key, relation, level))

                case _:
                    assert_never(relation)

    logger.debug(
        f"Planned {root.name!r}: {len(projection)} columns, {len(joins)} joins, "
        f"{len(pending)} many-to-many relations queued"
    )

    return JoinPlan(
        table=root,
        root=root_clause,
        projection=tuple(projection),
        joins=tuple(joins),
        pending=tuple(pending),
    )
