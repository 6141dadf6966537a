from __future__ import annotations

import logging
from collections.abc import Awaitable, Sequence
from typing import Any, Final, Protocol, TypeVar

import sqlalchemy as sa

from .codec import unflatten
from .plan import Customizer, ManyToManyTask, build_plan
from .schema import TableDef


logger = logging.getLogger(__name__)

T = TypeVar("T")

_LINK_OWN_ID: Final[str] = "__link_own_id__"
_LINK_TARGET_ID: Final[str] = "__link_target_id__"


class AsyncExecutor(Protocol):
    """Anything that runs a statement asynchronously.

    ``AsyncConnection`` and ``AsyncSession`` both qualify.
    """

    async def execute(self, statement: Any, /) -> sa.Result[Any]: ...


class Selector:
    """Run nested selects against one connection or session.

    One call issues a single joined query for the root table and all of its
    foreign-key descendants, plus exactly one query per many-to-many relation
    met while resolving the graph, however many rows are involved.

    Example::

        select = create_select(session)
        users = await select(users_table, lambda q: q.where(users_table.c["id"] < 10))
        users[0]["roles"]  # [{"id": 1, "name": "admin"}, ...]
    """

    __slots__ = ("connection",)

    def __init__(self, connection: AsyncExecutor) -> None:
        self.connection = connection

    async def __call__(
        self,
        table: TableDef,
        query: Customizer | None = None,
    ) -> list[dict[str, Any]]:
        """Select *table* as nested rows.

        Args:
            table: Root table declaration.
            query: Customizer applied to the composed SELECT (filters,
                ordering, limits).

        Returns:
            One nested dict per root row. Foreign keys are nested under the
            target table name, many-to-many relations under their key, as
            lists (empty when nothing is linked).
        """
        plan = build_plan(table)
        rows = unflatten(await self._fetch(plan.statement(query)), plan.separator)
        logger.debug(f"Selected {len(rows)} {plan.table.name!r} rows")

        await self._resolve(plan.pending, rows)

        return rows

    async def _fetch(self, statement: sa.Select[Any]) -> list[dict[str, Any]]:
        result = await self.connection.execute(statement)
        return [dict(row) for row in result.mappings()]

    async def _resolve(self, pending: Sequence[ManyToManyTask], rows: list[dict[str, Any]]) -> None:
        """Attach every queued many-to-many relation to *rows*, in declaration order."""
        for task in pending:
            related = await self._many_to_many(task, rows)
            for row in rows:
                task.get_object(row)[task.key] = list(related.get(task.get_id(row), ()))

    async def _many_to_many(
        self,
        task: ManyToManyTask,
        parents: Sequence[dict[str, Any]],
    ) -> dict[Any, list[dict[str, Any]]]:
        """Load the far side of *task* for all *parents* in one statement.

        The link table is joined to the target (and the target's own
        foreign-key chain) and filtered by the parents' ids. The link pair of
        each row is read before unflattening; target rows are deduplicated by
        id, their own many-to-many relations resolved, and finally grouped per
        parent id in link order.
        """
        relation = task.relation
        ids = list(dict.fromkeys(i for i in map(task.get_id, parents) if i is not None))
        if not ids:
            logger.debug(f"No parent ids for {task.owner.name}.{task.key}, skipping")
            return {}

        plan = build_plan(relation.target, task.ancestors, reserved=(relation.link.name,))
        link = relation.link.from_clause(extra=(task.link_own_id, task.link_target_id))
        own_id = link.c[task.link_own_id]
        target_id = link.c[task.link_target_id]
        target_source = plan.table.columns[relation.target_id]

        statement = (
            sa.select(own_id.label(_LINK_OWN_ID), target_id.label(_LINK_TARGET_ID), *plan.projection)
            .select_from(link)
            .join_from(link, plan.root, target_id == plan.root.c[target_source])
        )
        statement = plan.join_chain(statement).where(own_id.in_(ids))

        flat = await self._fetch(statement)
        pairs = [(row.pop(_LINK_OWN_ID), row.pop(_LINK_TARGET_ID)) for row in flat]

        by_id: dict[Any, dict[str, Any]] = {}
        for row in unflatten(flat, plan.separator):
            by_id.setdefault(row[relation.target_id], row)

        logger.debug(
            f"Resolved {task.owner.name}.{task.key}: {len(ids)} parents, "
            f"{len(pairs)} links, {len(by_id)} {plan.table.name!r} rows"
        )

        await self._resolve(plan.pending, list(by_id.values()))

        grouped: dict[Any, dict[Any, dict[str, Any]]] = {}
        for parent, target in pairs:
            grouped.setdefault(parent, {}).setdefault(target, by_id[target])

        return {parent: list(targets.values()) for parent, targets in grouped.items()}


def create_select(connection: AsyncExecutor) -> Selector:
    """Bind a :class:`Selector` to *connection* (``AsyncConnection`` or ``AsyncSession``)."""
    return Selector(connection)


async def first(rows: Awaitable[Sequence[T]]) -> T | None:
    """Await *rows* and return the first one, or ``None`` when empty."""
    result = await rows
    return result[0] if result else None
