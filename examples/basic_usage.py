"""Basic sqla-nested usage examples.

Demonstrates nested foreign keys, batched many-to-many loading,
query customizers, and reshaping declarations.

NOTE: This file is illustrative and won't run standalone
without a database and seeded data.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncSession, create_async_engine

from sqla_nested import add_conditions, create_select, first, m2m, omit_relations

from .models import customers, orders, permissions, roles, users


engine = create_async_engine("sqlite+aiosqlite:///:memory:")


# ── 1. Foreign keys: one joined query ────────────────────────────────


async def get_orders(conn: AsyncConnection) -> list[dict[str, Any]]:
    # [{"id": 1, "title": ..., "customers": {"id": 1, ..., "addresses": {...}}}]
    select = create_select(conn)
    return await select(orders, lambda q: q.order_by(orders.c["id"]))


async def get_orders_of(conn: AsyncConnection, customer_name: str) -> list[dict[str, Any]]:
    select = create_select(conn)
    return await select(orders, add_conditions(customers.c["name"] == customer_name))


# ── 2. Many-to-many: one query per relation ──────────────────────────


async def get_users_with_roles(session: AsyncSession) -> list[dict[str, Any]]:
    # users -> roles -> permissions: three queries, whatever the row count
    select = create_select(session)
    return await select(users, lambda q: q.where(users.c["id"] < 100))


async def get_user(session: AsyncSession, user_id: int) -> dict[str, Any] | None:
    select = create_select(session)
    return await first(select(users, lambda q: q.where(users.c["id"] == user_id)))


# ── 3. Reshaping declarations ────────────────────────────────────────


async def get_role_names(session: AsyncSession) -> list[dict[str, Any]]:
    select = create_select(session)
    link = users.relations["roles"].link
    slim = users.pick("id", "roles").with_({"roles": m2m(roles.omit("permissions"), link)})
    return await select(slim)


async def get_plain_orders(conn: AsyncConnection) -> list[dict[str, Any]]:
    rows = await create_select(conn)(orders)
    return [omit_relations(row, orders) for row in rows]


async def get_permission_codes(conn: AsyncConnection) -> list[dict[str, Any]]:
    return await create_select(conn)(permissions.pick("code"))
