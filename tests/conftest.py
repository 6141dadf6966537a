from __future__ import annotations

import os
from collections.abc import AsyncIterator, Iterator
from typing import Any

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    create_async_engine,
)

from .models import (
    addresses_t,
    customers_t,
    customers_tags_t,
    employees_t,
    metadata,
    orders_t,
    permissions_t,
    roles_permissions_t,
    roles_t,
    tags_t,
    users_roles_t,
    users_t,
)


pytestmark = pytest.mark.anyio


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--db",
        default="sqlite",
        choices=["postgres", "mysql", "mariadb", "sqlite"],
        help="Database backend to test against",
    )


@pytest.fixture(scope="session")
def db_backend(request: pytest.FixtureRequest) -> str:
    value: str = request.config.getoption("--db")

    return value


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(scope="session")
def db_config(db_backend: str, tmp_path_factory: pytest.TempPathFactory) -> Iterator[str]:
    match db_backend:
        case "postgres":
            from testcontainers.postgres import PostgresContainer

            pg = PostgresContainer(image="postgres:latest")
            if os.name == "nt":
                pg.get_container_host_ip = lambda: "127.0.0.1"
            with pg:
                host = pg.get_container_host_ip()
                dsn = (
                    f"postgresql+asyncpg://{pg.username}:{pg.password}"
                    f"@{host}:{pg.get_exposed_port(pg.port)}/{pg.dbname}"
                )
                yield dsn

        case "mysql":
            from testcontainers.mysql import MySqlContainer

            my = MySqlContainer(image="mysql:8.0")
            if os.name == "nt":
                my.get_container_host_ip = lambda: "127.0.0.1"
            with my:
                host = my.get_container_host_ip()
                port = my.get_exposed_port(my.port)
                yield f"mysql+asyncmy://{my.username}:{my.password}@{host}:{port}/{my.dbname}"

        case "mariadb":
            from testcontainers.mysql import MySqlContainer as MariaDBContainer

            ma = MariaDBContainer(image="mariadb:latest")
            if os.name == "nt":
                ma.get_container_host_ip = lambda: "127.0.0.1"
            with ma:
                host = ma.get_container_host_ip()
                port = ma.get_exposed_port(ma.port)
                yield f"mysql+asyncmy://{ma.username}:{ma.password}@{host}:{port}/{ma.dbname}"

        case "sqlite":
            tmp = tmp_path_factory.mktemp("db")
            yield f"sqlite+aiosqlite:///{tmp}/test.db"


@pytest.fixture(scope="session")
def engine(db_config: str) -> AsyncEngine:
    return create_async_engine(db_config, echo=False)


@pytest.fixture(scope="session")
async def _create_tables(engine: AsyncEngine) -> AsyncIterator[None]:
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def connection(
    engine: AsyncEngine, _create_tables: None
) -> AsyncIterator[AsyncConnection]:
    async with engine.connect() as conn:
        trans = await conn.begin()
        yield conn
        await trans.rollback()


@pytest.fixture
async def session(connection: AsyncConnection) -> AsyncIterator[AsyncSession]:
    sess = AsyncSession(bind=connection, expire_on_commit=False)
    yield sess
    await sess.close()


@pytest.fixture
async def seed_data(connection: AsyncConnection) -> dict[str, list[dict[str, Any]]]:
    data: dict[str, list[dict[str, Any]]] = {
        "users": [
            {"id": 1, "name": "alice", "active": True},
            {"id": 2, "name": "bob", "active": True},
            {"id": 3, "name": "charlie", "active": False},
        ],
        "roles": [
            {"id": 1, "name": "admin", "level": 10},
            {"id": 2, "name": "editor", "level": 5},
            {"id": 3, "name": "viewer", "level": 1},
        ],
        "users_roles": [
            {"usersId": 1, "rolesId": 1},
            {"usersId": 1, "rolesId": 2},
            {"usersId": 2, "rolesId": 2},
            {"usersId": 2, "rolesId": 3},
        ],
        "permissions": [
            {"id": 1, "code": "read"},
            {"id": 2, "code": "write"},
            {"id": 3, "code": "delete"},
        ],
        "roles_permissions": [
            {"rolesId": 1, "permissionsId": 1},
            {"rolesId": 1, "permissionsId": 2},
            {"rolesId": 1, "permissionsId": 3},
            {"rolesId": 2, "permissionsId": 1},
            {"rolesId": 2, "permissionsId": 2},
            {"rolesId": 3, "permissionsId": 1},
        ],
        "addresses": [
            {"id": 1, "city": "Oslo"},
            {"id": 2, "city": "Bergen"},
        ],
        "customers": [
            {"id": 1, "name": "Ann", "addressesId": 1},
            {"id": 2, "name": "Ben", "addressesId": 2},
        ],
        "orders": [
            {"id": 1, "title": "first", "customersId": 1},
            {"id": 2, "title": "second", "customersId": 1},
            {"id": 3, "title": "third", "customersId": 2},
        ],
        "tags": [
            {"id": 1, "name": "vip"},
            {"id": 2, "name": "new"},
        ],
        "customers_tags": [
            {"customersId": 1, "tagsId": 1},
            {"customersId": 1, "tagsId": 2},
            {"customersId": 2, "tagsId": 2},
        ],
        "employees": [
            {"id": 1, "name": "Ada", "managerId": None},
            {"id": 2, "name": "Bo", "managerId": 1},
            {"id": 3, "name": "Cy", "managerId": 2},
        ],
    }

    for sa_table in (
        users_t,
        roles_t,
        users_roles_t,
        permissions_t,
        roles_permissions_t,
        addresses_t,
        customers_t,
        orders_t,
        tags_t,
        customers_tags_t,
        employees_t,
    ):
        await connection.execute(sa_table.insert().values(data[sa_table.name]))

    return data


@pytest.fixture
def statements(
    engine: AsyncEngine, seed_data: dict[str, list[dict[str, Any]]]
) -> Iterator[list[str]]:
    """Collect the SELECT statements sent to the database after seeding."""
    captured: list[str] = []

    def _capture(
        conn: Any, cursor: Any, statement: str, parameters: Any, context: Any, executemany: bool
    ) -> None:
        if statement.lstrip().upper().startswith("SELECT"):
            captured.append(statement)

    event.listen(engine.sync_engine, "before_cursor_execute", _capture)
    yield captured
    event.remove(engine.sync_engine, "before_cursor_execute", _capture)
