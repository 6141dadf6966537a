from __future__ import annotations

import sqlalchemy as sa

from sqla_nested import fk, m2m, table


metadata = sa.MetaData()

# database schema

users_t = sa.Table(
    "users",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=False),
    sa.Column("name", sa.String(100)),
    sa.Column("active", sa.Boolean, default=True),
)

roles_t = sa.Table(
    "roles",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=False),
    sa.Column("name", sa.String(50)),
    sa.Column("level", sa.Integer, default=0),
)

# no primary key: duplicate links are allowed on purpose
users_roles_t = sa.Table(
    "users_roles",
    metadata,
    sa.Column("usersId", sa.Integer, sa.ForeignKey("users.id")),
    sa.Column("rolesId", sa.Integer, sa.ForeignKey("roles.id")),
)

permissions_t = sa.Table(
    "permissions",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=False),
    sa.Column("code", sa.String(50)),
)

roles_permissions_t = sa.Table(
    "roles_permissions",
    metadata,
    sa.Column("rolesId", sa.Integer, sa.ForeignKey("roles.id"), primary_key=True),
    sa.Column("permissionsId", sa.Integer, sa.ForeignKey("permissions.id"), primary_key=True),
)

addresses_t = sa.Table(
    "addresses",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=False),
    sa.Column("city", sa.String(100)),
)

customers_t = sa.Table(
    "customers",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=False),
    sa.Column("name", sa.String(100)),
    sa.Column("addressesId", sa.Integer, sa.ForeignKey("addresses.id")),
)

orders_t = sa.Table(
    "orders",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=False),
    sa.Column("title", sa.String(200)),
    sa.Column("customersId", sa.Integer, sa.ForeignKey("customers.id")),
)

tags_t = sa.Table(
    "tags",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=False),
    sa.Column("name", sa.String(50)),
)

customers_tags_t = sa.Table(
    "customers_tags",
    metadata,
    sa.Column("customersId", sa.Integer, sa.ForeignKey("customers.id"), primary_key=True),
    sa.Column("tagsId", sa.Integer, sa.ForeignKey("tags.id"), primary_key=True),
)

# declarations

permissions = table("permissions", "id", "code")
roles_permissions = table("roles_permissions", "rolesId", "permissionsId")
roles = table("roles", "id", "name", "level")
users_roles = table("users_roles", "usersId", "rolesId")
users = table("users", "id", "name", "active", {"roles": m2m(roles, users_roles)})

addresses = table("addresses", "id", "city")
customers = table("customers", "id", "name", {"address": fk(addresses)})
orders = table("orders", "id", "title", {"customer": fk(customers)})

tags = table("tags", "id", "name")
customers_tags = table("customers_tags", "customersId", "tagsId")

employees_t = sa.Table(
    "employees",
    metadata,
    sa.Column("id", sa.Integer, primary_key=True, autoincrement=False),
    sa.Column("name", sa.String(100)),
    sa.Column("managerId", sa.Integer, sa.ForeignKey("employees.id"), nullable=True),
)

managers = table("employees", "id", "name")
employees = table("employees", "id", "name", {"manager": fk(managers, "managerId")})
