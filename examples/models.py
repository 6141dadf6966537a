"""Table declarations shared by the examples."""

from __future__ import annotations

from sqla_nested import expr, fk, m2m, table, table_factory


permissions = table("permissions", "id", "code")
roles = table(
    "roles",
    "id",
    "name",
    {"permissions": m2m(permissions, table("roles_permissions", "rolesId", "permissionsId"))},
)
users = table(
    "users",
    "id",
    {"fullName": "name", "nameLength": expr("length(users.name)")},
    {"roles": m2m(roles, table("users_roles", "usersId", "rolesId"))},
)

addresses = table("addresses", "id", "city")
customers = table("customers", "id", "name", {"address": fk(addresses)})
orders = table("orders", "id", "title", {"customer": fk(customers)})

# quoted accessors for raw SQL fragments
quoted_table = table_factory(quotes='"')
audit_log = quoted_table("audit_log", "id", "message")
