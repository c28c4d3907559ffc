"""
Unit tests for schema validation and export planning.

License: MIT
"""

import pytest

from sqlkg_core.exceptions import SchemaError
from sqlkg_core.graph.schema_plan import build_export_plan
from sqlkg_db import Column, ForeignKey, InMemoryDatabase, IntrospectionError, SchemaModel, Table


def _table(name, columns, pk, fks=(), schema=None):
    return Table(
        name=name,
        columns=tuple(Column(c) for c in columns),
        primary_key=pk,
        foreign_keys=fks,
        schema=schema,
    )


def _plan(*tables, **kwargs):
    return build_export_plan(InMemoryDatabase(tables), **kwargs)


class TestPrimaryKeyChecks:
    """Test primary key validation."""

    def test_missing_primary_key(self):
        with pytest.raises(SchemaError) as exc_info:
            _plan(_table("logs", ["msg"], ()))

        assert exc_info.value.error_code == "SCHEMA_001"
        assert exc_info.value.details["table"] == "logs"

    def test_primary_key_too_wide(self):
        with pytest.raises(SchemaError) as exc_info:
            _plan(_table("t", ["a", "b", "c", "d"], ("a", "b", "c", "d")))

        assert exc_info.value.error_code == "SCHEMA_002"

    def test_max_key_columns_is_configurable(self):
        plan = _plan(_table("t", ["a", "b", "c", "d"], ("a", "b", "c", "d")), max_key_columns=4)

        assert len(plan.tables) == 1

    def test_primary_key_column_missing(self):
        with pytest.raises(SchemaError) as exc_info:
            _plan(_table("t", ["a"], ("id",)))

        assert exc_info.value.error_code == "SCHEMA_003"

    def test_duplicate_table(self):
        with pytest.raises(SchemaError) as exc_info:
            _plan(_table("t", ["id"], ("id",)), _table("t", ["id"], ("id",)))

        assert exc_info.value.error_code == "SCHEMA_004"

    def test_introspection_failure(self):
        class BrokenSchema(SchemaModel):
            def tables(self):
                raise IntrospectionError("catalog unreadable")

        with pytest.raises(SchemaError) as exc_info:
            build_export_plan(BrokenSchema())

        assert exc_info.value.error_code == "SCHEMA_006"


class TestForeignKeyResolution:
    """Test foreign key resolution and ordering."""

    def test_tables_keep_schema_order(self):
        plan = _plan(_table("b", ["id"], ("id",)), _table("a", ["id"], ("id",)))

        assert [t.name for t in plan.tables] == ["b", "a"]

    def test_simple_foreign_key(self):
        users = _table("users", ["id"], ("id",))
        orders = _table("orders", ["id", "user_id"], ("id",), (ForeignKey(["user_id"], "users"),))

        plan = _plan(users, orders)

        (fk,) = plan.foreign_keys
        assert fk.table.name == "orders"
        assert fk.referenced.name == "users"
        assert fk.columns == ("user_id",)
        assert fk.name == "orders(user_id)"
        assert plan.foreign_keys_of(orders) == [fk]
        assert plan.foreign_keys_of(users) == []

    def test_qualified_edge_class_name(self):
        users = _table("users", ["id", "boss_id"], ("id",), (ForeignKey(["boss_id"], "users"),), "hr")

        (fk,) = _plan(users).foreign_keys

        assert fk.name == "hr.users(boss_id)"

    def test_composite_key_order_permutation(self):
        parent = _table("p", ["a", "b"], ("a", "b"))
        child = _table(
            "c",
            ["id", "x", "y"],
            ("id",),
            (ForeignKey(["y", "x"], "p", ["b", "a"]),),
        )

        (fk,) = _plan(parent, child).foreign_keys

        # p.a is held by c.x (index 1), p.b by c.y (index 0)
        assert fk.key_order == (1, 0)

    def test_non_primary_key_target_skipped(self):
        users = _table("users", ["id", "email"], ("id",))
        orders = _table(
            "orders", ["id", "email"], ("id",), (ForeignKey(["email"], "users", ["email"]),)
        )

        plan = _plan(users, orders)

        assert plan.foreign_keys == ()

    def test_unknown_referenced_table(self):
        orders = _table("orders", ["id", "user_id"], ("id",), (ForeignKey(["user_id"], "users"),))

        with pytest.raises(SchemaError) as exc_info:
            _plan(orders)

        assert exc_info.value.error_code == "SCHEMA_005"

    def test_arity_mismatch(self):
        parent = _table("p", ["a", "b"], ("a", "b"))
        child = _table("c", ["id", "x"], ("id",), (ForeignKey(["x"], "p"),))

        with pytest.raises(SchemaError) as exc_info:
            _plan(parent, child)

        assert exc_info.value.error_code == "SCHEMA_005"

    def test_foreign_key_column_missing(self):
        users = _table("users", ["id"], ("id",))
        orders = _table("orders", ["id"], ("id",), (ForeignKey(["user_id"], "users"),))

        with pytest.raises(SchemaError) as exc_info:
            _plan(users, orders)

        assert exc_info.value.error_code == "SCHEMA_005"

    def test_identical_duplicate_ignored(self):
        users = _table("users", ["id"], ("id",))
        fk = ForeignKey(["user_id"], "users")
        orders = _table("orders", ["id", "user_id"], ("id",), (fk, fk))

        assert len(_plan(users, orders).foreign_keys) == 1

    def test_same_columns_two_targets(self):
        a = _table("a", ["id"], ("id",))
        b = _table("b", ["id"], ("id",))
        c = _table(
            "c", ["id", "ref"], ("id",), (ForeignKey(["ref"], "a"), ForeignKey(["ref"], "b"))
        )

        with pytest.raises(SchemaError) as exc_info:
            _plan(a, b, c)

        assert exc_info.value.error_code == "SCHEMA_005"

    def test_self_and_cyclic_references_accepted(self):
        a = _table("a", ["id", "b_id", "parent"], ("id",),
                   (ForeignKey(["b_id"], "b"), ForeignKey(["parent"], "a")))
        b = _table("b", ["id", "a_id"], ("id",), (ForeignKey(["a_id"], "a"),))

        plan = _plan(a, b)

        assert [fk.name for fk in plan.foreign_keys] == ["a(b_id)", "a(parent)", "b(a_id)"]
