"""
Unit tests for IdentifierAllocator.

Tests dense contiguous ranges, idempotent allocation, the ordinal fast
path and its fallback, and sealing.

License: MIT
"""

from decimal import Decimal

import pytest

from sqlkg_core.exceptions import SourceError
from sqlkg_core.graph.id_allocator import IdentifierAllocator


@pytest.fixture
def allocator():
    return IdentifierAllocator()


class TestAllocation:
    """Test ID minting and lookup."""

    def test_ids_start_at_zero_and_are_dense(self, allocator):
        allocator.open_table("users")
        ids = [allocator.allocate("users", key) for key in (1, 2, 3)]

        assert ids == [0, 1, 2]
        assert allocator.total == 3

    def test_allocate_is_idempotent(self, allocator):
        allocator.open_table("users")
        first = allocator.allocate("users", "ada")

        assert allocator.allocate("users", "ada") == first
        assert allocator.total == 1

    def test_lookup_does_not_allocate(self, allocator):
        allocator.open_table("users")
        allocator.allocate("users", 1)

        assert allocator.lookup("users", 2) is None
        assert allocator.lookup("missing", 1) is None
        assert allocator.count("users") == 1

    def test_tables_get_contiguous_ranges(self, allocator):
        allocator.open_table("a")
        for key in ("x", "y"):
            allocator.allocate("a", key)
        allocator.open_table("b")
        for key in (5, 6, 7):
            allocator.allocate("b", key)

        assert allocator.table_range("a") == range(0, 2)
        assert allocator.table_range("b") == range(2, 5)
        assert allocator.lookup("b", 6) == 3

    def test_same_key_in_different_tables(self, allocator):
        allocator.open_table("a")
        a_id = allocator.allocate("a", 1)
        allocator.open_table("b")
        b_id = allocator.allocate("b", 1)

        assert a_id != b_id

    def test_allocate_opens_unknown_table(self, allocator):
        assert allocator.allocate("users", 7) == 0
        assert not allocator.is_sealed("users")

    def test_composite_keys(self, allocator):
        allocator.open_table("memberships")
        allocator.allocate("memberships", (1, "admin"))
        allocator.allocate("memberships", (1, "user"))

        assert allocator.lookup("memberships", (1, "user")) == 1
        assert allocator.lookup("memberships", ("user", 1)) is None

    def test_empty_table_range(self, allocator):
        allocator.open_table("empty")
        allocator.seal()

        assert allocator.table_range("empty") == range(0, 0)
        assert allocator.lookup("empty", 1) is None


class TestOrdinalFastPath:
    """Test the consecutive-integer representation."""

    def test_consecutive_ints_stay_ordinal(self, allocator):
        allocator.open_table("t")
        for key in range(100, 200):
            allocator.allocate("t", key)

        assert allocator.is_ordinal("t")
        assert allocator.lookup("t", 150) == 50
        assert allocator.lookup("t", 99) is None
        assert allocator.lookup("t", 200) is None

    def test_numeric_probes_match_dict_equality(self, allocator):
        allocator.open_table("t")
        for key in (1, 2, 3):
            allocator.allocate("t", key)

        assert allocator.lookup("t", 2.0) == 1
        assert allocator.lookup("t", Decimal("3")) == 2
        assert allocator.lookup("t", 2.5) is None
        assert allocator.lookup("t", "2") is None
        assert allocator.lookup("t", float("nan")) is None

    def test_gap_falls_back_to_mapping(self, allocator):
        allocator.open_table("t")
        for key in (1, 2, 10, 11):
            allocator.allocate("t", key)

        assert not allocator.is_ordinal("t")
        assert [allocator.lookup("t", k) for k in (1, 2, 10, 11)] == [0, 1, 2, 3]
        assert allocator.lookup("t", 3) is None

    def test_non_integer_keys_use_mapping(self, allocator):
        allocator.open_table("t")
        allocator.allocate("t", "b")
        allocator.allocate("t", "a")

        assert not allocator.is_ordinal("t")
        assert allocator.lookup("t", "a") == 1


class TestSealing:
    """Test that only the open table mints IDs."""

    def test_new_key_on_sealed_table_raises(self, allocator):
        allocator.open_table("users")
        allocator.allocate("users", 1)
        allocator.open_table("orders")

        assert allocator.is_sealed("users")
        assert allocator.allocate("users", 1) == 0

        with pytest.raises(SourceError) as exc_info:
            allocator.allocate("users", 2)

        assert exc_info.value.error_code == "SRC_003"

    def test_seal_other_table_is_noop(self, allocator):
        allocator.open_table("users")
        allocator.seal("orders")

        assert not allocator.is_sealed("users")
        allocator.seal("users")
        assert allocator.is_sealed("users")

    def test_reopen_raises(self, allocator):
        allocator.open_table("users")

        with pytest.raises(ValueError):
            allocator.open_table("users")
