"""
Unit test fixtures.

Isolates unit tests from environment variables (.env file)
to ensure tests verify actual default values.

License: MIT
"""

import os

import pytest

from sqlkg_db import Column, ForeignKey, InMemoryDatabase, Table

# Environment variables that affect SqlKgSettings defaults
CONFIG_ENV_VARS = [
    "SQLKG_OUTPUT_DIR",
    "SQLKG_COMPRESSED",
    "SQLKG_CSV_DELIMITER",
    "SQLKG_COMPRESSION_LEVEL",
    "SQLKG_WRITE_BUFFER_SIZE",
    "SQLKG_MAX_KEY_COLUMNS",
    "SQLKG_DANGLING_SAMPLE_LIMIT",
    "SQLKG_FETCH_SIZE",
    "SQLKG_LOG_LEVEL",
    "SQLKG_LOG_FORMAT",
]


@pytest.fixture(autouse=True)
def clean_env_for_unit_tests(monkeypatch, tmp_path):
    """
    Remove all config-related environment variables and change working
    directory to avoid loading .env file.
    """
    for var in CONFIG_ENV_VARS:
        monkeypatch.delenv(var, raising=False)

    original_dir = os.getcwd()
    os.chdir(tmp_path)
    yield
    os.chdir(original_dir)


@pytest.fixture
def users_orders_db():
    """users(id) and orders(id, user_id -> users) with one dangling order."""
    users = Table(
        name="users",
        columns=(Column("id"), Column("name")),
        primary_key=("id",),
    )
    orders = Table(
        name="orders",
        columns=(Column("id"), Column("user_id")),
        primary_key=("id",),
        foreign_keys=(ForeignKey(("user_id",), "users"),),
    )
    return InMemoryDatabase(
        [users, orders],
        {
            "users": [{"id": 1, "name": "ada"}, {"id": 2, "name": "bob"}],
            "orders": [
                {"id": 10, "user_id": 1},
                {"id": 11, "user_id": 2},
                {"id": 12, "user_id": 99},
            ],
        },
    )
