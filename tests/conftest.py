"""
Shared fixtures: job configurations, CSV file factory and an in-memory
stand-in for an asyncpg connection.
"""
import csv
import os
import tempfile
from typing import Any, Dict, List

import pytest

from .fakes import FakeConnection


def create_csv_file(headers: List[str], rows: List[Dict[str, Any]], write_header: bool = True) -> str:
    """Helper function to create CSV file from headers and rows."""
    fd, filepath = tempfile.mkstemp(suffix='.csv', prefix='test_')
    os.close(fd)

    with open(filepath, 'w', newline='', encoding='utf-8') as f:
        writer = csv.DictWriter(f, fieldnames=headers)
        if write_header:
            writer.writeheader()
        writer.writerows(rows)

    return filepath


@pytest.fixture
def csv_file_factory():
    """CSV file factory with automatic cleanup."""
    created_files = []

    def _create_csv(headers: List[str], rows: List[Dict[str, Any]], write_header: bool = True) -> str:
        file_path = create_csv_file(headers, rows, write_header)
        created_files.append(file_path)
        return file_path

    yield _create_csv

    for file_path in created_files:
        try:
            os.remove(file_path)
        except FileNotFoundError:
            pass


@pytest.fixture
def users_job() -> Dict[str, Any]:
    """Two tables, users referencing the address id carried in each row."""
    return {
        "name": "users_job",
        "tables": {
            "addresses": [
                {"destination_column": "id", "source_column": "address_id", "sql_type": "TEXT"},
                {"destination_column": "street", "sql_type": "TEXT"},
                {"destination_column": "state", "sql_type": "TEXT"},
            ],
            "users": [
                {"destination_column": "id", "sql_type": "TEXT"},
                {"destination_column": "age", "sql_type": "INT"},
                {"destination_column": "name", "sql_type": "TEXT"},
                {"destination_column": "nickname", "sql_type": "TEXT"},
                {"destination_column": "address", "sql_type": "TEXT", "references_column": "address_id"},
            ],
        },
        "drop_indexes": True,
        "drop_foreign_keys": True,
    }


@pytest.fixture
def addresses_job() -> Dict[str, Any]:
    """Single table, nothing to unnest or cast: rows can be copied directly."""
    return {
        "name": "addresses_job",
        "tables": {
            "addresses": [
                {"destination_column": "id", "source_column": "address_id", "sql_type": "TEXT"},
                {"destination_column": "street", "sql_type": "TEXT"},
                {"destination_column": "state", "sql_type": "TEXT"},
            ],
        },
    }


@pytest.fixture
def fake_connection():
    return FakeConnection()
