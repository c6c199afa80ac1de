"""
SQL text builders for staging, copy, merge and schema-guard statements.

Every identifier goes through ``quote_ident``; values never appear in the
generated text (catalog queries are parameterized).
"""
import re
from typing import Iterable, List, Optional, Sequence

IDENTIFIER_REGEX = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')

# PostgreSQL silently truncates identifiers longer than NAMEDATALEN - 1 bytes
MAX_IDENTIFIER_LENGTH = 63


def quote_ident(ident: str) -> str:
    if not IDENTIFIER_REGEX.match(ident or ""):
        raise ValueError(f"Invalid identifier: {ident!r}")
    return f'"{ident}"'


def qualified_name(name: str, schema: Optional[str] = None) -> str:
    if schema:
        return f"{quote_ident(schema)}.{quote_ident(name)}"
    return quote_ident(name)


def staging_column_name(table: str, column: str) -> str:
    return f"{table}_{column}"


def create_staging_table_sql(staging_table: str, columns: Sequence[tuple]) -> str:
    """
    Temporary table with one column per ``(name, sql_type)`` pair.

    ON COMMIT DROP is safe here because the table is always created inside
    the load transaction; a pooled session never sees a leftover table.
    """
    cols = ", ".join(f"{quote_ident(name)} {sql_type}" for name, sql_type in columns)
    return f"CREATE TEMPORARY TABLE {quote_ident(staging_table)} ({cols}) ON COMMIT DROP"


def analyze_sql(table: str, schema: Optional[str] = None) -> str:
    return f"ANALYZE {qualified_name(table, schema)}"


def projection_sql(table: str, columns: Iterable) -> str:
    """SELECT list moving one table's staged columns into its own column names."""
    parts = []
    for column in columns:
        staged = quote_ident(staging_column_name(table, column.destination_column))
        expr = f"unnest({staged})" if column.expand else staged
        if column.cast_type:
            expr = f"{expr}::{column.cast_type}"
        parts.append(f"{expr} AS {quote_ident(column.destination_column)}")
    return ", ".join(parts)


def merge_from_staging_sql(tables: dict, staging_table: str, schema: Optional[str] = None) -> str:
    """One INSERT ... SELECT ... ON CONFLICT DO NOTHING per table, in declaration order."""
    statements = []
    for table, columns in tables.items():
        collist = ", ".join(quote_ident(c.destination_column) for c in columns)
        statements.append(
            f"INSERT INTO {qualified_name(table, schema)} ({collist}) "
            f"SELECT {projection_sql(table, columns)} "
            f"FROM {quote_ident(staging_table)} "
            f"ON CONFLICT DO NOTHING;"
        )
    return " ".join(statements)


def drop_indexes_sql(index_names: List[str], schema: Optional[str] = None) -> str:
    names = ", ".join(qualified_name(name, schema) for name in index_names)
    return f"DROP INDEX IF EXISTS {names} RESTRICT"


def drop_constraints_sql(constraints: Iterable, schema: Optional[str] = None) -> str:
    return "; ".join(
        f"ALTER TABLE {qualified_name(c.table, schema)} DROP CONSTRAINT {quote_ident(c.name)}"
        for c in constraints
    )


def add_constraints_sql(constraints: Iterable, schema: Optional[str] = None) -> str:
    return "; ".join(
        f"ALTER TABLE {qualified_name(c.table, schema)} "
        f"ADD CONSTRAINT {quote_ident(c.name)} {c.definition}"
        for c in constraints
    )


def recreate_indexes_sql(indexes: Iterable) -> str:
    return "; ".join(index.definition for index in indexes)
