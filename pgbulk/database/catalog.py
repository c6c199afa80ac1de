"""
Catalog queries listing the indexes and constraints of one table.
"""
from dataclasses import dataclass
from typing import List, Optional

from .session import LoadSession

INDEXES_QUERY = """
    SELECT
        i.indexname AS name,
        i.indexdef AS definition
    FROM pg_indexes i
    WHERE i.tablename = $1
      AND i.schemaname = COALESCE($2::text, current_schema())
      AND ($3::boolean OR i.indexdef NOT ILIKE 'CREATE UNIQUE INDEX%')
      AND NOT EXISTS (
          SELECT 1
          FROM pg_constraint con
          JOIN pg_class ic ON ic.oid = con.conindid
          JOIN pg_namespace ins ON ins.oid = ic.relnamespace
          WHERE ic.relname = i.indexname
            AND ins.nspname = i.schemaname
            AND con.contype IN ('p', 'u', 'x')
      )
    ORDER BY i.indexname
"""

CONSTRAINTS_QUERY = """
    SELECT
        con.conname AS name,
        pg_get_constraintdef(con.oid, true) AS definition
    FROM pg_constraint con
    JOIN pg_class cl ON con.conrelid = cl.oid
    JOIN pg_namespace ns ON cl.relnamespace = ns.oid
    WHERE cl.relname = $1
      AND ns.nspname = COALESCE($2::text, current_schema())
      AND con.contype NOT IN ('p', 'n')
    ORDER BY con.conname
"""


@dataclass(frozen=True)
class SchemaObject:
    """An index or constraint as the catalog reports it."""

    name: str
    definition: str
    table: str

    @property
    def key(self) -> tuple:
        return (self.name, self.definition)


class CatalogInspector:
    """
    Read-only catalog access scoped to one table at a time.

    Indexes backing primary-key, unique or exclusion constraints are never
    listed: they go away and come back with their constraint. Unique indexes
    are left out unless ``include_unique`` is set; primary keys are never
    listed as constraints.
    """

    def __init__(self, session: LoadSession, schema: Optional[str] = None, include_unique: bool = False):
        self.session = session
        self.schema = schema
        self.include_unique = include_unique

    async def list_indexes(self, table: str) -> List[SchemaObject]:
        rows = await self.session.fetch(INDEXES_QUERY, table, self.schema, self.include_unique)
        return [SchemaObject(row["name"], row["definition"], table) for row in rows]

    async def list_constraints(self, table: str) -> List[SchemaObject]:
        rows = await self.session.fetch(CONSTRAINTS_QUERY, table, self.schema)
        return [SchemaObject(row["name"], row["definition"], table) for row in rows]
