"""
Staging strategy selection.

A staging table is required whenever rows fan out to more than one table or
need an unnest or cast during the merge; otherwise rows are copied straight
into the single destination table.
"""
import logging
from typing import List, Optional, Tuple

from ..database.session import LoadSession
from ..database.utils import (
    analyze_sql,
    create_staging_table_sql,
    merge_from_staging_sql,
    staging_column_name,
)
from ..setup.config.models import JobConfig

def requires_staging(config: JobConfig) -> bool:
    return (
        config.force_staging
        or len(config.tables) > 1
        or any(
            column.expand or column.cast_type
            for columns in config.tables.values()
            for column in columns
        )
    )


def staging_columns(config: JobConfig) -> List[Tuple[str, str]]:
    """``(table_column, sql_type)`` for every configured column, in declaration order."""
    return [
        (staging_column_name(table, column.destination_column), column.sql_type)
        for table, columns in config.tables.items()
        for column in columns
    ]


class StagingStrategy:
    """Copy into a temporary table, then INSERT ... SELECT into every destination."""

    def __init__(self, config: JobConfig, logger: Optional[logging.Logger] = None):
        self.config = config
        self.logger = logger or logging.getLogger(__name__)

    def get_name(self) -> str:
        return "Staging"

    @property
    def copy_target(self) -> Tuple[str, Optional[str]]:
        # temporary tables live in pg_temp, never in the configured schema
        return self.config.staging_table, None

    @property
    def copy_columns(self) -> List[str]:
        return [name for name, _ in staging_columns(self.config)]

    async def prepare(self, session: LoadSession):
        await session.execute(
            create_staging_table_sql(self.config.staging_table, staging_columns(self.config))
        )
        self.logger.debug(f"[Staging] Created temporary table {self.config.staging_table}")

    async def analyze_staging(self, session: LoadSession):
        await session.execute(analyze_sql(self.config.staging_table))

    async def merge(self, session: LoadSession):
        await session.execute(
            merge_from_staging_sql(self.config.tables, self.config.staging_table, self.config.schema_name)
        )


class DirectStrategy:
    """Copy straight into the only destination table."""

    def __init__(self, config: JobConfig):
        self.config = config
        self.table = config.table_names[0]

    def get_name(self) -> str:
        return "Direct"

    @property
    def copy_target(self) -> Tuple[str, Optional[str]]:
        return self.table, self.config.schema_name

    @property
    def copy_columns(self) -> List[str]:
        return [column.destination_column for column in self.config.tables[self.table]]

    async def prepare(self, session: LoadSession):
        return None

    async def analyze_staging(self, session: LoadSession):
        return None

    async def merge(self, session: LoadSession):
        return None


def select_strategy(config: JobConfig, logger: Optional[logging.Logger] = None):
    if requires_staging(config):
        return StagingStrategy(config, logger=logger)
    return DirectStrategy(config)
