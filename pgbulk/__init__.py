"""
pgbulk: bulk-load large delimited datasets into PostgreSQL in one transaction.
"""

from .core.exceptions import (
    ConfigurationError,
    FileIngestionError,
    PGBulkError,
    SchemaIntegrityError,
)
from .core.job import PGBulk
from .core.orchestrator import LoadResult
from .core.strategies import requires_staging
from .setup.config import ColumnSpec, CsvConfig, DatabaseConfig, JobConfig, LoadingConfig, load_job_config

__version__ = "0.5.0"

__all__ = [
    "PGBulk",
    "LoadResult",
    "JobConfig",
    "ColumnSpec",
    "CsvConfig",
    "DatabaseConfig",
    "LoadingConfig",
    "load_job_config",
    "requires_staging",
    "PGBulkError",
    "ConfigurationError",
    "SchemaIntegrityError",
    "FileIngestionError",
]
