"""
Pydantic configuration system for bulk load jobs.
"""

from .models import (
    ColumnSpec,
    CsvConfig,
    DatabaseConfig,
    JobConfig,
    LoadingConfig,
)
from .loader import ConfigLoader, load_job_config, validate_job


__all__ = [
    "ColumnSpec",
    "CsvConfig",
    "DatabaseConfig",
    "JobConfig",
    "LoadingConfig",
    "ConfigLoader",
    "load_job_config",
    "validate_job",
]
