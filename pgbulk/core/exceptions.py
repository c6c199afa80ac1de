"""
Error taxonomy for bulk loads.

Configuration errors are raised before any transaction work starts. Every
other error aborts the enclosing transaction; database errors raised by
asyncpg are not wrapped and propagate unchanged.
"""
from typing import Optional


class PGBulkError(Exception):
    """Base class for every error raised by pgbulk."""


class ConfigurationError(PGBulkError, ValueError):
    """Invalid job configuration, unresolved column reference or no registered files."""


class SchemaIntegrityError(PGBulkError):
    """Recreated indexes or constraints do not match the captured snapshot."""

    def __init__(self, message: str, missing: Optional[list] = None):
        super().__init__(message)
        self.missing = list(missing or [])


class FileIngestionError(PGBulkError):
    """Reading, parsing or streaming one input file failed."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(f"{message} ({path})" if path else message)
        self.path = path
