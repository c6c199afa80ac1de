"""
Pydantic configuration models with validation.

Configuration Architecture:
==========================

ColumnSpec: one destination column, where its value comes from and how it is staged
DatabaseConfig: target PostgreSQL connection settings
CsvConfig: delimited input format (delimiter, quoting, encoding, headers)
LoadingConfig: streaming and pooling knobs (batch size, sink queue depth, pool size)
JobConfig: one bulk load (tables, staging table, schema-guard flags)

``JobConfig.tables`` keeps insertion order: it fixes the staging-column order
and the order tables are merged in.
"""

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from typing import Dict, List, Optional

from ...database.utils import IDENTIFIER_REGEX, MAX_IDENTIFIER_LENGTH, staging_column_name


def _check_identifier(value: str, what: str) -> str:
    if not IDENTIFIER_REGEX.match(value or ""):
        raise ValueError(f"{what} {value!r} is not a valid SQL identifier")
    if len(value) > MAX_IDENTIFIER_LENGTH:
        raise ValueError(f"{what} {value!r} is longer than {MAX_IDENTIFIER_LENGTH} characters")
    return value


class ColumnSpec(BaseModel):
    """A destination column and the source field feeding it."""

    model_config = ConfigDict(extra="forbid")

    destination_column: str = Field(
        validation_alias=AliasChoices("destination_column", "destinationColumn", "databaseColumn"),
        description="Column name in the destination table",
    )
    source_column: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("source_column", "sourceColumn", "csvColumn"),
        description="Field name in the source record (defaults to destination_column)",
    )
    sql_type: str = Field(
        validation_alias=AliasChoices("sql_type", "sqlType", "type"),
        description="SQL type of the staged column",
    )
    references_column: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("references_column", "referencesColumn", "ref"),
        description="Source key of another column whose value is copied verbatim",
    )
    expand: bool = Field(
        default=False,
        validation_alias=AliasChoices("expand", "unnest"),
        description="Staged value is an array unnested into one row per element",
    )
    cast_type: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("cast_type", "castType"),
        description="Type the staged value is cast to when merged",
    )

    @field_validator("destination_column")
    @classmethod
    def validate_destination_column(cls, v):
        return _check_identifier(v, "Destination column")

    @field_validator("sql_type")
    @classmethod
    def validate_sql_type(cls, v):
        if not v.strip() or ";" in v:
            raise ValueError(f"Invalid SQL type: {v!r}")
        return v.strip()

    @field_validator("cast_type")
    @classmethod
    def validate_cast_type(cls, v):
        if v is not None and (not v.strip() or ";" in v):
            raise ValueError(f"Invalid cast type: {v!r}")
        return v.strip() if v else None

    @property
    def source_key(self) -> str:
        """Key this column is matched against in a source record."""
        return self.source_column or self.destination_column


class DatabaseConfig(BaseModel):
    """Database connection configuration with validation."""

    model_config = ConfigDict(extra="forbid")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, ge=1, le=65535, description="Database port")
    user: str = Field(default="postgres", description="Database username")
    password: str = Field(default="postgres", description="Database password")
    database_name: str = Field(default="postgres", description="Database name")
    dsn: Optional[str] = Field(default=None, description="Full connection string, overrides the other fields")

    @field_validator("host")
    @classmethod
    def validate_host(cls, v):
        if not v.strip():
            raise ValueError("Host cannot be empty")
        return v.strip()

    def get_connection_string(self) -> str:
        """Get PostgreSQL connection string."""
        if self.dsn:
            return self.dsn
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database_name}"


class CsvConfig(BaseModel):
    """Delimited input format."""

    model_config = ConfigDict(extra="forbid")

    delimiter: str = Field(default=",", description="Field delimiter")
    quotechar: str = Field(default='"', description="Quote character")
    encoding: str = Field(default="utf-8", description="File encoding")
    headers: Optional[List[str]] = Field(
        default=None,
        description="Field names for files without a header row; the first row is data when set",
    )
    null_values: List[str] = Field(
        default_factory=list,
        description="Field values read as NULL before the parse hook runs",
    )

    @field_validator("delimiter", "quotechar")
    @classmethod
    def validate_single_char(cls, v):
        if len(v) != 1:
            raise ValueError("Delimiter and quote character must be a single character")
        return v


class LoadingConfig(BaseModel):
    """Streaming and pooling configuration."""

    model_config = ConfigDict(extra="forbid")

    batch_size: int = Field(
        default=5000,
        ge=1,
        le=1_000_000,
        description="Records read, mapped and serialized together before entering the sink",
    )
    queue_size: int = Field(
        default=16,
        ge=1,
        le=1024,
        description="Serialized batches the copy sink buffers before producers block",
    )
    pool_min_size: int = Field(default=1, ge=0, le=100, description="Minimum size of the connection pool")
    pool_max_size: int = Field(default=30, ge=1, le=100, description="Maximum size of the connection pool")
    command_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Per-statement timeout in seconds (None waits forever)",
    )

    @model_validator(mode="after")
    def validate_pool_sizes(self):
        if self.pool_min_size > self.pool_max_size:
            raise ValueError("Pool min size cannot exceed pool max size")
        return self


class JobConfig(BaseModel):
    """One bulk load: destination tables, staging table and schema-guard flags."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(default="pgbulk", description="Job name, used for the default staging table")
    tables: Dict[str, List[ColumnSpec]] = Field(description="Destination tables in merge order")
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    staging_table: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("staging_table", "stagingTable", "temporaryTableName"),
        description="Temporary staging table name (defaults to staging_<name>)",
    )
    schema_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("schema_name", "schema"),
        description="Schema holding the destination tables (defaults to the search path)",
    )
    force_staging: bool = Field(
        default=False, validation_alias=AliasChoices("force_staging", "forceStaging")
    )
    drop_indexes: bool = Field(
        default=False, validation_alias=AliasChoices("drop_indexes", "dropIndexes", "allowDisableIndexes")
    )
    drop_foreign_keys: bool = Field(
        default=False,
        validation_alias=AliasChoices("drop_foreign_keys", "dropForeignKeys", "allowDisableForeignKeys"),
    )
    drop_unique_indexes: bool = Field(
        default=False,
        validation_alias=AliasChoices("drop_unique_indexes", "dropUniqueIndexes", "forceDropUniqueIndexes"),
    )
    quiet: bool = False
    csv: CsvConfig = Field(
        default_factory=CsvConfig, validation_alias=AliasChoices("csv", "csvConfig")
    )
    loading: LoadingConfig = Field(default_factory=LoadingConfig)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        return _check_identifier(v, "Job name")

    @field_validator("schema_name")
    @classmethod
    def validate_schema_name(cls, v):
        return _check_identifier(v, "Schema") if v is not None else None

    @field_validator("tables")
    @classmethod
    def validate_tables(cls, v):
        if not v:
            raise ValueError("At least one table must be configured")
        staged = {}
        for table, columns in v.items():
            _check_identifier(table, "Table")
            if not columns:
                raise ValueError(f"Table {table!r} has no columns")
            seen = set()
            for column in columns:
                if column.destination_column in seen:
                    raise ValueError(
                        f"Duplicate destination column {column.destination_column!r} in table {table!r}"
                    )
                seen.add(column.destination_column)
                staged_name = _check_identifier(
                    staging_column_name(table, column.destination_column), "Staging column"
                )
                if staged_name in staged:
                    raise ValueError(
                        f"Staging column {staged_name!r} of {table}.{column.destination_column} "
                        f"collides with {staged[staged_name]}"
                    )
                staged[staged_name] = f"{table}.{column.destination_column}"
        return v

    @model_validator(mode="after")
    def validate_references(self):
        source_keys = {c.source_key for columns in self.tables.values() for c in columns}
        for table, columns in self.tables.items():
            for column in columns:
                if column.references_column and column.references_column not in source_keys:
                    raise ValueError(
                        f"Column {table}.{column.destination_column} references unknown "
                        f"column {column.references_column!r}"
                    )
        return self

    @model_validator(mode="after")
    def default_staging_table(self):
        if self.staging_table is None:
            self.staging_table = f"staging_{self.name}"
        _check_identifier(self.staging_table, "Staging table")
        return self

    @property
    def table_names(self) -> List[str]:
        return list(self.tables)
