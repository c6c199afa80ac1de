"""
Configuration loader with environment variable mapping.

Job files are JSON documents validated by ``JobConfig``; connection and
loading settings fall back to environment variables (optionally read from a
``.env`` file) when the job file does not set them.
"""

from typing import Any, Dict, Optional, Union
import json
import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from ...core.exceptions import ConfigurationError
from .models import DatabaseConfig, JobConfig, LoadingConfig

logger = logging.getLogger(__name__)


class ConfigLoader:
    """Configuration loader with environment variable mapping and validation."""

    def __init__(self, env_file: Optional[str] = None):
        """
        Args:
            env_file: Path to .env file (defaults to .env in current directory)
        """
        self.env_file = env_file or ".env"

    def load_job(self, job_file: Union[str, Path], **overrides) -> JobConfig:
        """
        Load a job from a JSON file.

        Keyword overrides replace top-level job keys after the file is read
        (used by the command line for flags such as ``force_staging``).
        """
        path = Path(job_file)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise ConfigurationError(f"Job file not found: {path}") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Job file {path} is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Job file {path} must contain a JSON object")

        data.update({k: v for k, v in overrides.items() if v is not None})
        return self.build_job(data)

    def build_job(self, data: Dict[str, Any]) -> JobConfig:
        """Validate a job mapping, filling connection and loading settings from the environment."""
        self._load_env_file()

        data = dict(data)
        try:
            if "database" not in data:
                data["database"] = self.load_database_config().model_dump()
            if "loading" not in data:
                data["loading"] = self.load_loading_config().model_dump()
        except ValueError as e:
            # covers pydantic ValidationError and bad numeric environment values
            raise ConfigurationError(f"Invalid environment configuration: {e}") from e

        return validate_job(data)

    def load_database_config(self, prefix: str = "POSTGRES") -> DatabaseConfig:
        """Load database configuration from environment variables."""
        return DatabaseConfig(
            host=os.getenv(f"{prefix}_HOST", "localhost"),
            port=int(os.getenv(f"{prefix}_PORT", "5432")),
            user=os.getenv(f"{prefix}_USER", "postgres"),
            password=os.getenv(f"{prefix}_PASSWORD", "postgres"),
            database_name=os.getenv(f"{prefix}_DBNAME", "postgres"),
            dsn=os.getenv(f"{prefix}_DSN") or None,
        )

    def load_loading_config(self) -> LoadingConfig:
        """Load streaming and pooling configuration from environment variables."""
        timeout = os.getenv("PGBULK_COMMAND_TIMEOUT")
        return LoadingConfig(
            batch_size=int(os.getenv("PGBULK_BATCH_SIZE", "5000")),
            queue_size=int(os.getenv("PGBULK_QUEUE_SIZE", "16")),
            pool_min_size=int(os.getenv("PGBULK_POOL_MIN_SIZE", "1")),
            pool_max_size=int(os.getenv("PGBULK_POOL_MAX_SIZE", "30")),
            command_timeout=float(timeout) if timeout else None,
        )

    def _load_env_file(self):
        """Load environment variables from .env file."""
        if os.path.exists(self.env_file):
            load_dotenv(self.env_file, override=False)
            logger.debug(f"Loaded environment variables from {self.env_file}")


def validate_job(data: Union[JobConfig, Dict[str, Any]]) -> JobConfig:
    """Return ``data`` as a JobConfig, turning validation failures into ConfigurationError."""
    if isinstance(data, JobConfig):
        return data
    try:
        return JobConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid job configuration: {e}") from e


def load_job_config(job_file: Union[str, Path], env_file: Optional[str] = None, **overrides) -> JobConfig:
    """Convenience function to load a job file."""
    return ConfigLoader(env_file=env_file).load_job(job_file, **overrides)
