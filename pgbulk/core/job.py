"""
Public job surface.

    job = PGBulk(config, parse=clean_row)
    job.register("data/", "users-*.csv")
    await job.start()
    await job.end()
"""
import logging
from typing import Any, Dict, List, Optional, Union

import asyncpg

from ..database.engine import create_pool
from ..setup.config.loader import validate_job
from ..setup.config.models import JobConfig
from ..setup.logging import get_logger
from ..utils.discovery import discover_files
from .exceptions import ConfigurationError, PGBulkError
from .interfaces import FinishHook, ParseHook
from .orchestrator import LoadOrchestrator, LoadResult
from .strategies import requires_staging, select_strategy
from .transforms import ColumnMapper


class PGBulk:
    """
    A bulk load job: configuration, registered input files and the hooks run
    during the load.

    Args:
        config: Job configuration (a ``JobConfig`` or a mapping validated into one)
        parse: Per-record hook, sync or async, returning the record to map
        on_finish: Hook called with the load connection before commit
        logger: Logger to report on (a silent one when ``config.quiet``)
        pool: Existing asyncpg pool; when omitted the job creates and owns one
    """

    def __init__(
        self,
        config: Union[JobConfig, Dict[str, Any]],
        parse: Optional[ParseHook] = None,
        on_finish: Optional[FinishHook] = None,
        logger: Optional[logging.Logger] = None,
        pool: Optional[asyncpg.Pool] = None,
    ):
        self.config = validate_job(config)
        self.logger = logger or get_logger("pgbulk.job", quiet=self.config.quiet)
        self.parse = parse
        self.on_finish = on_finish

        self.mapper = ColumnMapper(self.config.tables)
        self.using_staging = requires_staging(self.config)
        self.strategy = select_strategy(self.config, logger=self.logger)

        self.files: List[str] = []
        self._pool = pool
        self._owns_pool = pool is None
        self._running = False

    def register(self, base_path: str, pattern: Optional[str] = None) -> List[str]:
        """Add every file under ``base_path`` matching the glob ``pattern``."""
        if self._running:
            raise PGBulkError("Cannot register files while a load is running")
        try:
            files = discover_files(base_path, pattern or "*", logger=self.logger)
        except FileNotFoundError as e:
            raise ConfigurationError(str(e)) from e
        self.files.extend(files)
        self.logger.info(f"[PGBulk] Registered {len(files)} file(s) from {base_path}")
        return files

    async def start(self) -> LoadResult:
        """Run the whole load in one transaction on one pooled connection."""
        if not self.files:
            raise ConfigurationError("No files registered.")
        if self._running:
            raise PGBulkError("A load is already running for this job")

        self._running = True
        try:
            orchestrator = LoadOrchestrator(
                self.config,
                self.files,
                self.strategy,
                self.mapper,
                parse_hook=self.parse,
                on_finish=self.on_finish,
                logger=self.logger,
            )
            pool = await self._get_pool()
            async with pool.acquire() as connection:
                async with connection.transaction():
                    return await orchestrator.run(connection)
        finally:
            self._running = False

    async def end(self):
        """Release pooled connections owned by this job."""
        if self._pool is not None and self._owns_pool:
            await self._pool.close()
            self._pool = None

    async def _get_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            self._pool = await create_pool(self.config.database, self.config.loading, logger=self.logger)
        return self._pool

    async def __aenter__(self) -> "PGBulk":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.end()
