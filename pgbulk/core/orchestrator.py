"""
Load orchestration inside one transaction.

The orchestrator never opens or commits the transaction itself: it is handed
a connection already inside ``connection.transaction()`` and any exception it
raises makes that block roll back.
"""
import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..database.catalog import CatalogInspector
from ..database.schema_guard import SchemaGuard, SchemaSnapshot
from ..database.session import LoadSession
from ..database.utils import analyze_sql
from ..setup.config.models import JobConfig
from .exceptions import ConfigurationError
from .interfaces import FinishHook, ParseHook
from .pipeline import FilePipeline
from .sink import CopySink
from .transforms import ColumnMapper


@dataclass
class LoadResult:
    strategy: str
    files: int
    rows_copied: int
    rows_per_file: Dict[str, int] = field(default_factory=dict)
    indexes: int = 0
    constraints: int = 0
    elapsed_seconds: float = 0.0


class LoadOrchestrator:
    def __init__(
        self,
        config: JobConfig,
        files: List[str],
        strategy,
        mapper: ColumnMapper,
        parse_hook: Optional[ParseHook] = None,
        on_finish: Optional[FinishHook] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.files = list(files)
        self.strategy = strategy
        self.mapper = mapper
        self.parse_hook = parse_hook
        self.on_finish = on_finish
        self.logger = logger or logging.getLogger(__name__)

    async def run(self, connection: Any) -> LoadResult:
        """
        Run one load on ``connection``:

        1. create the staging table (staging strategy only)
        2. capture indexes/constraints of every destination table
        3-4. stream every file concurrently through one COPY
        5. ANALYZE the staging table
        6. drop the captured indexes/constraints
        7. merge staged rows into every destination table
        8. recreate and verify indexes/constraints
        9. ANALYZE every destination table
        10. run the finish hook
        """
        if not self.files:
            raise ConfigurationError("No files registered.")

        start_time = time.perf_counter()
        strategy_name = self.strategy.get_name()
        self.logger.info(
            f"[Orchestrator] Loading {len(self.files)} file(s) into "
            f"{', '.join(self.config.table_names)} ({strategy_name} strategy)"
        )

        session = LoadSession(connection)
        guard = SchemaGuard(
            session,
            CatalogInspector(session, self.config.schema_name, self.config.drop_unique_indexes),
            self.config.table_names,
            drop_indexes=self.config.drop_indexes,
            drop_foreign_keys=self.config.drop_foreign_keys,
            schema=self.config.schema_name,
            logger=self.logger,
        )

        try:
            await self.strategy.prepare(session)
            snapshot: SchemaSnapshot = await guard.capture()

            rows_per_file, rows_copied = await self._copy_files(session)

            await self.strategy.analyze_staging(session)
            await guard.drop()

            merge_start = time.perf_counter()
            await self.strategy.merge(session)
            self.logger.info(f"[Orchestrator] Merge step took {time.perf_counter() - merge_start:.2f}s")

            await guard.restore()

            for table in self.config.table_names:
                await session.execute(analyze_sql(table, self.config.schema_name))

            await self._finish(connection)
        except Exception as e:
            self.logger.error(f"[Orchestrator] Load failed, transaction will roll back: {e}")
            raise

        result = LoadResult(
            strategy=strategy_name,
            files=len(self.files),
            rows_copied=rows_copied,
            rows_per_file=rows_per_file,
            indexes=len(snapshot.indexes),
            constraints=len(snapshot.constraints),
            elapsed_seconds=time.perf_counter() - start_time,
        )
        self.logger.info(
            f"[Orchestrator] Loaded {result.rows_copied:,} rows from {result.files} file(s) "
            f"in {result.elapsed_seconds:.2f}s"
        )
        return result

    async def _copy_files(self, session: LoadSession):
        table, schema = self.strategy.copy_target
        sink = CopySink(
            session,
            table,
            self.strategy.copy_columns,
            schema=schema,
            queue_size=self.config.loading.queue_size,
            logger=self.logger,
        )
        await sink.open()

        pipelines = [
            FilePipeline(
                path,
                self.mapper,
                sink,
                self.config.csv,
                parse_hook=self.parse_hook,
                batch_size=self.config.loading.batch_size,
                logger=self.logger,
            )
            for path in self.files
        ]
        tasks = [asyncio.create_task(p.run()) for p in pipelines]

        try:
            counts = await asyncio.gather(*tasks)
        except BaseException:
            # staged rows of several files cannot be told apart: stop everything
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            await sink.abort()
            raise

        rows_copied = await sink.close()
        return dict(zip(self.files, counts)), rows_copied

    async def _finish(self, connection: Any):
        if self.on_finish is None:
            return
        result = self.on_finish(connection)
        if inspect.isawaitable(result):
            await result
