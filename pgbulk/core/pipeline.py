"""
Per-file load pipeline: read -> parse hook -> column mapping -> CSV -> copy sink.
"""
import asyncio
import csv
import inspect
import logging
import os
from typing import Any, Mapping, Optional

from ..setup.config.models import CsvConfig
from ..utils.ingestors import next_batch, read_records, serialize_rows
from .exceptions import FileIngestionError
from .interfaces import ParseHook
from .sink import CopySink
from .transforms import ColumnMapper


class FilePipeline:
    """
    Streams one input file into the shared copy sink.

    Records are pulled in batches of ``batch_size``; file reads run in a
    worker thread so that several pipelines make progress at once. The next
    batch is only read after the previous one was accepted by the sink,
    which bounds memory to one batch per pipeline plus the sink queue.
    """

    def __init__(
        self,
        path: str,
        mapper: ColumnMapper,
        sink: CopySink,
        csv_config: CsvConfig,
        parse_hook: Optional[ParseHook] = None,
        batch_size: int = 5000,
        logger: Optional[logging.Logger] = None,
    ):
        self.path = path
        self.mapper = mapper
        self.sink = sink
        self.csv_config = csv_config
        self.parse_hook = parse_hook
        self.batch_size = batch_size
        self.logger = logger or logging.getLogger(__name__)
        self.rows = 0

    async def run(self) -> int:
        filename = os.path.basename(self.path)
        self.logger.info(f"[FilePipeline] Loading {filename}")

        records = read_records(self.path, self.csv_config)
        try:
            while True:
                try:
                    batch = await asyncio.to_thread(next_batch, records, self.batch_size)
                except (OSError, UnicodeDecodeError, csv.Error) as e:
                    raise FileIngestionError(f"Could not read input file: {e}", self.path) from e
                if not batch:
                    break

                rows = []
                for offset, record in enumerate(batch, start=1):
                    if self.parse_hook is not None:
                        record = await self._apply_hook(record, self.rows + offset)
                    rows.append(self.mapper.map_row(record))

                await self.sink.write(serialize_rows(rows))
                self.rows += len(rows)
        finally:
            records.close()

        self.logger.info(f"[FilePipeline] Completed {filename}: {self.rows:,} rows")
        return self.rows

    async def _apply_hook(self, record: Mapping[str, Any], row_number: int) -> Mapping[str, Any]:
        try:
            result = self.parse_hook(record)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            raise FileIngestionError(f"Parse hook failed on row {row_number}: {e!r}", self.path) from e

        if not isinstance(result, Mapping):
            raise FileIngestionError(
                f"Parse hook must return a mapping, got {type(result).__name__}", self.path
            )
        return result
