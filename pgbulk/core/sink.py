"""
Single-writer COPY sink shared by every file pipeline of a load.
"""
import asyncio
import logging
from typing import AsyncIterator, List, Optional

from ..database.session import LoadSession
from .exceptions import FileIngestionError, PGBulkError

_EOF = object()


def _copied_rows(status: Optional[str]) -> int:
    # asyncpg returns the command tag, e.g. "COPY 2000"
    try:
        return int(str(status).rsplit(" ", 1)[-1])
    except ValueError:
        return 0


class CopySink:
    """
    One ``COPY ... FROM STDIN (FORMAT CSV)`` fed from a bounded queue.

    Producers ``write`` serialized CSV chunks; a single drainer task streams
    them to the server. A full queue suspends producers until the drainer
    catches up. Chunks are written whole, so rows of different producers
    never interleave inside a line.
    """

    def __init__(
        self,
        session: LoadSession,
        table: str,
        columns: List[str],
        schema: Optional[str] = None,
        queue_size: int = 16,
        logger: Optional[logging.Logger] = None,
    ):
        self.session = session
        self.table = table
        self.columns = list(columns)
        self.schema = schema
        self.logger = logger or logging.getLogger(__name__)
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._drainer: Optional[asyncio.Task] = None
        self._closed = False

    async def open(self) -> "CopySink":
        if self._drainer is not None:
            raise PGBulkError("Copy sink already opened")
        self._drainer = asyncio.create_task(self._drain())
        self.logger.debug(f"[CopySink] COPY into {self.table} ({len(self.columns)} columns) started")
        return self

    async def write(self, chunk: bytes):
        if self._drainer is None or self._closed:
            raise PGBulkError("Copy sink is not open")
        await self._put(chunk)

    async def close(self) -> int:
        """Finish the COPY and return the number of rows the server accepted."""
        if self._drainer is None:
            raise PGBulkError("Copy sink is not open")
        self._closed = True
        if not self._drainer.done():
            try:
                await self._put(_EOF)
            except FileIngestionError:
                pass  # the drainer result below carries the cause
        rows = _copied_rows(await self._drainer)
        self.logger.info(f"[CopySink] COPY into {self.table} finished: {rows:,} rows")
        return rows

    async def abort(self):
        """Stop the COPY without finishing it; the transaction must roll back afterwards."""
        self._closed = True
        if self._drainer is None or self._drainer.done():
            return
        self._drainer.cancel()
        try:
            await self._drainer
        except asyncio.CancelledError:
            pass
        except Exception as e:
            self.logger.debug(f"[CopySink] COPY into {self.table} ended with {e!r} while aborting")

    async def _put(self, item):
        drainer = self._drainer
        if drainer.done():
            self._raise_stopped()
        put = asyncio.ensure_future(self._queue.put(item))
        done, _ = await asyncio.wait({put, drainer}, return_when=asyncio.FIRST_COMPLETED)
        if put not in done:
            put.cancel()
            self._raise_stopped()

    def _raise_stopped(self):
        drainer = self._drainer
        error = None if drainer.cancelled() else drainer.exception()
        if error is not None:
            # the COPY itself failed: surface the database error unchanged
            raise error
        raise FileIngestionError(f"COPY into {self.table} is no longer accepting rows")

    async def _chunks(self) -> AsyncIterator[bytes]:
        while True:
            chunk = await self._queue.get()
            if chunk is _EOF:
                return
            yield chunk

    async def _drain(self) -> str:
        return await self.session.copy_to_table(
            self.table,
            source=self._chunks(),
            columns=self.columns,
            schema_name=self.schema,
            format="csv",
        )
