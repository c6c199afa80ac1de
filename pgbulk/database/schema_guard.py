"""
Suspends and restores indexes and constraints around a bulk load.

The guard walks Captured -> Dropped -> Recreated -> Verified. Any failure
leaves it in Error and propagates, so the enclosing transaction rolls back
and the destination tables keep their original indexes and constraints.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

from ..core.exceptions import PGBulkError, SchemaIntegrityError
from .catalog import CatalogInspector, SchemaObject
from .session import LoadSession
from .utils import (
    add_constraints_sql,
    drop_constraints_sql,
    drop_indexes_sql,
    recreate_indexes_sql,
)


class GuardState(str, Enum):
    PENDING = "pending"
    CAPTURED = "captured"
    DROPPED = "dropped"
    RECREATED = "recreated"
    VERIFIED = "verified"
    ERROR = "error"


@dataclass(frozen=True)
class SchemaSnapshot:
    """Indexes and non-primary-key constraints captured before the load."""

    indexes: Tuple[SchemaObject, ...] = ()
    constraints: Tuple[SchemaObject, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.indexes and not self.constraints


class SchemaGuard:
    def __init__(
        self,
        session: LoadSession,
        inspector: CatalogInspector,
        tables: Sequence[str],
        drop_indexes: bool = False,
        drop_foreign_keys: bool = False,
        schema: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.session = session
        self.inspector = inspector
        self.tables = list(tables)
        self.drop_indexes = drop_indexes
        self.drop_foreign_keys = drop_foreign_keys
        self.schema = schema
        self.logger = logger or logging.getLogger(__name__)
        self.snapshot = SchemaSnapshot()
        self.state = GuardState.PENDING

    async def capture(self) -> SchemaSnapshot:
        """Snapshot every destination table before any DDL runs."""
        self._expect(GuardState.PENDING)
        try:
            indexes: List[SchemaObject] = []
            constraints: List[SchemaObject] = []
            for table in self.tables:
                if self.drop_indexes:
                    indexes.extend(await self.inspector.list_indexes(table))
                if self.drop_foreign_keys:
                    constraints.extend(await self.inspector.list_constraints(table))
        except BaseException:
            self.state = GuardState.ERROR
            raise

        self.snapshot = SchemaSnapshot(tuple(indexes), tuple(constraints))
        self.state = GuardState.CAPTURED
        self.logger.info(
            f"[SchemaGuard] Captured {len(indexes)} index(es) and "
            f"{len(constraints)} constraint(s) on {len(self.tables)} table(s)"
        )
        return self.snapshot

    async def drop(self):
        self._expect(GuardState.CAPTURED)
        try:
            await asyncio.gather(
                self._drop_indexes(self.snapshot.indexes),
                self._drop_constraints(self.snapshot.constraints),
            )
        except BaseException:
            self.state = GuardState.ERROR
            raise
        self.state = GuardState.DROPPED

    async def recreate(self):
        self._expect(GuardState.DROPPED)
        try:
            await asyncio.gather(
                self._recreate_indexes(self.snapshot.indexes),
                self._recreate_constraints(self.snapshot.constraints),
            )
        except BaseException:
            self.state = GuardState.ERROR
            raise
        self.state = GuardState.RECREATED

    async def verify(self):
        self._expect(GuardState.RECREATED)
        try:
            await asyncio.gather(self._verify_indexes(), self._verify_constraints())
        except BaseException:
            self.state = GuardState.ERROR
            raise
        self.state = GuardState.VERIFIED

    async def restore(self):
        """
        Recreate then verify, with the index branch and the constraint branch
        running concurrently. Both must finish before this returns.
        """
        self._expect(GuardState.DROPPED)

        async def index_branch():
            await self._recreate_indexes(self.snapshot.indexes)
            await self._verify_indexes()

        async def constraint_branch():
            await self._recreate_constraints(self.snapshot.constraints)
            await self._verify_constraints()

        try:
            await asyncio.gather(index_branch(), constraint_branch())
        except BaseException:
            self.state = GuardState.ERROR
            raise
        self.state = GuardState.VERIFIED

    async def _drop_indexes(self, indexes: Sequence[SchemaObject]):
        if not indexes:
            return
        await self.session.execute(drop_indexes_sql([i.name for i in indexes], self.schema))
        self.logger.info(f"[SchemaGuard] Dropped {len(indexes)} index(es)")

    async def _drop_constraints(self, constraints: Sequence[SchemaObject]):
        if not constraints:
            return
        await self.session.execute(drop_constraints_sql(constraints, self.schema))
        self.logger.info(f"[SchemaGuard] Dropped {len(constraints)} constraint(s)")

    async def _recreate_indexes(self, indexes: Sequence[SchemaObject]):
        if not indexes:
            return
        await self.session.execute(recreate_indexes_sql(indexes))
        self.logger.info(f"[SchemaGuard] Recreated {len(indexes)} index(es)")

    async def _recreate_constraints(self, constraints: Sequence[SchemaObject]):
        if not constraints:
            return
        await self.session.execute(add_constraints_sql(constraints, self.schema))
        self.logger.info(f"[SchemaGuard] Recreated {len(constraints)} constraint(s)")

    async def _verify_indexes(self):
        if not self.drop_indexes:
            return
        found = []
        for table in self.tables:
            found.extend(await self.inspector.list_indexes(table))
        self._compare("Indexes", self.snapshot.indexes, found)

    async def _verify_constraints(self):
        if not self.drop_foreign_keys:
            return
        found = []
        for table in self.tables:
            found.extend(await self.inspector.list_constraints(table))
        self._compare("Constraints", self.snapshot.constraints, found)

    def _compare(self, kind: str, expected: Iterable[SchemaObject], found: Iterable[SchemaObject]):
        found_keys = {obj.key for obj in found}
        missing = [obj for obj in expected if obj.key not in found_keys]
        if missing:
            names = ", ".join(f"{obj.table}.{obj.name}" for obj in missing)
            self.logger.error(f"[SchemaGuard] {kind} do not match after recreate: {names}")
            raise SchemaIntegrityError(f"{kind} do not match after recreate: {names}", missing)
        self.logger.info(f"[SchemaGuard] {kind} verified")

    def _expect(self, state: GuardState):
        if self.state is not state:
            raise PGBulkError(f"Schema guard is {self.state.value}, expected {state.value}")
