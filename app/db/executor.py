"""
Query execution on top of the async SQLAlchemy engine.

Statements use positional ``$n`` placeholders. They are rewritten to
named binds before execution so the same SQL text runs on asyncpg and on
SQLite, and bind types are inferred from the supplied values.
"""

import logging
import re
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

logger = logging.getLogger(__name__)

_POSITIONAL = re.compile(r"\$(\d+)")


@dataclass
class QueryResult:
    """Rows returned by a statement plus the driver's affected row count."""
    rows: List[Dict[str, Any]] = field(default_factory=list)
    rowcount: int = 0

    def first(self) -> Optional[Dict[str, Any]]:
        return self.rows[0] if self.rows else None


@dataclass(frozen=True)
class PoolStatus:
    size: int
    in_use: int
    idle: int
    waiting: int


def to_sqlalchemy_text(sql: str, params: Optional[Sequence[Any]] = None):
    """Convert ``$n`` placeholders into ``:pn`` binds carrying their values."""
    params = list(params or [])
    statement = text(_POSITIONAL.sub(lambda match: f":p{match.group(1)}", sql))
    if not params:
        return statement
    return statement.bindparams(
        *[bindparam(f"p{index}", value) for index, value in enumerate(params, start=1)]
    )


class QueryExecutor:
    """
    Thin executor over a shared connection pool.

    ``execute`` runs one statement in its own connection and commits it.
    ``transaction`` yields a connection inside BEGIN, committing on exit
    and rolling back if the block raises.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._waiting = 0
        self._in_use = 0

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[AsyncConnection]:
        self._waiting += 1
        try:
            conn = await self.engine.connect()
        finally:
            self._waiting -= 1

        self._in_use += 1
        try:
            yield conn
        finally:
            self._in_use -= 1
            await conn.close()

    async def execute(
        self,
        sql: str,
        params: Optional[Sequence[Any]] = None,
        connection: Optional[AsyncConnection] = None,
    ) -> QueryResult:
        if connection is not None:
            return await self._run(connection, sql, params)

        async with self.connect() as conn:
            async with conn.begin():
                return await self._run(conn, sql, params)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncConnection]:
        async with self.connect() as conn:
            trans = await conn.begin()
            logger.debug("Transaction started")
            try:
                yield conn
            except BaseException:
                try:
                    await trans.rollback()
                    logger.warning("Transaction rolled back")
                except Exception as rollback_error:
                    logger.error(f"Error during rollback: {rollback_error}")
                raise
            else:
                await trans.commit()
                logger.debug("Transaction committed")

    def pool_status(self) -> PoolStatus:
        """Report pool occupancy; counters fall back to local tracking for pools without them."""
        pool = self.engine.pool
        in_use = pool.checkedout() if hasattr(pool, "checkedout") else self._in_use
        idle = pool.checkedin() if hasattr(pool, "checkedin") else 0
        size = pool.size() if hasattr(pool, "size") else in_use + idle
        return PoolStatus(size=size, in_use=in_use, idle=idle, waiting=self._waiting)

    @staticmethod
    async def _run(conn: AsyncConnection, sql: str, params: Optional[Sequence[Any]]) -> QueryResult:
        result = await conn.execute(to_sqlalchemy_text(sql, params))
        if result.returns_rows:
            rows = [dict(row) for row in result.mappings().all()]
            return QueryResult(rows=rows, rowcount=len(rows))
        return QueryResult(rows=[], rowcount=result.rowcount)
