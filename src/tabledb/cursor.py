"""
Database cursor wrapper shared by all dialects.

Implements the parts of Python DB-API 2.0 (PEP-249) the data-access layer
uses, and logs every statement with its timing.
"""
import logging
import time
from collections.abc import Iterator
from functools import wraps
from typing import Any, Self

from tabledb.strategy import get_db_strategy
from tabledb.types import TypeConverter

logger = logging.getLogger(__name__)


def dumpsql(func):
    """Decorator for logging SQL queries and parameters."""
    @wraps(func)
    def wrapper(self, operation: str, *args: Any, **kwargs: Any):
        start = time.time()
        logger.debug(f'SQL:\n{operation}\nargs: {args}')
        try:
            return func(self, operation, *args, **kwargs)
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{operation}\nargs: {args}')
            raise
        finally:
            elapsed = time.time() - start
            self.connwrapper.addcall(elapsed)
            logger.debug(f'Query time: {elapsed:.4f}s')
    return wrapper


class Cursor:
    """Unified cursor class for all database types.

    Uses the strategy pattern to handle dialect-specific behaviors like
    placeholder conversion (? vs %s) automatically.
    """

    def __init__(self, cursor: Any, connection_wrapper: Any, strategy: Any = None) -> None:
        """Initialize cursor wrapper.

        Args:
            cursor: The underlying database cursor
            connection_wrapper: The connection wrapper that created this cursor
            strategy: Optional database strategy (auto-detected from connection if not provided)
        """
        self.dbapi_cursor = cursor
        self.connwrapper = connection_wrapper
        self._strategy = strategy
        self.closed = False

    @property
    def strategy(self) -> Any:
        """Get the database strategy, lazily initializing if needed."""
        if self._strategy is None:
            self._strategy = get_db_strategy(self.connwrapper)
        return self._strategy

    def __getattr__(self, name: str) -> Any:
        """Delegate members to underlying cursor."""
        return getattr(self.dbapi_cursor, name)

    def __iter__(self) -> Iterator[tuple]:
        """Iterate remaining rows."""
        while (row := self.fetchone()) is not None:
            yield row

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    @property
    def description(self) -> list[tuple] | None:
        """Column descriptions for last query."""
        return self.dbapi_cursor.description

    @property
    def rowcount(self) -> int:
        """Number of rows produced/affected by last operation."""
        return self.dbapi_cursor.rowcount

    @property
    def lastrowid(self) -> int | None:
        """Identifier generated by the last INSERT."""
        return self.dbapi_cursor.lastrowid

    def close(self) -> None:
        """Close cursor."""
        if not self.closed:
            self.dbapi_cursor.close()
            self.closed = True

    def fetchone(self) -> tuple | None:
        """Fetch next row."""
        return self.dbapi_cursor.fetchone()

    def fetchall(self) -> list[tuple]:
        """Fetch all remaining rows."""
        return self.dbapi_cursor.fetchall()

    @dumpsql
    def execute(self, operation: str, *args: Any) -> int:
        """Execute a statement written with ``?`` placeholders."""
        operation = self.strategy.standardize_sql(operation)
        params = TypeConverter.convert_params(tuple(args))
        self.dbapi_cursor.execute(operation, params)
        return self.dbapi_cursor.rowcount
