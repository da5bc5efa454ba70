"""
Database connection handling with SQLAlchemy.

This module provides:
1. The `connect()` function for creating new database connections
2. The `ConnectionWrapper` class that wraps SQLAlchemy connections with the
   statement primitives the table layer is built on
3. Engine creation and management through a thread-safe registry

The ConnectionWrapper is the explicit handle passed to every catalog load and
statement. It provides:
- run(sql, *args) - Execute a query and return an open cursor
- run_one(sql, *args) - Same, for queries expected to yield one row
- execute(sql, *args) - Execute a statement, return rowcount and generated id
- ping(), use(database), show_tables()
- table(name) - Load a table's metadata and bind it to this connection
"""
import atexit
import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, NamedTuple, Self

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool
from tabledb.cursor import Cursor
from tabledb.exceptions import ConfigurationError, ExecutionError
from tabledb.options import DatabaseOptions
from tabledb.strategy import get_db_strategy, get_strategy
from tabledb.utils import get_dialect_name

if TYPE_CHECKING:
    from tabledb.query import TableClient

__all__ = [
    'ConnectionWrapper',
    'ExecResult',
    'connect',
    'create_url_from_options',
    'get_engine_for_options',
    'dispose_all_engines',
]

logger = logging.getLogger(__name__)

_engine_registry: dict[str, Engine] = {}
_engine_registry_lock = threading.RLock()


class ExecResult(NamedTuple):
    """Outcome of a data-modifying statement."""
    rowcount: int
    lastrowid: int | None


def create_url_from_options(options: DatabaseOptions) -> sa.URL:
    """Convert DatabaseOptions to SQLAlchemy URL.
    """
    return get_strategy(options.drivername).build_connection_url(options)


def get_engine_for_options(options: DatabaseOptions,
                           engine_factory: Callable[..., Engine] = sa.create_engine,
                           **kwargs: Any) -> Engine:
    """Get or create a SQLAlchemy engine for the given options.
    """
    strategy = get_strategy(options.drivername)
    url = strategy.build_connection_url(options)
    key = (f'{url.render_as_string(hide_password=False)}|{options.timeout}|{options.use_pool}|'
           f'{options.pool_max_connections}|{options.pool_max_idle_time}|{options.pool_wait_timeout}')

    with _engine_registry_lock:
        if key in _engine_registry:
            logger.debug(f'Using existing engine for {options.drivername}')
            return _engine_registry[key]

        engine_kwargs: dict[str, Any] = {'echo': False}
        engine_kwargs.update(strategy.get_engine_kwargs(options))

        if not options.use_pool:
            engine_kwargs['poolclass'] = NullPool
        else:
            engine_kwargs['pool_size'] = options.pool_max_connections
            engine_kwargs['pool_recycle'] = options.pool_max_idle_time
            engine_kwargs['pool_timeout'] = options.pool_wait_timeout
            engine_kwargs['max_overflow'] = 10
            engine_kwargs['pool_pre_ping'] = True

        engine_kwargs.update(kwargs)

        engine = engine_factory(url, **engine_kwargs)

        _engine_registry[key] = engine
        logger.debug(f'Created new engine for {options.drivername}')

        return engine


def dispose_all_engines() -> None:
    """Dispose all engines in the registry.
    """
    with _engine_registry_lock:
        for engine in list(_engine_registry.values()):
            engine.dispose()
        _engine_registry.clear()
        logger.debug('All database engines disposed')


atexit.register(dispose_all_engines)


class ConnectionWrapper:
    """Wraps a SQLAlchemy connection object to track calls and execution time

    This class provides a thin wrapper around SQLAlchemy connection objects that:
    1. Tracks query execution counts and timing
    2. Carries the active database name, so nothing is process-global
    3. Supports context manager protocol for explicit resource management
    4. Runs statements in driver auto-commit mode, one statement at a time
    """

    def __init__(self, sa_connection: sa.engine.Connection,
                 options: DatabaseOptions) -> None:
        self.sa_connection = sa_connection
        self.engine = sa_connection.engine
        self.options = options
        self.dbapi_connection = sa_connection.connection
        self._dialect = get_dialect_name(sa_connection)
        self.database = get_strategy(self._dialect).default_schema(options)
        self.calls = 0
        self.time = 0

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    def __repr__(self) -> str:
        return f'ConnectionWrapper(dialect={self._dialect!r}, database={self.database!r})'

    @property
    def dialect(self) -> str:
        """Return the dialect name ('mysql' or 'sqlite')."""
        return self._dialect

    @property
    def strategy(self):
        return get_db_strategy(self)

    @property
    def closed(self) -> bool:
        return self.sa_connection.closed

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        self.time += elapsed
        self.calls += 1

    def cursor(self) -> Cursor:
        """Get a wrapped cursor for this connection
        """
        return Cursor(self.dbapi_connection.cursor(), self, self.strategy)

    def close(self) -> None:
        """Return the connection to the engine's pool
        """
        if not self.sa_connection.closed:
            self.sa_connection.close()
            logger.debug(f'Connection closed: {self.calls} queries in {self.time:.2f}s '
                         f'(avg: {self.time/max(1, self.calls):.3f}s per query)')

    def run(self, sql: str, *args: Any) -> Cursor:
        """Execute a query and return the open cursor.

        The caller owns the cursor and must close it (or exhaust it through
        a result mapper, which closes it).
        """
        cursor = self.cursor()
        try:
            cursor.execute(sql, *args)
        except Exception:
            cursor.close()
            raise
        return cursor

    def run_one(self, sql: str, *args: Any) -> Cursor:
        """Execute a query expected to yield at most one row.
        """
        return self.run(sql, *args)

    def execute(self, sql: str, *args: Any) -> ExecResult:
        """Execute a statement and return affected row count and generated id.
        """
        with self.run(sql, *args) as cursor:
            result = ExecResult(cursor.rowcount, cursor.lastrowid)
        logger.debug(f'Statement affected {result.rowcount} row(s)')
        return result

    def ping(self) -> None:
        """Round-trip a trivial query.

        Raises
            ConfigurationError: the server cannot be reached
        """
        try:
            with self.run('SELECT 1') as cursor:
                cursor.fetchall()
        except ExecutionError as err:
            raise ConfigurationError(f'ping failed: {err}') from err

    def use(self, database: str) -> None:
        """Switch the active database.
        """
        self.strategy.use_database(self, database)
        logger.debug(f'Switched database {self.database!r} -> {database!r}')
        self.database = database

    def show_tables(self) -> list[str]:
        """Table names of the active database.
        """
        return self.strategy.list_tables(self)

    def table(self, name: str) -> 'TableClient':
        """Load ``name`` from the catalog and bind it to this connection.
        """
        from tabledb.query import TableClient
        from tabledb.schema import load_table
        return TableClient(self, load_table(self, name))


def configure_connection(sa_connection: sa.engine.Connection) -> None:
    """Configure a SQLAlchemy connection with database-specific settings.
    """
    strategy = get_db_strategy(sa_connection)
    strategy.configure_connection(sa_connection.connection)


def connect(options: DatabaseOptions | dict[str, Any] | None = None,
            **kw: Any) -> ConnectionWrapper:
    """Connect to a database using SQLAlchemy for connection management

    Args:
        options: Can be:
                - DatabaseOptions object
                - Dictionary of options
                - None, with options specified as keyword arguments
        **kw: Additional keyword arguments to override options

    Returns
        ConnectionWrapper object for connecting to the database

    Raises
        ConfigurationError: the connection cannot be opened or pinged
    """
    if not isinstance(options, DatabaseOptions):
        options = DatabaseOptions(**{**(options or {}), **kw})

    engine = get_engine_for_options(options)

    try:
        sa_connection = engine.connect()
    except ExecutionError as err:
        raise ConfigurationError(f'cannot connect to {options.drivername} '
                                 f'database {options.database!r}: {err}') from err

    try:
        configure_connection(sa_connection)
    except ExecutionError as err:
        sa_connection.close()
        raise ConfigurationError(f'cannot configure {options.drivername} connection: {err}') from err
    cn = ConnectionWrapper(sa_connection, options)
    if options.check_connection:
        try:
            cn.ping()
        except ConfigurationError:
            cn.close()
            raise
    logger.debug(f'Connected to {options.drivername} database {cn.database!r}')
    return cn
