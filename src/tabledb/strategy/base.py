"""
Base strategy interface for database operations.

Defines the abstract base class that all database-specific strategy implementations
must inherit from. The strategy pattern allows for encapsulating database-specific
behaviors while presenting a consistent interface to the rest of the application.

Each concrete strategy implements operations with database-specific SQL and techniques,
but clients can work with any database through this consistent interface.
"""
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, NamedTuple

import sqlalchemy as sa
from tabledb.sql import standardize_placeholders

if TYPE_CHECKING:
    from tabledb.connection import ConnectionWrapper
    from tabledb.options import DatabaseOptions
    from tabledb.schema import Table
    from tabledb.types import Field

# Registry of dialect name -> strategy class
# Defined here to avoid circular imports (concrete strategies import from base)
_STRATEGY_REGISTRY: dict[str, type['DatabaseStrategy']] = {}


def register_strategy(dialect: str):
    """Decorator to register a strategy class for a dialect.

    Usage:
        @register_strategy('mysql')
        class MySQLStrategy(DatabaseStrategy):
            ...
    """
    def decorator(cls: type['DatabaseStrategy']) -> type['DatabaseStrategy']:
        _STRATEGY_REGISTRY[dialect] = cls
        return cls
    return decorator


class CatalogColumn(NamedTuple):
    """One row of column metadata, in the information catalog's shape."""
    name: str
    column_type: Any
    column_default: Any
    is_nullable: str
    column_key: str
    extra: str
    comment: str


class DatabaseStrategy(ABC):
    """Base class for database-specific operations.
    """

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """Return the dialect identifier (e.g., 'mysql', 'sqlite')."""

    @abstractmethod
    def build_connection_url(self, options: 'DatabaseOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for this dialect.

        Args:
            options: DatabaseOptions containing connection parameters
        """

    @abstractmethod
    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for this dialect.
        """

    @abstractmethod
    def configure_connection(self, raw_conn: Any) -> None:
        """Configure a freshly checked-out DBAPI connection.

        Statements run in driver auto-commit mode; there are no transactions
        at this layer.
        """

    @abstractmethod
    def default_schema(self, options: 'DatabaseOptions') -> str:
        """Name of the schema a new connection starts in.
        """

    @abstractmethod
    def load_columns(self, cn: 'ConnectionWrapper', schema: str,
                     table: str) -> list[CatalogColumn]:
        """Read column metadata for one table, ordered by ordinal position.

        Args:
            cn: Database connection object
            schema: Schema (database) name
            table: Table name

        Returns
            list: One CatalogColumn per column, empty when the table is unknown
        """

    @abstractmethod
    def list_tables(self, cn: 'ConnectionWrapper') -> list[str]:
        """Names of the tables in the active schema.
        """

    @abstractmethod
    def use_database(self, cn: 'ConnectionWrapper', database: str) -> None:
        """Switch the active schema of a connection.
        """

    @classmethod
    @abstractmethod
    def get_required_options(cls) -> list[str]:
        """Return list of required option field names for this dialect.
        """

    @classmethod
    def validate_options(cls, options: 'DatabaseOptions') -> None:
        """Validate options for this dialect.

        Raises
            ValueError: If any required field is None or 0
        """
        for field in cls.get_required_options():
            if not getattr(options, field):
                raise ValueError(f'field {field} cannot be None or 0')

    def get_placeholder_style(self) -> str:
        """Return the placeholder marker the driver expects.
        """
        return '?'

    def standardize_sql(self, sql: str) -> str:
        """Convert ``?`` placeholders to this dialect's style.
        """
        return standardize_placeholders(sql, self.get_placeholder_style())

    def target_column(self, field: 'Field') -> str:
        """Column reference used in INSERT column lists and UPDATE SET terms.
        """
        return field.qualified_name

    def single_row_where(self, table: 'Table', where: str) -> str:
        """WHERE tail restricting a DELETE or UPDATE to one row.
        """
        return f'WHERE {where} LIMIT 1'
