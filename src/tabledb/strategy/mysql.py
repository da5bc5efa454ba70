"""
MySQL-specific strategy implementation.

This module implements the DatabaseStrategy interface for MySQL through
PyMySQL. It handles:
- Column metadata from information_schema.COLUMNS
- The ``format`` paramstyle (``%s`` placeholders)
- USE / SHOW TABLES for schema switching and listing
"""
import logging
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from tabledb.sql import quote_identifier
from tabledb.strategy.base import CatalogColumn, DatabaseStrategy
from tabledb.strategy.base import register_strategy

if TYPE_CHECKING:
    from tabledb.connection import ConnectionWrapper
    from tabledb.options import DatabaseOptions

logger = logging.getLogger(__name__)

CATALOG_SQL = """
SELECT
    COLUMN_NAME, COLUMN_TYPE,
    COLUMN_DEFAULT, IS_NULLABLE,
    COLUMN_KEY, EXTRA, COLUMN_COMMENT
FROM
    information_schema.COLUMNS
WHERE
    TABLE_SCHEMA = ? AND TABLE_NAME = ?
ORDER BY
    ORDINAL_POSITION
"""


@register_strategy('mysql')
class MySQLStrategy(DatabaseStrategy):
    """MySQL-specific operations.
    """

    @property
    def dialect_name(self) -> str:
        return 'mysql'

    def build_connection_url(self, options: 'DatabaseOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for MySQL."""
        return sa.URL.create(
            drivername='mysql+pymysql',
            username=options.username,
            password=options.password,
            host=options.hostname,
            port=options.port,
            database=options.database,
            query={'charset': options.charset},
        )

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for MySQL."""
        if options.timeout:
            return {'connect_args': {'connect_timeout': options.timeout}}
        return {}

    def configure_connection(self, raw_conn: Any) -> None:
        raw_conn.autocommit(True)

    def default_schema(self, options: 'DatabaseOptions') -> str:
        return options.database

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for MySQL connections."""
        return ['hostname', 'username', 'database', 'port']

    def get_placeholder_style(self) -> str:
        return '%s'

    def load_columns(self, cn: 'ConnectionWrapper', schema: str,
                     table: str) -> list[CatalogColumn]:
        """Get column metadata from information_schema.
        """
        with cn.run(CATALOG_SQL, schema, table) as cursor:
            return [CatalogColumn(*row) for row in cursor.fetchall()]

    def list_tables(self, cn: 'ConnectionWrapper') -> list[str]:
        with cn.run('SHOW TABLES') as cursor:
            return [row[0] for row in cursor.fetchall()]

    def use_database(self, cn: 'ConnectionWrapper', database: str) -> None:
        cn.execute(f'USE {quote_identifier(database)}')
