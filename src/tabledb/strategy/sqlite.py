"""
SQLite-specific strategy implementation.

This module implements the DatabaseStrategy interface with SQLite-specific operations.
It handles SQLite's unique features and limitations such as:
- Metadata retrieval using table-valued PRAGMA functions
- Native affinity names (INTEGER, REAL, NUMERIC) mapped onto the known type names
- No DELETE/UPDATE ... LIMIT in default builds (rowid subquery instead)
- Column lists that must not be table-qualified in INSERT and UPDATE SET
- Attached databases as schemas
"""
import datetime
import logging
import re
import sqlite3
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from tabledb.exceptions import ConfigurationError
from tabledb.sql import quote_identifier
from tabledb.strategy.base import CatalogColumn, DatabaseStrategy
from tabledb.strategy.base import register_strategy
from tabledb.types import convert_date, convert_datetime

if TYPE_CHECKING:
    from tabledb.connection import ConnectionWrapper
    from tabledb.options import DatabaseOptions
    from tabledb.schema import Table
    from tabledb.types import Field

logger = logging.getLogger(__name__)

# SQLite affinity names -> closest known column type
TYPE_ALIASES = {
    'integer': 'bigint',
    'real': 'double',
    'numeric': 'decimal',
}

_LEADING_WORD = re.compile(r'^\s*(\w+)')


def _catalog_type(declared: str) -> str:
    """Lower-case a declared type and replace affinity names.
    """
    declared = declared.lower()
    match = _LEADING_WORD.match(declared)
    if match and match.group(1) in TYPE_ALIASES:
        return TYPE_ALIASES[match.group(1)] + declared[match.end():]
    return declared


def adapt_datetime(val: datetime.datetime) -> str:
    return val.isoformat(' ')


def adapt_date(val: datetime.date) -> str:
    return val.isoformat()


@register_strategy('sqlite')
class SQLiteStrategy(DatabaseStrategy):
    """SQLite-specific operations.
    """

    @property
    def dialect_name(self) -> str:
        return 'sqlite'

    def build_connection_url(self, options: 'DatabaseOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for SQLite."""
        return sa.URL.create(drivername='sqlite', database=options.database)

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for SQLite."""
        return {
            'connect_args': {
                'detect_types': sqlite3.PARSE_DECLTYPES,
            }
        }

    def register_type_adapters(self) -> None:
        """Register date/datetime adapters and converters.

        Adapters (Python -> SQLite) write the layouts the decoder parses;
        converters (SQLite -> Python) apply to columns declared date/datetime.
        """
        sqlite3.register_adapter(datetime.datetime, adapt_datetime)
        sqlite3.register_adapter(datetime.date, adapt_date)
        sqlite3.register_converter('date', convert_date)
        sqlite3.register_converter('datetime', convert_datetime)

    def configure_connection(self, raw_conn: Any) -> None:
        """Configure connection settings for SQLite.
        """
        self.register_type_adapters()
        sqlite_conn = getattr(raw_conn, 'dbapi_connection', raw_conn)
        sqlite_conn.execute('PRAGMA foreign_keys = ON')
        sqlite_conn.isolation_level = None

    def default_schema(self, options: 'DatabaseOptions') -> str:
        return 'main'

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for SQLite connections."""
        return ['database']

    def target_column(self, field: 'Field') -> str:
        return quote_identifier(field.name)

    def single_row_where(self, table: 'Table', where: str) -> str:
        return f'WHERE rowid IN (SELECT rowid FROM {table.full_name} WHERE {where} LIMIT 1)'

    def _unique_columns(self, cn: 'ConnectionWrapper', schema: str,
                        table: str) -> set[str]:
        """Columns that alone make up a UNIQUE index (primary key excluded).
        """
        sql = "SELECT name FROM pragma_index_list(?, ?) WHERE \"unique\" = 1 AND origin <> 'pk'"
        with cn.run(sql, table, schema) as cursor:
            index_names = [row[0] for row in cursor.fetchall()]

        unique = set()
        for index_name in index_names:
            with cn.run('SELECT name FROM pragma_index_info(?, ?)', index_name, schema) as cursor:
                cols = [row[0] for row in cursor.fetchall()]
            if len(cols) == 1:
                unique.add(cols[0])
        return unique

    def load_columns(self, cn: 'ConnectionWrapper', schema: str,
                     table: str) -> list[CatalogColumn]:
        """Get column metadata from pragma_table_info.
        """
        sql = 'SELECT name, type, "notnull", dflt_value, pk FROM pragma_table_info(?, ?) ORDER BY cid'
        with cn.run(sql, table, schema) as cursor:
            rows = cursor.fetchall()
        if not rows:
            return []

        pk_columns = [row[0] for row in rows if row[4]]
        unique = self._unique_columns(cn, schema, table)

        columns = []
        for name, declared, notnull, default, _ in rows:
            if len(pk_columns) == 1 and name == pk_columns[0]:
                key = 'PRI'
            elif name in unique:
                key = 'UNI'
            else:
                key = ''
            columns.append(CatalogColumn(
                name=name,
                column_type=_catalog_type(declared),
                column_default=default,
                is_nullable='NO' if notnull else 'YES',
                column_key=key,
                extra='',
                comment='',
            ))
        return columns

    def list_tables(self, cn: 'ConnectionWrapper') -> list[str]:
        schema = quote_identifier(cn.database)
        sql = f"""
SELECT name FROM {schema}.sqlite_master
WHERE type = 'table' AND name NOT LIKE 'sqlite_%'
ORDER BY name
"""
        with cn.run(sql) as cursor:
            return [row[0] for row in cursor.fetchall()]

    def use_database(self, cn: 'ConnectionWrapper', database: str) -> None:
        """SQLite has no USE; switching selects an attached database.
        """
        with cn.run('SELECT name FROM pragma_database_list') as cursor:
            attached = [row[0] for row in cursor.fetchall()]
        if database not in attached:
            raise ConfigurationError(f'database {database!r} is not attached (have {attached})')
