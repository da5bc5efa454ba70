"""
Schema-driven table access for MySQL (and SQLite).

Table metadata is read from the information catalog at runtime and drives
both statement building and result decoding, so no per-table code is needed:

    cn = tabledb.open('app', 'secret', 'localhost', 3306, 'shop')
    users = cn.table('users')
    user_id = users.add(None, 'alice', 'alice@example.com')
    users.get(user_id).struct(user)

The module functions are facades over ConnectionWrapper and the schema
module.
"""
__version__ = '0.1.0'

from typing import Any

from tabledb.connection import ConnectionWrapper, ExecResult, connect
from tabledb.convert import Cell, NullBytes, NullFloat, NullInt, NullString
from tabledb.convert import NullTime, Scanner, Valuer, coerce, normalize
from tabledb.exceptions import ConfigurationError, ConversionError
from tabledb.exceptions import DatabaseError, ExecutionError, IntegrityError
from tabledb.exceptions import NilDestinationError, NoRowsError
from tabledb.exceptions import OperationalError, SchemaError
from tabledb.exceptions import ShapeMismatchError, ValidationError
from tabledb.mapper import Row, Rows
from tabledb.options import DatabaseOptions
from tabledb.query import Setter, TableClient
from tabledb.schema import Table, generate_ddl
from tabledb.schema import load_table as _load_table
from tabledb.types import Field, FieldDefault, FieldType, KeyKind, TypeCode
from tabledb.types import format_type_code, parse_type_name


def open(username: str, password: str, hostname: str, port: int,
         database: str, **kw: Any) -> ConnectionWrapper:
    """Open a MySQL connection and verify it with a ping.

    Raises
        ConfigurationError: the server cannot be reached or rejects the login
    """
    return connect(drivername='mysql', username=username, password=password,
                   hostname=hostname, port=port, database=database, **kw)


def load_table(cn: ConnectionWrapper, name: str) -> Table:
    """Load a table's metadata from the catalog of the active database.
    """
    return _load_table(cn, name)


def use(cn: ConnectionWrapper, database: str) -> None:
    """Switch the active database.
    """
    cn.use(database)


def show_tables(cn: ConnectionWrapper) -> list[str]:
    """Table names of the active database.
    """
    return cn.show_tables()


__all__ = [
    'open',
    'connect',
    'use',
    'show_tables',
    'load_table',
    'generate_ddl',
    'ConnectionWrapper',
    'DatabaseOptions',
    'ExecResult',
    'Table',
    'TableClient',
    'Setter',
    'Row',
    'Rows',
    'Field',
    'FieldType',
    'FieldDefault',
    'KeyKind',
    'TypeCode',
    'parse_type_name',
    'format_type_code',
    'Cell',
    'Valuer',
    'Scanner',
    'NullInt',
    'NullFloat',
    'NullString',
    'NullTime',
    'NullBytes',
    'coerce',
    'normalize',
    'DatabaseError',
    'ConfigurationError',
    'SchemaError',
    'ConversionError',
    'NilDestinationError',
    'ShapeMismatchError',
    'ValidationError',
    'NoRowsError',
    'ExecutionError',
    'IntegrityError',
    'OperationalError',
]
