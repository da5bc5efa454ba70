"""
Database-specific exception classes.
"""
import sqlite3

import pymysql
from sqlalchemy import exc as sa_exc


class DatabaseError(Exception):
    """Base class for all tabledb errors.
    """


class ConfigurationError(DatabaseError):
    """Deployment defect: bad connection settings or a type the catalog
    reports that the decoder does not know.
    """


class SchemaError(DatabaseError):
    """The information catalog returned no columns for a table.
    """


class ConversionError(DatabaseError):
    """No conversion rule between a source value and a destination cell.
    """


class NilDestinationError(ConversionError):
    """Destination cell is None at conversion time.
    """


class ShapeMismatchError(DatabaseError):
    """Destination shape does not line up with the table's fields.
    """


class ValidationError(DatabaseError):
    """Error in input validation.
    """


class NoRowsError(DatabaseError):
    """A single-row result was decoded but the query matched nothing.
    """


ExecutionError = (
    pymysql.err.MySQLError,
    sqlite3.Error,
    sa_exc.DBAPIError,
    )

IntegrityError = (
    pymysql.err.IntegrityError,
    sqlite3.IntegrityError,
    sa_exc.IntegrityError,
    )

OperationalError = (
    pymysql.err.OperationalError,
    sqlite3.OperationalError,
    sa_exc.OperationalError,
    )
