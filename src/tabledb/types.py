"""
Column type handling for catalog metadata and statement parameters.

This module provides:
- TypeCode: the closed set of column types the decoder understands
- parse_type_name / format_type_code / parse_field_type: the type coder
- FieldType, FieldDefault, Field: per-column metadata read from the catalog
- TypeConverter: Convert NumPy/Pandas values to driver-compatible parameters
- SQLite converters for date/datetime columns
"""
import datetime
import enum
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Self

import dateutil.parser
import numpy as np
import pandas as pd
from tabledb.exceptions import ConfigurationError, ConversionError

logger = logging.getLogger(__name__)


class TypeCode(enum.IntEnum):
    """Column types known to the decoder.
    """
    INT = 0
    BIGINT = enum.auto()

    FLOAT = enum.auto()
    DOUBLE = enum.auto()
    DECIMAL = enum.auto()

    CHAR = enum.auto()
    VARCHAR = enum.auto()
    TEXT = enum.auto()
    MEDIUMTEXT = enum.auto()
    LONGTEXT = enum.auto()

    DATE = enum.auto()
    DATETIME = enum.auto()
    YEAR = enum.auto()
    TIME = enum.auto()
    TIMESTAMP = enum.auto()


_TYPE_NAMES: dict[TypeCode, str] = {
    TypeCode.INT: 'int',
    TypeCode.BIGINT: 'bigint',
    TypeCode.FLOAT: 'float',
    TypeCode.DOUBLE: 'double',
    TypeCode.DECIMAL: 'decimal',
    TypeCode.CHAR: 'char',
    TypeCode.VARCHAR: 'varchar',
    TypeCode.TEXT: 'text',
    TypeCode.MEDIUMTEXT: 'mediumtext',
    TypeCode.LONGTEXT: 'longtext',
    TypeCode.DATE: 'date',
    TypeCode.DATETIME: 'datetime',
    TypeCode.YEAR: 'year',
    TypeCode.TIME: 'time',
    TypeCode.TIMESTAMP: 'timestamp',
}

_TYPE_CODES: dict[str, TypeCode] = {name: code for code, name in _TYPE_NAMES.items()}

INTEGER_TYPES = frozenset({TypeCode.INT, TypeCode.BIGINT})
FLOAT_TYPES = frozenset({TypeCode.FLOAT, TypeCode.DOUBLE, TypeCode.DECIMAL})
STRING_TYPES = frozenset({TypeCode.CHAR, TypeCode.VARCHAR, TypeCode.TEXT,
                          TypeCode.MEDIUMTEXT, TypeCode.LONGTEXT})
TIME_TYPES = frozenset({TypeCode.DATE, TypeCode.DATETIME, TypeCode.YEAR,
                        TypeCode.TIME, TypeCode.TIMESTAMP})

# Types rendered without a (length) in DDL
LENGTHLESS_TYPES = TIME_TYPES | {TypeCode.TEXT, TypeCode.MEDIUMTEXT, TypeCode.LONGTEXT}

_WORD = re.compile(r'\w+')
_DIGITS = re.compile(r'\d+')


def parse_type_name(name: str) -> TypeCode:
    """Map a catalog type name to its TypeCode.

    Raises ConfigurationError for names outside the known set: the catalog
    and the decoder disagree, which no caller can recover from.
    """
    code = _TYPE_CODES.get(name.lower())
    if code is None:
        raise ConfigurationError(f'unknown column type name: {name!r}')
    return code


def format_type_code(code: TypeCode | int) -> str:
    """Inverse of parse_type_name.
    """
    try:
        return _TYPE_NAMES[TypeCode(code)]
    except (ValueError, KeyError):
        raise ConfigurationError(f'unknown column type code: {code!r}') from None


def parse_field_type(raw: str) -> tuple[str, TypeCode, int]:
    """Split a full column type like ``varchar(255)`` into name, code, length.

    Length is 0 when the type string carries no digits.
    """
    word = _WORD.search(raw)
    if word is None:
        raise ConfigurationError(f'cannot parse column type: {raw!r}')
    name = word.group(0)
    digits = _DIGITS.search(raw)
    length = int(digits.group(0)) if digits else 0
    return name, parse_type_name(name), length


def parse_nullable(flag: str) -> bool:
    return flag.upper() == 'YES'


def catalog_text(raw: Any) -> str:
    if isinstance(raw, bytes | bytearray):
        return bytes(raw).decode('utf-8')
    if isinstance(raw, str):
        return raw
    raise ConversionError(f'{type(raw).__name__} ({raw!r}) is not an accepted catalog value')


@dataclass(frozen=True, slots=True)
class FieldType:
    """Parsed column type."""
    name: str
    code: TypeCode
    length: int = 0

    @classmethod
    def from_catalog(cls, raw: Any) -> Self:
        return cls(*parse_field_type(catalog_text(raw)))

    def to_sql(self) -> str:
        if self.code in LENGTHLESS_TYPES:
            return self.name
        return f'{self.name}({self.length})'


@dataclass(frozen=True, slots=True)
class FieldDefault:
    """Column default as declared in the catalog."""
    is_null: bool = True
    literal: str = 'NULL'
    is_current_timestamp: bool = False

    @classmethod
    def from_catalog(cls, raw: Any) -> Self:
        if raw is None:
            return cls()
        literal = catalog_text(raw)
        return cls(is_null=False, literal=literal,
                   is_current_timestamp=literal == 'CURRENT_TIMESTAMP')

    def to_sql(self) -> str:
        return f'DEFAULT {self.literal}'


class KeyKind(enum.Enum):
    NONE = ''
    PRIMARY = 'PRI'
    UNIQUE = 'UNI'

    @classmethod
    def from_catalog(cls, marker: str | None) -> Self:
        if marker == 'PRI':
            return cls.PRIMARY
        if marker == 'UNI':
            return cls.UNIQUE
        return cls.NONE


@dataclass(frozen=True, slots=True)
class Field:
    """One column of a table, in catalog ordinal order."""
    name: str
    qualified_name: str
    type: FieldType
    nullable: bool = False
    key_kind: KeyKind = KeyKind.NONE
    default: FieldDefault = FieldDefault()
    extra: str = ''
    comment: str = ''

    def to_sql(self) -> str:
        parts = [f'`{self.name}`', self.type.to_sql()]
        if self.nullable:
            parts += ['NULL', self.default.to_sql()]
        else:
            parts.append('NOT NULL')
            if not self.default.is_null:
                parts.append(self.default.to_sql())
        parts.append(self.extra)
        return ' '.join(parts)


# Type Converter - Handles Python -> Database value conversion

def _convert_numpy_value(val: Any) -> float | int | datetime.datetime | None:
    """Convert NumPy value to Python type."""
    if isinstance(val, np.floating) and np.isnan(val):
        return None

    if isinstance(val, np.datetime64) and np.isnat(val):
        return None

    if isinstance(val, np.bool_):
        return bool(val)

    if isinstance(val, (np.floating, np.integer | np.unsignedinteger)):
        return val.item()

    if isinstance(val, np.datetime64):
        return pd.Timestamp(val).to_pydatetime()

    return val


class TypeConverter:
    """Universal type conversion for statement parameters.

    Handles NumPy and Pandas scalars so callers can bind values taken
    straight out of a DataFrame.
    """

    @staticmethod
    def convert_value(value: Any) -> Any:
        """Convert a single value to a driver-compatible format."""
        if value is None:
            return None

        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return None

        if value is pd.NaT or value is pd.NA:
            return None

        if isinstance(value, np.generic):
            return _convert_numpy_value(value)

        if isinstance(value, pd.Timestamp):
            return value.to_pydatetime()

        return value

    @staticmethod
    def convert_params(params: Any) -> Any:
        """Convert a collection of parameters for database operations."""
        if params is None:
            return None

        if isinstance(params, list | tuple):
            return type(params)(TypeConverter.convert_value(v) for v in params)

        return TypeConverter.convert_value(params)


# SQLite Adapters - Database value converters

def convert_date(val: bytes) -> datetime.date:
    """Convert ISO 8601 date string to date object."""
    return dateutil.parser.isoparse(val.decode()).date()


def convert_datetime(val: bytes) -> datetime.datetime:
    """Convert ISO 8601 datetime string to datetime object."""
    return dateutil.parser.isoparse(val.decode())
