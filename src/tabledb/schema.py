"""
Table metadata read from the information catalog.

This module provides:
- Table: immutable per-table metadata with precomputed statement prefixes
- load_table(): build a Table from the catalog, fresh on every call
- generate_ddl(): render a Table back into a CREATE TABLE statement

Catalog access is dialect-specific and delegated to the connection's
strategy; everything here works on the rows it returns.
"""
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Self

from tabledb.exceptions import SchemaError
from tabledb.sql import quote_identifier
from tabledb.strategy import CatalogColumn
from tabledb.types import Field, FieldDefault, FieldType, KeyKind
from tabledb.types import catalog_text, parse_nullable

if TYPE_CHECKING:
    from tabledb.connection import ConnectionWrapper

__all__ = ['Table', 'load_table', 'generate_ddl', 'field_from_catalog']

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Table:
    """Ordered field list of one table plus the statement prefixes built from it.

    Position i of any positional-argument call corresponds to ``fields[i]``.
    Build instances with `Table.from_fields`.
    """
    schema_name: str
    table_name: str
    fields: tuple[Field, ...]
    primary_key: str | None
    unique_fields: tuple[str, ...]
    full_name: str
    sql_insert: str
    sql_delete: str
    sql_update: str
    sql_select: str
    sql_count: str
    placeholders: tuple[str, ...]
    field_count: int

    def __post_init__(self):
        if not self.fields:
            raise SchemaError(f'table {self.full_name} has no fields')
        if not len(self.fields) == self.field_count == len(self.placeholders):
            raise SchemaError(f'table {self.full_name}: field count mismatch')
        primaries = [f for f in self.fields if f.key_kind is KeyKind.PRIMARY]
        if len(primaries) > 1:
            raise SchemaError(f'table {self.full_name} has more than one primary key field')

    @classmethod
    def from_fields(cls, schema_name: str, table_name: str,
                    fields: list[Field] | tuple[Field, ...]) -> Self:
        """Build a Table, deriving keys and statement prefixes from ``fields``.

        Raises
            SchemaError: no fields, or more than one primary key field
        """
        fields = tuple(fields)
        primary_key = None
        unique_fields = []
        for field in fields:
            if field.key_kind is KeyKind.PRIMARY:
                primary_key = field.name
            elif field.key_kind is KeyKind.UNIQUE:
                unique_fields.append(field.name)

        full_name = f'{schema_name}.{table_name}'
        if primary_key is None:
            count_target = '*'
        else:
            count_target = next(f.qualified_name for f in fields if f.name == primary_key)

        return cls(
            schema_name=schema_name,
            table_name=table_name,
            fields=fields,
            primary_key=primary_key,
            unique_fields=tuple(unique_fields),
            full_name=full_name,
            sql_insert=f'INSERT INTO {full_name}',
            sql_delete=f'DELETE FROM {full_name}',
            sql_update=f'UPDATE {full_name}',
            sql_select=f'SELECT {",".join(f.qualified_name for f in fields)} FROM {full_name}',
            sql_count=f'SELECT COUNT({count_target}) FROM {full_name}',
            placeholders=('?',) * len(fields),
            field_count=len(fields),
        )

    @property
    def names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def order_field(self) -> Field:
        """Field that paginated listings order by: the primary key, else the first field.
        """
        if self.primary_key is not None:
            for field in self.fields:
                if field.name == self.primary_key:
                    return field
        return self.fields[0]

    def field(self, name: str) -> Field:
        for field in self.fields:
            if field.name == name:
                return field
        raise KeyError(name)

    def to_sql(self) -> str:
        return generate_ddl(self)


def field_from_catalog(table_name: str, column: CatalogColumn) -> Field:
    """Build a Field from one catalog row.
    """
    name = catalog_text(column.name)
    return Field(
        name=name,
        qualified_name=f'{table_name}.{quote_identifier(name)}',
        type=FieldType.from_catalog(column.column_type),
        nullable=parse_nullable(catalog_text(column.is_nullable)),
        key_kind=KeyKind.from_catalog(_optional_text(column.column_key)),
        default=FieldDefault.from_catalog(column.column_default),
        extra=_optional_text(column.extra),
        comment=_optional_text(column.comment),
    )


def _optional_text(raw) -> str:
    return '' if raw is None else catalog_text(raw)


def _demote_extra_primaries(fields: list[Field]) -> list[Field]:
    """Keep only the last field the catalog marks as primary.
    """
    primaries = [i for i, f in enumerate(fields) if f.key_kind is KeyKind.PRIMARY]
    if len(primaries) <= 1:
        return fields
    logger.warning(f'catalog reports {len(primaries)} primary key columns, '
                   f'using {fields[primaries[-1]].name!r}')
    demoted = []
    for i, field in enumerate(fields):
        if i in primaries[:-1]:
            field = Field(field.name, field.qualified_name, field.type, field.nullable,
                          KeyKind.NONE, field.default, field.extra, field.comment)
        demoted.append(field)
    return demoted


def load_table(cn: 'ConnectionWrapper', table_name: str) -> Table:
    """Load column metadata for ``table_name`` in the active database.

    Args:
        cn: Database connection
        table_name: Unqualified table name

    Returns
        Table with fields in ordinal order

    Raises
        SchemaError: the catalog has no columns for the table
        ConfigurationError: a column type is outside the known set
    """
    schema_name = cn.database
    columns = cn.strategy.load_columns(cn, schema_name, table_name)
    if not columns:
        raise SchemaError(f'table {schema_name}.{table_name} not found')

    fields = _demote_extra_primaries([field_from_catalog(table_name, c) for c in columns])
    table = Table.from_fields(schema_name, table_name, fields)
    logger.debug(f'Loaded {table.full_name}: {table.field_count} fields, '
                 f'primary key {table.primary_key!r}')
    return table


def generate_ddl(table: Table) -> str:
    """Render a CREATE TABLE statement for ``table``.

    One tab-indented line per field, then the PRIMARY KEY clause when the
    table has one and a UNIQUE KEY clause per unique field.
    """
    lines = [field.to_sql() for field in table.fields]
    if table.primary_key is not None:
        lines.append(f'PRIMARY KEY ({quote_identifier(table.primary_key)})')
    for i, name in enumerate(table.unique_fields):
        lines.append(f'UNIQUE KEY `{name}_{i}` ({quote_identifier(name)})')
    body = ',\n'.join(f'\t{line}' for line in lines)
    return f'CREATE TABLE {quote_identifier(table.table_name)} (\n{body}\n) ENGINE=InnoDB DEFAULT CHARSET=utf8'
