"""
Statement building and execution for one table.

Every operation takes positional arguments index-aligned to the table's
fields. ``None`` at position i omits field i from the statement, it never
means "match NULL" or "assign NULL":

    >>> client.get(None, 'alice', None)   # WHERE users.`name`=? LIMIT 1

The ``build_*`` functions are pure: they return ``(sql, params)`` and never
touch a connection. `TableClient` runs them and wraps the results.
"""
import logging
from typing import TYPE_CHECKING, Any

from tabledb.exceptions import ValidationError
from tabledb.mapper import Row, Rows
from tabledb.strategy import get_strategy

if TYPE_CHECKING:
    from tabledb.connection import ConnectionWrapper
    from tabledb.schema import Table
    from tabledb.types import Field

__all__ = [
    'TableClient',
    'Setter',
    'build_insert',
    'build_select',
    'build_delete',
    'build_update_where',
    'build_update',
    'build_count',
    'build_list',
    'build_query',
]

logger = logging.getLogger(__name__)


def _present(table: 'Table', args: tuple) -> list[tuple['Field', Any]]:
    """Pair each non-None argument with its field.

    Raises
        ValidationError: more arguments than fields
    """
    if len(args) > table.field_count:
        raise ValidationError(
            f'{len(args)} arguments for {table.field_count} fields of {table.full_name}')
    return [(field, value) for field, value in zip(table.fields, args) if value is not None]


def _predicates(table: 'Table', args: tuple, joiner: str) -> tuple[str, list]:
    """Join ``field=?`` terms for the non-None arguments.

    Raises
        ValidationError: no argument is set
    """
    present = _present(table, args)
    if not present:
        raise ValidationError(f'no predicate given for {table.full_name}')
    where = f' {joiner} '.join(f'{field.qualified_name}=?' for field, _ in present)
    return where, [value for _, value in present]


def build_insert(table: 'Table', values: tuple, dialect: str = 'mysql') -> tuple[str, tuple]:
    """INSERT of the non-None values, columns and placeholders from one pass.
    """
    present = _present(table, values)
    if not present:
        raise ValidationError(f'no values given for {table.full_name}')
    strategy = get_strategy(dialect)
    columns = ','.join(strategy.target_column(field) for field, _ in present)
    placeholders = ','.join(table.placeholders[:len(present)])
    sql = f'{table.sql_insert} ({columns}) VALUES ({placeholders})'
    return sql, tuple(value for _, value in present)


def build_select(table: 'Table', args: tuple, any_match: bool = False,
                 single: bool = False) -> tuple[str, tuple]:
    """SELECT of all fields filtered on the non-None arguments.

    Args:
        table: Table metadata
        args: Positional arguments aligned to the fields
        any_match: OR-join the predicates instead of AND-joining them
        single: Append ``LIMIT 1``
    """
    where, params = _predicates(table, args, 'OR' if any_match else 'AND')
    sql = f'{table.sql_select} WHERE {where}'
    if single:
        sql += ' LIMIT 1'
    return sql, tuple(params)


def build_delete(table: 'Table', args: tuple, dialect: str = 'mysql') -> tuple[str, tuple]:
    """DELETE of at most one row matching all non-None arguments.
    """
    where, params = _predicates(table, args, 'AND')
    tail = get_strategy(dialect).single_row_where(table, where)
    return f'{table.sql_delete} {tail}', tuple(params)


def build_update_where(table: 'Table', args: tuple, single: bool,
                       dialect: str = 'mysql') -> tuple[str, tuple]:
    """WHERE tail of an UPDATE, restricted to one row when ``single``.
    """
    where, params = _predicates(table, args, 'AND')
    if single:
        return get_strategy(dialect).single_row_where(table, where), tuple(params)
    return f'WHERE {where}', tuple(params)


def build_update(table: 'Table', values: tuple, where: str, where_params: tuple,
                 dialect: str = 'mysql') -> tuple[str, tuple]:
    """UPDATE setting the non-None values; SET params precede WHERE params.
    """
    present = _present(table, values)
    if not present:
        raise ValidationError(f'no values to assign in {table.full_name}')
    strategy = get_strategy(dialect)
    assignments = ', '.join(f'{strategy.target_column(field)}=?' for field, _ in present)
    sql = f'{table.sql_update} SET {assignments} {where}'
    return sql, tuple(value for _, value in present) + tuple(where_params)


def build_count(table: 'Table', args: tuple = ()) -> tuple[str, tuple]:
    """COUNT of all rows, or of the rows matching all non-None arguments.
    """
    if not args:
        return table.sql_count, ()
    where, params = _predicates(table, args, 'AND')
    return f'{table.sql_count} WHERE {where}', tuple(params)


def build_list(table: 'Table', take: int, skip: int = 0,
               descending: bool = False) -> tuple[str, tuple]:
    """One page of rows ordered by the primary key.
    """
    if take < 0 or skip < 0:
        raise ValidationError(f'take ({take}) and skip ({skip}) must not be negative')
    order = table.order_field.qualified_name
    direction = ' DESC' if descending else ''
    sql = f'{table.sql_select} ORDER BY {order}{direction} LIMIT ?, ?'
    return sql, (skip, take)


def build_query(table: 'Table', suffix: str, args: tuple) -> tuple[str, tuple]:
    """Caller-supplied tail appended verbatim after the full column SELECT.
    """
    if suffix:
        return f'{table.sql_select} {suffix}', tuple(args)
    return table.sql_select, tuple(args)


class Setter:
    """UPDATE bound to a WHERE clause, completed by `assign`.
    """

    def __init__(self, client: 'TableClient', where: str, where_params: tuple) -> None:
        self.client = client
        self.where = where
        self.where_params = where_params

    def __repr__(self) -> str:
        return f'Setter({self.client.table.full_name!r}, {self.where!r})'

    def assign(self, *values: Any) -> int:
        """Set fields to the non-None values; returns rows affected.
        """
        client = self.client
        sql, params = build_update(client.table, values, self.where, self.where_params,
                                   client.cn.dialect)
        return client.cn.execute(sql, *params).rowcount


class TableClient:
    """Per-table operations over one connection.

    Obtain through `ConnectionWrapper.table`, or bind a `Table` directly:

        users = cn.table('users')
        user_id = users.add(None, 'alice', 'alice@example.com')
        users.update(user_id).assign(None, 'alice b')
        row = users.get(user_id)
    """

    def __init__(self, cn: 'ConnectionWrapper', table: 'Table') -> None:
        self.cn = cn
        self.table = table

    def __repr__(self) -> str:
        return f'TableClient({self.table.full_name!r})'

    @property
    def dialect(self) -> str:
        return self.cn.dialect

    def add(self, *values: Any) -> int:
        """Insert a row from the non-None values; returns the generated id.
        """
        sql, params = build_insert(self.table, values, self.dialect)
        return self.cn.execute(sql, *params).lastrowid

    def delete(self, *args: Any) -> int:
        """Delete at most one matching row; returns rows affected.
        """
        sql, params = build_delete(self.table, args, self.dialect)
        return self.cn.execute(sql, *params).rowcount

    def get(self, *args: Any) -> Row:
        """First row matching all non-None arguments.
        """
        sql, params = build_select(self.table, args, single=True)
        return Row(self.cn.run_one(sql, *params), self.table)

    def get_many(self, *args: Any) -> Rows:
        sql, params = build_select(self.table, args)
        return Rows(self.cn.run(sql, *params), self.table)

    def find(self, *args: Any) -> Row:
        """First row matching any non-None argument.
        """
        sql, params = build_select(self.table, args, any_match=True, single=True)
        return Row(self.cn.run_one(sql, *params), self.table)

    def find_many(self, *args: Any) -> Rows:
        sql, params = build_select(self.table, args, any_match=True)
        return Rows(self.cn.run(sql, *params), self.table)

    def update(self, *args: Any) -> Setter:
        """Prepare an update of at most one row matching all non-None arguments.
        """
        where, params = build_update_where(self.table, args, True, self.dialect)
        return Setter(self, where, params)

    def update_many(self, *args: Any) -> Setter:
        where, params = build_update_where(self.table, args, False, self.dialect)
        return Setter(self, where, params)

    def count(self) -> int:
        sql, params = build_count(self.table)
        return self._scalar(sql, params)

    def count_by(self, *args: Any) -> int:
        """Count rows matching all non-None arguments.
        """
        if not args:
            raise ValidationError(f'no predicate given for {self.table.full_name}')
        sql, params = build_count(self.table, args)
        return self._scalar(sql, params)

    def list_asc(self, take: int, skip: int = 0) -> Rows:
        sql, params = build_list(self.table, take, skip)
        return Rows(self.cn.run(sql, *params), self.table)

    def list_desc(self, take: int, skip: int = 0) -> Rows:
        sql, params = build_list(self.table, take, skip, descending=True)
        return Rows(self.cn.run(sql, *params), self.table)

    def query(self, suffix: str, *args: Any) -> Rows:
        """Run ``SELECT <all fields> FROM <table> <suffix>``.

        The suffix is caller-written SQL and is not escaped.
        """
        sql, params = build_query(self.table, suffix, args)
        return Rows(self.cn.run(sql, *params), self.table)

    def query_row(self, suffix: str, *args: Any) -> Row:
        sql, params = build_query(self.table, suffix, args)
        return Row(self.cn.run_one(sql, *params), self.table)

    def _scalar(self, sql: str, params: tuple) -> int:
        with self.cn.run_one(sql, *params) as cursor:
            row = cursor.fetchone()
        return int(row[0]) if row else 0
