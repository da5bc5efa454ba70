"""
Result decoding.

A query result is decoded in two phases:

1. Each column of the current row is scanned into a nullable scratch cell
   picked by the field's type code (see `make_nullable_scans`).
2. The scratch cells are redistributed into what the caller asked for:
   - scan(*dests): positional Cell/Scanner destinations
   - struct(obj): members of a dataclass instance, in field order
   - slice(): a list of plain values
   - map(): a dict of field name to plain value

`Row` wraps a single-row result, `Rows` a forward-only multi-row result.
"""
import dataclasses
import logging
import types
import typing
from functools import lru_cache
from typing import TYPE_CHECKING, Any, NamedTuple, Self

import pandas as pd
from tabledb.convert import CELL_KINDS, Cell, NullBytes, NullFloat, NullInt
from tabledb.convert import NullString, NullTime, coerce, normalize
from tabledb.exceptions import NoRowsError, ShapeMismatchError
from tabledb.types import FLOAT_TYPES, INTEGER_TYPES, STRING_TYPES, TIME_TYPES

if TYPE_CHECKING:
    from tabledb.cursor import Cursor
    from tabledb.schema import Table

__all__ = [
    'Row',
    'Rows',
    'MemberAccessor',
    'make_nullable_scans',
    'struct_accessors',
]

logger = logging.getLogger(__name__)


def make_nullable_scans(table: 'Table') -> list:
    """One scratch cell per field, picked by the field's type code.
    """
    scans = []
    for field in table.fields:
        code = field.type.code
        if code in INTEGER_TYPES:
            scans.append(NullInt())
        elif code in TIME_TYPES:
            scans.append(NullTime())
        elif code in STRING_TYPES:
            scans.append(NullString())
        elif code in FLOAT_TYPES:
            scans.append(NullFloat())
        else:
            scans.append(NullBytes())
    return scans


class MemberAccessor(NamedTuple):
    """Name and destination kind of one dataclass member."""
    name: str
    kind: type
    optional: bool


def _resolve_kind(owner: type, name: str, hint: Any) -> tuple[type, bool]:
    if hint in CELL_KINDS:
        return hint, False
    if typing.get_origin(hint) in {typing.Union, types.UnionType}:
        args = [a for a in typing.get_args(hint) if a is not type(None)]
        if len(args) == 1 and args[0] in CELL_KINDS:
            return args[0], True
    raise ShapeMismatchError(f'{owner.__name__}.{name}: unsupported member type {hint!r}')


@lru_cache(maxsize=128)
def struct_accessors(cls: type) -> tuple[MemberAccessor, ...]:
    """Ordered member accessors of a dataclass type, resolved once per type.

    Raises
        ShapeMismatchError: frozen dataclass, or a member annotated with an
            unsupported type
    """
    if cls.__dataclass_params__.frozen:
        raise ShapeMismatchError(f'{cls.__name__} is frozen and cannot be filled')
    hints = typing.get_type_hints(cls)
    accessors = []
    for member in dataclasses.fields(cls):
        kind, optional = _resolve_kind(cls, member.name, hints.get(member.name))
        accessors.append(MemberAccessor(member.name, kind, optional))
    return tuple(accessors)


class _Decoder:
    """Redistributes the scratch cells of the current row."""

    def __init__(self, cursor: 'Cursor', table: 'Table') -> None:
        self.cursor = cursor
        self.table = table
        self._scratch: list | None = None

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        self.cursor.close()

    def _load(self, raw: tuple) -> None:
        if len(raw) != self.table.field_count:
            raise ShapeMismatchError(
                f'row has {len(raw)} columns, {self.table.full_name} has {self.table.field_count} fields')
        scratch = make_nullable_scans(self.table)
        for cell, value in zip(scratch, raw):
            cell.scan(value)
        self._scratch = scratch

    def _current(self) -> list:
        raise NotImplementedError

    def scan(self, *dests: Any) -> None:
        """Coerce the current row into positional destinations.

        ``None`` entries are skipped; fewer destinations than fields is fine.
        """
        if len(dests) > self.table.field_count:
            raise ShapeMismatchError(
                f'{len(dests)} destinations for {self.table.field_count} fields')
        scratch = self._current()
        for dest, cell in zip(dests, scratch):
            if dest is None:
                continue
            coerce(dest, cell)

    def struct(self, obj: Any) -> None:
        """Fill the members of dataclass instance ``obj`` in field order.

        Every member is converted before any is assigned, so a conversion
        error leaves ``obj`` untouched.
        """
        if not dataclasses.is_dataclass(obj) or isinstance(obj, type):
            raise ShapeMismatchError(f'{type(obj).__name__} is not a dataclass instance')
        accessors = struct_accessors(type(obj))
        if len(accessors) != self.table.field_count:
            raise ShapeMismatchError(
                f'{type(obj).__name__} has {len(accessors)} members, '
                f'{self.table.full_name} has {self.table.field_count} fields')
        scratch = self._current()
        cells = []
        for accessor, cell in zip(accessors, scratch):
            dest = Cell(accessor.kind, optional=accessor.optional)
            coerce(dest, cell)
            cells.append(dest)
        for accessor, dest in zip(accessors, cells):
            setattr(obj, accessor.name, dest.value)

    def slice(self) -> list:
        return [normalize(cell) for cell in self._current()]

    def map(self) -> dict[str, Any]:
        return {field.name: normalize(cell)
                for field, cell in zip(self.table.fields, self._current())}


class Row(_Decoder):
    """Single-row result.

    The row is fetched on the first decode and the cursor closed; later
    decodes reuse the scratch cells.
    A row that fails to decode fails again on every later call.
    """

    def __init__(self, cursor: 'Cursor', table: 'Table') -> None:
        super().__init__(cursor, table)
        self._fetched = False
        self._raw: tuple | None = None

    def _current(self) -> list:
        if not self._fetched:
            try:
                self._raw = self.cursor.fetchone()
            finally:
                self.cursor.close()
            self._fetched = True
        if self._scratch is None:
            if self._raw is None:
                raise NoRowsError(f'no rows in {self.table.full_name}')
            self._load(self._raw)
        return self._scratch


class Rows(_Decoder):
    """Forward-only multi-row result.

    Advance with `next()` (or iterate) before each decode:

        with client.get_many(None, 'x') as rows:
            for _ in rows:
                rows.struct(item)
    """

    def __iter__(self) -> Self:
        return self

    def __next__(self) -> Self:
        if not self.next():
            raise StopIteration
        return self

    def next(self) -> bool:
        """Advance to the next row; False once the result is exhausted.
        """
        self._scratch = None
        if self.cursor.closed:
            return False
        raw = self.cursor.fetchone()
        if raw is None:
            self.close()
            return False
        self._load(raw)
        return True

    def _current(self) -> list:
        if self._scratch is None:
            raise NoRowsError('no current row, call next() first')
        return self._scratch

    def maps(self) -> list[dict[str, Any]]:
        """Decode every remaining row with `map`.
        """
        return [self.map() for _ in self]

    def dataframe(self) -> pd.DataFrame:
        """Collect the remaining rows into a DataFrame, columns in field order.

        Column type names are recorded in ``df.attrs['column_types']``.
        """
        records = [self.slice() for _ in self]
        df = pd.DataFrame.from_records(records, columns=self.table.names)
        df.attrs['column_types'] = {f.name: f.type.name for f in self.table.fields}
        return df
