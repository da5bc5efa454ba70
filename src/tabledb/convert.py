"""
Value conversion between scanned database values and caller destinations.

Two narrow interfaces drive the dispatch:

- ``Valuer.value()`` produces a canonical Python value (extraction)
- ``Scanner.scan(raw)`` accepts a raw value directly (assignment bypass)

The nullable scratch cells (NullInt, NullFloat, NullString, NullTime,
NullBytes) implement both: the result mapper scans each column of a row
into one of them, then redistributes with ``normalize`` or ``coerce``.

``Cell`` is the caller-facing destination: a mutable box of one kind
(int, float, bool, str, bytes or datetime). Passed as a source it behaves
like a pointer and is dereferenced one level.
"""
import datetime
import decimal
import logging
import re
from abc import ABC, abstractmethod
from typing import Any

from tabledb.exceptions import ConversionError, NilDestinationError

logger = logging.getLogger(__name__)

DATETIME_LAYOUT = '%Y-%m-%d %H:%M:%S'
DATE_LAYOUT = '%Y-%m-%d'
TIME_LAYOUT = '%H:%M:%S'

# text must match these before int(), float() or strptime see it
_DATETIME_TEXT = re.compile(r'[0-9]{4}-[0-9]{2}-[0-9]{2} [0-9]{2}:[0-9]{2}:[0-9]{2}')
_DATE_TEXT = re.compile(r'[0-9]{4}-[0-9]{2}-[0-9]{2}')
_TIME_TEXT = re.compile(r'[0-9]{2}:[0-9]{2}:[0-9]{2}')
_INT_TEXT = re.compile(r'[+-]?[0-9]+')
_FLOAT_TEXT = re.compile(r'[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf(?:inity)?|nan)', re.IGNORECASE)

# Time-of-day values (TIME columns) land on the zero date
ZERO_DATE = datetime.datetime(1, 1, 1)

CELL_KINDS = (int, float, bool, str, bytes, datetime.datetime)

_TRUE_STRINGS = frozenset({'1', 't', 'T', 'TRUE', 'true', 'True'})
_FALSE_STRINGS = frozenset({'0', 'f', 'F', 'FALSE', 'false', 'False'})


class Valuer(ABC):
    """Produces a canonical value."""

    @abstractmethod
    def value(self) -> Any:
        """Return the canonical value, None for SQL NULL."""


class Scanner(ABC):
    """Accepts a raw value directly, bypassing the conversion matrix."""

    @abstractmethod
    def scan(self, raw: Any) -> None:
        """Store ``raw`` into this cell."""


def _kind_name(value: Any) -> str:
    if isinstance(value, Cell):
        return f'Cell[{value.kind.__name__}]'
    return type(value).__name__


def parse_time(text: str) -> datetime.datetime:
    """Parse text with the full layout, falling back to the date-only one.
    """
    try:
        if _DATETIME_TEXT.fullmatch(text):
            return datetime.datetime.strptime(text, DATETIME_LAYOUT)
        if _DATE_TEXT.fullmatch(text):
            return datetime.datetime.strptime(text, DATE_LAYOUT)
    except ValueError as err:
        raise ConversionError(f'cannot parse {text!r} as datetime: {err}') from err
    raise ConversionError(f'cannot parse {text!r} as {DATETIME_LAYOUT!r} or {DATE_LAYOUT!r}')


def parse_bool(text: str) -> bool:
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ConversionError(f'cannot parse {text!r} as bool')


def to_datetime(raw: Any) -> datetime.datetime:
    """Widen the temporal values drivers return into a datetime.

    DATE columns arrive as date, TIME as timedelta, YEAR as int.
    """
    if isinstance(raw, datetime.datetime):
        return raw
    if isinstance(raw, datetime.date):
        return datetime.datetime(raw.year, raw.month, raw.day)
    if isinstance(raw, datetime.timedelta):
        return ZERO_DATE + raw
    if isinstance(raw, datetime.time):
        return datetime.datetime.combine(ZERO_DATE.date(), raw)
    if isinstance(raw, int) and not isinstance(raw, bool):
        return datetime.datetime(raw, 1, 1)
    if isinstance(raw, bytes | bytearray):
        raw = bytes(raw).decode('utf-8')
    if isinstance(raw, str):
        try:
            return parse_time(raw)
        except ConversionError:
            # TIME columns read back as text
            if not _TIME_TEXT.fullmatch(raw):
                raise
            try:
                return datetime.datetime.strptime(raw, TIME_LAYOUT).replace(year=ZERO_DATE.year)
            except ValueError:
                raise ConversionError(
                    f'{raw!r} cannot be scanned as datetime') from None
    raise ConversionError(f'{_kind_name(raw)} ({raw!r}) cannot be scanned as datetime')


class _Nullable(Valuer, Scanner):
    """Scratch cell carrying a payload and a presence flag."""

    __slots__ = ('data', 'valid')

    def __init__(self) -> None:
        self.data = None
        self.valid = False

    def scan(self, raw: Any) -> None:
        if raw is None:
            self.data, self.valid = None, False
            return
        self.data, self.valid = self._convert(raw), True

    def _convert(self, raw: Any) -> Any:
        raise NotImplementedError

    def value(self) -> Any:
        if not self.valid:
            return None
        return self.data

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self.data!r}, valid={self.valid})'


class NullInt(_Nullable):

    def _convert(self, raw: Any) -> int:
        if isinstance(raw, bytes | bytearray):
            raw = bytes(raw).decode('utf-8')
        if isinstance(raw, str) and not _INT_TEXT.fullmatch(raw):
            raise ConversionError(f'{raw!r} cannot be scanned as int')
        try:
            return int(raw)
        except (TypeError, ValueError) as err:
            raise ConversionError(f'{_kind_name(raw)} ({raw!r}) cannot be scanned as int') from err


class NullFloat(_Nullable):

    def _convert(self, raw: Any) -> float:
        if isinstance(raw, bytes | bytearray):
            raw = bytes(raw).decode('utf-8')
        if isinstance(raw, str) and not _FLOAT_TEXT.fullmatch(raw):
            raise ConversionError(f'{raw!r} cannot be scanned as float')
        try:
            return float(raw)
        except (TypeError, ValueError) as err:
            raise ConversionError(f'{_kind_name(raw)} ({raw!r}) cannot be scanned as float') from err


class NullString(_Nullable):

    def _convert(self, raw: Any) -> str:
        if isinstance(raw, bytes | bytearray):
            return bytes(raw).decode('utf-8')
        if isinstance(raw, datetime.datetime):
            return raw.strftime(DATETIME_LAYOUT)
        if isinstance(raw, bool):
            return 'true' if raw else 'false'
        return str(raw)


class NullTime(_Nullable):

    def _convert(self, raw: Any) -> datetime.datetime:
        return to_datetime(raw)


class NullBytes(_Nullable):

    def _convert(self, raw: Any) -> bytes:
        if isinstance(raw, bytes | bytearray | memoryview):
            return bytes(raw)
        if isinstance(raw, str):
            return raw.encode('utf-8')
        raise ConversionError(f'{_kind_name(raw)} ({raw!r}) cannot be scanned as bytes')


class Cell:
    """Mutable destination of a single kind.

    ``optional`` cells accept SQL NULL and hold None; other cells reject it.
    """

    __slots__ = ('kind', 'value', 'optional')

    def __init__(self, kind: type, value: Any = None, optional: bool = False) -> None:
        if kind not in CELL_KINDS:
            raise TypeError(f'unsupported cell kind: {kind!r}')
        self.kind = kind
        self.value = value
        self.optional = optional

    def __repr__(self) -> str:
        return f'Cell({self.kind.__name__}, {self.value!r})'

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Cell):
            return self.kind is other.kind and self.value == other.value
        return NotImplemented

    __hash__ = None


def normalize(scanned: Any) -> Any:
    """Reduce a scanned cell to its plain value.
    """
    if isinstance(scanned, Valuer):
        return scanned.value()
    if isinstance(scanned, Cell):
        return scanned.value
    return scanned


def _type_error(src: Any, dest: Cell) -> ConversionError:
    return ConversionError(
        f'convert: {_kind_name(src)}({src!r}) => Cell[{dest.kind.__name__}]')


def _from_int(dest: Cell, src: int) -> None:
    if dest.kind is int:
        dest.value = src
    elif dest.kind is str:
        dest.value = str(src)
    elif dest.kind is bool:
        if src == 0:
            dest.value = False
        elif src == 1:
            dest.value = True
        else:
            raise ConversionError(f'the int ({src}) cannot be converted to bool')
    elif dest.kind is float:
        dest.value = float(src)
    else:
        raise _type_error(src, dest)


def _from_float(dest: Cell, src: float) -> None:
    if dest.kind is float:
        dest.value = src
    elif dest.kind is str:
        dest.value = str(src)
    elif dest.kind is bool:
        if src == 0.0:
            dest.value = False
        elif src == 1.0:
            dest.value = True
        else:
            raise ConversionError(f'the float ({src}) cannot be converted to bool')
    else:
        raise _type_error(src, dest)


def _from_bool(dest: Cell, src: bool) -> None:
    if dest.kind is bool:
        dest.value = src
    elif dest.kind is str:
        dest.value = 'true' if src else 'false'
    elif dest.kind is float:
        dest.value = 1.0 if src else 0.0
    elif dest.kind is int:
        dest.value = 1 if src else 0
    else:
        raise _type_error(src, dest)


def _from_str(dest: Cell, src: str) -> None:
    if dest.kind is str:
        dest.value = src
    elif dest.kind is int:
        if not _INT_TEXT.fullmatch(src):
            raise ConversionError(f'cannot parse {src!r} as int')
        dest.value = int(src, 10)
    elif dest.kind is float:
        if not _FLOAT_TEXT.fullmatch(src):
            raise ConversionError(f'cannot parse {src!r} as float')
        dest.value = float(src)
    elif dest.kind is bool:
        dest.value = parse_bool(src)
    elif dest.kind is datetime.datetime:
        dest.value = parse_time(src)
    else:
        raise _type_error(src, dest)


def _from_bytes(dest: Cell, src: bytes) -> None:
    if dest.kind is bytes:
        dest.value = src
        return
    try:
        text = src.decode('utf-8')
    except UnicodeDecodeError as err:
        raise ConversionError(f'bytes ({src!r}) are not valid UTF-8 text') from err
    _from_str(dest, text)


def _from_datetime(dest: Cell, src: datetime.datetime) -> None:
    if dest.kind is str:
        dest.value = src.strftime(DATETIME_LAYOUT)
    elif dest.kind is datetime.datetime:
        dest.value = src
    else:
        raise _type_error(src, dest)


def coerce(dest: Any, src: Any) -> None:
    """Convert ``src`` into the destination cell ``dest``.

    Sources are int, float, bool, str, bytes, datetime, a Valuer, or a Cell
    (dereferenced one level). Destinations are Cells or Scanners; a Scanner
    receives the raw source untouched.

    Raises
        NilDestinationError: dest is None
        ConversionError: no rule matches, or text fails to parse
    """
    if isinstance(src, Valuer):
        src = src.value()
    if isinstance(dest, Scanner):
        dest.scan(src)
        return
    if dest is None:
        raise NilDestinationError('destination cell is None')
    if not isinstance(dest, Cell):
        raise ConversionError(f'convert: {_kind_name(src)}({src!r}) => {_kind_name(dest)}')
    if isinstance(src, Cell):
        coerce(dest, src.value)
        return

    if src is None:
        if dest.optional:
            dest.value = None
            return
        raise _type_error(src, dest)
    # bool before int: bool is an int subclass
    if isinstance(src, bool):
        _from_bool(dest, src)
    elif isinstance(src, int):
        _from_int(dest, src)
    elif isinstance(src, float):
        _from_float(dest, src)
    elif isinstance(src, decimal.Decimal):
        _from_float(dest, float(src))
    elif isinstance(src, str):
        _from_str(dest, src)
    elif isinstance(src, bytes | bytearray):
        _from_bytes(dest, bytes(src))
    elif isinstance(src, datetime.datetime):
        _from_datetime(dest, src)
    else:
        raise _type_error(src, dest)
