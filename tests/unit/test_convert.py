import datetime
import decimal

import pytest
from tabledb.convert import ZERO_DATE, Cell, NullBytes, NullFloat, NullInt
from tabledb.convert import NullString, NullTime, Scanner, coerce, normalize
from tabledb.convert import parse_bool, parse_time
from tabledb.exceptions import ConversionError, NilDestinationError


def converted(kind, src, optional=False):
    dest = Cell(kind, optional=optional)
    coerce(dest, src)
    return dest.value


class TestFromInt:

    def test_int(self):
        assert converted(int, 1) == 1

    def test_str(self):
        assert converted(str, 42) == '42'

    def test_float(self):
        assert converted(float, 3) == 3.0

    def test_bool(self):
        assert converted(bool, 1) is True
        assert converted(bool, 0) is False

    def test_bool_out_of_range(self):
        with pytest.raises(ConversionError):
            converted(bool, 2)

    def test_datetime_unsupported(self):
        with pytest.raises(ConversionError, match='int'):
            converted(datetime.datetime, 5)


class TestFromFloat:

    def test_float_and_str(self):
        assert converted(float, 2.5) == 2.5
        assert converted(str, 2.5) == '2.5'

    def test_bool(self):
        assert converted(bool, 1.0) is True
        assert converted(bool, 0.0) is False
        with pytest.raises(ConversionError):
            converted(bool, 0.5)

    def test_int_unsupported(self):
        with pytest.raises(ConversionError):
            converted(int, 2.5)

    def test_decimal_is_read_as_float(self):
        assert converted(float, decimal.Decimal('1.25')) == 1.25


class TestFromBool:

    def test_bool_is_checked_before_int(self):
        assert converted(bool, True) is True
        assert converted(str, True) == 'true'
        assert converted(str, False) == 'false'
        assert converted(int, True) == 1
        assert converted(float, False) == 0.0


class TestFromStr:

    def test_str(self):
        assert converted(str, 'abc') == 'abc'

    def test_int(self):
        assert converted(int, '17') == 17
        with pytest.raises(ConversionError):
            converted(int, '17x')

    def test_float(self):
        assert converted(float, '1.5') == 1.5
        with pytest.raises(ConversionError):
            converted(float, 'one')

    @pytest.mark.parametrize('text', [' 5 ', '5 ', '1_000', '', '+', '0x10', '\u0663'])
    def test_int_rejects_loose_text(self, text):
        with pytest.raises(ConversionError):
            converted(int, text)

    def test_int_signed(self):
        assert converted(int, '-12') == -12
        assert converted(int, '+7') == 7

    @pytest.mark.parametrize('text', [' 1.5', '1_0.5', ' 1_0.5 ', '1.5e', '.', ''])
    def test_float_rejects_loose_text(self, text):
        with pytest.raises(ConversionError):
            converted(float, text)

    def test_float_forms(self):
        assert converted(float, '-2.5e3') == -2500.0
        assert converted(float, '.5') == 0.5
        assert converted(float, '3.') == 3.0
        assert converted(float, 'Inf') == float('inf')
        assert converted(float, 'NaN') != converted(float, 'NaN')

    @pytest.mark.parametrize('text', ['1', 't', 'T', 'TRUE', 'true', 'True'])
    def test_bool_true(self, text):
        assert converted(bool, text) is True

    @pytest.mark.parametrize('text', ['0', 'f', 'F', 'FALSE', 'false', 'False'])
    def test_bool_false(self, text):
        assert converted(bool, text) is False

    def test_bool_rejects_other_text(self):
        with pytest.raises(ConversionError):
            converted(bool, 'yes')

    def test_datetime_full_layout(self):
        assert converted(datetime.datetime, '2024-01-02 03:04:05') == \
            datetime.datetime(2024, 1, 2, 3, 4, 5)

    def test_datetime_date_fallback(self):
        assert converted(datetime.datetime, '2024-01-02') == datetime.datetime(2024, 1, 2)

    def test_datetime_unparsable(self):
        with pytest.raises(ConversionError):
            converted(datetime.datetime, 'not-a-date')

    @pytest.mark.parametrize('text', ['2024-1-2 3:4:5', '2024-1-2', '2024-01-02 3:04:05',
                                      ' 2024-01-02', '2024-01-02T03:04:05'])
    def test_datetime_requires_exact_layout(self, text):
        with pytest.raises(ConversionError):
            converted(datetime.datetime, text)

    def test_datetime_out_of_range(self):
        with pytest.raises(ConversionError):
            converted(datetime.datetime, '2024-13-02')

    def test_bytes_unsupported(self):
        with pytest.raises(ConversionError):
            converted(bytes, 'abc')


class TestFromBytes:

    def test_bytes_copy(self):
        assert converted(bytes, b'\x00\x01') == b'\x00\x01'

    def test_decoded_as_text(self):
        assert converted(int, b'12') == 12
        assert converted(str, b'abc') == 'abc'
        assert converted(datetime.datetime, b'2024-01-02') == datetime.datetime(2024, 1, 2)

    def test_invalid_utf8(self):
        with pytest.raises(ConversionError):
            converted(str, b'\xff\xfe')


class TestFromDatetime:

    def test_str(self):
        when = datetime.datetime(2024, 1, 2, 3, 4, 5)
        assert converted(str, when) == '2024-01-02 03:04:05'

    def test_copy(self):
        when = datetime.datetime(2024, 1, 2, 3, 4, 5)
        assert converted(datetime.datetime, when) == when

    def test_int_unsupported(self):
        with pytest.raises(ConversionError):
            converted(int, datetime.datetime(2024, 1, 2))


class TestDispatch:

    def test_nil_destination(self):
        with pytest.raises(NilDestinationError):
            coerce(None, 1)

    def test_nil_destination_is_a_conversion_error(self):
        with pytest.raises(ConversionError):
            coerce(None, 'x')

    def test_cell_source_is_dereferenced(self):
        assert converted(str, Cell(int, 7)) == '7'

    def test_valuer_source_is_extracted(self):
        cell = NullInt()
        cell.scan(3)
        assert converted(float, cell) == 3.0

    def test_scanner_destination_receives_raw_value(self):
        class Recorder(Scanner):
            def scan(self, raw):
                self.raw = raw

        dest = Recorder()
        coerce(dest, object)
        assert dest.raw is object

    def test_none_into_optional_cell(self):
        dest = Cell(int, 5, optional=True)
        coerce(dest, None)
        assert dest.value is None

    def test_none_into_required_cell(self):
        with pytest.raises(ConversionError):
            coerce(Cell(int), None)

    def test_invalid_scratch_cell_into_required_cell(self):
        with pytest.raises(ConversionError):
            coerce(Cell(str), NullString())

    def test_unknown_source_kind(self):
        with pytest.raises(ConversionError, match='list'):
            coerce(Cell(str), [1, 2])

    def test_unsupported_cell_kind(self):
        with pytest.raises(TypeError):
            Cell(list)


class TestNullableCells:

    def test_invalid_until_scanned(self):
        for cls in (NullInt, NullFloat, NullString, NullTime, NullBytes):
            cell = cls()
            assert not cell.valid
            assert cell.value() is None

    def test_null_resets(self):
        cell = NullInt()
        cell.scan(1)
        cell.scan(None)
        assert not cell.valid
        assert cell.value() is None

    def test_int_from_text(self):
        cell = NullInt()
        cell.scan(b'42')
        assert cell.value() == 42

    def test_int_rejects_garbage(self):
        with pytest.raises(ConversionError):
            NullInt().scan('x')

    def test_numeric_cells_reject_loose_text(self):
        with pytest.raises(ConversionError):
            NullInt().scan(b' 42')
        with pytest.raises(ConversionError):
            NullFloat().scan('1_0.5')

    def test_float_from_decimal(self):
        cell = NullFloat()
        cell.scan(decimal.Decimal('3.5'))
        assert cell.value() == 3.5

    def test_string_from_bytes(self):
        cell = NullString()
        cell.scan(b'hello')
        assert cell.value() == 'hello'

    def test_bytes_from_str(self):
        cell = NullBytes()
        cell.scan('hi')
        assert cell.value() == b'hi'

    def test_time_widening(self):
        cell = NullTime()
        cell.scan(datetime.date(2024, 5, 6))
        assert cell.value() == datetime.datetime(2024, 5, 6)
        cell.scan(datetime.timedelta(hours=1, minutes=2, seconds=3))
        assert cell.value() == ZERO_DATE.replace(hour=1, minute=2, second=3)
        cell.scan(2024)
        assert cell.value() == datetime.datetime(2024, 1, 1)

    def test_time_from_text(self):
        cell = NullTime()
        cell.scan('2024-01-02 03:04:05')
        assert cell.value() == datetime.datetime(2024, 1, 2, 3, 4, 5)
        cell.scan(b'2024-01-02')
        assert cell.value() == datetime.datetime(2024, 1, 2)
        cell.scan('13:14:15')
        assert cell.value() == ZERO_DATE.replace(hour=13, minute=14, second=15)

    def test_time_rejects_garbage(self):
        with pytest.raises(ConversionError):
            NullTime().scan('soon')
        with pytest.raises(ConversionError):
            NullTime().scan('1:02:03')


def test_normalize():
    cell = NullString()
    cell.scan('x')
    assert normalize(cell) == 'x'
    assert normalize(NullInt()) is None
    assert normalize(Cell(int, 3)) == 3
    assert normalize(None) is None
    assert normalize(5) == 5


def test_parse_helpers():
    assert parse_time('2024-01-02') == datetime.datetime(2024, 1, 2)
    assert parse_bool('T') is True
    with pytest.raises(ConversionError):
        parse_time('13:14:15')
