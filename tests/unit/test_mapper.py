import dataclasses
import datetime
import decimal

import pytest
from tabledb.convert import Cell, NullFloat, NullInt, NullString
from tabledb.convert import NullTime
from tabledb.exceptions import ConversionError, NoRowsError, ShapeMismatchError
from tabledb.mapper import MemberAccessor, Row, Rows, make_nullable_scans
from tabledb.mapper import struct_accessors
from tabledb.strategy import CatalogColumn
from tests.fixtures.mocks import FakeCursor
from tests.fixtures.tables import make_table

ROW = (1, b'alice', 10, decimal.Decimal('0.5'), datetime.datetime(2024, 1, 2, 3, 4, 5), None)


@dataclasses.dataclass
class User:
    id: int = 0
    name: str = ''
    score: int = 0
    ratio: float | None = None
    created: datetime.datetime | None = None
    note: str | None = None


@dataclasses.dataclass
class UserText:
    id: str = ''
    name: str = ''
    score: str = ''
    ratio: str = ''
    created: str = ''
    note: str | None = None


@dataclasses.dataclass(frozen=True)
class FrozenUser:
    id: int = 0


@dataclasses.dataclass
class UserId:
    id: int = 0


class BrokenCursor(FakeCursor):

    def fetchone(self):
        raise RuntimeError('connection lost')


def test_make_nullable_scans_by_type_code():
    table = make_table('mixed', [
        CatalogColumn('a', 'int(11)', None, 'NO', '', '', ''),
        CatalogColumn('b', 'bigint(20)', None, 'NO', '', '', ''),
        CatalogColumn('c', 'decimal(10,2)', None, 'NO', '', '', ''),
        CatalogColumn('d', 'char(2)', None, 'NO', '', '', ''),
        CatalogColumn('e', 'mediumtext', None, 'NO', '', '', ''),
        CatalogColumn('f', 'year(4)', None, 'NO', '', '', ''),
        CatalogColumn('g', 'time', None, 'NO', '', '', ''),
    ])
    kinds = [type(cell) for cell in make_nullable_scans(table)]
    assert kinds == [NullInt, NullInt, NullFloat, NullString, NullString, NullTime, NullTime]


def test_scratch_cells_are_fresh(users_table):
    assert make_nullable_scans(users_table)[0] is not make_nullable_scans(users_table)[0]


class TestRow:

    def test_slice(self, fake_cursor, users_table):
        row = Row(fake_cursor([ROW]), users_table)
        assert row.slice() == [1, 'alice', 10, 0.5, datetime.datetime(2024, 1, 2, 3, 4, 5), None]

    def test_map(self, fake_cursor, users_table):
        row = Row(fake_cursor([ROW]), users_table)
        assert row.map() == {
            'id': 1, 'name': 'alice', 'score': 10, 'ratio': 0.5,
            'created': datetime.datetime(2024, 1, 2, 3, 4, 5), 'note': None,
        }

    def test_decodes_repeat_without_refetch(self, fake_cursor, users_table):
        cursor = fake_cursor([ROW, (2, 'bob', 1, None, None, None)])
        row = Row(cursor, users_table)
        assert row.slice()[0] == 1
        assert row.map()['id'] == 1
        assert cursor.closed

    def test_scan_positional(self, fake_cursor, users_table):
        row = Row(fake_cursor([ROW]), users_table)
        user_id, name, created = Cell(str), Cell(str), Cell(str)
        row.scan(user_id, name, None, None, created)
        assert user_id.value == '1'
        assert name.value == 'alice'
        assert created.value == '2024-01-02 03:04:05'

    def test_scan_into_scanner(self, fake_cursor, users_table):
        row = Row(fake_cursor([ROW]), users_table)
        ratio = NullFloat()
        row.scan(None, None, None, ratio)
        assert ratio.value() == 0.5

    def test_scan_too_many_destinations(self, fake_cursor, users_table):
        row = Row(fake_cursor([ROW]), users_table)
        with pytest.raises(ShapeMismatchError):
            row.scan(*[Cell(str)] * 7)

    def test_scan_null_into_required_cell(self, fake_cursor, users_table):
        row = Row(fake_cursor([ROW]), users_table)
        with pytest.raises(ConversionError):
            row.scan(None, None, None, None, None, Cell(str))

    def test_struct(self, fake_cursor, users_table):
        row = Row(fake_cursor([ROW]), users_table)
        user = User()
        row.struct(user)
        assert user == User(1, 'alice', 10, 0.5, datetime.datetime(2024, 1, 2, 3, 4, 5), None)

    def test_struct_converts_to_member_kinds(self, fake_cursor, users_table):
        row = Row(fake_cursor([ROW]), users_table)
        user = UserText()
        row.struct(user)
        assert user == UserText('1', 'alice', '10', '0.5', '2024-01-02 03:04:05', None)

    def test_struct_and_map_agree(self, fake_cursor, users_table):
        row = Row(fake_cursor([ROW]), users_table)
        user = User()
        row.struct(user)
        for name, value in row.map().items():
            assert getattr(user, name) == value

    def test_struct_is_all_or_nothing(self, fake_cursor, users_table):
        row = Row(fake_cursor([(1, 'alice', 10, None, None, None)]), users_table)
        user = UserText()
        with pytest.raises(ConversionError):
            row.struct(user)
        assert user == UserText()

    def test_struct_width_mismatch(self, fake_cursor, users_table):
        row = Row(fake_cursor([ROW]), users_table)
        with pytest.raises(ShapeMismatchError):
            row.struct(UserId())

    def test_struct_requires_dataclass_instance(self, fake_cursor, users_table):
        row = Row(fake_cursor([ROW]), users_table)
        with pytest.raises(ShapeMismatchError):
            row.struct(User)
        with pytest.raises(ShapeMismatchError):
            row.struct({'id': 1})

    def test_empty_result(self, fake_cursor, users_table):
        row = Row(fake_cursor([]), users_table)
        with pytest.raises(NoRowsError):
            row.map()
        with pytest.raises(NoRowsError):
            row.slice()

    def test_row_width_mismatch(self, fake_cursor, users_table):
        row = Row(fake_cursor([(1, 'alice')]), users_table)
        with pytest.raises(ShapeMismatchError):
            row.slice()
        with pytest.raises(ShapeMismatchError):
            row.map()

    def test_fetch_error_is_not_reported_as_empty(self, users_table):
        row = Row(BrokenCursor(), users_table)
        with pytest.raises(RuntimeError, match='connection lost'):
            row.map()
        with pytest.raises(RuntimeError):
            row.map()


class TestRows:

    def test_next_then_decode(self, fake_cursor, users_table):
        rows = Rows(fake_cursor([ROW, (2, 'bob', 1, None, None, None)]), users_table)
        assert rows.next()
        assert rows.map()['name'] == 'alice'
        assert rows.next()
        assert rows.map()['name'] == 'bob'
        assert not rows.next()
        assert rows.cursor.closed
        assert not rows.next()

    def test_failed_next_clears_current_row(self, fake_cursor, users_table):
        rows = Rows(fake_cursor([ROW, ('oops', 'b', 1, None, None, None)]), users_table)
        assert rows.next()
        with pytest.raises(ConversionError):
            rows.next()
        with pytest.raises(NoRowsError):
            rows.map()

    def test_decode_before_next(self, fake_cursor, users_table):
        rows = Rows(fake_cursor([ROW]), users_table)
        with pytest.raises(NoRowsError):
            rows.slice()

    def test_iteration(self, fake_cursor, users_table):
        rows = Rows(fake_cursor([ROW, (2, 'bob', 1, None, None, None)]), users_table)
        users = []
        for _ in rows:
            user = User()
            rows.struct(user)
            users.append(user)
        assert [u.name for u in users] == ['alice', 'bob']

    def test_maps(self, fake_cursor, users_table):
        rows = Rows(fake_cursor([ROW, (2, 'bob', 1, None, None, None)]), users_table)
        assert [m['id'] for m in rows.maps()] == [1, 2]

    def test_context_manager_closes(self, fake_cursor, users_table):
        cursor = fake_cursor([ROW])
        with Rows(cursor, users_table):
            pass
        assert cursor.closed

    def test_dataframe(self, fake_cursor, users_table):
        rows = Rows(fake_cursor([ROW, (2, 'bob', 1, None, None, None)]), users_table)
        df = rows.dataframe()
        assert list(df.columns) == ['id', 'name', 'score', 'ratio', 'created', 'note']
        assert df['name'].tolist() == ['alice', 'bob']
        assert df.attrs['column_types']['created'] == 'datetime'

    def test_empty_dataframe_keeps_columns(self, fake_cursor, users_table):
        df = Rows(fake_cursor([]), users_table).dataframe()
        assert df.empty
        assert list(df.columns) == ['id', 'name', 'score', 'ratio', 'created', 'note']


class TestStructAccessors:

    def test_resolved_once_per_type(self):
        first = struct_accessors(User)
        assert struct_accessors(User) is first
        assert struct_accessors.cache_info().hits == 1

    def test_optional_members(self):
        accessors = struct_accessors(User)
        assert accessors[0] == MemberAccessor('id', int, False)
        assert accessors[3] == MemberAccessor('ratio', float, True)
        assert accessors[4] == MemberAccessor('created', datetime.datetime, True)

    def test_unsupported_member_type(self):
        @dataclasses.dataclass
        class Bad:
            tags: list

        with pytest.raises(ShapeMismatchError, match='tags'):
            struct_accessors(Bad)

    def test_frozen_dataclass(self):
        with pytest.raises(ShapeMismatchError):
            struct_accessors(FrozenUser)
