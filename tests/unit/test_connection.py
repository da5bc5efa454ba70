import pytest
from tabledb.connection import create_url_from_options, dispose_all_engines
from tabledb.connection import get_engine_for_options
from tabledb.exceptions import ConfigurationError
from tabledb.options import DatabaseOptions
from tabledb.strategy import MySQLStrategy, SQLiteStrategy, get_strategy
from tabledb.strategy import get_strategy_class, is_supported_dialect
from tabledb.utils import get_dialect_name


class FakeEngine:

    def __init__(self, url, **kwargs):
        self.url = url
        self.kwargs = kwargs
        self.disposed = False

    def dispose(self):
        self.disposed = True


@pytest.fixture
def engines():
    dispose_all_engines()
    yield
    dispose_all_engines()


@pytest.fixture
def mysql_options():
    return DatabaseOptions(hostname='localhost', username='app', password='pw',
                           database='shop', timeout=5)


def test_mysql_url(mysql_options):
    url = create_url_from_options(mysql_options)
    assert url.drivername == 'mysql+pymysql'
    assert url.host == 'localhost'
    assert url.port == 3306
    assert url.database == 'shop'
    assert url.query['charset'] == 'utf8'


def test_sqlite_url():
    url = create_url_from_options(DatabaseOptions(drivername='sqlite', database=':memory:'))
    assert url.drivername == 'sqlite'
    assert url.database == ':memory:'


def test_engine_kwargs_without_pool(engines, mysql_options):
    engine = get_engine_for_options(mysql_options, engine_factory=FakeEngine)
    assert engine.kwargs['connect_args'] == {'connect_timeout': 5}
    assert 'pool_size' not in engine.kwargs


def test_engine_kwargs_with_pool(engines):
    options = DatabaseOptions(hostname='h', username='u', database='d', use_pool=True,
                              pool_max_connections=3)
    engine = get_engine_for_options(options, engine_factory=FakeEngine)
    assert engine.kwargs['pool_size'] == 3
    assert engine.kwargs['pool_pre_ping'] is True


def test_engines_are_shared_per_options(engines, mysql_options):
    first = get_engine_for_options(mysql_options, engine_factory=FakeEngine)
    second = get_engine_for_options(mysql_options, engine_factory=FakeEngine)
    assert first is second


def test_engines_differ_by_credentials(engines, mysql_options):
    other = DatabaseOptions(hostname='localhost', username='app', password='other',
                            database='shop', timeout=5)
    first = get_engine_for_options(mysql_options, engine_factory=FakeEngine)
    assert get_engine_for_options(other, engine_factory=FakeEngine) is not first


def test_dispose_all_engines(engines, mysql_options):
    engine = get_engine_for_options(mysql_options, engine_factory=FakeEngine)
    dispose_all_engines()
    assert engine.disposed
    assert get_engine_for_options(mysql_options, engine_factory=FakeEngine) is not engine


class TestStrategyRegistry:

    def test_registered_dialects(self):
        assert is_supported_dialect('mysql')
        assert is_supported_dialect('sqlite')
        assert not is_supported_dialect('postgresql')
        assert get_strategy_class('mysql') is MySQLStrategy

    def test_strategies_are_cached(self):
        assert get_strategy('sqlite') is get_strategy('sqlite')
        assert isinstance(get_strategy('sqlite'), SQLiteStrategy)

    def test_unsupported_dialect(self):
        with pytest.raises(ConfigurationError, match='oracle'):
            get_strategy('oracle')


class TestDialectName:

    def test_string_attribute(self):
        class Wrapper:
            dialect = 'MySQL'
        assert get_dialect_name(Wrapper()) == 'mysql'

    def test_driver_module(self):
        class Conn:
            pass
        Conn.__module__ = 'pymysql.connections'
        assert get_dialect_name(Conn()) == 'mysql'

    def test_unknown(self):
        with pytest.raises(AttributeError):
            get_dialect_name(object())
