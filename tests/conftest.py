import logging
import pathlib
import site

import pytest
from tabledb.mapper import struct_accessors

HERE = pathlib.Path(pathlib.Path(__file__).resolve()).parent
site.addsitedir(HERE)


@pytest.fixture(autouse=True)
def clear_accessor_cache():
    """Resolve dataclass member accessors afresh in every test."""
    struct_accessors.cache_clear()
    yield
    struct_accessors.cache_clear()


@pytest.fixture(autouse=True)
def debug_logging(caplog):
    caplog.set_level(logging.DEBUG, logger='tabledb')
    yield


pytest_plugins = [
    'tests.fixtures.mocks',
    'tests.fixtures.tables',
    'tests.fixtures.sqlite',
]
