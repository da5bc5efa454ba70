"""
Connection options.

`DatabaseOptions` is the validated set of parameters `connect()` works from.
`TableDbSettings` reads the same parameters from ``TABLEDB_*`` environment
variables (or a ``.env`` file).
"""
import logging
from dataclasses import dataclass
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from tabledb.strategy import get_available_dialects, get_strategy_class
from tabledb.strategy import is_supported_dialect

__all__ = [
    'DatabaseOptions',
    'TableDbSettings',
    'DEFAULT_PORTS',
]

logger = logging.getLogger(__name__)

DEFAULT_PORTS = {'mysql': 3306}


class TableDbSettings(BaseSettings):
    """Connection parameters from the environment."""

    drivername: str = Field('mysql')
    hostname: str | None = Field(None)
    username: str | None = Field(None)
    password: str | None = Field(None)
    database: str | None = Field(None)
    port: int = Field(0)
    timeout: int = Field(0)
    charset: str = Field('utf8')
    use_pool: bool = Field(False)

    model_config = SettingsConfigDict(
        env_prefix='TABLEDB_',
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
    )


@dataclass
class DatabaseOptions:
    """Options

    supported driver names: `mysql`, `sqlite`

    For `sqlite`, `database` is a file path or ``:memory:``.

    Connection pooling options:
    - use_pool: Whether to use connection pooling (default: False)
    - pool_max_connections: Maximum connections in pool (default: 5)
    - pool_max_idle_time: Maximum seconds a connection can be idle (default: 300)
    - pool_wait_timeout: Maximum seconds to wait for a connection (default: 30)
    """
    drivername: str = 'mysql'
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 0
    timeout: int = 0
    charset: str = 'utf8'
    check_connection: bool = True
    # Connection pooling parameters
    use_pool: bool = False
    pool_max_connections: int = 5
    pool_max_idle_time: int = 300
    pool_wait_timeout: int = 30

    def __post_init__(self):
        if not is_supported_dialect(self.drivername):
            available = get_available_dialects()
            raise ValueError(f'drivername must be one of: {available}')
        self.port = self.port or DEFAULT_PORTS.get(self.drivername, 0)
        strategy_cls = get_strategy_class(self.drivername)
        strategy_cls.validate_options(self)

    def __repr__(self) -> str:
        masked = '***' if self.password else None
        return (f'DatabaseOptions(drivername={self.drivername!r}, hostname={self.hostname!r}, '
                f'username={self.username!r}, password={masked!r}, database={self.database!r}, '
                f'port={self.port!r}, charset={self.charset!r}, use_pool={self.use_pool!r})')

    @classmethod
    def from_env(cls, **overrides: Any) -> 'DatabaseOptions':
        """Build options from ``TABLEDB_*`` environment variables.

        Keyword arguments take precedence over the environment.
        """
        settings = TableDbSettings()
        params = {**settings.model_dump(), **overrides}
        logger.debug(f'Options from environment for {params["drivername"]}')
        return cls(**params)
