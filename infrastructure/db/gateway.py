from __future__ import annotations

import logging
import sqlite3
from abc import ABC, abstractmethod

import psycopg2

from config.logging_config import attach_error_log
from config.settings import StorageConfig
from domain.errors import StorageConnectionError


class StorageGateway(ABC):
    """
    Opens connections to the player store and records storage errors.

    The configuration is resolved once and injected; gateways never read
    the environment themselves. Subclasses implement `open_connection`.
    """

    def __init__(self, config: StorageConfig) -> None:
        self._config = config
        self._error_logger = logging.getLogger(f"{__name__}.errors")
        if config.logfile:
            attach_error_log(self._error_logger, config.logfile)

    def get_address(self) -> str:
        return self._config.address

    @abstractmethod
    def open_connection(self):
        ...

    def log_error(self, message: str) -> None:
        self._error_logger.error(message)


class SqliteStorageGateway(StorageGateway):
    """
    Gateway for a local SQLite file named by `config.database`.

    `config.timeout` bounds how long a connection waits for another
    writer to release the database lock.
    """

    def open_connection(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(self._config.database, timeout=self._config.timeout)
        except sqlite3.Error as e:
            self.log_error(f"Connection failed: {e}")
            raise StorageConnectionError(f"Connection failed: {e}") from e
        conn.row_factory = sqlite3.Row
        return conn


class PostgresStorageGateway(StorageGateway):
    """Gateway for a Postgres server, using psycopg2."""

    def _connect_params(self) -> dict:
        return {
            "host": self._config.server,
            "port": self._config.port,
            "user": self._config.username,
            "password": self._config.password,
            "dbname": self._config.database,
        }

    def open_connection(self):
        try:
            return psycopg2.connect(**self._connect_params())
        except psycopg2.OperationalError as e:
            self.log_error(f"Connection failed: {e}")
            raise StorageConnectionError(f"Connection failed: {e}") from e


def create_gateway(config: StorageConfig) -> StorageGateway:
    if config.backend == "postgres":
        return PostgresStorageGateway(config)
    if config.backend == "sqlite":
        return SqliteStorageGateway(config)
    raise ValueError(f"Unsupported storage backend: {config.backend!r}")
