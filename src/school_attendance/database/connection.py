from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Iterator, Optional

import mysql.connector

# Connection of the transaction currently open in this context, if any.
_active_connection: ContextVar[Optional[Any]] = ContextVar("active_connection", default=None)


@dataclass
class DBConfig:
    host: str
    port: int
    user: str
    password: str
    database: str


def active_connection() -> Optional[Any]:
    return _active_connection.get()


class DatabaseConnection:
    """DB connection factory, built once by the container and injected.

    Note: We create short-lived connections per operation unless a
    transaction is open, in which case repositories join it.
    """

    def __init__(self, config: DBConfig):
        self._config = config

    def connect(self):
        return mysql.connector.connect(
            host=self._config.host,
            port=int(self._config.port),
            user=self._config.user,
            password=self._config.password,
            database=self._config.database,
            autocommit=False,
        )

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        """Open a unit of work; nested calls reuse the outer connection.

        Commits when the outermost block exits cleanly, rolls back on any
        exception.
        """

        current = _active_connection.get()
        if current is not None:
            yield current
            return

        conn = self.connect()
        token = _active_connection.set(conn)
        try:
            conn.start_transaction()
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            _active_connection.reset(token)
            conn.close()
