"""Query session boundary used by the diagnostics runner."""
from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Protocol

from core.config_models import ConfigurationError

LOGGER = logging.getLogger(__name__)

_SQLITE_PREFIX = "sqlite:///"


class QueryExecutionError(RuntimeError):
    """A statement failed; the message carries the driver's error text."""

    def __init__(self, statement: str, detail: str) -> None:
        super().__init__(detail)
        self.statement = statement
        self.detail = detail


class QuerySession(Protocol):
    """Anything able to run one SQL statement and return its rows."""

    def execute(self, statement: str) -> List[Dict[str, Any]]:
        """Run ``statement`` and return rows keyed by column name."""


class DbApiQuerySession:
    """Adapt a DB-API 2.0 connection to :class:`QuerySession`.

    Statements run on one cursor at a time; the lock keeps calls issued from
    worker threads from sharing the connection concurrently.
    """

    def __init__(self, connection: Any) -> None:
        self._connection = connection
        self._lock = Lock()

    def execute(self, statement: str) -> List[Dict[str, Any]]:
        with self._lock:
            cursor = self._connection.cursor()
            try:
                cursor.execute(statement)
                if cursor.description is None:
                    return []
                columns = [column[0] for column in cursor.description]
                return [dict(zip(columns, row)) for row in cursor.fetchall()]
            except Exception as exc:
                raise QueryExecutionError(statement, f"{type(exc).__name__}: {exc}") from exc
            finally:
                cursor.close()

    def close(self) -> None:
        self._connection.close()


def connect_sqlite(db_path: str) -> sqlite3.Connection:
    """Open a SQLite database in read-only mode."""

    path = Path(db_path)
    if not path.exists():
        raise ConfigurationError(f"SQLite database {db_path} does not exist")
    return sqlite3.connect(f"{path.resolve().as_uri()}?mode=ro", uri=True, check_same_thread=False)


def open_session(database_url: str) -> DbApiQuerySession:
    """Build a session from ``sqlite:///path`` or a bare SQLite file path."""

    if database_url.startswith(_SQLITE_PREFIX):
        db_path = database_url[len(_SQLITE_PREFIX):]
    elif "://" in database_url:
        raise ConfigurationError(f"Unsupported database url: {database_url}")
    else:
        db_path = database_url
    LOGGER.info("Opening SQLite session on %s", db_path)
    return DbApiQuerySession(connect_sqlite(db_path))


__all__ = [
    "DbApiQuerySession",
    "QueryExecutionError",
    "QuerySession",
    "connect_sqlite",
    "open_session",
]
