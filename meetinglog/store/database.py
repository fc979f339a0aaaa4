from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection, Engine, Row
from sqlalchemy.exc import IntegrityError
from sqlalchemy.schema import Table

from meetinglog.store.schema import metadata


class Database:
    """Owns the SQLAlchemy engine for one store.

    Constructed explicitly and handed to every service; ``open()`` at boot,
    ``close()`` at shutdown.
    """

    def __init__(self, url: str) -> None:
        self._url = url
        self._engine: Optional[Engine] = None
        self._logger = logging.getLogger("meetinglog.store")

    @property
    def url(self) -> str:
        return self._url

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database is not open")
        return self._engine

    @property
    def is_sqlite(self) -> bool:
        return self._url.startswith("sqlite")

    def open(self) -> None:
        if self._engine is not None:
            return
        if self.is_sqlite:
            self._ensure_sqlite_dir()
            engine = create_engine(
                self._url,
                connect_args={"check_same_thread": False, "timeout": 30},
            )
            self._install_sqlite_hooks(engine)
        else:
            engine = create_engine(self._url, pool_pre_ping=True)
        metadata.create_all(engine)
        self._engine = engine
        self._logger.info("Database opened: %s", engine.url.render_as_string(hide_password=True))

    def close(self) -> None:
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        self._logger.info("Database closed")

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Yield a connection inside one transaction; commit on exit, roll back on error."""
        with self.engine.begin() as conn:
            yield conn

    def _ensure_sqlite_dir(self) -> None:
        path = self._url.split("///", 1)[-1]
        if not path or path == ":memory:":
            return
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)

    @staticmethod
    def _install_sqlite_hooks(engine: Engine) -> None:
        # pysqlite's own transaction handling is disabled so that every
        # transaction starts with BEGIN IMMEDIATE and takes the write lock
        # up front. Read-then-write sequences are then serialized.
        @event.listens_for(engine, "connect")
        def _on_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _on_begin(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")


def insert_ignore(
    conn: Connection, table: Table, values: dict[str, Any], conflict_columns: list[str]
) -> int:
    """INSERT a row unless it collides on ``conflict_columns``. Returns rows inserted (0 or 1)."""
    dialect = conn.dialect.name
    if dialect == "sqlite":
        stmt = sqlite.insert(table).values(**values).on_conflict_do_nothing(
            index_elements=conflict_columns
        )
    elif dialect == "postgresql":
        stmt = postgresql.insert(table).values(**values).on_conflict_do_nothing(
            index_elements=conflict_columns
        )
    else:
        savepoint = conn.begin_nested()
        try:
            result = conn.execute(table.insert().values(**values))
        except IntegrityError:
            savepoint.rollback()
            return 0
        savepoint.commit()
        return result.rowcount
    return conn.execute(stmt).rowcount


def row_to_dict(row: Optional[Row]) -> Optional[dict]:
    if row is None:
        return None
    return dict(row._mapping)
