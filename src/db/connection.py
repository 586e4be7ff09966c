from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

DEFAULT_DB_PATH = "data/app.db"


def db_path() -> Path:
    return Path(os.getenv("APP_DB_PATH", DEFAULT_DB_PATH))


def database_url() -> str:
    return os.getenv("DATABASE_URL", "").strip()


def is_postgres() -> bool:
    url = database_url()
    return url.startswith("postgres://") or url.startswith("postgresql://")


def _convert_qmark_to_pyformat(sql: str) -> str:
    # Repository queries use sqlite-style placeholders.
    return sql.replace("?", "%s")


class PostgresAdapter:
    def __init__(self, conn: Any):
        self._conn = conn

    def execute(self, sql: str, params: tuple[Any, ...] | list[Any] = ()) -> Any:
        cur = self._conn.cursor()
        cur.execute(_convert_qmark_to_pyformat(sql), params)
        return cur

    def executemany(self, sql: str, rows: list[tuple[Any, ...]]) -> None:
        cur = self._conn.cursor()
        cur.executemany(_convert_qmark_to_pyformat(sql), rows)

    def executescript(self, sql: str) -> None:
        self._conn.cursor().execute(sql)

    def insert(self, sql: str, params: tuple[Any, ...]) -> int:
        row = self.execute(f"{sql} RETURNING id", params).fetchone()
        return int(row["id"])

    def commit(self) -> None:
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()


class SqliteAdapter:
    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def execute(self, sql: str, params: tuple[Any, ...] | list[Any] = ()) -> sqlite3.Cursor:
        return self._conn.execute(sql, params)

    def executemany(self, sql: str, rows: list[tuple[Any, ...]]) -> None:
        self._conn.executemany(sql, rows)

    def executescript(self, sql: str) -> None:
        self._conn.executescript(sql)

    def insert(self, sql: str, params: tuple[Any, ...]) -> int:
        return int(self._conn.execute(sql, params).lastrowid)

    def commit(self) -> None:
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()


def _connect_postgres() -> PostgresAdapter:
    try:
        import psycopg
        from psycopg.rows import dict_row
    except ImportError as exc:
        raise RuntimeError(
            "DATABASE_URL is set to postgres but psycopg is not installed. "
            "Install the project with: pip install -e ."
        ) from exc
    return PostgresAdapter(psycopg.connect(database_url(), row_factory=dict_row))


def _connect_sqlite() -> SqliteAdapter:
    path = db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return SqliteAdapter(conn)


@contextmanager
def get_conn() -> Iterator[PostgresAdapter | SqliteAdapter]:
    adapter = _connect_postgres() if is_postgres() else _connect_sqlite()
    try:
        yield adapter
        adapter.commit()
    finally:
        adapter.close()
