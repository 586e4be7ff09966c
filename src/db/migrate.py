from __future__ import annotations

import logging
from pathlib import Path

from src.db.connection import get_conn, is_postgres

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"

SCHEMA_MIGRATIONS_DDL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
  name TEXT PRIMARY KEY,
  applied_at TEXT DEFAULT CURRENT_TIMESTAMP
)
"""


def migration_files() -> list[Path]:
    """SQL files for the active backend, in file-name order."""
    directory = MIGRATIONS_DIR / "postgres" if is_postgres() else MIGRATIONS_DIR
    return sorted(directory.glob("*.sql"))


def _applied_names(conn) -> set[str]:
    rows = conn.execute("SELECT name FROM schema_migrations").fetchall()
    return {row["name"] for row in rows}


def run_migrations() -> list[str]:
    """Apply pending migrations and return the names applied by this call."""
    applied: list[str] = []
    with get_conn() as conn:
        conn.execute(SCHEMA_MIGRATIONS_DDL)
        done = _applied_names(conn)
        for path in migration_files():
            if path.name in done:
                continue
            conn.executescript(path.read_text(encoding="utf-8"))
            conn.execute("INSERT INTO schema_migrations (name) VALUES (?)", (path.name,))
            logger.info("Applied migration %s", path.name)
            applied.append(path.name)
    return applied


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    names = run_migrations()
    print(f"Migrations applied: {', '.join(names) if names else 'none pending'}.")
