from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


class Database:
    """SQLite file holding one JSON payload row per named collection."""

    def __init__(self, db_path: Path, *, timeout: float = 5.0) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._timeout = timeout

    @property
    def path(self) -> Path:
        return self._db_path

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        connection = sqlite3.connect(self._db_path, timeout=self._timeout)
        connection.row_factory = sqlite3.Row
        try:
            yield connection
            connection.commit()
        except Exception:
            connection.rollback()
            raise
        finally:
            connection.close()

    def initialize(self) -> None:
        with self.connect() as connection:
            self._ensure_migrations_table(connection)
            applied = {
                row["name"] for row in connection.execute("SELECT name FROM schema_migrations")
            }

            for migration in sorted(MIGRATIONS_DIR.glob("*.sql")):
                if migration.name in applied:
                    continue
                connection.executescript(migration.read_text(encoding="utf-8"))
                connection.execute(
                    "INSERT INTO schema_migrations(name) VALUES (?)",
                    (migration.name,),
                )

    # ------------------------------------------------------------------
    # Collection payloads
    # ------------------------------------------------------------------
    def fetch_payload(self, name: str) -> str | None:
        with self.connect() as connection:
            row = connection.execute(
                "SELECT payload FROM collections WHERE name = ?",
                (name,),
            ).fetchone()
        return row["payload"] if row else None

    def store_payload(self, name: str, payload: str) -> None:
        with self.connect() as connection:
            connection.execute(
                """
                INSERT INTO collections (name, payload, updated_at)
                VALUES (?, ?, datetime('now'))
                ON CONFLICT(name) DO UPDATE
                   SET payload = excluded.payload,
                       updated_at = excluded.updated_at
                """,
                (name, payload),
            )

    def payload_names(self) -> list[str]:
        with self.connect() as connection:
            rows = connection.execute("SELECT name FROM collections ORDER BY name").fetchall()
        return [row["name"] for row in rows]

    @staticmethod
    def _ensure_migrations_table(connection: sqlite3.Connection) -> None:
        connection.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                name TEXT PRIMARY KEY,
                applied_at TEXT NOT NULL DEFAULT (datetime('now'))
            );
            """
        )
