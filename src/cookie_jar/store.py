"""Repository configuration stores."""

from __future__ import annotations

import sqlite3
import time
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from cookie_jar.config import RepositoryConfig
from cookie_jar.exceptions import StoreError

DEFAULT_DB_PATH = Path.home() / ".cache" / "cookie-jar" / "config.db"


class InMemoryConfigStore:
    """Process-local store; configurations live as long as the process."""

    def __init__(self) -> None:
        self._configs: dict[str, RepositoryConfig] = {}

    def get(self, repository_id: str) -> RepositoryConfig | None:
        return self._configs.get(repository_id)

    def set(self, config: RepositoryConfig) -> None:
        self._configs[config.repository_id] = config

    def __len__(self) -> int:
        return len(self._configs)


class SQLiteConfigStore:
    """SQLite-backed configuration store with WAL mode.

    Each repository's configuration is stored as a JSON document keyed by
    ``owner/name``.
    """

    def __init__(self, db_path: Path | str = DEFAULT_DB_PATH):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path))
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._create_table()

    def _create_table(self) -> None:
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS repository_config (
                repository_id TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at REAL NOT NULL
            )
        """)
        self._conn.commit()

    def get(self, repository_id: str) -> RepositoryConfig | None:
        """Return the stored configuration, or None if never stored.

        Raises:
            StoreError: If the stored document no longer validates.
        """
        row = self._conn.execute(
            "SELECT value FROM repository_config WHERE repository_id = ?",
            (repository_id,),
        ).fetchone()
        if row is None:
            return None
        try:
            return RepositoryConfig.model_validate_json(row[0])
        except ValidationError as e:
            raise StoreError(f"Corrupt configuration for {repository_id}: {e}") from e

    def set(self, config: RepositoryConfig) -> None:
        self._conn.execute(
            """INSERT OR REPLACE INTO repository_config (repository_id, value, updated_at)
               VALUES (?, ?, ?)""",
            (config.repository_id, config.model_dump_json(), time.time()),
        )
        self._conn.commit()

    def delete(self, repository_id: str) -> None:
        self._conn.execute(
            "DELETE FROM repository_config WHERE repository_id = ?", (repository_id,)
        )
        self._conn.commit()

    def stats(self) -> dict[str, Any]:
        """Return store statistics."""
        total = self._conn.execute("SELECT COUNT(*) FROM repository_config").fetchone()[0]
        db_size = self.db_path.stat().st_size if self.db_path.exists() else 0
        return {"total_repositories": total, "db_size_bytes": db_size}

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
