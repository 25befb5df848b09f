"""On-device project cache.

:class:`SqliteLocalCache` keeps one row per key in ``projects`` (metadata
as JSON) and the bundle in ``project_files``. Saving a key replaces both
inside a single transaction, so a reader never sees a half-written bundle.
"""

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Generator, Optional, Tuple, Union

from ..exceptions import LocalCacheError
from ..models.common.file import File, Files
from ..models.metadata import Metadata
from ..utils.async_io import run_blocking
from .base import Bundle, LocalCache

logger = logging.getLogger(__name__)

DEFAULT_CACHE_PATH = Path.home() / ".stagecraft" / "cache.db"


class SqliteLocalCache(LocalCache):
    """SQLite-based storage for cached project bundles."""

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Optional[Union[str, Path]] = None) -> None:
        """Initialize the cache.

        Args:
            db_path: Path to SQLite database. If None, uses default location.
        """
        self.db_path = Path(db_path) if db_path is not None else DEFAULT_CACHE_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._local = threading.local()
        self._schema_ready = False
        self._schema_lock = threading.Lock()

    def _get_conn(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if getattr(self._local, "conn", None) is None:
            self._local.conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
                isolation_level=None,  # Autocommit
            )
            self._local.conn.row_factory = sqlite3.Row
            self._local.conn.execute("PRAGMA foreign_keys = ON")
        return self._local.conn

    @contextmanager
    def _transaction(self) -> Generator[sqlite3.Cursor, None, None]:
        """Context manager for transactions."""
        self._ensure_schema()
        cursor = self._get_conn().cursor()
        cursor.execute("BEGIN")
        try:
            yield cursor
            cursor.execute("COMMIT")
        except Exception:
            cursor.execute("ROLLBACK")
            raise

    def _ensure_schema(self) -> None:
        with self._schema_lock:
            if self._schema_ready:
                return
            cursor = self._get_conn().cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS projects (
                    key TEXT PRIMARY KEY,
                    metadata_json TEXT NOT NULL,
                    saved_at TEXT NOT NULL
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS project_files (
                    key TEXT NOT NULL,
                    path TEXT NOT NULL,
                    name TEXT NOT NULL,
                    type TEXT NOT NULL,
                    content BLOB NOT NULL,
                    PRIMARY KEY (key, path),
                    FOREIGN KEY (key) REFERENCES projects(key) ON DELETE CASCADE
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS schema_info (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)
            cursor.execute(
                "INSERT OR REPLACE INTO schema_info (key, value) VALUES (?, ?)",
                ("version", str(self.SCHEMA_VERSION)),
            )
            self._schema_ready = True

    # Blocking operations, run through run_blocking

    def _load(self, key: str) -> Optional[Bundle]:
        with self._transaction() as cursor:
            cursor.execute("SELECT metadata_json FROM projects WHERE key = ?", (key,))
            row = cursor.fetchone()
            if row is None:
                return None
            cursor.execute("SELECT path, name, type, content FROM project_files WHERE key = ?", (key,))
            files: Files = {
                r["path"]: File(name=r["name"], content=bytes(r["content"]), type=r["type"])
                for r in cursor.fetchall()
            }
        return Metadata.from_dict(json.loads(row["metadata_json"])), files

    def _save(self, key: str, metadata: Metadata, files: Files) -> None:
        with self._transaction() as cursor:
            cursor.execute("DELETE FROM project_files WHERE key = ?", (key,))
            cursor.execute(
                "INSERT OR REPLACE INTO projects (key, metadata_json, saved_at) VALUES (?, ?, ?)",
                (key, json.dumps(metadata.to_dict()), datetime.now().isoformat()),
            )
            cursor.executemany(
                "INSERT INTO project_files (key, path, name, type, content) VALUES (?, ?, ?, ?, ?)",
                [(key, path, f.name, f.type, f.content) for path, f in files.items()],
            )

    def _delete(self, key: str) -> bool:
        with self._transaction() as cursor:
            cursor.execute("DELETE FROM project_files WHERE key = ?", (key,))
            cursor.execute("DELETE FROM projects WHERE key = ?", (key,))
            return cursor.rowcount > 0

    async def load(self, key: str) -> Optional[Bundle]:
        try:
            return await run_blocking(self._load, key)
        except (sqlite3.Error, ValueError) as e:
            raise LocalCacheError(f"Failed to read cache: {e}", operation="load", target=key, cause=e)

    async def save(self, key: str, metadata: Metadata, files: Files) -> None:
        try:
            await run_blocking(self._save, key, metadata, files)
        except (sqlite3.Error, OSError) as e:
            raise LocalCacheError(f"Failed to write cache: {e}", operation="save", target=key, cause=e)
        logger.info(f"Cached project under {key} ({len(files)} files)")

    async def delete(self, key: str) -> bool:
        try:
            return await run_blocking(self._delete, key)
        except sqlite3.Error as e:
            raise LocalCacheError(f"Failed to delete from cache: {e}", operation="delete", target=key, cause=e)

    def close(self) -> None:
        """Close this thread's connection."""
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None


class InMemoryLocalCache(LocalCache):
    """Process-local cache, for tests and throwaway sessions."""

    def __init__(self) -> None:
        self._entries: Dict[str, Tuple[Metadata, Files]] = {}
        self.save_count = 0

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    async def load(self, key: str) -> Optional[Bundle]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        metadata, files = entry
        return metadata, dict(files)

    async def save(self, key: str, metadata: Metadata, files: Files) -> None:
        self._entries[key] = (metadata, dict(files))
        self.save_count += 1

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None
