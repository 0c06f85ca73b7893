"""
SQLite storage provider.

All schema records live in a single SQLite file so registrations survive
across processes (the CLI's `registry` commands use it).

Invariants:
    - One row per (id, version)
    - Writes run in explicit BEGIN IMMEDIATE transactions
    - sqlite3 errors surface as StorageError
    - Blocking sqlite3 calls run on the default executor, never on the
      event loop thread

How to change safely:
    - Schema migrations must be backward compatible
    - Bump SCHEMA_VERSION and add a migration step for new columns

Table schema:
    schemas:
        - id TEXT ("<namespace>.<name>")
        - version TEXT
        - namespace TEXT
        - name TEXT
        - schema_json TEXT
        - fingerprint TEXT
        - created_at TEXT (ISO 8601 UTC)
        - is_default INTEGER (0/1)
        - metadata_json TEXT
        - PRIMARY KEY (id, version)
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, TypeVar

from ..canonical import plain
from ..errors import StorageError
from ..registry.records import SchemaRecord
from .base import check_update_fields, pick_namespace_records

logger = logging.getLogger(__name__)

T = TypeVar("T")

_COLUMNS = {
    "is_default": "is_default",
    "metadata": "metadata_json",
    "schema": "schema_json",
    "fingerprint": "fingerprint",
}


class SqliteStorage:
    """StorageProvider backed by a single SQLite database file.

    Example:
        >>> storage = SqliteStorage("/var/lib/docschema/schemas.db")
        >>> await storage.save_schema(record)
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: str, busy_timeout_ms: int = 5000) -> None:
        """Initialize the store.

        Args:
            db_path: Path of the SQLite file (created on first use)
            busy_timeout_ms: SQLite busy timeout
        """
        self.db_path = Path(db_path)
        self.busy_timeout_ms = busy_timeout_ms
        self._initialized = False
        self._lock = asyncio.Lock()

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a connection, creating the database on first use.

        Raises:
            StorageError: If the database cannot be opened
        """
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=self.busy_timeout_ms / 1000.0,
                isolation_level=None,  # Autocommit by default, explicit transactions
            )
        except (OSError, sqlite3.Error) as e:
            logger.error(f"Failed to open schema database {self.db_path}: {e}")
            raise StorageError(f"Cannot open schema database: {e}", operation="connect") from e

        conn.row_factory = sqlite3.Row
        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            if not self._initialized:
                self._create_schema(conn)
                self._initialized = True
            yield conn
        finally:
            conn.close()

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create database schema."""
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS schemas (
                id TEXT NOT NULL,
                version TEXT NOT NULL,
                namespace TEXT NOT NULL,
                name TEXT NOT NULL,
                schema_json TEXT NOT NULL,
                fingerprint TEXT NOT NULL,
                created_at TEXT NOT NULL,
                is_default INTEGER NOT NULL DEFAULT 0,
                metadata_json TEXT NOT NULL DEFAULT '{}',
                PRIMARY KEY (id, version)
            );

            CREATE INDEX IF NOT EXISTS idx_schemas_namespace ON schemas(namespace, id);
            CREATE INDEX IF NOT EXISTS idx_schemas_created ON schemas(id, created_at);

            INSERT OR IGNORE INTO schema_version (version, applied_at)
            VALUES (1, strftime('%Y-%m-%dT%H:%M:%SZ', 'now'));
        """)

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> SchemaRecord:
        return SchemaRecord(
            id=row["id"],
            namespace=row["namespace"],
            name=row["name"],
            version=row["version"],
            schema=json.loads(row["schema_json"]),
            fingerprint=row["fingerprint"],
            created_at=row["created_at"],
            is_default=bool(row["is_default"]),
            metadata=json.loads(row["metadata_json"]),
        )

    @staticmethod
    def _column_value(field_name: str, value: Any) -> Any:
        if field_name == "is_default":
            return 1 if value else 0
        if field_name in ("schema", "metadata"):
            return json.dumps(plain(value))
        return value

    def _query(self, operation: str, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        try:
            with self._get_connection() as conn:
                return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            logger.error(f"SQLite {operation} failed: {e}", extra={"operation": operation})
            raise StorageError(f"Storage operation '{operation}' failed: {e}", operation) from e

    def _write(self, operation: str, statements: List[tuple]) -> int:
        """Run statements in one transaction; returns total rows changed."""
        try:
            with self._get_connection() as conn:
                conn.execute("BEGIN IMMEDIATE")
                try:
                    changed = 0
                    for sql, params in statements:
                        changed += conn.execute(sql, params).rowcount
                    conn.execute("COMMIT")
                    return changed
                except Exception:
                    conn.execute("ROLLBACK")
                    raise
        except sqlite3.Error as e:
            logger.error(f"SQLite {operation} failed: {e}", extra={"operation": operation})
            raise StorageError(f"Storage operation '{operation}' failed: {e}", operation) from e

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        """Run a blocking sqlite call on the default executor.

        Keeps the event loop free, so a caller's asyncio.wait_for() can
        give up on a slow call. The abandoned call still runs to the end
        in its thread.
        """
        return await asyncio.get_event_loop().run_in_executor(None, func, *args)

    async def save_schema(self, record: SchemaRecord) -> SchemaRecord:
        async with self._lock:
            await self._run(
                self._write,
                "save_schema",
                [
                    (
                        """
                        INSERT INTO schemas (
                            id, version, namespace, name, schema_json,
                            fingerprint, created_at, is_default, metadata_json
                        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                        ON CONFLICT(id, version) DO UPDATE SET
                            namespace = excluded.namespace,
                            name = excluded.name,
                            schema_json = excluded.schema_json,
                            fingerprint = excluded.fingerprint,
                            created_at = excluded.created_at,
                            is_default = excluded.is_default,
                            metadata_json = excluded.metadata_json
                        """,
                        (
                            record.id,
                            record.version,
                            record.namespace,
                            record.name,
                            self._column_value("schema", record.schema),
                            record.fingerprint,
                            record.created_at,
                            self._column_value("is_default", record.is_default),
                            self._column_value("metadata", record.metadata),
                        ),
                    )
                ],
            )
        logger.debug(f"Saved schema {record.id} version {record.version}")
        stored = await self.get_schema(record.id, record.version)
        return stored if stored is not None else record

    async def get_schema(self, schema_id: str, version: str) -> Optional[SchemaRecord]:
        rows = await self._run(
            self._query,
            "get_schema",
            "SELECT * FROM schemas WHERE id = ? AND version = ?",
            (schema_id, version),
        )
        return self._row_to_record(rows[0]) if rows else None

    async def get_schema_versions(self, schema_id: str) -> List[SchemaRecord]:
        rows = await self._run(
            self._query,
            "get_schema_versions",
            "SELECT * FROM schemas WHERE id = ? ORDER BY created_at, version",
            (schema_id,),
        )
        return [self._row_to_record(row) for row in rows]

    async def get_namespace_schemas(self, namespace: str) -> List[SchemaRecord]:
        rows = await self._run(
            self._query,
            "get_namespace_schemas",
            "SELECT * FROM schemas WHERE namespace = ? ORDER BY id, created_at, version",
            (namespace,),
        )
        return pick_namespace_records([self._row_to_record(row) for row in rows])

    async def get_namespaces(self) -> List[str]:
        rows = await self._run(
            self._query,
            "get_namespaces",
            "SELECT DISTINCT namespace FROM schemas ORDER BY namespace",
        )
        return [row["namespace"] for row in rows]

    async def update_schema(
        self, schema_id: str, version: str, update: Dict[str, Any]
    ) -> Optional[SchemaRecord]:
        check_update_fields(update)
        if update:
            assignments = ", ".join(f"{_COLUMNS[name]} = ?" for name in update)
            params = tuple(self._column_value(name, value) for name, value in update.items())
            async with self._lock:
                changed = await self._run(
                    self._write,
                    "update_schema",
                    [
                        (
                            f"UPDATE schemas SET {assignments} WHERE id = ? AND version = ?",
                            params + (schema_id, version),
                        )
                    ],
                )
            if not changed:
                return None
            logger.debug(f"Updated schema {schema_id} version {version}: {sorted(update)}")
        return await self.get_schema(schema_id, version)

    async def delete_schema(self, schema_id: str, version: str) -> bool:
        async with self._lock:
            changed = await self._run(
                self._write,
                "delete_schema",
                [("DELETE FROM schemas WHERE id = ? AND version = ?", (schema_id, version))],
            )
        logger.debug(f"Deleted schema {schema_id} version {version}: {changed > 0}")
        return changed > 0

    async def delete_all_schema_versions(self, schema_id: str) -> bool:
        async with self._lock:
            changed = await self._run(
                self._write,
                "delete_all_schema_versions",
                [("DELETE FROM schemas WHERE id = ?", (schema_id,))],
            )
        logger.debug(f"Deleted all versions of {schema_id}: {changed} row(s)")
        return changed > 0
