"""
Versioned schema migrations for the local SQLite store.

Each migration is applied at most once per store, in ascending version
order, inside a single write transaction that also records the version in
``schema_migrations``. A failure rolls the whole migration back, so the
store always sits at the last fully applied version.
"""
from __future__ import annotations

import hashlib
import re
import sqlite3
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Union

from stockroom.logger import logger
from stockroom.utils import iso_now

TRACKING_TABLE = "schema_migrations"

TRACKING_SQL = f"""
CREATE TABLE IF NOT EXISTS {TRACKING_TABLE} (
  version INTEGER PRIMARY KEY,
  description TEXT NOT NULL,
  checksum TEXT NOT NULL,
  applied_at TEXT NOT NULL,
  execution_ms INTEGER NOT NULL DEFAULT 0
);
"""

_ADD_COLUMN_RE = re.compile(
    r"^ALTER\s+TABLE\s+[\"`\[]?(\w+)[\"`\]]?\s+ADD\s+(?:COLUMN\s+)?[\"`\[]?(\w+)",
    re.IGNORECASE,
)

StorePath = Union[str, Path]


class MigrationKind(str, Enum):
    UP = "UP"
    DOWN = "DOWN"


class MigrationError(Exception):
    """Raised when the store cannot be brought to the requested version."""

    def __init__(self, message: str, *, version: Optional[int] = None):
        super().__init__(message)
        self.version = version


@dataclass(frozen=True)
class Migration:
    version: int
    description: str
    sql: str
    kind: MigrationKind = MigrationKind.UP

    @property
    def checksum(self) -> str:
        return hashlib.sha256(self.sql.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class AppliedMigration:
    version: int
    description: str
    checksum: str
    applied_at: str
    execution_ms: int


def _strip_comments(statement: str) -> str:
    lines = [ln for ln in statement.splitlines() if not ln.strip().startswith("--")]
    return "\n".join(lines).strip()


def split_statements(script: str) -> list[str]:
    """
    Split a SQL script into single statements.

    Raises MigrationError when the script ends with an unterminated statement.
    """
    statements: list[str] = []
    buf = ""
    for ch in script:
        buf += ch
        # complete_statement ignores semicolons inside strings and comments
        if ch == ";" and sqlite3.complete_statement(buf):
            stmt = _strip_comments(buf)
            if stmt:
                statements.append(stmt)
            buf = ""

    leftover = _strip_comments(buf)
    if leftover:
        raise MigrationError(f"Unterminated SQL statement: {leftover[:80]!r}")
    return statements


def _column_exists(conn: sqlite3.Connection, table: str, column: str) -> bool:
    rows = conn.execute(f"PRAGMA table_info({table});").fetchall()
    return column in [r["name"] for r in rows]


def _run_statement(conn: sqlite3.Connection, statement: str) -> None:
    # SQLite has no ADD COLUMN IF NOT EXISTS
    m = _ADD_COLUMN_RE.match(statement)
    if m and _column_exists(conn, m.group(1), m.group(2)):
        logger.debug("Column %s.%s already present, skipping", m.group(1), m.group(2))
        return
    conn.execute(statement)


def _open_store(db_path: StorePath) -> sqlite3.Connection:
    path = Path(db_path)
    conn = None
    try:
        if str(db_path) != ":memory:":
            path.parent.mkdir(parents=True, exist_ok=True)
        # Autocommit mode: transactions are opened explicitly per migration.
        conn = sqlite3.connect(str(path), isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.execute(TRACKING_SQL)
    except (OSError, sqlite3.Error) as e:
        if conn is not None:
            conn.close()
        raise MigrationError(f"Cannot open store at {path}: {e}") from e
    return conn


def _read_applied(conn: sqlite3.Connection) -> dict[int, AppliedMigration]:
    rows = conn.execute(
        f"SELECT version, description, checksum, applied_at, execution_ms FROM {TRACKING_TABLE} ORDER BY version"
    ).fetchall()
    return {
        int(r["version"]): AppliedMigration(
            version=int(r["version"]),
            description=str(r["description"]),
            checksum=str(r["checksum"]),
            applied_at=str(r["applied_at"]),
            execution_ms=int(r["execution_ms"]),
        )
        for r in rows
    }


class SchemaManager:
    """Ordered registry of migrations and the runner that applies them."""

    def __init__(self, migrations: Iterable[Migration] = ()):
        self._up: dict[int, Migration] = {}
        self._down: dict[int, Migration] = {}
        for m in migrations:
            self.register(m.version, m.description, m.sql, m.kind)

    def register(
        self,
        version: int,
        description: str,
        sql: str,
        kind: MigrationKind = MigrationKind.UP,
    ) -> Migration:
        if isinstance(version, bool) or not isinstance(version, int) or version <= 0:
            raise ValueError("Migration version must be a positive integer.")
        if not str(description or "").strip():
            raise ValueError("Migration description is required.")
        if not str(sql or "").strip():
            raise ValueError("Migration script is empty.")

        kind = MigrationKind(kind)
        registry = self._up if kind is MigrationKind.UP else self._down
        if version in registry:
            raise ValueError(f"Duplicate {kind.value} migration version {version}.")

        migration = Migration(version=version, description=str(description).strip(), sql=sql, kind=kind)
        registry[version] = migration
        return migration

    @property
    def migrations(self) -> list[Migration]:
        return [self._up[v] for v in sorted(self._up)]

    @property
    def latest_version(self) -> int:
        return max(self._up, default=0)

    # -------------------------
    # Inspection
    # -------------------------

    def applied(self, db_path: StorePath) -> list[AppliedMigration]:
        conn = _open_store(db_path)
        try:
            return list(_read_applied(conn).values())
        finally:
            conn.close()

    def current_version(self, db_path: StorePath) -> int:
        return max((a.version for a in self.applied(db_path)), default=0)

    def pending(self, db_path: StorePath) -> list[Migration]:
        done = {a.version for a in self.applied(db_path)}
        return [m for m in self.migrations if m.version not in done]

    # -------------------------
    # Apply / revert
    # -------------------------

    def _verify(self, applied: dict[int, AppliedMigration]) -> None:
        for version, rec in applied.items():
            m = self._up.get(version)
            if m is None:
                raise MigrationError(
                    f"Store has migration {version} applied, which this application does not know. "
                    "It was created by a newer version.",
                    version=version,
                )
            if m.checksum != rec.checksum:
                raise MigrationError(
                    f"Migration {version} ({m.description}) was applied with a different script.",
                    version=version,
                )

    def apply(self, db_path: StorePath) -> list[int]:
        """
        Apply every pending migration to the store at ``db_path``.

        Creates the store if it does not exist. Returns the versions applied
        by this call, which is empty when the store was already current.
        """
        conn = _open_store(db_path)
        done: list[int] = []
        try:
            applied = _read_applied(conn)
            self._verify(applied)

            pending = [m for m in self.migrations if m.version not in applied]
            for m in pending:
                if self._apply_one(conn, m):
                    done.append(m.version)
        finally:
            conn.close()

        if done:
            logger.info("Store %s migrated to version %s (applied %s)", db_path, done[-1], done)
        else:
            logger.debug("Store %s already at version %s", db_path, self.latest_version)
        return done

    def _apply_one(self, conn: sqlite3.Connection, m: Migration) -> bool:
        try:
            statements = split_statements(m.sql)
        except MigrationError as e:
            raise MigrationError(f"Migration {m.version} ({m.description}): {e}", version=m.version) from e

        started = time.perf_counter()
        try:
            # Write lock first, then re-check so a concurrent runner cannot double-apply.
            conn.execute("BEGIN IMMEDIATE;")
            row = conn.execute(f"SELECT 1 FROM {TRACKING_TABLE} WHERE version=?", (m.version,)).fetchone()
            if row is not None:
                conn.execute("ROLLBACK;")
                return False

            logger.info("Applying migration %s: %s", m.version, m.description)
            for stmt in statements:
                _run_statement(conn, stmt)

            elapsed_ms = int((time.perf_counter() - started) * 1000)
            conn.execute(
                f"""
                INSERT INTO {TRACKING_TABLE} (version, description, checksum, applied_at, execution_ms)
                VALUES (?, ?, ?, ?, ?)
                """,
                (m.version, m.description, m.checksum, iso_now(), elapsed_ms),
            )
            conn.execute("COMMIT;")
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK;")
            logger.error("Migration %s (%s) failed: %s", m.version, m.description, e)
            raise MigrationError(f"Migration {m.version} ({m.description}) failed: {e}", version=m.version) from e
        return True

    def revert(self, db_path: StorePath, target_version: int) -> list[int]:
        """
        Undo applied migrations above ``target_version``, newest first.

        Every migration to undo needs a registered DOWN script; otherwise
        nothing is touched and MigrationError is raised.
        """
        if int(target_version) < 0:
            raise ValueError("Target version must be >= 0.")

        conn = _open_store(db_path)
        reverted: list[int] = []
        try:
            applied = _read_applied(conn)
            self._verify(applied)

            to_undo = sorted((v for v in applied if v > int(target_version)), reverse=True)
            missing = [v for v in to_undo if v not in self._down]
            if missing:
                raise MigrationError(
                    f"Downgrade below version {missing[0]} is unsupported: no DOWN script registered.",
                    version=missing[0],
                )

            for version in to_undo:
                m = self._down[version]
                statements = split_statements(m.sql)
                try:
                    conn.execute("BEGIN IMMEDIATE;")
                    logger.info("Reverting migration %s: %s", version, m.description)
                    for stmt in statements:
                        conn.execute(stmt)
                    conn.execute(f"DELETE FROM {TRACKING_TABLE} WHERE version=?", (version,))
                    conn.execute("COMMIT;")
                except sqlite3.Error as e:
                    if conn.in_transaction:
                        conn.execute("ROLLBACK;")
                    logger.error("Reverting migration %s failed: %s", version, e)
                    raise MigrationError(f"Reverting migration {version} failed: {e}", version=version) from e
                reverted.append(version)
        finally:
            conn.close()
        return reverted
