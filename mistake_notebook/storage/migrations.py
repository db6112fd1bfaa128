"""
Database schema migrations for Mistake Notebook.

This module owns the migration catalog and the engine that applies it. Each
migration is a discrete (version, name, upgrade) step; applied versions are
recorded in the schema_migrations ledger.

Migration Philosophy:
- Migrations are one-way (no downgrades)
- Each migration runs in its own transaction together with its ledger row
  (both commit or both roll back)
- Failed migrations are rolled back and stay pending
- The ledger decides what runs; upgrade bodies additionally check the schema
  so databases created before the ledger existed are upgraded safely
- Versions are declared in strictly ascending order; gaps are fine

Current catalog:
- v1: ensure questions.learning_guide column
- v2: ensure ai_configs.config_data column
- v3: index questions partition and ordering columns

Example:
    >>> from mistake_notebook.storage.db import open_db
    >>> with open_db("./data/ebu.db") as conn:
    ...     status = get_migration_status(conn, "./data/ebu.db")
    ...     applied = apply_migrations_to_latest(conn)
    >>> [m.version for m in applied]
    [1, 2, 3]

See Also:
    storage.db.init_db_if_needed() - Runs the engine at startup
"""

import logging
import sqlite3
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from ..exceptions import DatabaseMigrationError, MigrationCatalogError
from ..utils.logging import log_with_context
from ..utils.time import utc_timestamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Migration:
    """
    One versioned schema upgrade step.

    Attributes:
        version: Positive integer, unique within the catalog
        name: Human-readable description recorded in the ledger
        upgrade: Callable receiving the connection inside the open transaction
    """

    version: int
    name: str
    upgrade: Callable[[sqlite3.Connection], None]

    def info(self) -> "MigrationInfo":
        return MigrationInfo(version=self.version, name=self.name)


@dataclass(frozen=True)
class MigrationInfo:
    version: int
    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"version": self.version, "name": self.name}


@dataclass(frozen=True)
class AppliedMigration:
    """A ledger row."""

    version: int
    name: str
    applied_at: str

    def to_dict(self) -> dict[str, Any]:
        return {"version": self.version, "name": self.name, "appliedAt": self.applied_at}


@dataclass
class MigrationStatus:
    """Ledger state compared with the catalog."""

    db_path: str
    applied: list[AppliedMigration]
    pending: list[MigrationInfo]
    current: int
    latest: int

    @property
    def pending_count(self) -> int:
        return len(self.pending)

    @property
    def applied_count(self) -> int:
        return len(self.applied)

    def to_dict(self) -> dict[str, Any]:
        return {
            "dbPath": self.db_path,
            "applied": [a.to_dict() for a in self.applied],
            "pending": [p.to_dict() for p in self.pending],
            "current": self.current,
            "latest": self.latest,
            "pendingCount": self.pending_count,
            "appliedCount": self.applied_count,
        }


# ============================================================================
# Schema introspection
# ============================================================================


def has_table(conn: sqlite3.Connection, table: str) -> bool:
    cursor = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (table,)
    )
    return cursor.fetchone() is not None


def has_column(conn: sqlite3.Connection, table: str, column: str) -> bool:
    """
    Check whether a table has a column.

    Returns False when the table itself does not exist.
    """
    # PRAGMA arguments cannot be bound as parameters; table names here are
    # always module constants, never user input
    cursor = conn.execute(f"PRAGMA table_info({table})")
    return any(row[1] == column for row in cursor.fetchall())


# ============================================================================
# Upgrade bodies
# ============================================================================


def _ensure_learning_guide_column(conn: sqlite3.Connection) -> None:
    """
    Add questions.learning_guide for databases created before the field existed.

    Existing rows get an empty learning guide.
    """
    if has_column(conn, "questions", "learning_guide"):
        logger.debug("questions.learning_guide already present, nothing to alter")
        return
    conn.execute(
        "ALTER TABLE questions ADD COLUMN learning_guide TEXT NOT NULL DEFAULT ''"
    )
    logger.debug("Added questions.learning_guide column")


def _ensure_config_data_column(conn: sqlite3.Connection) -> None:
    """
    Add ai_configs.config_data, the opaque JSON blob written by newer clients.

    The legacy discrete columns stay in place for old rows.
    """
    if has_column(conn, "ai_configs", "config_data"):
        logger.debug("ai_configs.config_data already present, nothing to alter")
        return
    conn.execute("ALTER TABLE ai_configs ADD COLUMN config_data TEXT")
    logger.debug("Added ai_configs.config_data column")


def _index_question_partitions(conn: sqlite3.Connection) -> None:
    """Index the columns used by the partition filter and page ordering."""
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_questions_deleted_at ON questions(deleted_at)"
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_questions_created_at ON questions(created_at)"
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_questions_subject ON questions(subject)"
    )


MIGRATIONS: tuple[Migration, ...] = (
    Migration(1, "ensure questions.learning_guide column", _ensure_learning_guide_column),
    Migration(2, "ensure ai_configs.config_data column", _ensure_config_data_column),
    Migration(3, "index questions partition and ordering columns", _index_question_partitions),
)


# ============================================================================
# Engine
# ============================================================================


def validate_catalog(migrations: Sequence[Migration] = MIGRATIONS) -> None:
    """
    Check that versions are positive and strictly ascending.

    Gaps are allowed. Duplicates and out-of-order declarations are
    configuration errors and must stop startup.

    Raises:
        MigrationCatalogError: On the first offending entry
    """
    previous = 0
    for migration in migrations:
        if migration.version <= 0:
            raise MigrationCatalogError(
                f"Migration version must be a positive integer, got {migration.version} "
                f"({migration.name!r})",
                version=migration.version,
                migration_name=migration.name,
            )
        if migration.version == previous:
            raise MigrationCatalogError(
                f"Duplicate migration version {migration.version} ({migration.name!r})",
                version=migration.version,
                migration_name=migration.name,
            )
        if migration.version < previous:
            raise MigrationCatalogError(
                f"Migration version {migration.version} ({migration.name!r}) is declared "
                f"after version {previous}; versions must be ascending",
                version=migration.version,
                migration_name=migration.name,
            )
        previous = migration.version


def ensure_migrations_table(conn: sqlite3.Connection) -> None:
    """Create the schema_migrations ledger if it does not exist."""
    conn.execute("""
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            applied_at TEXT NOT NULL
        )
    """)


def get_applied_migrations(conn: sqlite3.Connection) -> list[AppliedMigration]:
    """Return the ledger rows in ascending version order."""
    cursor = conn.execute(
        "SELECT version, name, applied_at FROM schema_migrations ORDER BY version ASC"
    )
    return [AppliedMigration(row[0], row[1], row[2]) for row in cursor.fetchall()]


def get_latest_migration_version(migrations: Sequence[Migration] = MIGRATIONS) -> int:
    """Highest version in the catalog, 0 for an empty catalog."""
    return max((m.version for m in migrations), default=0)


def get_migration_status(
    conn: sqlite3.Connection,
    db_path: str,
    migrations: Sequence[Migration] = MIGRATIONS,
) -> MigrationStatus:
    """
    Compare the ledger with the catalog.

    Args:
        conn: Open connection
        db_path: Database path, echoed back for the admin endpoint
        migrations: Catalog to compare against

    Returns:
        MigrationStatus: current is the highest applied version (0 if none),
        latest the highest catalog version, pending the catalog entries
        missing from the ledger in ascending order
    """
    ensure_migrations_table(conn)

    applied = get_applied_migrations(conn)
    applied_versions = {a.version for a in applied}

    pending = [
        m.info()
        for m in sorted(migrations, key=lambda m: m.version)
        if m.version not in applied_versions
    ]

    return MigrationStatus(
        db_path=db_path,
        applied=applied,
        pending=pending,
        current=max(applied_versions, default=0),
        latest=get_latest_migration_version(migrations),
    )


def apply_migrations_to_latest(
    conn: sqlite3.Connection,
    migrations: Sequence[Migration] = MIGRATIONS,
) -> list[MigrationInfo]:
    """
    Apply every pending migration in ascending version order.

    Each step runs inside BEGIN IMMEDIATE: the upgrade body and the ledger
    insert commit together or roll back together. The ledger is re-read after
    the write lock is taken, so a concurrent caller that recorded the same
    version first makes this call skip it instead of applying it twice.

    Safe to call with nothing pending (returns []) and safe to call repeatedly.

    Args:
        conn: Connection in autocommit mode (see storage.db.connect)
        migrations: Catalog to apply

    Returns:
        list[MigrationInfo]: Migrations applied by this call, in order

    Raises:
        MigrationCatalogError: If the catalog is misconfigured
        DatabaseMigrationError: If an upgrade body fails. The failing step is
            rolled back; earlier steps of this call stay committed and are
            listed in the exception's `applied` attribute.
    """
    validate_catalog(migrations)
    ensure_migrations_table(conn)

    applied_versions = {a.version for a in get_applied_migrations(conn)}
    pending = [m for m in migrations if m.version not in applied_versions]

    if not pending:
        logger.debug("No pending migrations")
        return []

    applied_now: list[MigrationInfo] = []

    for migration in pending:
        log_with_context(
            logger,
            logging.INFO,
            f"Applying migration: {migration.name}",
            migration_version=migration.version,
        )

        try:
            conn.execute("BEGIN IMMEDIATE")

            already = conn.execute(
                "SELECT 1 FROM schema_migrations WHERE version = ?",
                (migration.version,),
            ).fetchone()
            if already is not None:
                conn.rollback()
                log_with_context(
                    logger,
                    logging.INFO,
                    "Migration was recorded by another process meanwhile, skipping",
                    migration_version=migration.version,
                )
                continue

            migration.upgrade(conn)

            timestamp = utc_timestamp()
            conn.execute(
                "INSERT INTO schema_migrations (version, name, applied_at) VALUES (?, ?, ?)",
                (migration.version, migration.name, timestamp),
            )
            conn.commit()

        except Exception as e:
            if conn.in_transaction:
                conn.rollback()
            log_with_context(
                logger,
                logging.ERROR,
                f"Migration failed: {e}",
                context={"name": migration.name, "applied_in_call": len(applied_now)},
                exc_info=True,
                migration_version=migration.version,
            )
            raise DatabaseMigrationError(
                f"migration {migration.version} failed: {e}",
                version=migration.version,
                migration_name=migration.name,
                applied=list(applied_now),
            ) from e

        applied_now.append(migration.info())
        log_with_context(
            logger,
            logging.INFO,
            "Migration applied",
            context={"name": migration.name, "applied_at": timestamp},
            migration_version=migration.version,
        )

    return applied_now
