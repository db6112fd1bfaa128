"""
SQLite database initialization and connection handling for Mistake Notebook.

This module provides database setup with ledger-based schema migrations plus
the legacy column safety net for installations that predate the ledger.
All timestamps are stored as ISO 8601 strings with microseconds and a 'Z'
suffix (UTC).

The database tracks:
- questions: Notebook entries (active and trashed)
- ai_configs: The single AI provider configuration row
- schema_migrations: Ledger of applied migrations

Example usage:
    >>> from mistake_notebook.storage.db import init_db_if_needed, open_db
    >>> init_db_if_needed("./data/ebu.db")
    # Creates tables, applies pending migrations, seeds the AI config row
    >>> with open_db("./data/ebu.db") as conn:
    ...     conn.execute("SELECT COUNT(*) FROM questions").fetchone()[0]
    0

Connections:
    Connections are opened in autocommit mode (isolation_level=None) with a
    bounded busy timeout. Multi-statement units of work use transaction(),
    migrations use BEGIN IMMEDIATE directly.

Security:
    - ALL queries use parameterized statements to prevent SQL injection
    - Connection context managers ensure proper cleanup
"""

import logging
import sqlite3
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

from ..exceptions import DatabaseInitError, DatabaseMigrationError
from .ai_config import ensure_default_ai_config
from .migrations import (
    MIGRATIONS,
    Migration,
    MigrationInfo,
    MigrationStatus,
    apply_migrations_to_latest,
    get_migration_status,
    has_column,
    validate_catalog,
)

logger = logging.getLogger(__name__)

DEFAULT_BUSY_TIMEOUT_SECONDS = 5.0


def connect(
    db_path: str, busy_timeout_seconds: float = DEFAULT_BUSY_TIMEOUT_SECONDS
) -> sqlite3.Connection:
    """
    Open a connection configured for this application.

    - autocommit mode: transactions are always explicit
    - sqlite3.Row rows for column access by name
    - foreign keys enabled (disabled by default in SQLite)
    - busy timeout so a locked database never blocks forever

    check_same_thread is off because the API opens a connection per request
    and FastAPI may run the dependency and the endpoint on different worker
    threads. A connection is never shared between requests.
    """
    conn = sqlite3.connect(
        db_path,
        timeout=busy_timeout_seconds,
        isolation_level=None,
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def open_db(
    db_path: str, busy_timeout_seconds: float = DEFAULT_BUSY_TIMEOUT_SECONDS
) -> Iterator[sqlite3.Connection]:
    """Context manager yielding a connection and closing it afterwards."""
    conn = connect(db_path, busy_timeout_seconds)
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction(
    conn: sqlite3.Connection, immediate: bool = False
) -> Iterator[sqlite3.Connection]:
    """
    Run the enclosed statements as one atomic unit.

    Commits on normal exit, rolls back and re-raises on any exception.

    Args:
        conn: Connection in autocommit mode
        immediate: Take the write lock up front (BEGIN IMMEDIATE)
    """
    conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()


def create_base_tables(conn: sqlite3.Connection) -> None:
    """
    Create the questions and ai_configs tables if they do not exist.

    Fresh databases get the full current layout here. Existing tables are
    left untouched; upgrading them is the migrations' job.
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS questions (
            id TEXT PRIMARY KEY,
            image TEXT,
            cropped_diagram TEXT,
            content TEXT NOT NULL,
            options TEXT,
            diagram_description TEXT,
            answer TEXT,
            analysis TEXT NOT NULL,
            learning_guide TEXT NOT NULL DEFAULT '',
            knowledge_points TEXT NOT NULL,
            subject TEXT NOT NULL,
            difficulty INTEGER NOT NULL DEFAULT 1
                CHECK(difficulty >= 1 AND difficulty <= 5),
            created_at TEXT NOT NULL,
            last_reviewed_at TEXT,
            deleted_at TEXT
        )
    """)

    # id is pinned to 1 so the table can never hold a second row
    conn.execute("""
        CREATE TABLE IF NOT EXISTS ai_configs (
            id INTEGER PRIMARY KEY CHECK(id = 1),
            type TEXT NOT NULL DEFAULT 'GEMINI',
            api_key TEXT,
            base_url TEXT,
            model_name TEXT,
            system_prompt TEXT,
            config_data TEXT
        )
    """)


# Columns added after the first release, with the DDL that adds them
_LEGACY_QUESTION_COLUMNS: tuple[tuple[str, str], ...] = (
    (
        "learning_guide",
        "ALTER TABLE questions ADD COLUMN learning_guide TEXT NOT NULL DEFAULT ''",
    ),
)


def ensure_question_columns(conn: sqlite3.Connection) -> list[str]:
    """
    Add any question column that an old database is still missing.

    This check predates the migration ledger and runs on every startup,
    after the ledger-based migrations. Both are idempotent, so the overlap
    with migration 1 is harmless.

    Returns:
        list[str]: Names of the columns that had to be added
    """
    added = []
    for name, ddl in _LEGACY_QUESTION_COLUMNS:
        if has_column(conn, "questions", name):
            continue
        conn.execute(ddl)
        added.append(name)
        logger.warning(f"Legacy schema fix: added questions.{name}")
    return added


def init_db_if_needed(
    db_path: str,
    busy_timeout_seconds: float = DEFAULT_BUSY_TIMEOUT_SECONDS,
    migrations: Sequence[Migration] = MIGRATIONS,
) -> list[MigrationInfo]:
    """
    Bring the database at db_path up to the latest schema.

    Steps:
    1. Validate the migration catalog (fails fast on bad versions)
    2. Create the parent directory and base tables if needed
    3. Apply pending migrations (ledger-based, one transaction each)
    4. Run the legacy column safety net
    5. Create the default AI config row if absent

    Idempotent: a second call on an up-to-date database changes nothing.

    Args:
        db_path: Filesystem path to the SQLite database file
        busy_timeout_seconds: How long to wait on a locked database
        migrations: Catalog to apply

    Returns:
        list[MigrationInfo]: Migrations applied by this call

    Raises:
        DatabaseInitError: If the file or its directory cannot be created/opened
        MigrationCatalogError: If the catalog is misconfigured
        DatabaseMigrationError: If a migration fails; the caller must not
            start serving traffic
    """
    validate_catalog(migrations)

    try:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DatabaseInitError(
            f"Cannot create database directory for {db_path}: {e}"
        ) from e

    try:
        conn = connect(db_path, busy_timeout_seconds)
    except sqlite3.Error as e:
        raise DatabaseInitError(f"Cannot open database {db_path}: {e}") from e

    try:
        try:
            create_base_tables(conn)
        except sqlite3.Error as e:
            raise DatabaseInitError(f"Cannot create tables in {db_path}: {e}") from e

        applied = apply_migrations_to_latest(conn, migrations)
        if applied:
            logger.info(
                f"Database schema upgraded to v{applied[-1].version} "
                f"({len(applied)} migration(s) applied)"
            )
        else:
            logger.debug("Database schema is current")

        try:
            ensure_question_columns(conn)
            ensure_default_ai_config(conn)
        except sqlite3.Error as e:
            raise DatabaseInitError(f"Cannot finish initializing {db_path}: {e}") from e
    finally:
        conn.close()

    return applied


def require_current_schema(
    db_path: str,
    busy_timeout_seconds: float = DEFAULT_BUSY_TIMEOUT_SECONDS,
    migrations: Sequence[Migration] = MIGRATIONS,
) -> MigrationStatus:
    """
    Prepare the database without migrating it and refuse a stale schema.

    Used at startup when auto_migrate is off. Base tables and the default AI
    config row are created as usual, but no migration is applied.

    Raises:
        DatabaseInitError: If the file cannot be created/opened
        DatabaseMigrationError: If any migration is pending; version is the
            first pending one
    """
    validate_catalog(migrations)
    init_db_if_needed(db_path, busy_timeout_seconds, migrations=())

    with open_db(db_path, busy_timeout_seconds) as conn:
        status = get_migration_status(conn, db_path, migrations)

    if status.pending_count:
        first = status.pending[0]
        raise DatabaseMigrationError(
            f"{status.pending_count} migration(s) pending "
            f"(schema v{status.current}, latest v{status.latest}) and auto_migrate "
            f"is off; run 'mistake-notebook migrate apply' first",
            version=first.version,
            migration_name=first.name,
        )
    return status
