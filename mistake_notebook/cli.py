"""
CLI entrypoint for Mistake Notebook.

Provides a dual-mode command-line interface with:
- Human-friendly output: Rich spinners, tables, colored text
- Agent-friendly output: Structured JSON (--format json)

Commands:
    serve: Start the HTTP API (migrates the database first)
    migrate status: Show applied and pending schema migrations
    migrate apply: Apply pending schema migrations now
    questions list: List active or trashed questions with filters
    backup export: Write every question to a JSON backup file
    backup import: Replace all questions with a backup file

Exit codes:
    0: Success
    1: Configuration error (invalid YAML, bad option values)
    2: Database error (cannot open/query SQLite, bad backup)
    3: Migration failure (a migration errored and was rolled back)

Examples:
    # Start the API with a config file
    mistake-notebook serve --config mistake_notebook.config.yaml

    # Check the schema version of a database
    mistake-notebook migrate status --db ./data/ebu.db

    # Page 2 of trashed math questions, as JSON
    mistake-notebook questions list --trash --subject 数学 --page 2 --format json
"""

import sqlite3
from pathlib import Path

import typer
from rich.traceback import install as install_rich_traceback

from mistake_notebook import __version__
from mistake_notebook.config.loader import load_config
from mistake_notebook.config.schema import AppConfig
from mistake_notebook.exceptions import (
    BackupError,
    ConfigurationError,
    DatabaseError,
    DatabaseMigrationError,
)
from mistake_notebook.storage.backup import (
    BACKUP_FILENAME,
    export_backup,
    import_backup,
    load_backup_file,
    write_backup_file,
)
from mistake_notebook.storage.db import (
    init_db_if_needed,
    open_db,
    require_current_schema,
)
from mistake_notebook.storage.migrations import get_migration_status
from mistake_notebook.storage.models import Partition
from mistake_notebook.storage.paging import DEFAULT_PAGE_SIZE, get_questions_page
from mistake_notebook.utils.console import (
    error,
    info,
    output_mode,
    print_migration_status,
    print_question_page,
    spinner,
    success,
    warning,
)
from mistake_notebook.utils.logging import setup_logging

# Install Rich tracebacks for better error messages
install_rich_traceback(show_locals=False)

# Exit codes
EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1  # Config file missing/invalid, bad option values
EXIT_DB_ERROR = 2  # Database cannot be opened or queried
EXIT_MIGRATION_ERROR = 3  # A migration failed and was rolled back

app = typer.Typer(
    name="mistake-notebook",
    help="Keep a searchable notebook of the exam questions you got wrong",
    add_completion=False,
)

# Shared option declarations
ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to YAML configuration file (default: $MISTAKE_NOTEBOOK_CONFIG)",
    dir_okay=False,
)
DbOption = typer.Option(
    None,
    "--db",
    help="Path to SQLite database (overrides config and $DB_PATH)",
)
FormatOption = typer.Option(
    "text",
    "--format",
    "-f",
    help="Output format: 'text' (human-friendly) or 'json' (machine-readable)",
)
VerboseOption = typer.Option(
    False,
    "--verbose",
    "-v",
    help="Enable debug logging",
)


def _start(format: str, verbose: bool, quiet_logs: bool = True) -> None:
    """Apply --format/--verbose; exits with EXIT_CONFIG_ERROR on a bad format."""
    if format not in ("text", "json"):
        error(f"Invalid format: {format}. Must be 'text' or 'json'")
        raise typer.Exit(EXIT_CONFIG_ERROR)
    output_mode.format = format
    setup_logging(verbose=verbose, quiet_logs=quiet_logs)


def _finish(code: int = EXIT_SUCCESS) -> None:
    """Flush buffered JSON output and exit with the given code."""
    output_mode.flush_json()
    raise typer.Exit(code)


def _load_settings(config: Path | None, db: str | None) -> AppConfig:
    """Load configuration, applying --db on top; exits on configuration errors."""
    try:
        settings = load_config(config)
    except ConfigurationError as e:
        error(str(e))
        _finish(EXIT_CONFIG_ERROR)

    if db:
        settings.database.path = db
    return settings


def _require_existing_db(db_path: str) -> None:
    if not Path(db_path).exists():
        error(f"Database not found: {db_path}")
        _finish(EXIT_DB_ERROR)


# ============================================================================
# serve
# ============================================================================


@app.command()
def serve(
    config: Path = ConfigOption,
    db: str = DbOption,
    host: str = typer.Option(None, "--host", help="Interface to bind (overrides config)"),
    port: int = typer.Option(None, "--port", "-p", help="Port to listen on (overrides config)"),
    format: str = FormatOption,
    verbose: bool = VerboseOption,
):
    """
    Start the HTTP API.

    The database is initialized and migrated before the server binds, so a
    failing migration stops startup with exit code 3. With auto_migrate off,
    pending migrations also stop startup with exit code 3.

    Examples:
      mistake-notebook serve
      mistake-notebook serve --db ./data/ebu.db --port 9000
    """
    import uvicorn

    from mistake_notebook.api import create_app

    _start(format, verbose, quiet_logs=False)
    settings = _load_settings(config, db)
    if host:
        settings.server.host = host
    if port:
        settings.server.port = port

    if settings.database.auto_migrate:
        try:
            with spinner("Initializing database..."):
                applied = init_db_if_needed(
                    settings.database.path, settings.database.busy_timeout_seconds
                )
        except DatabaseMigrationError as e:
            error(f"Migration failed, refusing to start: {e}")
            _finish(EXIT_MIGRATION_ERROR)
        except DatabaseError as e:
            error(f"Failed to initialize database: {e}")
            _finish(EXIT_DB_ERROR)

        success(
            f"Database ready: {settings.database.path} "
            f"({len(applied)} migration(s) applied)"
        )
    else:
        try:
            require_current_schema(
                settings.database.path, settings.database.busy_timeout_seconds
            )
        except DatabaseMigrationError as e:
            error(f"Schema is out of date, refusing to start: {e}")
            _finish(EXIT_MIGRATION_ERROR)
        except DatabaseError as e:
            error(f"Failed to initialize database: {e}")
            _finish(EXIT_DB_ERROR)

        warning(
            "auto_migrate is off; future migrations must be applied with 'migrate apply'"
        )

    info(f"Serving on http://{settings.server.host}:{settings.server.port}")
    output_mode.flush_json()

    uvicorn.run(
        create_app(settings),
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,
    )


# ============================================================================
# migrate
# ============================================================================

migrate_app = typer.Typer(help="Inspect and apply schema migrations")
app.add_typer(migrate_app, name="migrate")


@migrate_app.command("status")
def migrate_status(
    config: Path = ConfigOption,
    db: str = DbOption,
    format: str = FormatOption,
    verbose: bool = VerboseOption,
):
    """
    Show applied and pending schema migrations.

    Examples:
      mistake-notebook migrate status --db ./data/ebu.db
      mistake-notebook migrate status --format json
    """
    _start(format, verbose)
    settings = _load_settings(config, db)
    _require_existing_db(settings.database.path)

    try:
        with open_db(
            settings.database.path, settings.database.busy_timeout_seconds
        ) as conn:
            status = get_migration_status(conn, settings.database.path)
    except (DatabaseError, sqlite3.Error) as e:
        error(f"Failed to read migration status: {e}")
        _finish(EXIT_DB_ERROR)

    print_migration_status(status.to_dict())
    _finish(EXIT_SUCCESS)


@migrate_app.command("apply")
def migrate_apply(
    config: Path = ConfigOption,
    db: str = DbOption,
    format: str = FormatOption,
    verbose: bool = VerboseOption,
):
    """
    Initialize the database if needed and apply every pending migration.

    Examples:
      mistake-notebook migrate apply --db ./data/ebu.db
    """
    _start(format, verbose)
    settings = _load_settings(config, db)

    try:
        with spinner("Applying migrations..."):
            applied = init_db_if_needed(
                settings.database.path, settings.database.busy_timeout_seconds
            )
    except DatabaseMigrationError as e:
        error(f"Migration failed: {e}")
        output_mode.add_json("version", e.version)
        output_mode.add_json("applied", [m.to_dict() for m in e.applied])
        _finish(EXIT_MIGRATION_ERROR)
    except DatabaseError as e:
        error(f"Failed to open database: {e}")
        _finish(EXIT_DB_ERROR)

    output_mode.add_json("applied", [m.to_dict() for m in applied])
    output_mode.add_json("count", len(applied))
    if applied:
        for migration in applied:
            info(f"Applied migration {migration.version}: {migration.name}")
        success(f"Applied {len(applied)} migration(s)")
    else:
        success("Database schema is already up to date")
    _finish(EXIT_SUCCESS)


# ============================================================================
# questions
# ============================================================================

questions_app = typer.Typer(help="Browse stored questions")
app.add_typer(questions_app, name="questions")


@questions_app.command("list")
def questions_list(
    trash: bool = typer.Option(False, "--trash", help="List trashed questions"),
    tag: str = typer.Option(None, "--tag", "-t", help="Require this knowledge point"),
    query: str = typer.Option(None, "--query", "-q", help="Substring to search for"),
    subject: str = typer.Option(None, "--subject", "-s", help="Subject label, e.g. 数学"),
    page: int = typer.Option(1, "--page", help="Page number (1-based)"),
    page_size: int = typer.Option(
        DEFAULT_PAGE_SIZE, "--page-size", help="Questions per page (max 100)"
    ),
    config: Path = ConfigOption,
    db: str = DbOption,
    format: str = FormatOption,
    verbose: bool = VerboseOption,
):
    """
    List one page of active (or trashed) questions.

    Examples:
      mistake-notebook questions list --tag 基本不等式
      mistake-notebook questions list --trash --page-size 50 --format json
    """
    _start(format, verbose)
    settings = _load_settings(config, db)
    _require_existing_db(settings.database.path)

    partition = Partition.TRASHED if trash else Partition.ACTIVE
    try:
        with open_db(
            settings.database.path, settings.database.busy_timeout_seconds
        ) as conn:
            result = get_questions_page(
                conn,
                partition,
                tag=tag,
                query=query,
                subject=subject,
                page=page,
                page_size=page_size,
            )
    except (DatabaseError, sqlite3.Error) as e:
        error(f"Failed to list questions: {e}")
        _finish(EXIT_DB_ERROR)

    print_question_page(result.to_dict(), trashed=trash)
    _finish(EXIT_SUCCESS)


# ============================================================================
# backup
# ============================================================================

backup_app = typer.Typer(help="Export or import question backups")
app.add_typer(backup_app, name="backup")


@backup_app.command("export")
def backup_export(
    output: Path = typer.Option(
        Path(BACKUP_FILENAME), "--output", "-o", help="Backup file to write"
    ),
    config: Path = ConfigOption,
    db: str = DbOption,
    format: str = FormatOption,
    verbose: bool = VerboseOption,
):
    """
    Write every question (active and trashed) to a JSON backup file.

    Examples:
      mistake-notebook backup export --output ./backups/E-Bu_backup.json
    """
    _start(format, verbose)
    settings = _load_settings(config, db)
    _require_existing_db(settings.database.path)

    try:
        with spinner(f"Exporting questions to {output}..."):
            with open_db(
                settings.database.path, settings.database.busy_timeout_seconds
            ) as conn:
                backup = export_backup(conn)
            write_backup_file(backup, str(output))
    except (DatabaseError, BackupError, sqlite3.Error) as e:
        error(f"Export failed: {e}")
        _finish(EXIT_DB_ERROR)

    output_mode.add_json("output", str(output))
    output_mode.add_json("count", len(backup.data))
    success(f"Exported {len(backup.data)} questions to {output}")
    _finish(EXIT_SUCCESS)


@backup_app.command("import")
def backup_import(
    input: Path = typer.Option(..., "--input", "-i", help="Backup file to load"),
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Skip the confirmation prompt (for automation)"
    ),
    config: Path = ConfigOption,
    db: str = DbOption,
    format: str = FormatOption,
    verbose: bool = VerboseOption,
):
    """
    Replace ALL stored questions with the contents of a backup file.

    Imported questions get new ids. The import is atomic: on any error the
    existing questions are kept.

    Examples:
      mistake-notebook backup import --input E-Bu_backup.json --yes
    """
    _start(format, verbose)
    settings = _load_settings(config, db)

    if not yes:
        if not output_mode.is_human():
            error("--yes is required to import in json mode")
            _finish(EXIT_CONFIG_ERROR)
        typer.confirm(
            f"This deletes every question in {settings.database.path}. Continue?",
            abort=True,
        )

    try:
        backup = load_backup_file(str(input))
        with spinner(f"Importing {len(backup.data)} questions..."):
            init_db_if_needed(
                settings.database.path, settings.database.busy_timeout_seconds
            )
            with open_db(
                settings.database.path, settings.database.busy_timeout_seconds
            ) as conn:
                count = import_backup(conn, backup)
    except DatabaseMigrationError as e:
        error(f"Migration failed: {e}")
        _finish(EXIT_MIGRATION_ERROR)
    except (DatabaseError, BackupError) as e:
        error(f"Import failed: {e}")
        _finish(EXIT_DB_ERROR)

    output_mode.add_json("count", count)
    success(f"Imported {count} questions into {settings.database.path}")
    _finish(EXIT_SUCCESS)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
    ),
):
    """
    Mistake Notebook - a searchable notebook of exam questions.

    Exit codes:
      0: Success
      1: Configuration error
      2: Database error
      3: Migration failure

    Use 'mistake-notebook COMMAND --help' for detailed command documentation.
    """
    if version:
        from rich.console import Console

        Console().print(f"[bold cyan]mistake-notebook[/bold cyan] version {__version__}")
        raise typer.Exit(EXIT_SUCCESS)

    if ctx.invoked_subcommand is None:
        from rich.console import Console

        console = Console()
        console.print("[yellow]Use --help to see available commands[/yellow]")
        console.print()
        console.print("Commands:")
        console.print("  serve      Start the HTTP API")
        console.print("  migrate    Inspect and apply schema migrations")
        console.print("  questions  Browse stored questions")
        console.print("  backup     Export or import question backups")


if __name__ == "__main__":
    app()
