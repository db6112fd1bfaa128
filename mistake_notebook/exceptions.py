"""
Custom exceptions for Mistake Notebook.

This module provides a hierarchy of exceptions that enable type-safe error
handling throughout the application. All exceptions inherit from the base
MistakeNotebookError for consistent catching.

Exception Hierarchy:
    MistakeNotebookError (base)
    ├── ConfigurationError
    │   ├── ConfigFileNotFoundError
    │   └── ConfigValidationError
    ├── DatabaseError
    │   ├── DatabaseInitError
    │   ├── DatabaseQueryError
    │   ├── DatabaseMigrationError
    │   │   └── MigrationCatalogError
    │   └── AIConfigMissingError
    ├── QuestionNotFoundError
    └── BackupError

Usage:
    from mistake_notebook.exceptions import QuestionNotFoundError

    try:
        question = get_question(conn, question_id)
    except QuestionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
"""


class MistakeNotebookError(Exception):
    """
    Base exception for all Mistake Notebook errors.

    Enables catching all application-specific errors with a single except clause.
    """

    pass


# ============================================================================
# Configuration Errors
# ============================================================================


class ConfigurationError(MistakeNotebookError):
    """
    Base class for configuration-related errors.

    Should be caught and result in exit code 1 (configuration error).
    """

    pass


class ConfigFileNotFoundError(ConfigurationError):
    """
    Configuration file does not exist at the specified path.

    Example:
        raise ConfigFileNotFoundError("/path/to/mistake_notebook.yaml")
    """

    pass


class ConfigValidationError(ConfigurationError):
    """
    Configuration file is invalid (YAML syntax or schema validation failed).

    Example:
        raise ConfigValidationError("server.port: must be between 1 and 65535")
    """

    pass


# ============================================================================
# Database Errors
# ============================================================================


class DatabaseError(MistakeNotebookError):
    """
    Base class for storage errors (I/O failures, constraint violations).

    Should be caught and result in exit code 2 (database error) or HTTP 500.
    """

    pass


class DatabaseInitError(DatabaseError):
    """
    Database initialization failed.

    Raised when the SQLite file cannot be created or opened.
    """

    pass


class DatabaseQueryError(DatabaseError):
    """
    Database query execution failed.

    Example:
        raise DatabaseQueryError("Failed to create question: NOT NULL constraint failed")
    """

    pass


class DatabaseMigrationError(DatabaseError):
    """
    A schema migration failed.

    Raised when an upgrade body errors. The failed step is rolled back, so
    the ledger still lists it as pending.

    Attributes:
        version: Version of the failing migration (None for catalog-wide errors)
        migration_name: Name of the failing migration
        applied: Migrations applied successfully earlier in the same call

    Example:
        raise DatabaseMigrationError(
            "migration 2 failed: duplicate column name",
            version=2,
            migration_name="ensure ai_configs.config_data column",
        )
    """

    def __init__(
        self,
        message: str,
        version: int | None = None,
        migration_name: str | None = None,
        applied: list | None = None,
    ):
        super().__init__(message)
        self.version = version
        self.migration_name = migration_name
        self.applied = applied or []


class MigrationCatalogError(DatabaseMigrationError):
    """
    The migration catalog itself is misconfigured.

    Raised at startup for non-positive, duplicate or out-of-order versions.
    """

    pass


class AIConfigMissingError(DatabaseError):
    """
    The AI config singleton row is missing after startup initialization.

    This indicates store corruption, not a normal empty state.
    """

    pass


# ============================================================================
# Domain Errors
# ============================================================================


class QuestionNotFoundError(MistakeNotebookError):
    """
    No question exists with the given id.

    Attributes:
        question_id: The id that was looked up
    """

    def __init__(self, question_id: str):
        super().__init__(f"Question not found: {question_id}")
        self.question_id = question_id


class BackupError(MistakeNotebookError):
    """
    Backup file could not be read, parsed or imported.

    Example:
        raise BackupError("Invalid backup file format: 'data' must be a list")
    """

    pass
