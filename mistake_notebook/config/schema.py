"""
Configuration schema models for Mistake Notebook.

This module defines Pydantic models for validating the optional
mistake_notebook.config.yaml file. Every field has a default, so an absent
file (or an empty section) yields a working configuration.

Models:
    ServerSettings: HTTP listener and static frontend directory
    DatabaseSettings: SQLite file location, busy timeout, startup migrations
    AppConfig: Root configuration model (validates entire YAML)
"""

from pydantic import BaseModel, field_validator

DEFAULT_DB_PATH = "./data/ebu.db"
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080


class ServerSettings(BaseModel):
    """
    HTTP server settings.

    Attributes:
        host: Interface to bind (default: all interfaces)
        port: TCP port (default: 8080)
        static_dir: Directory with the built frontend to serve at /static;
            None disables static file serving
        cors_origins: Origins allowed by the CORS middleware
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    static_dir: str | None = None
    cors_origins: list[str] = ["*"]

    @field_validator("host")
    @classmethod
    def validate_host(cls, v: str) -> str:
        """Validate host is non-empty."""
        if not v or v.isspace():
            raise ValueError("host cannot be empty")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port is a usable TCP port."""
        if not 1 <= v <= 65535:
            raise ValueError(f"port must be between 1 and 65535, got: {v}")
        return v


class DatabaseSettings(BaseModel):
    """
    SQLite store settings.

    Attributes:
        path: Database file; parent directories are created on startup
        busy_timeout_seconds: How long a connection waits on a locked database
        auto_migrate: Apply pending migrations when the API starts; when off,
            startup fails if any migration is pending
    """

    path: str = DEFAULT_DB_PATH
    busy_timeout_seconds: float = 5.0
    auto_migrate: bool = True

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Validate path is non-empty."""
        if not v or v.isspace():
            raise ValueError("database path cannot be empty")
        return v

    @field_validator("busy_timeout_seconds")
    @classmethod
    def validate_busy_timeout(cls, v: float) -> float:
        """Validate timeout is positive."""
        if v <= 0:
            raise ValueError(f"busy_timeout_seconds must be positive, got: {v}")
        return v


class AppConfig(BaseModel):
    """
    Root configuration model.

    Example YAML:
        server:
          port: 8080
          static_dir: ./dist
        database:
          path: ./data/ebu.db
          auto_migrate: true
        verbose: false
    """

    server: ServerSettings = ServerSettings()
    database: DatabaseSettings = DatabaseSettings()
    verbose: bool = False
