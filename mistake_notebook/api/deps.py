"""
FastAPI dependencies shared by the routers.

The application stores its AppConfig and analyzer on app.state; each request
gets its own SQLite connection, closed when the response is sent.
"""

import sqlite3
from collections.abc import Iterator

from fastapi import Request

from ..analysis.mock_analyzer import MockQuestionAnalyzer
from ..config.schema import AppConfig
from ..storage.db import open_db


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_db(request: Request) -> Iterator[sqlite3.Connection]:
    """Yield a fresh connection to the configured database."""
    database = get_config(request).database
    with open_db(database.path, database.busy_timeout_seconds) as conn:
        yield conn


def get_analyzer(request: Request) -> MockQuestionAnalyzer:
    return request.app.state.analyzer
