"""
Administrative schema migration API.

POST /api/db/migrate applies pending migrations on demand. A failure is
reported as 500 {"error", "version"} and the server keeps running; the
failed migration stays pending.
"""

import sqlite3

from fastapi import APIRouter, Depends

from ..config.schema import AppConfig
from ..storage.migrations import apply_migrations_to_latest, get_migration_status
from .deps import get_config, get_db

router = APIRouter(prefix="/api/db", tags=["migrations"])


@router.get("/migrations")
def migrations_status(
    conn: sqlite3.Connection = Depends(get_db),
    config: AppConfig = Depends(get_config),
) -> dict:
    return get_migration_status(conn, config.database.path).to_dict()


@router.post("/migrate")
def migrations_apply(conn: sqlite3.Connection = Depends(get_db)) -> dict:
    applied = apply_migrations_to_latest(conn)
    return {"applied": [m.to_dict() for m in applied], "count": len(applied)}
