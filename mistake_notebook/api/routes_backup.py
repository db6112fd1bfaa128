"""
Backup API: download every question, or replace them all from a backup.
"""

import sqlite3
from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from ..storage.backup import BACKUP_FILENAME, BackupData, export_backup, import_backup
from .deps import get_db

router = APIRouter(prefix="/api", tags=["backup"])


@router.get("/export")
def backup_export(conn: sqlite3.Connection = Depends(get_db)) -> JSONResponse:
    backup = export_backup(conn)
    return JSONResponse(
        backup.to_dict(),
        headers={"Content-Disposition": f"attachment; filename={BACKUP_FILENAME}"},
    )


@router.post("/import")
def backup_import(
    payload: Any = Body(...), conn: sqlite3.Connection = Depends(get_db)
) -> dict:
    """Wipe all questions and load the backup (BackupError -> 400)."""
    count = import_backup(conn, BackupData.from_dict(payload))
    return {"message": "Backup imported successfully", "count": count}
