"""
Backup export and import for the question store.

A backup is a JSON document:
    {
        "version": "1.2.0",
        "exportedAt": 1730536245,      # Unix seconds
        "data": [ {question}, ... ]    # camelCase, both partitions
    }

Import wipes the questions table and reloads it from the document in a
single transaction. Every imported record gets a fresh UUID4 id so a backup
can be loaded into any installation; all other fields, including createdAt
and deletedAt, are kept. If any record fails, nothing changes.

The AI config row and the migration ledger are not part of a backup.

Example:
    >>> backup = export_backup(conn)
    >>> write_backup_file(backup, "./E-Bu_backup.json")
    >>> count = import_backup(conn, load_backup_file("./E-Bu_backup.json"))
"""

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..exceptions import BackupError, DatabaseError
from ..utils.time import normalize_timestamp, unix_seconds, utc_timestamp
from .db import transaction
from .models import Question, Subject
from .questions import insert_question, list_all_questions, new_question_id

logger = logging.getLogger(__name__)

BACKUP_FORMAT_VERSION = "1.2.0"
BACKUP_FILENAME = "E-Bu_backup.json"


@dataclass
class BackupData:
    version: str = BACKUP_FORMAT_VERSION
    exported_at: int = 0
    data: list[Question] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "exportedAt": self.exported_at,
            "data": [q.to_dict() for q in self.data],
        }

    @classmethod
    def from_dict(cls, payload: Any) -> "BackupData":
        """
        Parse a backup document.

        Raises:
            BackupError: If the document or one of its records is malformed
        """
        if not isinstance(payload, dict):
            raise BackupError("Invalid backup file format: expected a JSON object")

        records = payload.get("data")
        if not isinstance(records, list):
            raise BackupError("Invalid backup file format: 'data' must be a list")

        questions = [
            question_from_dict(record, index) for index, record in enumerate(records)
        ]
        return cls(
            version=str(payload.get("version") or BACKUP_FORMAT_VERSION),
            exported_at=int(payload.get("exportedAt") or 0),
            data=questions,
        )


def _optional_list(value: Any, key: str, index: int) -> list[str] | None:
    if value is None:
        return None
    if not isinstance(value, list):
        raise BackupError(f"Invalid backup record {index}: '{key}' must be a list")
    return [str(v) for v in value]


def question_from_dict(record: Any, index: int = 0) -> Question:
    """
    Build a Question from one camelCase backup record.

    The record's own id is kept here; import replaces it. Missing text
    fields default to "", a missing difficulty to 1 and a missing createdAt
    to now. Out-of-range difficulties are kept so the CHECK constraint
    rejects them on import.

    Raises:
        BackupError: If the record is not an object, content is missing,
            or a timestamp/difficulty value is unreadable
    """
    if not isinstance(record, dict):
        raise BackupError(f"Invalid backup record {index}: expected an object")
    if not record.get("content"):
        raise BackupError(f"Invalid backup record {index}: 'content' is required")

    try:
        difficulty = record.get("difficulty")
        difficulty = 1 if difficulty is None else int(difficulty)
        created_at = normalize_timestamp(record.get("createdAt")) or utc_timestamp()
        last_reviewed_at = normalize_timestamp(record.get("lastReviewedAt"))
        deleted_at = normalize_timestamp(record.get("deletedAt"))
    except (TypeError, ValueError) as e:
        raise BackupError(f"Invalid backup record {index}: {e}") from e

    return Question(
        id=str(record.get("id") or ""),
        content=record["content"],
        analysis=record.get("analysis") or "",
        learning_guide=record.get("learningGuide") or "",
        knowledge_points=_optional_list(record.get("knowledgePoints"), "knowledgePoints", index),
        subject=Subject.parse(record.get("subject")),
        difficulty=difficulty,
        created_at=created_at,
        options=_optional_list(record.get("options"), "options", index),
        image=record.get("image"),
        cropped_diagram=record.get("croppedDiagram"),
        diagram_description=record.get("diagramDescription"),
        answer=record.get("answer"),
        last_reviewed_at=last_reviewed_at,
        deleted_at=deleted_at,
    )


def export_backup(conn: sqlite3.Connection) -> BackupData:
    """Snapshot every question (active and trashed)."""
    questions = list_all_questions(conn)
    logger.info(f"Exporting backup with {len(questions)} questions")
    return BackupData(
        version=BACKUP_FORMAT_VERSION,
        exported_at=unix_seconds(),
        data=questions,
    )


def import_backup(conn: sqlite3.Connection, backup: BackupData) -> int:
    """
    Replace all questions with the backup's records.

    Runs as one transaction: the delete and every insert commit together,
    or the table is left exactly as it was.

    Returns:
        int: Number of imported questions

    Raises:
        BackupError: If a record cannot be stored (the import is rolled back)
    """
    try:
        with transaction(conn, immediate=True):
            removed = conn.execute("DELETE FROM questions").rowcount
            for question in backup.data:
                question.id = new_question_id()
                insert_question(conn, question)
    except (DatabaseError, sqlite3.Error) as e:
        logger.error(f"Backup import failed, nothing was changed: {e}")
        raise BackupError(f"Failed to import questions: {e}") from e

    logger.info(f"Imported {len(backup.data)} questions (replaced {removed})")
    return len(backup.data)


def write_backup_file(backup: BackupData, output_path: str) -> Path:
    """
    Write a backup document as UTF-8 JSON.

    Raises:
        BackupError: If the file cannot be written
    """
    path = Path(output_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(backup.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8"
        )
    except OSError as e:
        logger.error(f"File write error: {e}", exc_info=True)
        raise BackupError(f"Cannot write backup file {output_path}: {e}") from e

    logger.info(f"Wrote backup to {path}")
    return path


def load_backup_file(input_path: str) -> BackupData:
    """
    Read and parse a backup document.

    Raises:
        BackupError: If the file is missing, not JSON, or malformed
    """
    try:
        payload = json.loads(Path(input_path).read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise BackupError(f"Backup file not found: {input_path}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise BackupError(f"Cannot read backup file {input_path}: {e}") from e

    return BackupData.from_dict(payload)
