"""
Question records: creation, lookup, partial update and lifecycle transitions.

A question is active while deleted_at is NULL and trashed once it is set.
Lifecycle:
    create -> update* -> soft_delete -> restore (back to active)
                                     -> hard_delete (row removed, final)

There are no version checks: the last write wins.

Example:
    >>> draft = QuestionDraft(
    ...     content="求 $x^2$ 的最小值",
    ...     analysis="配方",
    ...     learning_guide="复习二次函数",
    ...     knowledge_points=["二次函数"],
    ...     subject=Subject.MATH,
    ...     difficulty=2,
    ... )
    >>> question = create_question(conn, draft)
    >>> soft_delete_question(conn, question.id)
    >>> get_question(conn, question.id).partition
    <Partition.TRASHED: 'trashed'>
"""

import logging
import sqlite3
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ..exceptions import DatabaseQueryError, QuestionNotFoundError
from ..utils.logging import log_with_context
from ..utils.time import utc_timestamp
from .models import Question, Subject, encode_string_list

logger = logging.getLogger(__name__)

QUESTION_COLUMNS = (
    "id",
    "image",
    "cropped_diagram",
    "content",
    "options",
    "diagram_description",
    "answer",
    "analysis",
    "learning_guide",
    "knowledge_points",
    "subject",
    "difficulty",
    "created_at",
    "last_reviewed_at",
    "deleted_at",
)

# Fields an update may change, mapped to their column
UPDATABLE_FIELDS: dict[str, str] = {
    "content": "content",
    "analysis": "analysis",
    "learning_guide": "learning_guide",
    "knowledge_points": "knowledge_points",
    "options": "options",
    "subject": "subject",
    "difficulty": "difficulty",
    "image": "image",
    "cropped_diagram": "cropped_diagram",
    "diagram_description": "diagram_description",
    "answer": "answer",
    "last_reviewed_at": "last_reviewed_at",
}

_SELECT_QUESTION = f"SELECT {', '.join(QUESTION_COLUMNS)} FROM questions"


@dataclass
class QuestionDraft:
    """The caller-supplied part of a new question (no id, no timestamps)."""

    content: str
    analysis: str
    learning_guide: str
    knowledge_points: list[str] | None
    subject: Subject
    difficulty: int = 1
    options: list[str] | None = None
    image: str | None = None
    cropped_diagram: str | None = None
    diagram_description: str | None = None
    answer: str | None = None


def new_question_id() -> str:
    return str(uuid.uuid4())


def insert_question(conn: sqlite3.Connection, question: Question) -> None:
    """
    Insert a fully populated record as-is.

    Used by create_question and by backup import; does not commit on its own
    when called inside an open transaction.

    Raises:
        DatabaseQueryError: On constraint violations (duplicate id, missing
            knowledge points, difficulty out of range) or other SQLite errors
    """
    row = question.to_row()
    placeholders = ", ".join("?" for _ in QUESTION_COLUMNS)
    try:
        conn.execute(
            f"INSERT INTO questions ({', '.join(QUESTION_COLUMNS)}) VALUES ({placeholders})",
            tuple(row[column] for column in QUESTION_COLUMNS),
        )
    except sqlite3.Error as e:
        raise DatabaseQueryError(f"Failed to insert question {question.id}: {e}") from e


def create_question(conn: sqlite3.Connection, draft: QuestionDraft) -> Question:
    """
    Store a new active question.

    Assigns a fresh UUID4 id and the creation timestamp.

    Args:
        conn: Open connection
        draft: Caller-supplied fields

    Returns:
        Question: The stored record

    Raises:
        DatabaseQueryError: If the row violates a constraint
    """
    question = Question(
        id=new_question_id(),
        content=draft.content,
        analysis=draft.analysis,
        learning_guide=draft.learning_guide,
        knowledge_points=draft.knowledge_points,
        subject=Subject.parse(draft.subject),
        difficulty=draft.difficulty,
        created_at=utc_timestamp(),
        options=draft.options,
        image=draft.image,
        cropped_diagram=draft.cropped_diagram,
        diagram_description=draft.diagram_description,
        answer=draft.answer,
    )
    insert_question(conn, question)

    log_with_context(
        logger,
        logging.INFO,
        "Question created",
        context={"subject": str(question.subject), "difficulty": question.difficulty},
        question_id=question.id,
    )
    return question


def get_question(conn: sqlite3.Connection, question_id: str) -> Question:
    """
    Fetch one question from either partition.

    Raises:
        QuestionNotFoundError: If no row has this id
        DatabaseQueryError: On SQLite errors
    """
    try:
        row = conn.execute(f"{_SELECT_QUESTION} WHERE id = ?", (question_id,)).fetchone()
    except sqlite3.Error as e:
        raise DatabaseQueryError(f"Failed to read question {question_id}: {e}") from e

    if row is None:
        raise QuestionNotFoundError(question_id)
    return Question.from_row(row)


def list_all_questions(conn: sqlite3.Connection) -> list[Question]:
    """Every stored question, active and trashed, oldest first."""
    try:
        rows = conn.execute(f"{_SELECT_QUESTION} ORDER BY created_at ASC, id ASC").fetchall()
    except sqlite3.Error as e:
        raise DatabaseQueryError(f"Failed to list questions: {e}") from e
    return [Question.from_row(row) for row in rows]


def _encode_change(field_name: str, value: Any) -> Any:
    if field_name in ("knowledge_points", "options"):
        return encode_string_list(value)
    if field_name == "subject":
        return str(Subject.parse(value))
    return value


def update_question(
    conn: sqlite3.Connection, question_id: str, changes: Mapping[str, Any]
) -> Question:
    """
    Apply a partial update and return the updated record.

    Only keys present in `changes` are written. id, created_at and deleted_at
    cannot be changed here (deleted_at moves through the lifecycle
    functions); unknown keys are ignored with a warning.

    Args:
        conn: Open connection
        question_id: Record to change
        changes: snake_case field name -> new value

    Returns:
        Question: The record after the update

    Raises:
        QuestionNotFoundError: If no row has this id
        DatabaseQueryError: If the new values violate a constraint
    """
    assignments = []
    params: list[Any] = []
    for field_name, value in changes.items():
        column = UPDATABLE_FIELDS.get(field_name)
        if column is None:
            logger.warning(f"Ignoring non-updatable question field: {field_name}")
            continue
        assignments.append(f"{column} = ?")
        params.append(_encode_change(field_name, value))

    if not assignments:
        return get_question(conn, question_id)

    try:
        cursor = conn.execute(
            f"UPDATE questions SET {', '.join(assignments)} WHERE id = ?",
            (*params, question_id),
        )
    except sqlite3.Error as e:
        raise DatabaseQueryError(f"Failed to update question {question_id}: {e}") from e

    if cursor.rowcount == 0:
        raise QuestionNotFoundError(question_id)

    log_with_context(
        logger,
        logging.INFO,
        "Question updated",
        context={"fields": sorted(f for f in changes if f in UPDATABLE_FIELDS)},
        question_id=question_id,
    )
    return get_question(conn, question_id)


# ============================================================================
# Lifecycle transitions
# ============================================================================


def _execute_transition(
    conn: sqlite3.Connection,
    sql: str,
    params: tuple,
    question_id: str,
    action: str,
    outcome: str,
) -> None:
    try:
        cursor = conn.execute(sql, params)
    except sqlite3.Error as e:
        raise DatabaseQueryError(f"Failed to {action} question {question_id}: {e}") from e

    if cursor.rowcount == 0:
        raise QuestionNotFoundError(question_id)

    log_with_context(logger, logging.INFO, f"Question {outcome}", question_id=question_id)


def soft_delete_question(conn: sqlite3.Connection, question_id: str) -> None:
    """
    Move a question to the trash by stamping deleted_at with the current time.

    Soft-deleting an already trashed question refreshes the timestamp.

    Raises:
        QuestionNotFoundError: If no row has this id
    """
    _execute_transition(
        conn,
        "UPDATE questions SET deleted_at = ? WHERE id = ?",
        (utc_timestamp(), question_id),
        question_id,
        "trash",
        "moved to trash",
    )


def restore_question(conn: sqlite3.Connection, question_id: str) -> None:
    """
    Move a question back to the active partition (deleted_at = NULL).

    Raises:
        QuestionNotFoundError: If no row has this id
    """
    _execute_transition(
        conn,
        "UPDATE questions SET deleted_at = NULL WHERE id = ?",
        (question_id,),
        question_id,
        "restore",
        "restored",
    )


def hard_delete_question(conn: sqlite3.Connection, question_id: str) -> None:
    """
    Remove a question permanently, whichever partition it is in.

    Raises:
        QuestionNotFoundError: If no row has this id
    """
    _execute_transition(
        conn,
        "DELETE FROM questions WHERE id = ?",
        (question_id,),
        question_id,
        "delete",
        "permanently deleted",
    )
