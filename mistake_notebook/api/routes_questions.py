"""
Question API: paginated listings, CRUD and the trash lifecycle.
"""

import sqlite3

from fastapi import APIRouter, Depends, Query

from ..storage.models import Partition
from ..storage.paging import DEFAULT_PAGE_SIZE, get_questions_page
from ..storage.questions import (
    create_question,
    get_question,
    hard_delete_question,
    restore_question,
    soft_delete_question,
    update_question,
)
from .deps import get_db
from .schemas import QuestionCreate, QuestionUpdate

router = APIRouter(prefix="/api", tags=["questions"])


def _list_partition(
    conn: sqlite3.Connection,
    partition: Partition,
    page: int,
    page_size: int,
    tag: str | None,
    q: str | None,
    subject: str | None,
) -> dict:
    result = get_questions_page(
        conn,
        partition,
        tag=tag,
        query=q,
        subject=subject,
        page=page,
        page_size=page_size,
    )
    return result.to_dict()


@router.get("/questions")
def questions_list(
    page: int = Query(1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, alias="pageSize"),
    tag: str | None = Query(None),
    q: str | None = Query(None),
    subject: str | None = Query(None),
    conn: sqlite3.Connection = Depends(get_db),
) -> dict:
    return _list_partition(conn, Partition.ACTIVE, page, page_size, tag, q, subject)


@router.get("/trash")
def trash_list(
    page: int = Query(1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, alias="pageSize"),
    tag: str | None = Query(None),
    q: str | None = Query(None),
    subject: str | None = Query(None),
    conn: sqlite3.Connection = Depends(get_db),
) -> dict:
    return _list_partition(conn, Partition.TRASHED, page, page_size, tag, q, subject)


@router.get("/questions/{question_id}")
def question_get(question_id: str, conn: sqlite3.Connection = Depends(get_db)) -> dict:
    return get_question(conn, question_id).to_dict()


@router.post("/questions", status_code=201)
def question_create(
    body: QuestionCreate, conn: sqlite3.Connection = Depends(get_db)
) -> dict:
    return create_question(conn, body.to_draft()).to_dict()


@router.put("/questions/{question_id}")
def question_update(
    question_id: str, body: QuestionUpdate, conn: sqlite3.Connection = Depends(get_db)
) -> dict:
    return update_question(conn, question_id, body.to_changes()).to_dict()


@router.delete("/questions/{question_id}")
def question_delete(question_id: str, conn: sqlite3.Connection = Depends(get_db)) -> dict:
    soft_delete_question(conn, question_id)
    return {"message": "Question deleted successfully"}


@router.patch("/questions/{question_id}/restore")
def question_restore(question_id: str, conn: sqlite3.Connection = Depends(get_db)) -> dict:
    restore_question(conn, question_id)
    return {"message": "Question restored successfully"}


@router.delete("/questions/{question_id}/hard")
def question_hard_delete(
    question_id: str, conn: sqlite3.Connection = Depends(get_db)
) -> dict:
    hard_delete_question(conn, question_id)
    return {"message": "Question permanently deleted"}
