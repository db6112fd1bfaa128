"""
Filtered, ordered and paginated views over the questions table.

Two partitions are listed separately:
- active: deleted_at IS NULL, newest created first
- trashed: deleted_at IS NOT NULL, most recently deleted first

Filters (all optional, combined with AND; None or "" means inactive):
- tag: the literal pattern "<tag>" occurs in the knowledge_points text
- query: literal substring of any text column
- subject: exact match on the stored subject label

Matching uses instr() rather than LIKE, so it is case-sensitive and "%"
or "_" in user input have no special meaning. This is plain substring
search, not a ranked index.

Known approximation: the tag is wrapped in quotes but not escaped, so a
pattern spanning several stored elements also matches. "不等式" does not
match "基本不等式", but the tag 'a","b' matches a record stored as ["a","b"].

Example:
    >>> page = get_questions_page(conn, Partition.ACTIVE, tag="基本不等式", page=1, page_size=20)
    >>> page.total, len(page.items)
    (1, 1)
"""

import logging
import sqlite3
from typing import Any

from ..exceptions import DatabaseQueryError
from .models import Partition, Question, QuestionPage
from .questions import QUESTION_COLUMNS

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# Columns searched by the free-text filter
TEXT_SEARCH_COLUMNS = (
    "content",
    "analysis",
    "learning_guide",
    "diagram_description",
    "answer",
    "options",
    "knowledge_points",
)

_PARTITION_CLAUSES = {
    Partition.ACTIVE: ("deleted_at IS NULL", "created_at DESC, id DESC"),
    Partition.TRASHED: ("deleted_at IS NOT NULL", "deleted_at DESC, id DESC"),
}


def normalize_pagination(page: int | None, page_size: int | None) -> tuple[int, int]:
    """
    Clamp pagination input instead of rejecting it.

    page <= 0 (or None) becomes 1; page_size <= 0 (or None) becomes 20;
    page_size above 100 becomes 100.

    Examples:
        >>> normalize_pagination(0, 500)
        (1, 100)
        >>> normalize_pagination(-3, 0)
        (1, 20)
    """
    if page is None or page <= 0:
        page = 1
    if page_size is None or page_size <= 0:
        page_size = DEFAULT_PAGE_SIZE
    elif page_size > MAX_PAGE_SIZE:
        page_size = MAX_PAGE_SIZE
    return page, page_size


def encode_tag_needle(tag: str) -> str:
    """Wrap the tag in double quotes, without escaping."""
    return '"' + tag + '"'


def build_filter_clause(
    partition: Partition,
    tag: str | None = None,
    query: str | None = None,
    subject: str | None = None,
) -> tuple[str, list[Any]]:
    """
    Build the WHERE clause and its parameters for a listing.

    Returns:
        tuple[str, list]: ("deleted_at IS NULL AND ...", [params])
    """
    where, _ = _PARTITION_CLAUSES[Partition(partition)]
    clauses = [where]
    params: list[Any] = []

    if tag:
        clauses.append("instr(knowledge_points, ?) > 0")
        params.append(encode_tag_needle(tag))

    if query:
        # NULL columns make instr() NULL, which the OR treats as false
        text_match = " OR ".join(
            f"instr({column}, ?) > 0" for column in TEXT_SEARCH_COLUMNS
        )
        clauses.append(f"({text_match})")
        params.extend([query] * len(TEXT_SEARCH_COLUMNS))

    if subject:
        clauses.append("subject = ?")
        params.append(subject)

    return " AND ".join(clauses), params


def get_questions_page(
    conn: sqlite3.Connection,
    partition: Partition,
    tag: str | None = None,
    query: str | None = None,
    subject: str | None = None,
    page: int | None = 1,
    page_size: int | None = DEFAULT_PAGE_SIZE,
) -> QuestionPage:
    """
    Return one page of a partition plus the total number of matches.

    total counts the filtered partition before pagination, so
    sum(len(page.items) over all pages) == total. Pages past the end are
    empty but still report the total. Ordering ties are broken by id so
    consecutive pages never overlap.

    Args:
        conn: Open connection
        partition: Partition.ACTIVE or Partition.TRASHED
        tag: Knowledge point to require
        query: Substring to search for in text columns
        subject: Stored subject label to require (e.g. "数学")
        page: 1-based page number, clamped
        page_size: Items per page, clamped to 1..100

    Returns:
        QuestionPage: items, total and the clamped page/page_size

    Raises:
        DatabaseQueryError: On SQLite errors
    """
    page, page_size = normalize_pagination(page, page_size)
    where, params = build_filter_clause(partition, tag=tag, query=query, subject=subject)
    _, order_by = _PARTITION_CLAUSES[Partition(partition)]
    offset = (page - 1) * page_size

    try:
        total = conn.execute(
            f"SELECT COUNT(*) FROM questions WHERE {where}", params
        ).fetchone()[0]

        rows = conn.execute(
            f"SELECT {', '.join(QUESTION_COLUMNS)} FROM questions "
            f"WHERE {where} ORDER BY {order_by} LIMIT ? OFFSET ?",
            (*params, page_size, offset),
        ).fetchall()
    except sqlite3.Error as e:
        raise DatabaseQueryError(f"Failed to list {partition} questions: {e}") from e

    logger.debug(
        f"Listed {partition} questions: page={page} page_size={page_size} "
        f"returned={len(rows)} total={total}"
    )

    return QuestionPage(
        items=[Question.from_row(row) for row in rows],
        total=total,
        page=page,
        page_size=page_size,
    )
