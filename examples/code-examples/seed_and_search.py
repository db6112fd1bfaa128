#!/usr/bin/env python3
"""
Seed a Mistake Notebook database and run a few filtered listings.

This script demonstrates how to:
- Initialize (and migrate) a database from Python
- Store questions with knowledge points
- Filter by tag, text and subject with pagination
- Move a question to the trash and back

Usage:
    python examples/code-examples/seed_and_search.py [db_path]
"""

import sys

from mistake_notebook.storage.db import init_db_if_needed, open_db
from mistake_notebook.storage.models import Partition, Subject
from mistake_notebook.storage.paging import get_questions_page
from mistake_notebook.storage.questions import (
    QuestionDraft,
    create_question,
    restore_question,
    soft_delete_question,
)

SAMPLES = [
    QuestionDraft(
        content="已知 $a, b > 0$ 且 $a + b = 2$，求 $ab$ 的最大值。",
        analysis="由基本不等式 $ab \\le \\left(\\frac{a+b}{2}\\right)^2 = 1$，当 $a = b = 1$ 时取等号。",
        learning_guide="注意“一正二定三相等”。",
        knowledge_points=["基本不等式", "其他"],
        subject=Subject.MATH,
        difficulty=3,
    ),
    QuestionDraft(
        content="一物体从静止开始做匀加速直线运动，2 s 内位移为 4 m，求加速度。",
        analysis="由 $x = \\frac{1}{2}at^2$ 得 $a = 2\\,\\text{m/s}^2$。",
        learning_guide="熟记匀变速运动的位移公式。",
        knowledge_points=["匀变速直线运动"],
        subject=Subject.PHYSICS,
        difficulty=2,
    ),
]


def main(db_path: str) -> None:
    applied = init_db_if_needed(db_path)
    print(f"Database ready ({len(applied)} migration(s) applied)")

    with open_db(db_path) as conn:
        stored = [create_question(conn, draft) for draft in SAMPLES]

        page = get_questions_page(conn, Partition.ACTIVE, tag="基本不等式")
        print(f"Tagged 基本不等式: {page.total}")

        page = get_questions_page(conn, Partition.ACTIVE, subject=str(Subject.PHYSICS))
        print(f"Physics questions: {page.total}")

        soft_delete_question(conn, stored[0].id)
        trash = get_questions_page(conn, Partition.TRASHED)
        print(f"In trash: {trash.total}")

        restore_question(conn, stored[0].id)
        active = get_questions_page(conn, Partition.ACTIVE, page=1, page_size=10)
        print(f"Active after restore: {active.total}")


if __name__ == "__main__":
    main(sys.argv[1] if len(sys.argv) > 1 else "./data/example.db")
