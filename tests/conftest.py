"""
Shared fixtures for Mistake Notebook tests.

Every test gets its own temporary SQLite database.
"""

import sqlite3

import pytest

from mistake_notebook.storage.db import init_db_if_needed, open_db
from mistake_notebook.storage.models import Subject
from mistake_notebook.storage.questions import QuestionDraft


@pytest.fixture
def db_path(tmp_path):
    """Path of a freshly initialized (fully migrated) database."""
    path = tmp_path / "ebu.db"
    init_db_if_needed(str(path))
    return str(path)


@pytest.fixture
def conn(db_path):
    """Open connection to the initialized database."""
    with open_db(db_path) as connection:
        yield connection


@pytest.fixture
def make_draft():
    """Factory for question drafts with sensible defaults."""

    def _make_draft(**overrides) -> QuestionDraft:
        fields = {
            "content": "已知 $a + b = 2$，求 $ab$ 的最大值。",
            "analysis": "由基本不等式可得最大值为 1。",
            "learning_guide": "一正二定三相等。",
            "knowledge_points": ["基本不等式"],
            "subject": Subject.MATH,
            "difficulty": 3,
        }
        fields.update(overrides)
        return QuestionDraft(**fields)

    return _make_draft


@pytest.fixture
def legacy_db_path(tmp_path):
    """Database written by the first release: no learning_guide, config_data or ledger."""
    path = tmp_path / "data" / "ebu.db"
    path.parent.mkdir()
    db_path = str(path)
    conn = sqlite3.connect(db_path)
    conn.execute("""
        CREATE TABLE questions (
            id TEXT PRIMARY KEY,
            image TEXT,
            cropped_diagram TEXT,
            content TEXT NOT NULL,
            options TEXT,
            diagram_description TEXT,
            answer TEXT,
            analysis TEXT NOT NULL,
            knowledge_points TEXT NOT NULL,
            subject TEXT NOT NULL,
            difficulty INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL,
            last_reviewed_at TEXT,
            deleted_at TEXT
        )
    """)
    conn.execute("""
        CREATE TABLE ai_configs (
            id INTEGER PRIMARY KEY,
            type TEXT NOT NULL DEFAULT 'GEMINI',
            api_key TEXT,
            base_url TEXT,
            model_name TEXT,
            system_prompt TEXT
        )
    """)
    conn.execute(
        "INSERT INTO questions (id, content, analysis, knowledge_points, subject, "
        "difficulty, created_at) VALUES ('legacy-1', '旧题', '旧解析', '[\"旧知识点\"]', "
        "'物理', 2, '2024-01-01T00:00:00.000000Z')"
    )
    conn.commit()
    conn.close()
    return db_path
