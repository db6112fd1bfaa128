"""
Tests for storage/backup.py - JSON export and all-or-nothing import.
"""

import json

import pytest
from freezegun import freeze_time

from mistake_notebook.exceptions import BackupError
from mistake_notebook.storage.backup import (
    BACKUP_FORMAT_VERSION,
    BackupData,
    export_backup,
    import_backup,
    load_backup_file,
    question_from_dict,
    write_backup_file,
)
from mistake_notebook.storage.models import Subject
from mistake_notebook.storage.questions import (
    create_question,
    list_all_questions,
    soft_delete_question,
)


def _record(**overrides):
    record = {
        "id": "old-id",
        "content": "导入的题目",
        "analysis": "解析",
        "learningGuide": "复习",
        "knowledgePoints": ["导入"],
        "subject": "化学",
        "difficulty": 2,
        "createdAt": "2025-10-01T00:00:00Z",
    }
    record.update(overrides)
    return record


# ============================================================================
# Export Tests
# ============================================================================


@freeze_time("2025-11-02 08:30:45")
def test_export_contains_both_partitions(conn, make_draft):
    active = create_question(conn, make_draft(content="留下"))
    trashed = create_question(conn, make_draft(content="删掉"))
    soft_delete_question(conn, trashed.id)

    backup = export_backup(conn)
    data = backup.to_dict()

    assert data["version"] == BACKUP_FORMAT_VERSION == "1.2.0"
    assert data["exportedAt"] == 1762072245
    assert {q["id"] for q in data["data"]} == {active.id, trashed.id}
    by_id = {q["id"]: q for q in data["data"]}
    assert "deletedAt" in by_id[trashed.id]
    assert "deletedAt" not in by_id[active.id]


def test_export_of_empty_store(conn):
    assert export_backup(conn).data == []


# ============================================================================
# Parse Tests
# ============================================================================


def test_question_from_dict_maps_camel_case():
    question = question_from_dict(
        _record(
            options=["A", "B"],
            croppedDiagram="data:,x",
            lastReviewedAt="2025-10-02T08:00:00+08:00",
            deletedAt="2025-10-03T00:00:00Z",
        )
    )

    assert question.id == "old-id"
    assert question.subject is Subject.CHEMISTRY
    assert question.learning_guide == "复习"
    assert question.options == ["A", "B"]
    assert question.cropped_diagram == "data:,x"
    assert question.created_at == "2025-10-01T00:00:00.000000Z"
    assert question.last_reviewed_at == "2025-10-02T00:00:00.000000Z"
    assert question.deleted_at == "2025-10-03T00:00:00.000000Z"


@freeze_time("2025-11-02 08:30:45")
def test_question_from_dict_defaults_missing_fields():
    question = question_from_dict({"content": "只有题干"})

    assert question.analysis == ""
    assert question.learning_guide == ""
    assert question.knowledge_points is None
    assert question.subject is Subject.OTHER
    assert question.difficulty == 1
    assert question.created_at == "2025-11-02T08:30:45.000000Z"


@pytest.mark.parametrize(
    ("record", "message"),
    [
        ("not an object", "expected an object"),
        ({"analysis": "no content"}, "'content' is required"),
        (_record(knowledgePoints="tag"), "'knowledgePoints' must be a list"),
        (_record(createdAt="yesterday"), "Invalid ISO 8601"),
        (_record(difficulty="hard"), "invalid literal"),
    ],
)
def test_question_from_dict_rejects_bad_record(record, message):
    with pytest.raises(BackupError, match=message):
        question_from_dict(record, index=3)


def test_question_from_dict_keeps_zero_difficulty():
    assert question_from_dict(_record(difficulty=0)).difficulty == 0


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ([], "expected a JSON object"),
        ({"version": "1.2.0"}, "'data' must be a list"),
        ({"data": {"a": 1}}, "'data' must be a list"),
    ],
)
def test_from_dict_rejects_bad_document(payload, message):
    with pytest.raises(BackupError, match=message):
        BackupData.from_dict(payload)


# ============================================================================
# Import Tests
# ============================================================================


def test_import_replaces_all_questions_with_fresh_ids(conn, make_draft):
    existing = create_question(conn, make_draft(content="旧数据"))
    backup = BackupData.from_dict(
        {
            "version": "1.2.0",
            "exportedAt": 1762072245,
            "data": [_record(), _record(id="old-2", deletedAt="2025-10-05T00:00:00Z")],
        }
    )

    count = import_backup(conn, backup)

    questions = list_all_questions(conn)
    assert count == 2
    assert len(questions) == 2
    assert existing.id not in {q.id for q in questions}
    assert not {"old-id", "old-2"} & {q.id for q in questions}
    assert sorted(q.deleted_at is not None for q in questions) == [False, True]
    assert all(q.created_at == "2025-10-01T00:00:00.000000Z" for q in questions)


def test_import_is_all_or_nothing(conn, make_draft):
    """Test that one unstorable record leaves the original table untouched."""
    existing = create_question(conn, make_draft(content="旧数据"))
    backup = BackupData.from_dict(
        {"data": [_record(), _record(knowledgePoints=None)]}
    )

    with pytest.raises(BackupError, match="Failed to import questions"):
        import_backup(conn, backup)

    assert not conn.in_transaction
    assert [q.id for q in list_all_questions(conn)] == [existing.id]


@pytest.mark.parametrize("difficulty", [0, 6])
def test_import_rejects_out_of_range_difficulty(conn, make_draft, difficulty):
    existing = create_question(conn, make_draft(content="旧数据"))
    backup = BackupData.from_dict({"data": [_record(difficulty=difficulty)]})

    with pytest.raises(BackupError, match="Failed to import questions"):
        import_backup(conn, backup)

    assert [q.id for q in list_all_questions(conn)] == [existing.id]


def test_import_of_empty_backup_clears_store(conn, make_draft):
    create_question(conn, make_draft())

    assert import_backup(conn, BackupData()) == 0
    assert list_all_questions(conn) == []


def test_export_then_import_preserves_content(conn, make_draft):
    create_question(conn, make_draft(content="甲", options=["A", "B"]))
    create_question(conn, make_draft(content="乙", subject=Subject.BIOLOGY))

    payload = export_backup(conn).to_dict()
    import_backup(conn, BackupData.from_dict(payload))

    restored = {q.content: q for q in list_all_questions(conn)}
    assert restored["甲"].options == ["A", "B"]
    assert restored["乙"].subject is Subject.BIOLOGY


# ============================================================================
# File Tests
# ============================================================================


def test_write_and_load_backup_file(tmp_path, conn, make_draft):
    create_question(conn, make_draft(content="写入文件"))
    output = tmp_path / "exports" / "E-Bu_backup.json"

    path = write_backup_file(export_backup(conn), str(output))

    assert path == output
    raw = output.read_text(encoding="utf-8")
    assert "写入文件" in raw
    loaded = load_backup_file(str(output))
    assert [q.content for q in loaded.data] == ["写入文件"]


def test_load_missing_file(tmp_path):
    with pytest.raises(BackupError, match="not found"):
        load_backup_file(str(tmp_path / "missing.json"))


def test_load_invalid_json(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(BackupError, match="Cannot read backup file"):
        load_backup_file(str(path))


def test_load_rejects_wrong_shape(tmp_path):
    path = tmp_path / "list.json"
    path.write_text(json.dumps([1, 2, 3]), encoding="utf-8")

    with pytest.raises(BackupError, match="expected a JSON object"):
        load_backup_file(str(path))
