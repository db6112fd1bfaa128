"""
Tests for storage/paging.py - filtered, ordered, paginated listings.

Tests cover:
- Partition invariant (active vs trashed)
- Ordering (newest created first, most recently trashed first)
- Tag, free-text and subject filters, alone and combined
- Pagination clamping and the total law (pages add up to total)
"""

from datetime import timedelta

import pytest
from freezegun import freeze_time

from mistake_notebook.storage.models import Partition, Subject
from mistake_notebook.storage.paging import (
    MAX_PAGE_SIZE,
    build_filter_clause,
    encode_tag_needle,
    get_questions_page,
    normalize_pagination,
)
from mistake_notebook.storage.questions import create_question, soft_delete_question


@pytest.fixture
def seeded(conn, make_draft):
    """
    Four questions created one second apart; the last one is trashed.

    Returns a dict of name -> Question.
    """
    with freeze_time("2025-11-02 08:00:00") as frozen:
        inequality = create_question(
            conn,
            make_draft(content="求 $ab$ 的最大值", knowledge_points=["基本不等式", "其他"]),
        )
        frozen.tick(timedelta(seconds=1))
        newton = create_question(
            conn,
            make_draft(
                content="小车的加速度是多少？",
                analysis="受力分析后用 F = ma。",
                knowledge_points=["牛顿第二定律"],
                subject=Subject.PHYSICS,
                answer="2 m/s^2",
            ),
        )
        frozen.tick(timedelta(seconds=1))
        redox = create_question(
            conn,
            make_draft(
                content="配平下列方程式",
                analysis="根据电子守恒配平。",
                knowledge_points=["氧化还原"],
                subject=Subject.CHEMISTRY,
                options=["A. 2", "B. 3"],
            ),
        )
        frozen.tick(timedelta(seconds=1))
        parabola = create_question(
            conn,
            make_draft(content="求 $x^2 - 2x$ 的最小值", knowledge_points=["二次函数"]),
        )
        frozen.tick(timedelta(seconds=1))
        soft_delete_question(conn, parabola.id)

    return {
        "inequality": inequality,
        "newton": newton,
        "redox": redox,
        "parabola": parabola,
    }


def _ids(page):
    return [q.id for q in page.items]


# ============================================================================
# Pagination Normalization Tests
# ============================================================================


@pytest.mark.parametrize(
    ("page", "page_size", "expected"),
    [
        (1, 20, (1, 20)),
        (3, 7, (3, 7)),
        (0, 20, (1, 20)),
        (-3, 20, (1, 20)),
        (None, None, (1, 20)),
        (1, 0, (1, 20)),
        (1, -5, (1, 20)),
        (1, 100, (1, 100)),
        (1, 500, (1, 100)),
    ],
)
def test_normalize_pagination(page, page_size, expected):
    assert normalize_pagination(page, page_size) == expected


# ============================================================================
# Partition and Ordering Tests
# ============================================================================


def test_active_listing_excludes_trashed(conn, seeded):
    """Test that active pages contain only records without deleted_at."""
    page = get_questions_page(conn, Partition.ACTIVE)

    assert page.total == 3
    assert all(q.deleted_at is None for q in page.items)
    assert seeded["parabola"].id not in _ids(page)


def test_trash_listing_contains_only_trashed(conn, seeded):
    page = get_questions_page(conn, Partition.TRASHED)

    assert _ids(page) == [seeded["parabola"].id]
    assert all(q.deleted_at is not None for q in page.items)


def test_active_ordering_is_newest_created_first(conn, seeded):
    page = get_questions_page(conn, Partition.ACTIVE)

    assert _ids(page) == [
        seeded["redox"].id,
        seeded["newton"].id,
        seeded["inequality"].id,
    ]


def test_trash_ordering_is_most_recently_deleted_first(conn, seeded):
    """Test that trash order follows deleted_at, not created_at."""
    with freeze_time("2025-11-03 09:00:00") as frozen:
        soft_delete_question(conn, seeded["redox"].id)
        frozen.tick(timedelta(seconds=1))
        soft_delete_question(conn, seeded["inequality"].id)

    page = get_questions_page(conn, Partition.TRASHED)

    assert _ids(page) == [
        seeded["inequality"].id,
        seeded["redox"].id,
        seeded["parabola"].id,
    ]


def test_partition_accepts_plain_string(conn, seeded):
    assert get_questions_page(conn, "trashed").total == 1


# ============================================================================
# Filter Tests
# ============================================================================


def test_tag_filter_matches_whole_knowledge_point(conn, seeded):
    """Test that a tag matches a record carrying it among other tags."""
    page = get_questions_page(conn, Partition.ACTIVE, tag="基本不等式")

    assert page.total == 1
    assert _ids(page) == [seeded["inequality"].id]
    assert page.items[0].knowledge_points == ["基本不等式", "其他"]


def test_tag_filter_does_not_match_tag_fragment(conn, seeded):
    """Test that the quoted form keeps "不等式" from matching "基本不等式"."""
    assert get_questions_page(conn, Partition.ACTIVE, tag="不等式").total == 0


def test_tag_filter_in_trash(conn, seeded):
    page = get_questions_page(conn, Partition.TRASHED, tag="二次函数")
    assert _ids(page) == [seeded["parabola"].id]


def test_tag_spanning_two_knowledge_points_matches(conn, make_draft):
    """Test that the unescaped quoted pattern matches across array elements."""
    question = create_question(conn, make_draft(knowledge_points=["a", "b"]))

    page = get_questions_page(conn, Partition.ACTIVE, tag='a","b')

    assert page.total == 1
    assert _ids(page) == [question.id]


@pytest.mark.parametrize(
    ("query", "name"),
    [
        ("小车", "newton"),  # content
        ("电子守恒", "redox"),  # analysis
        ("2 m/s", "newton"),  # answer
        ("B. 3", "redox"),  # options
        ("牛顿", "newton"),  # knowledge_points
    ],
)
def test_text_filter_searches_text_columns(conn, seeded, query, name):
    page = get_questions_page(conn, Partition.ACTIVE, query=query)
    assert _ids(page) == [seeded[name].id]


def test_text_filter_treats_wildcards_literally(conn, seeded):
    """Test that % and _ are plain characters, not LIKE wildcards."""
    assert get_questions_page(conn, Partition.ACTIVE, query="%").total == 0
    assert get_questions_page(conn, Partition.ACTIVE, query="_").total == 0


def test_subject_filter_is_exact_match(conn, seeded):
    page = get_questions_page(conn, Partition.ACTIVE, subject="数学")
    assert _ids(page) == [seeded["inequality"].id]


def test_unknown_subject_matches_nothing(conn, seeded):
    """Test that subject text is not parsed or folded before matching."""
    assert get_questions_page(conn, Partition.ACTIVE, subject="math").total == 0


def test_filters_combine_with_and(conn, seeded):
    assert get_questions_page(conn, Partition.ACTIVE, subject="数学", query="小车").total == 0
    assert (
        get_questions_page(conn, Partition.ACTIVE, subject="物理", query="小车").total == 1
    )


@pytest.mark.parametrize("empty", [None, ""])
def test_empty_filters_are_inactive(conn, seeded, empty):
    page = get_questions_page(conn, Partition.ACTIVE, tag=empty, query=empty, subject=empty)
    assert page.total == 3


def test_encode_tag_needle_keeps_unicode_literal():
    assert encode_tag_needle("基本不等式") == '"基本不等式"'


def test_encode_tag_needle_does_not_escape_quotes():
    assert encode_tag_needle('a","b') == '"a","b"'


def test_build_filter_clause_without_filters():
    where, params = build_filter_clause(Partition.ACTIVE)
    assert where == "deleted_at IS NULL"
    assert params == []


# ============================================================================
# Pagination Tests
# ============================================================================


@pytest.fixture
def many_questions(conn, make_draft):
    """45 active questions sharing one creation timestamp."""
    with freeze_time("2025-11-02 08:00:00"):
        return [
            create_question(conn, make_draft(content=f"第 {n} 题")) for n in range(45)
        ]


def test_pages_add_up_to_total_without_overlap(conn, many_questions):
    """Test that ties on created_at are broken by id so pages never overlap."""
    seen = []
    for page_number in (1, 2, 3):
        page = get_questions_page(conn, Partition.ACTIVE, page=page_number, page_size=20)
        assert page.total == 45
        seen.extend(_ids(page))

    assert [len(seen[:20]), len(seen[20:40]), len(seen[40:])] == [20, 20, 5]
    assert len(set(seen)) == 45
    assert set(seen) == {q.id for q in many_questions}


def test_page_past_the_end_is_empty_but_reports_total(conn, many_questions):
    page = get_questions_page(conn, Partition.ACTIVE, page=9, page_size=20)

    assert page.items == []
    assert page.total == 45
    assert page.page == 9


def test_oversized_page_size_is_clamped(conn, make_draft):
    with freeze_time("2025-11-02 08:00:00"):
        for n in range(MAX_PAGE_SIZE + 5):
            create_question(conn, make_draft(content=f"第 {n} 题"))

    page = get_questions_page(conn, Partition.ACTIVE, page=1, page_size=500)

    assert page.page_size == MAX_PAGE_SIZE
    assert len(page.items) == MAX_PAGE_SIZE
    assert page.total == MAX_PAGE_SIZE + 5


@pytest.mark.parametrize("page_number", [0, -3])
def test_non_positive_page_behaves_as_first_page(conn, many_questions, page_number):
    first = get_questions_page(conn, Partition.ACTIVE, page=1, page_size=10)
    clamped = get_questions_page(conn, Partition.ACTIVE, page=page_number, page_size=10)

    assert clamped.page == 1
    assert _ids(clamped) == _ids(first)


def test_page_to_dict_shape(conn, seeded):
    data = get_questions_page(conn, Partition.ACTIVE, page=1, page_size=2).to_dict()

    assert set(data) == {"items", "total", "page", "pageSize"}
    assert data["total"] == 3
    assert data["pageSize"] == 2
    assert len(data["items"]) == 2
