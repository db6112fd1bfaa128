"""
Tests for utils.console module - dual-mode CLI output utilities.

This module tests console output functions to ensure:
- OutputMode class correctly manages format/quiet state
- Output functions (success, error, warning, info) work in both modes
- Display functions (print_migration_status, print_question_page) adapt to modes
- JSON buffering and flushing works correctly in agent mode
"""

import json
from unittest.mock import patch

import pytest

from mistake_notebook.utils.console import (
    OutputMode,
    error,
    info,
    output_mode,
    print_migration_status,
    print_question_page,
    spinner,
    success,
    warning,
)

# ========================================================================
# Fixtures
# ========================================================================


@pytest.fixture(autouse=True)
def reset_output_mode():
    """Reset global output_mode to default state after each test."""
    original_format = output_mode.format
    original_quiet = output_mode.quiet
    output_mode._json_buffer.clear()

    yield

    output_mode.format = original_format
    output_mode.quiet = original_quiet
    output_mode._json_buffer.clear()


@pytest.fixture
def migration_status():
    return {
        "dbPath": "./data/ebu.db",
        "applied": [
            {
                "version": 1,
                "name": "ensure questions.learning_guide column",
                "appliedAt": "2025-11-02T08:30:45.000000Z",
            }
        ],
        "pending": [{"version": 2, "name": "ensure ai_configs.config_data column"}],
        "current": 1,
        "latest": 2,
        "pendingCount": 1,
        "appliedCount": 1,
    }


@pytest.fixture
def question_page():
    return {
        "items": [
            {
                "id": "1b9d6bcd-bbfd-4b2d-9b5d-ab8dfbbd4bed",
                "content": "已知 $a + b = 2$，求 $ab$ 的最大值。",
                "analysis": "",
                "learningGuide": "",
                "knowledgePoints": ["基本不等式"],
                "subject": "数学",
                "difficulty": 3,
                "createdAt": "2025-11-02T08:30:45.000000Z",
            }
        ],
        "total": 21,
        "page": 2,
        "pageSize": 20,
    }


# ========================================================================
# Test OutputMode Class
# ========================================================================


class TestOutputMode:
    def test_default_initialization(self):
        """OutputMode should default to text format and not quiet."""
        mode = OutputMode()
        assert mode.format == "text"
        assert mode.quiet is False
        assert mode.is_human() is True
        assert mode.is_agent() is False

    def test_json_format(self):
        mode = OutputMode(format_type="json")
        assert mode.is_agent() is True

    def test_invalid_format_raises_error(self):
        with pytest.raises(ValueError, match="Invalid format: yaml"):
            OutputMode(format_type="yaml")


class TestJsonBuffering:
    def test_flush_writes_buffer_and_clears_it(self, capsys):
        mode = OutputMode(format_type="json")
        mode.add_json("count", 2)
        mode.add_json("subject", "数学")

        mode.flush_json()

        out = capsys.readouterr().out
        assert json.loads(out) == {"count": 2, "subject": "数学"}
        assert "数学" in out
        assert mode._json_buffer == {}

    def test_flush_in_text_mode_is_noop(self, capsys):
        mode = OutputMode(format_type="text")
        mode.add_json("count", 2)

        mode.flush_json()

        assert capsys.readouterr().out == ""

    def test_flush_with_empty_buffer_writes_nothing(self, capsys):
        OutputMode(format_type="json").flush_json()
        assert capsys.readouterr().out == ""


# ========================================================================
# Output Functions
# ========================================================================


class TestMessagesAgentMode:
    def test_success_buffers_status_and_message(self):
        output_mode.format = "json"
        success("Database is up to date")

        assert output_mode._json_buffer == {
            "status": "success",
            "message": "Database is up to date",
        }

    def test_error_buffers_status_and_error(self):
        output_mode.format = "json"
        error("Database not found")

        assert output_mode._json_buffer == {"status": "error", "error": "Database not found"}

    def test_warning_buffers_warning(self):
        output_mode.format = "json"
        warning("2 migrations pending")

        assert output_mode._json_buffer == {"warning": "2 migrations pending"}

    def test_info_is_silent(self):
        output_mode.format = "json"
        info("hello")

        assert output_mode._json_buffer == {}

    def test_spinner_yields_none(self):
        output_mode.format = "json"
        with spinner("Working...") as status:
            assert status is None


class TestMessagesHumanMode:
    def test_success_prints_to_console(self):
        output_mode.format = "text"
        with patch("mistake_notebook.utils.console.console") as mock_console:
            success("Done")

        printed = mock_console.print.call_args[0][0]
        assert "Done" in printed

    def test_error_prints_to_stderr_console(self):
        output_mode.format = "text"
        with patch("mistake_notebook.utils.console.console_err") as mock_err:
            error("Broken")

        assert "Broken" in mock_err.print.call_args[0][0]

    def test_info_respects_quiet(self):
        output_mode.format = "text"
        output_mode.quiet = True
        with patch("mistake_notebook.utils.console.console") as mock_console:
            info("hidden")

        mock_console.print.assert_not_called()


# ========================================================================
# Display Functions
# ========================================================================


class TestPrintMigrationStatus:
    def test_agent_mode_buffers_status(self, migration_status):
        output_mode.format = "json"
        print_migration_status(migration_status)

        assert output_mode._json_buffer["migrations"] == migration_status

    def test_human_mode_prints_table_and_summary(self, migration_status):
        output_mode.format = "text"
        with patch("mistake_notebook.utils.console.console") as mock_console:
            print_migration_status(migration_status)

        assert mock_console.print.call_count == 2
        summary = mock_console.print.call_args_list[1][0][0]
        assert "Pending: [bold]1[/bold]" in summary


class TestPrintQuestionPage:
    def test_agent_mode_buffers_page(self, question_page):
        output_mode.format = "json"
        print_question_page(question_page)

        assert output_mode._json_buffer["page"] == question_page

    def test_human_mode_reports_page_count(self, question_page):
        output_mode.format = "text"
        with patch("mistake_notebook.utils.console.console") as mock_console:
            print_question_page(question_page)

        summary = mock_console.print.call_args_list[-1][0][0]
        assert summary == "Page 2/2, 21 question(s) in total"

    def test_human_mode_empty_trash(self):
        output_mode.format = "text"
        empty = {"items": [], "total": 0, "page": 1, "pageSize": 20}
        with patch("mistake_notebook.utils.console.console") as mock_console:
            print_question_page(empty, trashed=True)

        table = mock_console.print.call_args_list[0][0][0]
        assert table.title == "Trash"
        assert mock_console.print.call_args_list[-1][0][0] == (
            "Page 1/1, 0 question(s) in total"
        )
