"""
Tests for storage/ai_config.py - the AI provider configuration singleton.
"""

import pytest

from mistake_notebook.exceptions import AIConfigMissingError
from mistake_notebook.storage.ai_config import (
    ensure_default_ai_config,
    get_ai_config,
    save_ai_config,
)
from mistake_notebook.storage.models import AIConfig, AIProviderType


def _row_count(conn):
    return conn.execute("SELECT COUNT(*) FROM ai_configs").fetchone()[0]


def test_default_config_uses_gemini(conn):
    config = get_ai_config(conn)

    assert config.provider is AIProviderType.GEMINI
    assert config.api_key is None
    assert config.config_data is None


def test_ensure_default_is_idempotent(conn):
    assert ensure_default_ai_config(conn) is False
    assert _row_count(conn) == 1


def test_save_updates_in_place(conn):
    saved = save_ai_config(
        conn,
        AIConfig(
            provider=AIProviderType.QWEN,
            api_key="sk-test-1234567890abcdef",
            base_url="https://dashscope.example.com/v1",
            model_name="qwen-vl-max",
            system_prompt="你是一位耐心的老师",
        ),
    )

    assert saved.provider is AIProviderType.QWEN
    assert saved.model_name == "qwen-vl-max"
    assert _row_count(conn) == 1


def test_save_keeps_fields_left_unset(conn):
    save_ai_config(
        conn,
        AIConfig(provider=AIProviderType.DOUBAO, api_key="key-1", model_name="doubao-vision"),
    )

    saved = save_ai_config(conn, AIConfig(config_data='{"provider":"doubao"}'))

    assert saved.provider is AIProviderType.DOUBAO
    assert saved.api_key == "key-1"
    assert saved.model_name == "doubao-vision"
    assert saved.config_data == '{"provider":"doubao"}'


def test_save_recreates_missing_row_with_default_provider(conn):
    conn.execute("DELETE FROM ai_configs")

    saved = save_ai_config(conn, AIConfig(model_name="gemini-2.5-flash"))

    assert saved.provider is AIProviderType.GEMINI
    assert saved.model_name == "gemini-2.5-flash"
    assert _row_count(conn) == 1


def test_missing_row_raises(conn):
    conn.execute("DELETE FROM ai_configs")

    with pytest.raises(AIConfigMissingError):
        get_ai_config(conn)


def test_unknown_stored_provider_reads_as_default(conn):
    conn.execute("UPDATE ai_configs SET type = 'CLAUDIUS'")
    assert get_ai_config(conn).provider is AIProviderType.GEMINI


# ============================================================================
# Public view
# ============================================================================


def test_public_view_hides_api_key(conn):
    save_ai_config(
        conn,
        AIConfig(provider=AIProviderType.OPENAI, api_key="sk-secret", model_name="gpt-4o"),
    )

    view = get_ai_config(conn).public_view()

    assert view == {
        "type": "OPENAI",
        "baseUrl": "",
        "modelName": "gpt-4o",
        "systemPrompt": "",
    }
    assert "apiKey" not in view


def test_public_view_returns_blob_when_present(conn):
    save_ai_config(conn, AIConfig(api_key="sk-secret", config_data='{"a":1}'))

    assert get_ai_config(conn).public_view() == {"configData": '{"a":1}'}


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("QWEN", AIProviderType.QWEN),
        ("qwen", AIProviderType.QWEN),
        ("openai", AIProviderType.OPENAI),
        ("unknown", AIProviderType.GEMINI),
        ("", AIProviderType.GEMINI),
        (None, AIProviderType.GEMINI),
    ],
)
def test_provider_parse(text, expected):
    assert AIProviderType.parse(text) is expected
