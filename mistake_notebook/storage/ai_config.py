"""
Access to the AI provider configuration singleton.

The ai_configs table holds at most one row (id = 1, enforced by a CHECK
constraint). Startup initialization creates it with the default provider;
afterwards it is only ever updated in place.

Example:
    >>> ensure_default_ai_config(conn)
    >>> get_ai_config(conn).provider
    <AIProviderType.GEMINI: 'GEMINI'>
    >>> save_ai_config(conn, AIConfig(config_data='{"provider":"qwen"}'))
"""

import logging
import sqlite3

from ..exceptions import AIConfigMissingError, DatabaseQueryError
from .models import DEFAULT_PROVIDER, AIConfig

logger = logging.getLogger(__name__)

SINGLETON_ID = 1

_SELECT_CONFIG = """
    SELECT type, api_key, base_url, model_name, system_prompt, config_data
    FROM ai_configs
    WHERE id = ?
"""


def ensure_default_ai_config(conn: sqlite3.Connection) -> bool:
    """
    Create the AI config row with the default provider if it is absent.

    Returns:
        bool: True if the row was created by this call
    """
    cursor = conn.execute(
        "INSERT OR IGNORE INTO ai_configs (id, type) VALUES (?, ?)",
        (SINGLETON_ID, str(DEFAULT_PROVIDER)),
    )
    created = cursor.rowcount == 1
    if created:
        logger.info(f"Created default AI config (provider={DEFAULT_PROVIDER})")
    return created


def get_ai_config(conn: sqlite3.Connection) -> AIConfig:
    """
    Read the AI config singleton.

    Raises:
        AIConfigMissingError: If the row does not exist. Startup always
            creates it, so absence means the store was tampered with.
        DatabaseQueryError: On SQLite errors
    """
    try:
        row = conn.execute(_SELECT_CONFIG, (SINGLETON_ID,)).fetchone()
    except sqlite3.Error as e:
        raise DatabaseQueryError(f"Failed to read AI config: {e}") from e

    if row is None:
        raise AIConfigMissingError(
            "AI config row is missing; the database was not initialized"
        )
    return AIConfig.from_row(row)


def save_ai_config(conn: sqlite3.Connection, config: AIConfig) -> AIConfig:
    """
    Insert the singleton row, or update it in place if it already exists.

    Fields left as None keep their stored value. The row count never
    exceeds one.

    Returns:
        AIConfig: The row as stored after the write
    """
    try:
        conn.execute(
            """
            INSERT INTO ai_configs (
                id, type, api_key, base_url, model_name, system_prompt, config_data
            ) VALUES (
                :id, COALESCE(:type, :default_type), :api_key, :base_url,
                :model_name, :system_prompt, :config_data
            )
            ON CONFLICT(id) DO UPDATE SET
                type = COALESCE(:type, ai_configs.type),
                api_key = COALESCE(:api_key, ai_configs.api_key),
                base_url = COALESCE(:base_url, ai_configs.base_url),
                model_name = COALESCE(:model_name, ai_configs.model_name),
                system_prompt = COALESCE(:system_prompt, ai_configs.system_prompt),
                config_data = COALESCE(:config_data, ai_configs.config_data)
            """,
            {
                "id": SINGLETON_ID,
                "type": str(config.provider) if config.provider is not None else None,
                "default_type": str(DEFAULT_PROVIDER),
                "api_key": config.api_key,
                "base_url": config.base_url,
                "model_name": config.model_name,
                "system_prompt": config.system_prompt,
                "config_data": config.config_data,
            },
        )
    except sqlite3.Error as e:
        raise DatabaseQueryError(f"Failed to save AI config: {e}") from e

    logger.info("AI config saved")
    return get_ai_config(conn)
