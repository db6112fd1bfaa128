"""
Structured JSON logging for Mistake Notebook.

Every record becomes one JSON object on stderr (stdout belongs to the CLI's
own output). Two kinds of question data must not reach the logs verbatim:

- AI provider credentials, which live in the ai_configs row
- image data URLs, which can be megabytes of base64

RedactionFilter masks the first and abbreviates the second. Records may
carry correlation fields (question_id, migration_version) next to the
free-form "context" dict; log_with_context() attaches them.

Examples:
    >>> import logging
    >>> from mistake_notebook.utils.logging import log_with_context, setup_logging
    >>> setup_logging(verbose=True)
    >>> log_with_context(
    ...     logging.getLogger("mistake_notebook.storage.migrations"),
    ...     logging.INFO,
    ...     "Applying migration",
    ...     migration_version=2,
    ... )
"""

import json
import logging
import re
import sys
from typing import Any

from mistake_notebook.utils.time import utc_timestamp

# Record attributes copied to the top level of the JSON entry
CORRELATION_FIELDS = ("question_id", "migration_version")

# Context keys whose values are always masked, whatever they look like
SENSITIVE_KEYS = frozenset({"api_key", "apikey", "authorization", "token"})

_TOKEN_PATTERNS = [
    (re.compile(r"\bsk-[a-zA-Z0-9_-]{20,}"), "sk-...{last4}"),
    (re.compile(r"\bAIza[a-zA-Z0-9_-]{20,}"), "AIza...{last4}"),
    (re.compile(r"\bBearer\s+[a-zA-Z0-9._-]{20,}"), "Bearer ***{last4}"),
]

_DATA_URL = re.compile(r"(data:[\w/+.-]+;base64,)([A-Za-z0-9+/=]{64,})")


def mask_secret(value: str) -> str:
    """Keep only the last four characters: "sk-abc...wxyz" -> "****wxyz"."""
    if len(value) <= 4:
        return "****"
    return "****" + value[-4:]


def redact_text(text: str) -> str:
    """Shorten base64 data URLs and mask provider keys inside free text."""
    text = _DATA_URL.sub(lambda m: f"{m.group(1)}<{len(m.group(2))} chars>", text)
    for pattern, template in _TOKEN_PATTERNS:
        text = pattern.sub(lambda m: template.format(last4=m.group(0)[-4:]), text)
    return text


def redact_value(key: str, value: Any) -> Any:
    if isinstance(value, str):
        if key.lower() in SENSITIVE_KEYS:
            return mask_secret(value)
        return redact_text(value)
    if isinstance(value, dict):
        return {k: redact_value(k, v) for k, v in value.items()}
    if isinstance(value, list):
        return [redact_value(key, v) for v in value]
    return value


class JSONFormatter(logging.Formatter):
    """
    Format records as single-line JSON.

    Fields: timestamp, level, component (logger name), message, plus
    context, the correlation fields and exception when present. Non-ASCII
    text (question content, subject labels) is written as-is.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": utc_timestamp(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            log_entry["context"] = context

        for field in CORRELATION_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, ensure_ascii=False)


class RedactionFilter(logging.Filter):
    """Redact message, args and context in place; never drops a record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = redact_text(str(record.msg))

        if isinstance(record.args, dict):
            record.args = {k: redact_value(k, v) for k, v in record.args.items()}
        elif isinstance(record.args, tuple):
            record.args = tuple(redact_value("", arg) for arg in record.args)

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            record.context = redact_value("", context)

        return True


def _level(verbose: bool, quiet_logs: bool) -> int:
    if verbose:
        return logging.DEBUG
    if quiet_logs:
        return logging.WARNING
    return logging.INFO


def setup_logging(verbose: bool = False, quiet_logs: bool = False) -> None:
    """
    Install the JSON stderr handler on the root logger.

    Replaces existing root handlers, so calling it once per CLI command
    never duplicates output.

    Args:
        verbose: DEBUG level; wins over quiet_logs
        quiet_logs: WARNING level, for one-shot commands read by humans
    """
    level = _level(verbose, quiet_logs)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(RedactionFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    context: dict[str, Any] | None = None,
    exc_info: bool = False,
    **fields: Any,
) -> None:
    """
    Log with a structured context dict and correlation fields.

    Args:
        logger: Target logger
        level: logging level constant
        message: Human-readable message
        context: Free-form structured data
        exc_info: Attach the exception being handled
        **fields: Correlation fields; names must be in CORRELATION_FIELDS

    Raises:
        TypeError: On an unknown correlation field
    """
    unknown = set(fields) - set(CORRELATION_FIELDS)
    if unknown:
        raise TypeError(f"Unknown log field(s): {', '.join(sorted(unknown))}")

    extra = {name: value for name, value in fields.items() if value is not None}
    if context is not None:
        extra["context"] = context

    logger.log(level, message, exc_info=exc_info, extra=extra or None)
