"""Structured logging shared by the ticket check entrypoints.

Lambda invocations get one JSON object per line. Inside a GitHub Actions
runner (``GITHUB_ACTIONS=true``) records are rendered as ``key=value`` text,
which reads better in the job log.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_CONTEXT_KEYS = ("repo", "pr_number", "sender", "stage", "outcome", "message_id")


def _record_fields(record: logging.LogRecord) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    for key in _CONTEXT_KEYS:
        value = getattr(record, key, None)
        if value is not None:
            fields[key] = value
    extra = getattr(record, "extra", None)
    if isinstance(extra, dict):
        fields.update(extra)
    return fields


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_record_fields(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class KeyValueFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        parts = [record.levelname, record.name, record.getMessage()]
        parts.extend(f"{key}={json.dumps(value, default=str)}" for key, value in _record_fields(record).items())
        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


_LOGGING_CONFIGURED = False


def configure_logging(level: Optional[str] = None) -> None:
    """Install a single stderr handler on the root logger.

    stdout is left to GitHub workflow commands.
    """
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    in_actions = os.getenv("GITHUB_ACTIONS", "").lower() == "true"
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(KeyValueFormatter() if in_actions else JsonFormatter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel((level or os.getenv("LOG_LEVEL", "INFO")).upper())
    _LOGGING_CONFIGURED = True


class ContextAdapter(logging.LoggerAdapter):
    """Merges bound context (repo, pr_number, ...) into every record."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs

    def bind(self, **context: Any) -> "ContextAdapter":
        return ContextAdapter(self.logger, {**self.extra, **context})


def get_logger(name: str, **context: Any) -> ContextAdapter:
    configure_logging()
    return ContextAdapter(logging.getLogger(name), context)
