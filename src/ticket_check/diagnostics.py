from __future__ import annotations

import sys
from typing import Optional, TextIO

from shared.logging import ContextAdapter, get_logger


def _escape_data(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


class LoggingDiagnostics:
    """Diagnostics sink backed by the structured logger.

    ``fail`` marks the run as failed; it never raises.
    """

    def __init__(self, logger: Optional[ContextAdapter] = None) -> None:
        self.logger = logger or get_logger("ticket_check")
        self.failed = False
        self.failure_message: Optional[str] = None

    def debug(self, label: str, message: str) -> None:
        self.logger.debug(message, extra={"extra": {"label": label}})

    def fail(self, message: str) -> None:
        self.failed = True
        self.failure_message = message
        self.logger.error("ticket_check_failed", extra={"extra": {"reason": message}})


class ActionDiagnostics(LoggingDiagnostics):
    """Also writes GitHub workflow commands so results show up in the Actions UI."""

    def __init__(self, stream: Optional[TextIO] = None, logger: Optional[ContextAdapter] = None) -> None:
        super().__init__(logger)
        self._stream = stream or sys.stdout

    def _command(self, command: str, message: str) -> None:
        self._stream.write(f"::{command}::{_escape_data(message)}\n")

    def debug(self, label: str, message: str) -> None:
        super().debug(label, message)
        self._command("debug", "")
        self._command("debug", f"[{label.upper()}]")
        self._command("debug", message)
        self._command("debug", "")

    def fail(self, message: str) -> None:
        super().fail(message)
        self._command("error", message)
