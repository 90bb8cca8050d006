"""
Logging configuration for the dashboard.

Log records go to the console and to an in-memory ring buffer that backs the
log viewer endpoints. Secrets (tokens, API keys, passwords) are redacted from
both before they are stored or printed.
"""
import logging
import re
import sys
from collections import deque
from datetime import datetime, timezone
from typing import Any, Optional

# Names accepted by the log level endpoint, most severe first
LOG_LEVELS = ('ERROR', 'WARN', 'INFO', 'DEBUG')

LEVEL_NUMBERS = {
    'ERROR': logging.ERROR,
    'WARN': logging.WARNING,
    'WARNING': logging.WARNING,
    'INFO': logging.INFO,
    'DEBUG': logging.DEBUG,
}

REDACTED = 'REDACTED'
SENSITIVE_RE = re.compile(
    r'(?i)((?:x-plex-)?token|api_?key|password)'
    r'(["\']?\s*[:=]\s*["\']?)'
    r'([^\s&"\',;}]+)'
)

CONSOLE_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'


def redact(text: str) -> str:
    """Replace the values of token/apikey/password pairs in free text."""
    return SENSITIVE_RE.sub(lambda m: f"{m.group(1)}{m.group(2)}{REDACTED}", text)


def level_name(levelno: int) -> str:
    """Dashboard spelling of a logging level number."""
    if levelno >= logging.ERROR:
        return 'ERROR'
    if levelno >= logging.WARNING:
        return 'WARN'
    if levelno >= logging.INFO:
        return 'INFO'
    return 'DEBUG'


class RedactingFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return redact(super().format(record))


class MemoryLogHandler(logging.Handler):
    """Keeps the most recent records in memory for the log viewer."""

    def __init__(self, capacity: int = 1000):
        super().__init__()
        self.records: deque[dict[str, Any]] = deque(maxlen=capacity)
        self._exc_formatter = logging.Formatter()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = record.getMessage()
            if record.exc_info:
                message = f"{message}\n{self._exc_formatter.formatException(record.exc_info)}"
            self.records.append({
                'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                'level': level_name(record.levelno),
                'logger': record.name,
                'message': redact(message),
            })
        except Exception:
            self.handleError(record)

    def get_logs(self) -> list[dict[str, Any]]:
        self.acquire()
        try:
            return list(self.records)
        finally:
            self.release()

    def clear(self) -> None:
        self.acquire()
        try:
            self.records.clear()
        finally:
            self.release()

    def export(self) -> str:
        """Plain-text rendering of the buffer, one record per line."""
        return '\n'.join(
            f"[{entry['timestamp']}] {entry['level']} {entry['logger']}: {entry['message']}"
            for entry in self.get_logs()
        )


def configure_logging(level: str = 'INFO', capacity: int = 1000) -> MemoryLogHandler:
    """
    Install the console and memory handlers on the root logger.

    Calling this again replaces the handlers installed by a previous call,
    so app factories can run more than once in the same process.

    Args:
        level: Initial level name
        capacity: Number of records kept in memory

    Returns:
        The memory handler backing the log endpoints
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, '_dashboard_handler', False):
            root.removeHandler(handler)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(RedactingFormatter(CONSOLE_FORMAT))
    console._dashboard_handler = True

    memory = MemoryLogHandler(capacity)
    memory._dashboard_handler = True

    root.addHandler(console)
    root.addHandler(memory)

    if not set_log_level(level):
        root.setLevel(logging.INFO)
        logging.getLogger(__name__).warning("Unknown LOG_LEVEL %r, using INFO", level)

    # urllib3 logs every connection at DEBUG, including query strings
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    return memory


def parse_level(level: Any) -> Optional[int]:
    if not isinstance(level, str):
        return None
    return LEVEL_NUMBERS.get(level.strip().upper())


def set_log_level(level: Any) -> bool:
    """Change the root level; returns False for unknown level names."""
    levelno = parse_level(level)
    if levelno is None:
        return False
    logging.getLogger().setLevel(levelno)
    return True


def get_log_level() -> str:
    return level_name(logging.getLogger().getEffectiveLevel())
