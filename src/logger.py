"""
Simple logging utility for SignalFlow.

Writes to stderr (stdout is reserved for JSON results) and appends to a log
file with timestamps. Minimal implementation - no log levels.
"""

import sys
from datetime import datetime, timezone

LOG_FILE = "signalflow.log"
ERROR_PREVIEW_CHARS = 200


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def log(message: str, end: str = "\n") -> None:
    """
    Print message to stderr and append to log file with timestamp.

    Args:
        message: The message to log
        end: Line ending (default newline, matches print() behavior)
    """
    print(message, end=end, file=sys.stderr)

    try:
        # Only add timestamp prefix for actual content lines (not empty lines)
        if message.strip():
            log_entry = f"[{_timestamp()}] {message}{end}"
        else:
            log_entry = f"{message}{end}"

        with open(LOG_FILE, "a", encoding="utf-8") as f:
            f.write(log_entry)

    except IOError as e:
        # If logging fails, don't crash - just continue
        print(f"Warning: Failed to write to log file: {e}", file=sys.stderr)


def log_failure(what: str, error: BaseException, context: str = "") -> None:
    """Log a recovered failure with its type and a truncated message."""
    log(f"\n {what}: {type(error).__name__}")
    log(f"    Error: {str(error)[:ERROR_PREVIEW_CHARS]}")
    if context:
        log(f"    {context}")


def log_session_start(command: str) -> None:
    """Log the start of a CLI run."""
    log("=" * 60)
    log(f"SignalFlow '{command}' started: {_timestamp()}")
    log("=" * 60)


def log_session_end(command: str) -> None:
    """Log the end of a CLI run."""
    log("=" * 60)
    log(f"SignalFlow '{command}' finished: {_timestamp()}")
    log("=" * 60)
