"""Stderr event logging shared by the client modules.

FastMCP owns stdout for the stdio transport and reconfigures the ``logging``
module, so the client writes timestamped lines straight to stderr.
"""

import sys
from datetime import datetime


def log_event(message: str, component: str = "CLIENT") -> None:
    """Log an event to stderr with timestamp and consistent formatting."""
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    print(f"[{timestamp}] [{component}] {message}", file=sys.stderr, flush=True)


class ClientLogger:
    """Logger-shaped adapter over ``log_event``.

    Methods accept ``*args`` for call-site compatibility with ``logging`` but
    only the message is used.
    """

    def __init__(self, component: str = "CLIENT") -> None:
        self._component = component

    def info(self, msg: object, *args: object) -> None:
        log_event(str(msg), self._component)

    def warning(self, msg: object, *args: object) -> None:
        log_event(f"WARNING: {msg}", self._component)

    def error(self, msg: object, *args: object) -> None:
        log_event(f"ERROR: {msg}", self._component)

    def debug(self, msg: object, *args: object) -> None:
        log_event(f"DEBUG: {msg}", self._component)
