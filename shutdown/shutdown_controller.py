# shutdown/shutdown_controller.py

"""Module to stop the polling loop cleanly.
Signal handlers are installed explicitly by the entry point; once SIGINT or
SIGTERM arrives the registered cleanup handlers run once and every
wait_for_shutdown() returns early.
Author: Johandré van Deventer
Date: 2025-06-13
"""

import signal
import threading
from typing import Callable

_shutdown_requested = threading.Event()
_cleanup_handlers: list[Callable[[], None]] = []


def is_shutdown_requested() -> bool:
    """Check if shutdown was triggered."""
    return _shutdown_requested.is_set()


def wait_for_shutdown(timeout: float) -> bool:
    """Sleep up to timeout seconds; True if shutdown was requested meanwhile."""
    return _shutdown_requested.wait(timeout)


def register_cleanup_handler(handler: Callable[[], None]):
    """Add a cleanup function to be called on shutdown."""
    _cleanup_handlers.append(handler)


def request_shutdown(signum=None, frame=None):
    """Initiate shutdown and run cleanup handlers; later calls are no-ops."""
    if _shutdown_requested.is_set():
        return
    _shutdown_requested.set()
    for handler in _cleanup_handlers:
        try:
            handler()
        except Exception as e:
            print(f"Cleanup error: {e}")


def install_signal_handlers():
    """Route SIGINT (Ctrl+C) and SIGTERM (kill) to request_shutdown."""
    signal.signal(signal.SIGINT, request_shutdown)
    signal.signal(signal.SIGTERM, request_shutdown)


def reset_shutdown():
    """Clear the shutdown flag and cleanup handlers."""
    _shutdown_requested.clear()
    _cleanup_handlers.clear()
