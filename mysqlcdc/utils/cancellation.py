"""
Cooperative cancellation for session operations
"""

import threading


class CancellationToken:
    """
    One-shot cancellation signal shared by every operation of a session.

    Operations check it after each network round-trip and turn into a no-op
    once it is set. Setting it never interrupts a query already in flight.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()

    def cancel(self) -> bool:
        """Set the token. Returns False if it was already set."""
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            return True

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float = None) -> bool:
        """Block until cancelled or timeout expires"""
        return self._event.wait(timeout)
