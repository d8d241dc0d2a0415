"""Cooperative cancellation primitive shared by crawl workers.

The crawler runs a pool of worker threads that each issue network requests.
:class:`CancellationToken` lets the command layer stop those workers
gracefully: workers check the token before every request instead of being
interrupted, so a unit that is abandoned never leaves a half-written cache file.
"""

from __future__ import annotations

import threading


class CancellationToken:
    """Thread-safe cancellation token for cooperative task cancellation.

    Examples:
        >>> token = CancellationToken()
        >>> # In a worker
        >>> if token.is_cancelled():
        ...     return  # Exit gracefully
        >>> # From the signal handler
        >>> token.cancel()
    """

    def __init__(self) -> None:
        """Initialize a new cancellation token."""
        self._is_cancelled = threading.Event()

    def cancel(self) -> None:
        """Signal that cancellation has been requested."""
        self._is_cancelled.set()

    def is_cancelled(self) -> bool:
        """Check if cancellation has been requested.

        Returns:
            True if cancellation has been requested, False otherwise.
        """
        return self._is_cancelled.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; return the cancelled state."""
        return self._is_cancelled.wait(timeout)


# === NAVMAP v1 ===
# {
#   "module": "JavaDB.cancellation",
#   "purpose": "Provide the cooperative cancellation token shared by crawl workers",
#   "sections": [
#     {"id": "token", "name": "CancellationToken", "anchor": "TOK", "kind": "api"}
#   ]
# }
# === /NAVMAP ===
