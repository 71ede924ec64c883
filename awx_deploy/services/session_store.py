# =============================================================================
# Session Store - Per-Session Deploy Context
# =============================================================================
# Holds the DeployAttempt of each session between launch and finalize.
# =============================================================================

import threading
from typing import Optional

from awx_deploy.models import DeployAttempt


class DeploySessionStore:
    """Thread-safe in-memory map of session id to in-flight DeployAttempt."""

    def __init__(self) -> None:
        self._attempts: dict[str, DeployAttempt] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> Optional[DeployAttempt]:
        with self._lock:
            return self._attempts.get(session_id)

    def set(self, session_id: str, attempt: DeployAttempt) -> None:
        with self._lock:
            self._attempts[session_id] = attempt

    def remove(self, session_id: str) -> None:
        with self._lock:
            self._attempts.pop(session_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._attempts)


class AttemptContext:
    """
    Handle on one session's deploy context.

    Created per request and passed explicitly into launch and finalize, so
    two sessions never see each other's attempt.
    """

    def __init__(self, store: DeploySessionStore, session_id: str) -> None:
        self._store = store
        self.session_id = session_id

    def load(self) -> Optional[DeployAttempt]:
        return self._store.get(self.session_id)

    def save(self, attempt: DeployAttempt) -> None:
        self._store.set(self.session_id, attempt)

    def clear(self) -> None:
        self._store.remove(self.session_id)


# Singleton instance
_session_store: Optional[DeploySessionStore] = None


def get_session_store() -> DeploySessionStore:
    """Get or create the session store singleton."""
    global _session_store
    if _session_store is None:
        _session_store = DeploySessionStore()
    return _session_store
