import threading
from typing import Optional

from spotrelay.domain.entities import TokenState


class InMemoryTokenStore:
    """Process-local TokenState slot. Lost on restart."""

    def __init__(self, initial: Optional[TokenState] = None):
        self._state = initial or TokenState()
        self._lock = threading.Lock()

    def load(self) -> TokenState:
        with self._lock:
            return self._state

    def save(self, state: TokenState) -> None:
        with self._lock:
            self._state = state
