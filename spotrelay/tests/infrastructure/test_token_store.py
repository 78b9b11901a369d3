from datetime import datetime, timezone

from spotrelay.domain.entities import TokenState
from spotrelay.infrastructure.token_store import InMemoryTokenStore


class TestInMemoryTokenStore:
    """Tests for the process-local token slot."""

    def test_starts_empty(self):
        store = InMemoryTokenStore()

        assert store.load() == TokenState()
        assert not store.load().can_refresh

    def test_initial_state(self):
        initial = TokenState('AT', 'RT', datetime(2026, 1, 1, tzinfo=timezone.utc))

        assert InMemoryTokenStore(initial).load() is initial

    def test_save_replaces_state(self):
        store = InMemoryTokenStore()
        state = TokenState(refresh_token='RT')

        store.save(state)

        assert store.load() is state
