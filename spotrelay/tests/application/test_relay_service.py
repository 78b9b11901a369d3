from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from spotrelay.application.relay import RelayService, StateRegistry
from spotrelay.application.token_cache import TokenCache
from spotrelay.domain.entities import TokenGrant, TokenState
from spotrelay.domain.errors import AuthError, BadRequest, ProviderError
from spotrelay.infrastructure.token_store import InMemoryTokenStore


def _future():
    return datetime.now(timezone.utc) + timedelta(hours=1)


class TestStateRegistry:
    """Tests for CSRF state bookkeeping."""

    def test_issued_state_is_single_use(self):
        registry = StateRegistry()
        state = registry.issue()

        assert registry.consume(state) is True
        assert registry.consume(state) is False

    def test_unknown_and_missing_states_rejected(self):
        registry = StateRegistry()

        assert registry.consume('nope') is False
        assert registry.consume(None) is False

    def test_registry_is_bounded(self):
        registry = StateRegistry(max_size=2)
        first = registry.issue()
        registry.issue()
        registry.issue()

        assert len(registry) == 2
        assert registry.consume(first) is False


class TestRelayService:
    """Tests for relay handlers with a fake provider."""

    def setup_method(self):
        """Set up test fixtures."""
        self.store = InMemoryTokenStore()
        self.auth_server = Mock()
        self.provider = Mock()
        self.cache = TokenCache(self.store, self.auth_server)
        self.relay = RelayService(self.cache, self.auth_server, self.provider)

    def _authorize(self):
        self.store.save(TokenState('AT', 'RT', _future()))

    def test_authorize_url_passes_fresh_state(self):
        self.auth_server.authorize_url.return_value = 'https://example/authorize'

        url = self.relay.authorize_url()

        assert url == 'https://example/authorize'
        state = self.auth_server.authorize_url.call_args.kwargs['state']
        assert state
        assert self.relay.states.consume(state)

    def test_authorize_url_without_state_verification(self):
        relay = RelayService(self.cache, self.auth_server, self.provider, verify_state=False)

        relay.authorize_url()

        self.auth_server.authorize_url.assert_called_once_with(state=None)

    def test_exchange_code_stores_tokens(self):
        state = self.relay.states.issue()
        self.auth_server.exchange_code.return_value = TokenGrant(
            access_token='AT', expires_in=3600, refresh_token='RT'
        )

        message = self.relay.exchange_code('the-code', state=state)

        assert 'successful' in message
        self.auth_server.exchange_code.assert_called_once_with('the-code')
        assert self.store.load().access_token == 'AT'
        assert self.store.load().refresh_token == 'RT'

    def test_exchange_code_missing_code_does_not_call_provider(self):
        with pytest.raises(BadRequest) as exc_info:
            self.relay.exchange_code(None, state=self.relay.states.issue())

        assert exc_info.value.summary == 'Missing authorization code'
        self.auth_server.exchange_code.assert_not_called()

    def test_exchange_code_rejects_unknown_state(self):
        with pytest.raises(BadRequest):
            self.relay.exchange_code('the-code', state='forged')
        self.auth_server.exchange_code.assert_not_called()

    def test_exchange_code_provider_denial(self):
        with pytest.raises(BadRequest) as exc_info:
            self.relay.exchange_code(None, error='access_denied')

        assert exc_info.value.details == 'access_denied'

    def test_protected_operations_without_tokens_raise_auth_error(self):
        for operation in (self.relay.snapshot, self.relay.pause,
                          self.relay.resume, self.relay.devices):
            with pytest.raises(AuthError):
                operation()
        with pytest.raises(AuthError):
            self.relay.play('spotify:track:t1')
        self.provider.assert_not_called()
        assert self.provider.method_calls == []

    def test_snapshot_with_nothing_playing(self):
        self._authorize()
        self.provider.top_tracks.return_value = {'items': [{
            'id': 't1', 'name': 'Song', 'artists': [{'name': 'A'}],
            'album': {'name': 'Alb'}, 'duration_ms': 1000,
            'external_urls': {'spotify': 'url'}, 'preview_url': None,
            'uri': 'spotify:track:t1',
        }]}
        self.provider.currently_playing.return_value = None

        snapshot = self.relay.snapshot()

        self.provider.top_tracks.assert_called_once_with('AT', limit=10, time_range='short_term')
        assert snapshot['now_playing'] is None
        assert [t['id'] for t in snapshot['top_tracks']] == ['t1']
        assert 'timestamp' in snapshot

    def test_snapshot_propagates_provider_error(self):
        self._authorize()
        self.provider.top_tracks.side_effect = ProviderError("Failed to fetch top tracks")

        with pytest.raises(ProviderError):
            self.relay.snapshot()

    def test_pause_twice_succeeds_twice(self):
        self._authorize()

        assert self.relay.pause() == {'message': 'Playback paused'}
        assert self.relay.pause() == {'message': 'Playback paused'}
        assert self.provider.pause.call_count == 2

    def test_resume_forwards_device(self):
        self._authorize()

        assert self.relay.resume(device_id='dev1') == {'message': 'Playback resumed'}
        self.provider.resume.assert_called_once_with('AT', device_id='dev1')

    @pytest.mark.parametrize('uri', [None, '', '   ', 42])
    def test_play_requires_uri(self, uri):
        self._authorize()

        with pytest.raises(BadRequest):
            self.relay.play(uri)
        self.provider.play.assert_not_called()

    def test_play(self):
        self._authorize()

        result = self.relay.play('spotify:track:t1')

        assert result == {'message': 'Playing spotify:track:t1'}
        self.provider.play.assert_called_once_with('AT', 'spotify:track:t1', device_id=None)

    def test_devices_passthrough(self):
        self._authorize()
        payload = {'devices': [{'id': 'd1', 'name': 'Kitchen', 'volume_percent': 40}]}
        self.provider.devices.return_value = payload

        assert self.relay.devices() is payload

    def test_logout_clears_tokens(self):
        self._authorize()

        self.relay.logout()

        with pytest.raises(AuthError):
            self.relay.pause()
