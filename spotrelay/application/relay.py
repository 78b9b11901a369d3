from __future__ import annotations

import logging
import secrets
import threading
from collections import OrderedDict
from typing import Any, Dict, Optional

from spotrelay.application.token_cache import TokenCache, utcnow
from spotrelay.domain import projection
from spotrelay.domain.entities import PlaybackSnapshot
from spotrelay.domain.errors import BadRequest
from spotrelay.domain.ports import AuthorizationServer, PlaybackProvider

logger = logging.getLogger(__name__)

TOP_TRACKS_LIMIT = 10
TOP_TRACKS_TIME_RANGE = 'short_term'
MAX_PENDING_STATES = 64


class StateRegistry:
    """Single-use CSRF state values issued with authorization redirects.

    Bounded: once full, the oldest outstanding state is evicted.
    """

    def __init__(self, max_size: int = MAX_PENDING_STATES):
        self.max_size = max_size
        self._states: "OrderedDict[str, None]" = OrderedDict()
        self._lock = threading.Lock()

    def issue(self) -> str:
        state = secrets.token_urlsafe(24)
        with self._lock:
            self._states[state] = None
            while len(self._states) > self.max_size:
                self._states.popitem(last=False)
        return state

    def consume(self, state: Optional[str]) -> bool:
        if not state:
            return False
        with self._lock:
            if state not in self._states:
                return False
            del self._states[state]
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)


class RelayService:
    """One method per relayed operation.

    Every protected operation obtains its bearer token from the token
    cache, calls the provider, and reshapes the result where the
    operation defines a projection.
    """

    def __init__(self, token_cache: TokenCache, auth_server: AuthorizationServer,
                 provider: PlaybackProvider, verify_state: bool = True,
                 states: Optional[StateRegistry] = None):
        self.token_cache = token_cache
        self.auth_server = auth_server
        self.provider = provider
        self.verify_state = verify_state
        self.states = states or StateRegistry()

    def authorize_url(self) -> str:
        state = self.states.issue() if self.verify_state else None
        return self.auth_server.authorize_url(state=state)

    def exchange_code(self, code: Optional[str], state: Optional[str] = None,
                      error: Optional[str] = None) -> str:
        """Complete the authorization-code flow and return a confirmation message."""
        if error:
            raise BadRequest("OAuth authorization failed", details=error)
        if not code:
            raise BadRequest("Missing authorization code")
        if self.verify_state and not self.states.consume(state):
            raise BadRequest("Invalid or missing state parameter")

        grant = self.auth_server.exchange_code(code)
        self.token_cache.store_grant(grant)
        return "Spotify authorization successful. Tokens stored; you can close this window."

    def snapshot(self) -> Dict[str, Any]:
        """Top tracks plus what is playing right now."""
        token = self.token_cache.ensure_valid()
        top = self.provider.top_tracks(
            token, limit=TOP_TRACKS_LIMIT, time_range=TOP_TRACKS_TIME_RANGE
        )
        current = self.provider.currently_playing(token)

        snapshot = PlaybackSnapshot(
            timestamp=utcnow(),
            top_tracks=projection.top_tracks(top),
            now_playing=projection.now_playing(current),
        )
        return snapshot.to_dict()

    def pause(self, device_id: Optional[str] = None) -> Dict[str, str]:
        token = self.token_cache.ensure_valid()
        self.provider.pause(token, device_id=device_id)
        return {'message': 'Playback paused'}

    def resume(self, device_id: Optional[str] = None) -> Dict[str, str]:
        token = self.token_cache.ensure_valid()
        self.provider.resume(token, device_id=device_id)
        return {'message': 'Playback resumed'}

    def play(self, uri: Optional[str], device_id: Optional[str] = None) -> Dict[str, str]:
        if not isinstance(uri, str) or not uri.strip():
            raise BadRequest("Missing uri")
        uri = uri.strip()
        token = self.token_cache.ensure_valid()
        self.provider.play(token, uri, device_id=device_id)
        return {'message': f'Playing {uri}'}

    def devices(self) -> Dict[str, Any]:
        """Provider device list, passed through unmodified."""
        token = self.token_cache.ensure_valid()
        return self.provider.devices(token)

    def logout(self) -> Dict[str, str]:
        self.token_cache.clear()
        return {'message': 'Tokens cleared'}
