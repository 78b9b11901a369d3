from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

from .entities import TokenGrant, TokenState


class TokenStore(Protocol):
    """Single-slot holder of the current TokenState.

    The in-memory implementation is process-local; a file or key-value
    implementation can be swapped in without touching the token cache.
    """

    def load(self) -> TokenState:
        """Return the current state (an empty TokenState when nothing is stored)."""

    def save(self, state: TokenState) -> None:
        """Replace the current state."""


class AuthorizationServer(Protocol):
    """OAuth endpoints of the provider."""

    def authorize_url(self, state: Optional[str] = None) -> str:
        """Return the URL the user agent is redirected to for consent."""

    def exchange_code(self, code: str) -> TokenGrant:
        """Run the authorization-code grant."""

    def refresh(self, refresh_token: str) -> TokenGrant:
        """Run the refresh-token grant."""


class PlaybackProvider(Protocol):
    """Web API reads and writes used by the relay. Each call takes the bearer token to use."""

    def top_tracks(self, access_token: str, limit: int = 10,
                   time_range: str = 'short_term') -> Dict[str, Any]:
        """Return the raw top-tracks page."""

    def currently_playing(self, access_token: str) -> Optional[Dict[str, Any]]:
        """Return the raw currently-playing object, or None when nothing is active."""

    def pause(self, access_token: str, device_id: Optional[str] = None) -> None:
        """Pause playback."""

    def resume(self, access_token: str, device_id: Optional[str] = None) -> None:
        """Resume playback."""

    def play(self, access_token: str, uri: str, device_id: Optional[str] = None) -> None:
        """Start playing the given URI."""

    def devices(self, access_token: str) -> Dict[str, Any]:
        """Return the raw device list payload."""
