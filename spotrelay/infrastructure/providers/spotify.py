import logging
from typing import Any, Callable, Dict, Optional

import requests
import spotipy
from spotipy.exceptions import SpotifyException

from spotrelay.domain.errors import ProviderError

logger = logging.getLogger(__name__)

# URIs that name a playable context rather than a single item
CONTEXT_URI_KINDS = ('album', 'artist', 'playlist', 'show')


def _uri_kind(uri: str) -> Optional[str]:
    parts = uri.split(':')
    if len(parts) >= 3 and parts[0] == 'spotify':
        return parts[-2]
    return None


class SpotifyPlayerProvider:
    """Spotify Web API adapter for listening history and playback control.

    A fresh spotipy client is built per call with the bearer token the
    caller obtained from the token cache, so the adapter itself holds no
    credentials.
    """

    def __init__(self, requests_timeout: int = 15,
                 client_factory: Optional[Callable[[str], Any]] = None):
        self.requests_timeout = requests_timeout
        self._client_factory = client_factory or self._default_client

    def _default_client(self, access_token: str) -> spotipy.Spotify:
        # spotipy retries 429 and 5xx unless told otherwise
        return spotipy.Spotify(auth=access_token, requests_timeout=self.requests_timeout,
                               retries=0, status_retries=0)

    def _call(self, access_token: str, operation: str, fn: Callable[[Any], Any]) -> Any:
        client = self._client_factory(access_token)
        try:
            return fn(client)
        except SpotifyException as e:
            logger.error(f"Spotify {operation} failed: {e.http_status} - {e.msg}")
            raise ProviderError(f"Failed to {operation}", details={
                'status': e.http_status,
                'message': e.msg,
                'reason': e.reason,
            })
        except requests.RequestException as e:
            logger.error(f"Spotify {operation} failed: {e}")
            raise ProviderError(f"Failed to {operation}", details=str(e))

    def top_tracks(self, access_token: str, limit: int = 10,
                   time_range: str = 'short_term') -> Dict[str, Any]:
        return self._call(
            access_token, 'fetch top tracks',
            lambda sp: sp.current_user_top_tracks(limit=limit, time_range=time_range)
        )

    def currently_playing(self, access_token: str) -> Optional[Dict[str, Any]]:
        # spotipy returns None for the 204 "nothing playing" response
        return self._call(
            access_token, 'fetch currently playing track',
            lambda sp: sp.current_user_playing_track()
        )

    def pause(self, access_token: str, device_id: Optional[str] = None) -> None:
        self._call(access_token, 'pause playback',
                   lambda sp: sp.pause_playback(device_id=device_id))

    def resume(self, access_token: str, device_id: Optional[str] = None) -> None:
        self._call(access_token, 'resume playback',
                   lambda sp: sp.start_playback(device_id=device_id))

    def play(self, access_token: str, uri: str, device_id: Optional[str] = None) -> None:
        if _uri_kind(uri) in CONTEXT_URI_KINDS:
            action = lambda sp: sp.start_playback(device_id=device_id, context_uri=uri)
        else:
            action = lambda sp: sp.start_playback(device_id=device_id, uris=[uri])
        self._call(access_token, 'start playback', action)

    def devices(self, access_token: str) -> Dict[str, Any]:
        return self._call(access_token, 'fetch devices', lambda sp: sp.devices())
