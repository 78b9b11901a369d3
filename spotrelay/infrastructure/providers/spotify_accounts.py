import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import requests

from spotrelay.crosscutting.config import Settings
from spotrelay.domain.entities import TokenGrant
from spotrelay.domain.errors import ProviderError

logger = logging.getLogger(__name__)

AUTHORIZE_URL = 'https://accounts.spotify.com/authorize'
TOKEN_URL = 'https://accounts.spotify.com/api/token'


def _error_payload(response: requests.Response) -> Any:
    """Prefer the provider's JSON error body, fall back to raw text."""
    try:
        return response.json()
    except ValueError:
        return response.text


class SpotifyAccountsClient:
    """Spotify Accounts service: authorize URL and token grants."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def authorize_url(self, state: Optional[str] = None) -> str:
        """Build the consent URL. show_dialog forces re-consent every time."""
        params = {
            'client_id': self.settings.require_client_id(),
            'response_type': 'code',
            'redirect_uri': self.settings.redirect_uri,
            'scope': self.settings.scope_string,
            'show_dialog': 'true',
        }
        if state:
            params['state'] = state
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    def exchange_code(self, code: str) -> TokenGrant:
        """Exchange an authorization code for access and refresh tokens."""
        return self._request_token({
            'grant_type': 'authorization_code',
            'code': code,
            'redirect_uri': self.settings.redirect_uri,
        }, operation='authorization code exchange')

    def refresh(self, refresh_token: str) -> TokenGrant:
        """Obtain a new access token using a refresh token."""
        return self._request_token({
            'grant_type': 'refresh_token',
            'refresh_token': refresh_token,
        }, operation='token refresh')

    def _request_token(self, data: Dict[str, str], operation: str) -> TokenGrant:
        credentials = self.settings.require_client_credentials()
        data = dict(data, **credentials)
        headers = {
            'Content-Type': 'application/x-www-form-urlencoded'
        }

        try:
            response = requests.post(
                TOKEN_URL, data=data, headers=headers,
                timeout=self.settings.request_timeout
            )
        except requests.RequestException as e:
            logger.error(f"Spotify {operation} failed: {e}")
            raise ProviderError(f"Spotify {operation} failed", details=str(e))

        if response.status_code != 200:
            logger.error(f"Spotify {operation} failed: {response.status_code} - {response.text}")
            raise ProviderError(f"Spotify {operation} failed", details=_error_payload(response))

        tokens = response.json()
        if not tokens.get('access_token'):
            raise ProviderError(f"Spotify {operation} returned no access token", details=tokens)

        try:
            expires_in = int(tokens.get('expires_in') or 3600)
        except (TypeError, ValueError):
            raise ProviderError(f"Spotify {operation} returned an invalid expires_in", details=tokens)

        return TokenGrant(
            access_token=tokens['access_token'],
            expires_in=expires_in,
            refresh_token=tokens.get('refresh_token'),
            token_type=tokens.get('token_type', 'Bearer'),
            scope=tokens.get('scope'),
        )
