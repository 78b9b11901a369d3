import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dotenv import find_dotenv, load_dotenv


class ConfigError(Exception):
    """Configuration error."""
    pass


SPOTIFY_SCOPES = [
    'user-read-private',             # Account profile
    'user-read-email',               # Account email
    'user-top-read',                 # Top tracks
    'user-read-playback-state',      # Devices and playback state
    'user-modify-playback-state',    # Pause, resume, play
    'user-read-currently-playing',   # Now playing
    'user-read-recently-played',     # Listening history
]

DEFAULT_REDIRECT_URI = 'http://localhost:3000/callback'
DEFAULT_PORT = 3000


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class Settings:
    """Relay settings sourced from the environment."""

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    redirect_uri: str = DEFAULT_REDIRECT_URI
    host: str = 'localhost'
    port: int = DEFAULT_PORT
    log_level: str = 'INFO'
    request_timeout: int = 15
    verify_state: bool = True
    scopes: List[str] = field(default_factory=lambda: list(SPOTIFY_SCOPES))

    @classmethod
    def from_env(cls, dotenv: bool = True) -> 'Settings':
        """Build settings from environment variables, loading a .env file first if present."""
        if dotenv:
            load_dotenv(find_dotenv(usecwd=True))

        return cls(
            client_id=os.getenv('SPOTIFY_CLIENT_ID') or None,
            client_secret=os.getenv('SPOTIFY_CLIENT_SECRET') or None,
            redirect_uri=os.getenv('SPOTIFY_REDIRECT_URI') or DEFAULT_REDIRECT_URI,
            host=os.getenv('HOST') or 'localhost',
            port=_int_env('PORT', DEFAULT_PORT),
            log_level=(os.getenv('LOG_LEVEL') or 'INFO').upper(),
            request_timeout=_int_env('SPOTIFY_REQUEST_TIMEOUT', 15),
            verify_state=_bool_env('SPOTRELAY_VERIFY_STATE', True),
        )

    @property
    def scope_string(self) -> str:
        """Scopes as the space-separated string the authorize endpoint expects."""
        return ' '.join(self.scopes)

    def missing_client_credentials(self) -> List[str]:
        missing = []
        if not self.client_id:
            missing.append('SPOTIFY_CLIENT_ID')
        if not self.client_secret:
            missing.append('SPOTIFY_CLIENT_SECRET')
        return missing

    def require_client_id(self) -> str:
        if not self.client_id:
            raise ConfigError("Spotify client ID not configured")
        return self.client_id

    def require_client_credentials(self) -> Dict[str, str]:
        """Return client id/secret, raising ConfigError naming whatever is missing."""
        missing = self.missing_client_credentials()
        if missing:
            raise ConfigError(f"Spotify client credentials not configured: {', '.join(missing)}")
        return {
            'client_id': self.client_id,
            'client_secret': self.client_secret,
        }

    def summary(self) -> Dict[str, object]:
        """Configuration summary without sensitive data."""
        return {
            'redirect_uri': self.redirect_uri,
            'host': self.host,
            'port': self.port,
            'log_level': self.log_level,
            'request_timeout': self.request_timeout,
            'verify_state': self.verify_state,
            'has_client_id': bool(self.client_id),
            'has_client_secret': bool(self.client_secret),
        }
