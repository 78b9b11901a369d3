from __future__ import annotations

from dataclasses import dataclass, asdict, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class TokenState:
    """Cached OAuth credentials for the single connected account."""

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None

    def __post_init__(self):
        if self.access_token and self.expires_at is None:
            raise ValueError("expires_at is required when access_token is set")

    def is_expired(self, now: datetime) -> bool:
        """True when there is no access token or it is past its expiry."""
        if not self.access_token:
            return True
        return now >= self.expires_at

    @property
    def can_refresh(self) -> bool:
        return bool(self.refresh_token)


@dataclass(frozen=True)
class TokenGrant:
    """Token endpoint response for either grant type."""

    access_token: str
    expires_in: int
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    scope: Optional[str] = None


@dataclass(frozen=True)
class TrackSummary:
    """Flattened view of a provider track object."""

    id: Optional[str]
    name: str
    artists: str
    album: str
    duration_ms: int
    external_urls: Optional[str]
    preview_url: Optional[str]
    uri: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class NowPlaying:
    """Currently playing track plus playback position."""

    track: TrackSummary
    progress_ms: int
    is_playing: bool

    def to_dict(self) -> Dict[str, Any]:
        data = self.track.to_dict()
        data['progress_ms'] = self.progress_ms
        data['is_playing'] = self.is_playing
        return data


@dataclass(frozen=True)
class PlaybackSnapshot:
    """Top tracks and now-playing state captured for one request."""

    timestamp: datetime
    top_tracks: List[TrackSummary] = field(default_factory=list)
    now_playing: Optional[NowPlaying] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'top_tracks': [track.to_dict() for track in self.top_tracks],
            'now_playing': self.now_playing.to_dict() if self.now_playing else None,
            'timestamp': self.timestamp.isoformat(),
        }
