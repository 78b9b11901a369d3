from __future__ import annotations

from typing import Any, Dict, List, Optional

from .entities import NowPlaying, TrackSummary


def join_artist_names(artists: Optional[List[Dict[str, Any]]]) -> str:
    """Join artist objects into a single comma-separated display string."""
    if not artists:
        return ""
    return ", ".join(a.get('name', '') for a in artists if a and a.get('name'))


def track_summary(track: Dict[str, Any]) -> TrackSummary:
    """Project a Spotify track object onto TrackSummary.

    Missing nested objects (album, external_urls) project to empty values
    instead of raising, since local files and podcast episodes omit them.
    """
    album = track.get('album') or {}
    external_urls = track.get('external_urls') or {}
    return TrackSummary(
        id=track.get('id'),
        name=track.get('name', ''),
        artists=join_artist_names(track.get('artists')),
        album=album.get('name', ''),
        duration_ms=track.get('duration_ms', 0),
        external_urls=external_urls.get('spotify'),
        preview_url=track.get('preview_url'),
        uri=track.get('uri'),
    )


def top_tracks(payload: Optional[Dict[str, Any]]) -> List[TrackSummary]:
    """Project a top-tracks page, keeping provider order."""
    if not payload:
        return []
    return [track_summary(item) for item in payload.get('items', []) if item]


def now_playing(payload: Optional[Dict[str, Any]]) -> Optional[NowPlaying]:
    """Project a currently-playing response.

    Returns None when nothing is playing: an empty response, or a response
    whose item is null (ads, private sessions).
    """
    if not payload or not payload.get('item'):
        return None
    return NowPlaying(
        track=track_summary(payload['item']),
        progress_ms=payload.get('progress_ms') or 0,
        is_playing=bool(payload.get('is_playing', False)),
    )
