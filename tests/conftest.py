"""
Pytest fixtures shared by the engine, fetch-layer and API tests.
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add project root to path so tests can import the listening_insights package
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from listening_insights.insights_engine import InsightsEngine  # noqa: E402
from listening_insights.models import ArtistRecord, TimeWindow, TrackRecord  # noqa: E402


def artist(artist_id, *genres, name=None):
    return ArtistRecord(id=artist_id, name=name or f"Artist {artist_id}", genres=tuple(genres))


def tracks(count, prefix="t"):
    return tuple(TrackRecord(id=f"{prefix}{i}") for i in range(count))


def build_engine(recent=(), medium=(), long_term=(), track_counts=(0, 0, 0)):
    artists = {
        TimeWindow.RECENT: tuple(recent),
        TimeWindow.MEDIUM: tuple(medium),
        TimeWindow.LONG: tuple(long_term),
    }
    windows = list(TimeWindow)
    track_windows = {w: tracks(n, prefix=w.value) for w, n in zip(windows, track_counts)}
    return InsightsEngine(artists, track_windows)


@pytest.fixture
def loyalty_engine():
    """Two recent artists, one of which is also a long-term favorite."""
    return build_engine(
        recent=[artist("A", "pop"), artist("B", "rock")],
        medium=[],
        long_term=[artist("A", "pop")],
        track_counts=(2, 0, 1),
    )


def _artist_payload(artist_id, *genres):
    return {"id": artist_id, "name": f"Artist {artist_id}", "genres": list(genres)}


ARTIST_PAYLOADS = {
    "short_term": {"items": [_artist_payload("A", "pop"), _artist_payload("B", "rock")]},
    "medium_term": {"items": []},
    "long_term": {"items": [_artist_payload("A", "pop")]},
}

TRACK_PAYLOADS = {
    "short_term": {"items": [{"id": "t1"}, {"id": "t2"}]},
    "medium_term": {"items": []},
    "long_term": {"items": [{"id": "t3"}]},
}


@pytest.fixture
def artist_payloads():
    return {k: {"items": list(v["items"])} for k, v in ARTIST_PAYLOADS.items()}


@pytest.fixture
def track_payloads():
    return {k: {"items": list(v["items"])} for k, v in TRACK_PAYLOADS.items()}


@pytest.fixture
def spotify_mock(artist_payloads, track_payloads):
    """A spotipy.Spotify stand-in serving the payload fixtures."""
    client = MagicMock()
    client.current_user_top_artists.side_effect = lambda limit, time_range: artist_payloads[time_range]
    client.current_user_top_tracks.side_effect = lambda limit, time_range: track_payloads[time_range]
    client.current_user.return_value = {
        "id": "listener-1",
        "display_name": "Listener",
        "email": "listener@example.com",
        "images": [],
    }
    return client
