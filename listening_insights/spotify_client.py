"""
Listening Insights - Spotify Fetch Layer
Pulls the listener's top artists and tracks for each time window.

The six window requests are independent and are issued concurrently; the
engine only runs once all of them have resolved. Any single failure
abandons the whole fetch.
"""

import asyncio
import logging
import os
from functools import partial
from typing import Any, Dict, Tuple

import spotipy

from .exceptions import SessionExpiredError, UpstreamFetchError
from .models import (
    ArtistWindow,
    TimeWindow,
    TrackWindow,
    parse_artist_window,
    parse_track_window,
)

logger = logging.getLogger(__name__)

# Spotify caps /me/top/* at 50 items per page
TOP_ITEMS_LIMIT = min(int(os.getenv("SPOTIFY_TOP_LIMIT", "50")), 50)
REQUEST_TIMEOUT = float(os.getenv("SPOTIFY_REQUEST_TIMEOUT", "10"))
MAX_RETRIES = int(os.getenv("SPOTIFY_MAX_RETRIES", "3"))


def create_spotify_client(access_token: str) -> spotipy.Spotify:
    """Create a client acting on behalf of the listener.

    Args:
        access_token: User access token with the user-top-read scope

    Raises:
        SessionExpiredError: If no token is provided
    """
    if not access_token:
        raise SessionExpiredError("No access token available")

    return spotipy.Spotify(
        auth=access_token,
        requests_timeout=REQUEST_TIMEOUT,
        retries=MAX_RETRIES,
    )


def _call_spotify(description: str, func, *args, **kwargs) -> Any:
    """Run one Spotify request, classifying failures."""
    try:
        return func(*args, **kwargs)
    except spotipy.SpotifyException as e:
        if e.http_status == 401:
            raise SessionExpiredError() from e
        raise UpstreamFetchError(
            f"Spotify API error ({e.http_status}) while fetching {description}: {e.msg}",
            status=e.http_status,
        ) from e
    except Exception as e:
        raise UpstreamFetchError(f"Could not fetch {description}: {e}") from e


def fetch_top_artists(client: spotipy.Spotify, window: TimeWindow) -> ArtistWindow:
    payload = _call_spotify(
        f"top artists ({window.value})",
        client.current_user_top_artists,
        limit=TOP_ITEMS_LIMIT,
        time_range=window.value,
    )
    return parse_artist_window(payload, window)


def fetch_top_tracks(client: spotipy.Spotify, window: TimeWindow) -> TrackWindow:
    payload = _call_spotify(
        f"top tracks ({window.value})",
        client.current_user_top_tracks,
        limit=TOP_ITEMS_LIMIT,
        time_range=window.value,
    )
    return parse_track_window(payload, window)


def fetch_current_user(client: spotipy.Spotify) -> Dict[str, Any]:
    """Listener profile, trimmed to what the dashboard shows."""
    user = _call_spotify("user profile", client.current_user) or {}
    return {
        "id": user.get("id"),
        "display_name": user.get("display_name"),
        "email": user.get("email"),
        "images": user.get("images", []),
    }


async def fetch_listening_windows(
    client: spotipy.Spotify,
) -> Tuple[Dict[TimeWindow, ArtistWindow], Dict[TimeWindow, TrackWindow]]:
    """Fetch all six windows concurrently.

    spotipy is blocking, so each request runs in the default thread pool.

    Raises:
        UpstreamFetchError: If any window could not be fetched
        MalformedInputError: If Spotify returned a window of the wrong shape
    """
    loop = asyncio.get_running_loop()
    windows = list(TimeWindow)

    artist_jobs = [loop.run_in_executor(None, partial(fetch_top_artists, client, w)) for w in windows]
    track_jobs = [loop.run_in_executor(None, partial(fetch_top_tracks, client, w)) for w in windows]

    results = await asyncio.gather(*artist_jobs, *track_jobs)

    artists = dict(zip(windows, results[:len(windows)]))
    tracks = dict(zip(windows, results[len(windows):]))
    logger.info(
        "Fetched listening windows: "
        + ", ".join(f"{w.value}={len(artists[w])} artists/{len(tracks[w])} tracks" for w in windows)
    )
    return artists, tracks
