"""
Listening Insights - Domain Model
Time windows, artist/track records and the immutable insight report.

Raw upstream payloads are parsed here so the engine only ever sees
validated, deduplicated records.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Tuple

from .exceptions import MalformedInputError


class TimeWindow(str, Enum):
    """Listening-history windows, ordered by recency. Values are Spotify's time_range names."""

    RECENT = "short_term"
    MEDIUM = "medium_term"
    LONG = "long_term"


@dataclass(frozen=True)
class ArtistRecord:
    id: str
    name: str
    genres: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TrackRecord:
    id: str


ArtistWindow = Tuple[ArtistRecord, ...]
TrackWindow = Tuple[TrackRecord, ...]


# ----------------------------------------------------------------------
# Payload parsing
# ----------------------------------------------------------------------

def _window_items(payload: Any, window: TimeWindow, kind: str) -> List[Any]:
    """Accept a Spotify paging object ({"items": [...]}) or a bare list."""
    if isinstance(payload, dict):
        if "items" not in payload:
            raise MalformedInputError(f"{kind} window '{window.value}' has no 'items' field")
        payload = payload["items"]
    if not isinstance(payload, (list, tuple)):
        raise MalformedInputError(
            f"{kind} window '{window.value}' must be a list, got {type(payload).__name__}"
        )
    return list(payload)


def _parse_genres(raw: Any, window: TimeWindow, index: int) -> Tuple[str, ...]:
    if isinstance(raw, (set, frozenset)):
        raw = sorted(raw)
    if not isinstance(raw, (list, tuple)) or not all(isinstance(g, str) for g in raw):
        raise MalformedInputError(
            f"artist #{index} in window '{window.value}' has invalid 'genres' (expected a list of strings)"
        )
    # dict.fromkeys keeps first-seen order while dropping repeats
    return tuple(dict.fromkeys(raw))


def parse_artist_window(payload: Any, window: TimeWindow) -> ArtistWindow:
    """Parse one window of top artists, keeping rank order and the first record per id."""
    artists: List[ArtistRecord] = []
    seen = set()

    for index, item in enumerate(_window_items(payload, window, "artist")):
        if not isinstance(item, dict):
            raise MalformedInputError(f"artist #{index} in window '{window.value}' is not an object")
        missing = [key for key in ("id", "name", "genres") if key not in item]
        if missing:
            raise MalformedInputError(
                f"artist #{index} in window '{window.value}' is missing fields: {missing}"
            )
        if not isinstance(item["id"], str) or not item["id"]:
            raise MalformedInputError(f"artist #{index} in window '{window.value}' has an invalid id")
        record = ArtistRecord(
            id=item["id"],
            name=str(item["name"]),
            genres=_parse_genres(item["genres"], window, index),
        )

        if record.id in seen:
            continue
        seen.add(record.id)
        artists.append(record)

    return tuple(artists)


def parse_track_window(payload: Any, window: TimeWindow) -> TrackWindow:
    """Parse one window of top tracks. Only presence matters downstream."""
    tracks: List[TrackRecord] = []
    for index, item in enumerate(_window_items(payload, window, "track")):
        if not isinstance(item, dict) or "id" not in item:
            raise MalformedInputError(f"track #{index} in window '{window.value}' is missing an 'id'")
        tracks.append(TrackRecord(id=str(item["id"])))
    return tuple(tracks)


def parse_windows(payloads: Dict[str, Any], parser, kind: str) -> Dict[TimeWindow, tuple]:
    """Parse a {time_range: payload} mapping; all three windows are required."""
    if not isinstance(payloads, dict):
        raise MalformedInputError(f"{kind} windows must be an object keyed by time range")
    missing = [w.value for w in TimeWindow if w.value not in payloads]
    if missing:
        raise MalformedInputError(f"missing {kind} windows: {missing}")
    return {w: parser(payloads[w.value], w) for w in TimeWindow}


# ----------------------------------------------------------------------
# Report
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class GenreShare:
    genre: str
    count: int
    percentage: int

    def to_dict(self) -> Dict[str, Any]:
        return {"genre": self.genre, "count": self.count, "percentage": self.percentage}


@dataclass(frozen=True)
class WindowGenreShare:
    genre: str
    percentage: int

    def to_dict(self) -> Dict[str, Any]:
        return {"genre": self.genre, "percentage": self.percentage}


@dataclass(frozen=True)
class FeaturedArtist:
    name: str
    play_count: str
    time_range: str

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "playCount": self.play_count, "timeRange": self.time_range}


@dataclass(frozen=True)
class TrendEntry:
    period: str
    track_count: int
    new_artist_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"period": self.period, "trackCount": self.track_count, "newArtistCount": self.new_artist_count}


@dataclass(frozen=True)
class DiscoveryEntry:
    period: str
    discovery_rate: int
    new_artists: int

    def to_dict(self) -> Dict[str, Any]:
        return {"period": self.period, "discoveryRate": self.discovery_rate, "newArtists": self.new_artists}


@dataclass(frozen=True)
class ListeningHabits:
    most_active_time_range: str
    diversity_trend: str
    exploration_pattern: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mostActiveTimeRange": self.most_active_time_range,
            "diversityTrend": self.diversity_trend,
            "explorationPattern": self.exploration_pattern,
        }


@dataclass(frozen=True)
class GenreEvolutionEntry:
    time_range: str
    top_genres: Tuple[WindowGenreShare, ...]
    change: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timeRange": self.time_range,
            "topGenres": [g.to_dict() for g in self.top_genres],
            "change": self.change,
        }


@dataclass(frozen=True)
class TasteEvolutionEntry:
    time_range: str
    dominant_genre: str
    change: str

    def to_dict(self) -> Dict[str, Any]:
        return {"timeRange": self.time_range, "dominantGenre": self.dominant_genre, "change": self.change}


def _dicts(items: Iterable[Any]) -> List[Dict[str, Any]]:
    return [item.to_dict() for item in items]


@dataclass(frozen=True)
class InsightReport:
    """The engine's only output. Built once, never mutated."""

    top_genres: Tuple[GenreShare, ...]
    genre_diversity_score: int
    top_artists: Tuple[FeaturedArtist, ...]
    artist_loyalty_score: int
    new_artists_discovered: int
    listening_trends: Tuple[TrendEntry, ...]
    most_active_time_range: str
    discovery_timeline: Tuple[DiscoveryEntry, ...]
    listening_habits: ListeningHabits
    genre_evolution: Tuple[GenreEvolutionEntry, ...]
    exploration_score: int
    comfort_zone_percentage: int
    taste_evolution: Tuple[TasteEvolutionEntry, ...]
    analysis_date: datetime
    total_tracks_analyzed: int

    def to_dict(self) -> Dict[str, Any]:
        """JSON shape consumed by the presentation layer (camelCase keys)."""
        return {
            "topGenres": _dicts(self.top_genres),
            "genreDiversityScore": self.genre_diversity_score,
            "topArtists": _dicts(self.top_artists),
            "artistLoyaltyScore": self.artist_loyalty_score,
            "newArtistsDiscovered": self.new_artists_discovered,
            "listeningTrends": _dicts(self.listening_trends),
            "mostActiveTimeRange": self.most_active_time_range,
            "discoveryTimeline": _dicts(self.discovery_timeline),
            "listeningHabits": self.listening_habits.to_dict(),
            "genreEvolution": _dicts(self.genre_evolution),
            "explorationScore": self.exploration_score,
            "comfortZonePercentage": self.comfort_zone_percentage,
            "tasteEvolution": _dicts(self.taste_evolution),
            "analysisDate": self.analysis_date.isoformat(),
            "totalTracksAnalyzed": self.total_tracks_analyzed,
        }
