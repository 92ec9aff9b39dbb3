"""
Listening Insights - Insights Engine
Derives diversity, loyalty, exploration and taste-drift metrics from a
listener's top artists and tracks across three time windows.

Every analyzer is a pure function of the input windows, so sections can be
computed in any order. The engine never performs I/O.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Set, Tuple

import numpy as np
import pandas as pd

from .exceptions import InsightComputationError, InsightsError, MalformedInputError
from .models import (
    ArtistRecord,
    ArtistWindow,
    DiscoveryEntry,
    FeaturedArtist,
    GenreEvolutionEntry,
    GenreShare,
    InsightReport,
    ListeningHabits,
    TasteEvolutionEntry,
    TimeWindow,
    TrackWindow,
    TrendEntry,
    WindowGenreShare,
    parse_artist_window,
    parse_track_window,
    parse_windows,
)

logger = logging.getLogger(__name__)

# Ranking limits
TOP_GENRES_LIMIT = 10
EVOLUTION_GENRES_LIMIT = 3
FEATURED_RECENT_ARTISTS = 5
FEATURED_LONG_TERM_ARTISTS = 3

# Entropy (bits) -> 0-100 score
DIVERSITY_SCALE = 20

# Habit thresholds
HIGH_DIVERSITY = 60
LOW_DIVERSITY = 40
COMFORT_ZONE_OVERLAP = 70
ADVENTUROUS_OVERLAP = 30
MEDIUM_ACTIVITY_RATIO = 1.5

UNKNOWN_GENRE = "Unknown"

TREND_PERIODS = {
    TimeWindow.RECENT: "Last 4 weeks",
    TimeWindow.MEDIUM: "Last 6 months",
    TimeWindow.LONG: "All time",
}

GENRE_EVOLUTION_LABELS = {
    TimeWindow.RECENT: ("Recent", "Current preferences"),
    TimeWindow.MEDIUM: ("6 months ago", "Previous focus"),
    TimeWindow.LONG: ("Long-term", "Historical foundation"),
}

TASTE_EVOLUTION_LABELS = {
    TimeWindow.RECENT: ("Recently", "Current focus"),
    TimeWindow.MEDIUM: ("6 months ago", "Previous interest"),
    TimeWindow.LONG: ("Long-term", "Historical preference"),
}


# ----------------------------------------------------------------------
# Shared helpers
# ----------------------------------------------------------------------

def round_half_up(value: float) -> int:
    """Round .5 upwards, matching how the dashboard rounds percentages."""
    return int(np.floor(value + 0.5))


def percent(part: float, whole: float) -> int:
    """Rounded percentage; a zero denominator resolves to 0."""
    if whole == 0:
        return 0
    return round_half_up(part / whole * 100)


def artist_ids(artists: Iterable[ArtistRecord]) -> Set[str]:
    return {artist.id for artist in artists}


def overlap_percentage(recent: ArtistWindow, long_term: ArtistWindow) -> float:
    """Unrounded share of recent artists also in the long-term window."""
    recent_ids = artist_ids(recent)
    if not recent_ids:
        return 0.0
    return len(recent_ids & artist_ids(long_term)) / len(recent_ids) * 100


def genre_counts(*windows: ArtistWindow) -> pd.Series:
    """Genre -> occurrence count, descending, ties kept in first-encountered order.

    An artist contributes one count per genre for every window it appears in.
    """
    genres = [genre for artists in windows for artist in artists for genre in artist.genres]
    if not genres:
        return pd.Series(dtype="int64")

    counts = pd.DataFrame({"genre": genres}).groupby("genre", sort=False).size()
    return counts.sort_values(ascending=False, kind="stable")


def genre_diversity(counts: pd.Series) -> int:
    """Shannon entropy of the genre distribution, scaled to 0-100."""
    total = counts.sum()
    if total == 0:
        return 0

    p = counts.to_numpy(dtype=float) / total
    entropy = float(-(p * np.log2(p)).sum())
    return min(100, round_half_up(entropy * DIVERSITY_SCALE))


def dominant_genre(artists: ArtistWindow) -> str:
    """Most frequent genre among the artists, or "Unknown" without genre data."""
    counts = genre_counts(artists)
    if counts.empty:
        return UNKNOWN_GENRE
    return str(counts.index[0])


class InsightsEngine:
    """
    Builds an InsightReport from already-fetched listening windows.

    Usage:
        engine = InsightsEngine.from_payloads(artist_payloads, track_payloads)
        report = engine.build_report()
    """

    def __init__(
        self,
        artists: Dict[TimeWindow, ArtistWindow],
        tracks: Dict[TimeWindow, TrackWindow],
    ):
        missing = [w.value for w in TimeWindow if w not in artists or w not in tracks]
        if missing:
            raise MalformedInputError(f"missing listening windows: {missing}")

        self.artists = {w: tuple(artists[w]) for w in TimeWindow}
        self.tracks = {w: tuple(tracks[w]) for w in TimeWindow}
        self.recent = self.artists[TimeWindow.RECENT]
        self.medium = self.artists[TimeWindow.MEDIUM]
        self.long_term = self.artists[TimeWindow.LONG]

    @classmethod
    def from_payloads(cls, artist_payloads: Dict[str, Any], track_payloads: Dict[str, Any]) -> "InsightsEngine":
        """Build an engine from raw {time_range: payload} mappings."""
        return cls(
            parse_windows(artist_payloads, parse_artist_window, "artist"),
            parse_windows(track_payloads, parse_track_window, "track"),
        )

    # ------------------------------------------------------------------
    # Genres
    # ------------------------------------------------------------------

    def get_genre_frequency(self) -> Dict[str, Any]:
        """Top 10 genres across all windows plus the entropy diversity score."""
        counts = genre_counts(self.recent, self.medium, self.long_term)
        total = int(counts.sum())

        top_genres = tuple(
            GenreShare(genre=str(genre), count=int(count), percentage=percent(count, total))
            for genre, count in counts.head(TOP_GENRES_LIMIT).items()
        )
        return {"top_genres": top_genres, "diversity_score": genre_diversity(counts)}

    def get_genre_evolution(self) -> Tuple[GenreEvolutionEntry, ...]:
        """Top 3 genres of each window on its own."""
        entries = []
        for window in TimeWindow:
            counts = genre_counts(self.artists[window])
            total = int(counts.sum())
            time_range, change = GENRE_EVOLUTION_LABELS[window]
            top = tuple(
                WindowGenreShare(genre=str(genre), percentage=percent(count, total))
                for genre, count in counts.head(EVOLUTION_GENRES_LIMIT).items()
            )
            entries.append(GenreEvolutionEntry(time_range=time_range, top_genres=top, change=change))
        return tuple(entries)

    def get_taste_evolution(self) -> Tuple[TasteEvolutionEntry, ...]:
        entries = []
        for window in TimeWindow:
            time_range, change = TASTE_EVOLUTION_LABELS[window]
            entries.append(
                TasteEvolutionEntry(
                    time_range=time_range,
                    dominant_genre=dominant_genre(self.artists[window]),
                    change=change,
                )
            )
        return tuple(entries)

    # ------------------------------------------------------------------
    # Artists
    # ------------------------------------------------------------------

    def get_artist_patterns(self) -> Dict[str, Any]:
        """Loyalty (recent artists still in the long-term window) and new-artist count.

        The medium window plays no part here. An empty recent window gives a
        loyalty score of 0.
        """
        recent_ids = artist_ids(self.recent)
        long_ids = artist_ids(self.long_term)

        loyal = recent_ids & long_ids
        top_artists = tuple(
            [FeaturedArtist(a.name, "Recent favorite", "Last 4 weeks") for a in self.recent[:FEATURED_RECENT_ARTISTS]]
            + [FeaturedArtist(a.name, "All-time favorite", "Long-term") for a in self.long_term[:FEATURED_LONG_TERM_ARTISTS]]
        )

        return {
            "top_artists": top_artists,
            "loyalty_score": percent(len(loyal), len(recent_ids)),
            "new_artists_discovered": len(recent_ids - long_ids),
        }

    def get_exploration(self) -> Dict[str, int]:
        """Comfort zone share and its complement, computed separately from loyalty."""
        recent_ids = artist_ids(self.recent)
        overlapping = recent_ids & artist_ids(self.long_term)

        comfort_zone = percent(len(overlapping), len(recent_ids))
        return {"exploration_score": 100 - comfort_zone, "comfort_zone_percentage": comfort_zone}

    def get_discovery_timeline(self) -> Tuple[DiscoveryEntry, ...]:
        recent_ids = artist_ids(self.recent)
        medium_ids = artist_ids(self.medium)
        long_ids = artist_ids(self.long_term)

        recent_new = len(recent_ids - medium_ids)
        medium_new = len(medium_ids - long_ids)

        return (
            DiscoveryEntry("Last 4 weeks", percent(recent_new, len(recent_ids)), recent_new),
            DiscoveryEntry("Last 6 months", percent(medium_new, len(medium_ids)), medium_new),
            # "Overall" divides the recent discoveries by the long-term pool and
            # reports the average window size as its artist count.
            DiscoveryEntry(
                "Overall",
                percent(recent_new, len(long_ids)),
                round_half_up((len(recent_ids) + len(medium_ids)) / 2),
            ),
        )

    # ------------------------------------------------------------------
    # Trends & habits
    # ------------------------------------------------------------------

    def get_trends(self) -> Dict[str, Any]:
        """Track volume per window.

        newArtistCount repeats the window's track count; it is not a discovery metric.
        """
        trends = tuple(
            TrendEntry(period=TREND_PERIODS[w], track_count=len(self.tracks[w]), new_artist_count=len(self.tracks[w]))
            for w in TimeWindow
        )
        return {"trends": trends, "most_active": TREND_PERIODS[TimeWindow.RECENT]}

    def get_listening_habits(self, diversity_score: Optional[int] = None) -> ListeningHabits:
        if diversity_score is None:
            diversity_score = genre_diversity(genre_counts(self.recent, self.medium, self.long_term))

        most_active = "Recent weeks"
        if len(self.medium) > len(self.recent) * MEDIUM_ACTIVITY_RATIO:
            most_active = "Past 6 months"

        trend = "stable"
        if diversity_score > HIGH_DIVERSITY:
            trend = "increasing"
        elif diversity_score < LOW_DIVERSITY:
            trend = "decreasing"

        overlap = overlap_percentage(self.recent, self.long_term)
        pattern = "Balanced explorer"
        if overlap > COMFORT_ZONE_OVERLAP:
            pattern = "Comfort zone listener"
        elif overlap < ADVENTUROUS_OVERLAP:
            pattern = "Adventurous explorer"

        return ListeningHabits(most_active_time_range=most_active, diversity_trend=trend, exploration_pattern=pattern)

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------

    def build_report(self, analysis_date: Optional[datetime] = None) -> InsightReport:
        """Run every analyzer and assemble the report. Any failure aborts the whole report."""
        try:
            genres = self.get_genre_frequency()
            artists = self.get_artist_patterns()
            trends = self.get_trends()
            exploration = self.get_exploration()

            report = InsightReport(
                top_genres=genres["top_genres"],
                genre_diversity_score=genres["diversity_score"],
                top_artists=artists["top_artists"],
                artist_loyalty_score=artists["loyalty_score"],
                new_artists_discovered=artists["new_artists_discovered"],
                listening_trends=trends["trends"],
                most_active_time_range=trends["most_active"],
                discovery_timeline=self.get_discovery_timeline(),
                listening_habits=self.get_listening_habits(genres["diversity_score"]),
                genre_evolution=self.get_genre_evolution(),
                exploration_score=exploration["exploration_score"],
                comfort_zone_percentage=exploration["comfort_zone_percentage"],
                taste_evolution=self.get_taste_evolution(),
                analysis_date=analysis_date or datetime.now(timezone.utc),
                total_tracks_analyzed=sum(len(self.tracks[w]) for w in TimeWindow),
            )
        except InsightsError:
            raise
        except Exception as e:
            logger.error(f"Insight analysis failed: {e}", exc_info=True)
            raise InsightComputationError(f"Failed to analyze listening data: {e}") from e

        logger.info(
            f"Built insight report: {len(report.top_genres)} top genres, "
            f"{report.total_tracks_analyzed} tracks analyzed"
        )
        return report
