"""
Integration tests for the HTTP endpoints (/health, /insights, /insights/analyze).
"""

import pytest
import spotipy
from fastapi.testclient import TestClient

from listening_insights import main, spotify_client


@pytest.fixture
def api_client():
    return TestClient(main.app)


@pytest.fixture
def patched_spotify(monkeypatch, spotify_mock):
    """Route create_spotify_client to the mock client."""
    tokens = []

    def create(token):
        tokens.append(token)
        return spotify_mock

    monkeypatch.setattr(spotify_client, "create_spotify_client", create)
    spotify_mock.tokens = tokens
    return spotify_mock


@pytest.mark.integration
class TestServiceEndpoints:
    def test_root(self, api_client) -> None:
        assert api_client.get("/").json()["status"] == "running"

    def test_health(self, api_client) -> None:
        assert api_client.get("/health").json() == {"status": "healthy"}


@pytest.mark.integration
class TestGetInsights:
    """Tests for GET /insights."""

    def test_requires_bearer_token(self, api_client) -> None:
        assert api_client.get("/insights").status_code == 401
        assert api_client.get("/insights", headers={"Authorization": "Basic abc"}).status_code == 401

    def test_returns_user_and_report(self, api_client, patched_spotify) -> None:
        response = api_client.get("/insights", headers={"Authorization": "Bearer secret-token"})
        assert response.status_code == 200
        body = response.json()
        assert patched_spotify.tokens == ["secret-token"]
        assert body["user"]["id"] == "listener-1"
        insights = body["insights"]
        assert insights["artistLoyaltyScore"] == 50
        assert insights["explorationScore"] == 50
        assert insights["totalTracksAnalyzed"] == 3
        assert [e["period"] for e in insights["discoveryTimeline"]] == ["Last 4 weeks", "Last 6 months", "Overall"]

    def test_expired_session(self, api_client, patched_spotify) -> None:
        patched_spotify.current_user.side_effect = spotipy.SpotifyException(401, -1, "The access token expired")
        response = api_client.get("/insights", headers={"Authorization": "Bearer stale"})
        assert response.status_code == 401
        assert "expired" in response.json()["detail"]

    def test_upstream_failure(self, api_client, patched_spotify) -> None:
        patched_spotify.current_user_top_artists.side_effect = spotipy.SpotifyException(429, -1, "Too many requests")
        response = api_client.get("/insights", headers={"Authorization": "Bearer token"})
        assert response.status_code == 502
        assert "insights" not in response.json()

    def test_malformed_upstream_data(self, api_client, patched_spotify) -> None:
        patched_spotify.current_user_top_tracks.side_effect = lambda limit, time_range: {"tracks": []}
        response = api_client.get("/insights", headers={"Authorization": "Bearer token"})
        assert response.status_code == 502


@pytest.mark.integration
class TestAnalyzeWindows:
    """Tests for POST /insights/analyze."""

    def test_analyzes_submitted_windows(self, api_client, artist_payloads, track_payloads) -> None:
        response = api_client.post("/insights/analyze", json={"artists": artist_payloads, "tracks": track_payloads})
        assert response.status_code == 200
        body = response.json()
        assert body["artistLoyaltyScore"] == 50
        assert body["newArtistsDiscovered"] == 1
        assert body["comfortZonePercentage"] == 50
        assert body["topGenres"][0] == {"genre": "pop", "count": 2, "percentage": 67}
        assert [e["dominantGenre"] for e in body["tasteEvolution"]] == ["pop", "Unknown", "pop"]

    def test_malformed_artist(self, api_client, artist_payloads, track_payloads) -> None:
        artist_payloads["short_term"]["items"].append({"id": "C", "name": "No genres"})
        response = api_client.post("/insights/analyze", json={"artists": artist_payloads, "tracks": track_payloads})
        assert response.status_code == 400
        assert "genres" in response.json()["detail"]

    def test_missing_windows(self, api_client) -> None:
        response = api_client.post("/insights/analyze", json={"artists": {}, "tracks": {}})
        assert response.status_code == 400
