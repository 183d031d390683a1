"""Tests for the shared playback-server sample mapping."""

import pytest

from homers.providers.geolocation import Location
from homers.providers.media_server import (
    LibraryCount,
    MediaType,
    PlaybackSession,
    StreamDecision,
    library_samples,
    progress_percent,
    session_samples,
)

pytestmark = [pytest.mark.providers, pytest.mark.tier(1)]


def _session(**overrides) -> PlaybackSession:
    values = {
        "session_id": "abc",
        "title": "Arrival",
        "user": "alice",
        "decision": StreamDecision.DIRECT_PLAY,
        "state": "playing",
        "platform": "Chrome",
        "address": "192.168.1.20",
    }
    values.update(overrides)
    return PlaybackSession(**values)


class TestProgressPercent:
    """Tests for progress_percent()."""

    def test_ratio(self) -> None:
        """Position over duration, in percent."""
        assert progress_percent(30, 120) == 25.0

    @pytest.mark.parametrize("duration", [0, -5])
    def test_undefined_without_duration(self, duration: int) -> None:
        """A zero or negative duration has no progress."""
        assert progress_percent(30, duration) is None


class TestMediaType:
    """Tests for MediaType.parse()."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("movie", MediaType.MOVIE),
            ("Movies", MediaType.MOVIE),
            ("show", MediaType.SHOW),
            ("series", MediaType.SHOW),
            ("artist", MediaType.MUSIC),
            ("books", MediaType.BOOK),
            ("photo", MediaType.UNKNOWN),
        ],
    )
    def test_parse(self, raw: str, expected: MediaType) -> None:
        """Server-specific type names map onto the shared enum."""
        assert MediaType.parse(raw) is expected


class TestSessionSamples:
    """Tests for session_samples()."""

    def test_full_session(self) -> None:
        """A session with progress and bandwidth yields three samples plus the total."""
        session = _session(
            progress=42.5,
            bandwidth=8000,
            bandwidth_location="LAN",
            season_number=1,
            episode_number=3,
            local=True,
            location=Location(city="Paris", latitude="48.8", longitude="2.3"),
        )

        samples = session_samples("plex", "home", [session])

        assert [s.name for s in samples] == [
            "homers_plex_session",
            "homers_plex_session_percentage",
            "homers_plex_session_bandwidth",
            "homers_plex_session_total",
        ]
        labels = samples[0].labels
        assert labels["decision"] == "Direct Play"
        assert labels["local"] == "1"
        assert labels["relayed"] == "0"
        assert labels["season_number"] == "1"
        assert labels["city"] == "Paris"
        assert samples[1].value == 42.5
        assert samples[2].labels == {
            "name": "home",
            "session_id": "abc",
            "user": "alice",
            "title": "Arrival",
            "location": "LAN",
        }
        assert samples[3].value == 1

    def test_optional_samples_omitted(self) -> None:
        """Unknown progress and bandwidth produce no samples, only the session."""
        samples = session_samples("jellyfin", "main", [_session()])

        assert [s.name for s in samples] == [
            "homers_jellyfin_session",
            "homers_jellyfin_session_total",
        ]
        assert samples[0].labels["season_number"] == ""
        assert samples[0].labels["city"] == "Unknown"

    def test_idle_server_reports_zero_total(self) -> None:
        """Without sessions, only a zero total is emitted."""
        samples = session_samples("plex", "home", [])
        assert [(s.name, s.value) for s in samples] == [("homers_plex_session_total", 0.0)]


class TestLibrarySamples:
    """Tests for library_samples()."""

    def test_counts_by_depth(self) -> None:
        """Child and grandchild counts appear only when known."""
        samples = library_samples(
            "jellyfin",
            "main",
            [
                LibraryCount(name="Movies", media_type=MediaType.MOVIE, count=120),
                LibraryCount(
                    name="Shows",
                    media_type=MediaType.SHOW,
                    count=10,
                    child_count=30,
                    grandchild_count=400,
                ),
            ],
        )

        assert [(s.name, s.labels["library_name"], s.value) for s in samples] == [
            ("homers_jellyfin_library", "Movies", 120.0),
            ("homers_jellyfin_library", "Shows", 10.0),
            ("homers_jellyfin_library_child_count", "Shows", 30.0),
            ("homers_jellyfin_library_grandchild_count", "Shows", 400.0),
        ]
        assert samples[1].labels["library_type"] == "Show"
