"""Tests for the Lidarr and Readarr adapters."""

import pytest

from homers.core.models import ServiceKind
from homers.providers.catalog import collect_lidarr, collect_readarr

pytestmark = [pytest.mark.providers, pytest.mark.tier(1)]


class TestLidarr:
    """Tests for collect_lidarr()."""

    async def test_artists_and_totals(self, upstream, context, make_descriptor) -> None:
        """Artists are valued by their track file count."""
        upstream.add(
            "/api/v1/artist",
            [
                {
                    "artistName": "Daft Punk",
                    "monitored": True,
                    "statistics": {"trackFileCount": 40},
                },
                {"artistName": "Air", "monitored": False, "statistics": {"trackFileCount": 12}},
                {"artistName": "Unknown", "monitored": True},
            ],
        )

        samples = await collect_lidarr(make_descriptor(ServiceKind.LIDARR), context)

        artists = [s for s in samples if s.name == "homers_lidarr_artist"]
        assert [(s.labels["artist"], s.labels["monitored"], s.value) for s in artists] == [
            ("Daft Punk", "1", 40.0),
            ("Air", "0", 12.0),
            ("Unknown", "1", 0.0),
        ]
        totals = {s.name: s.value for s in samples if s.name.endswith("_total")}
        assert totals == {
            "homers_lidarr_artist_total": 3,
            "homers_lidarr_artist_monitored_total": 2,
            "homers_lidarr_track_file_total": 52,
        }


class TestReadarr:
    """Tests for collect_readarr()."""

    async def test_authors_and_totals(self, upstream, context, make_descriptor) -> None:
        """Authors are valued by their book file count."""
        upstream.add(
            "/api/v1/author",
            [
                {
                    "authorName": "Ursula K. Le Guin",
                    "monitored": True,
                    "statistics": {"bookFileCount": 5},
                }
            ],
        )

        samples = await collect_readarr(make_descriptor(ServiceKind.READARR, "books"), context)

        assert [(s.name, s.value) for s in samples] == [
            ("homers_readarr_author", 5.0),
            ("homers_readarr_author_total", 1.0),
            ("homers_readarr_author_monitored_total", 1.0),
            ("homers_readarr_book_file_total", 5.0),
        ]
        assert samples[0].labels == {
            "name": "books",
            "author": "Ursula K. Le Guin",
            "monitored": "1",
        }

    async def test_empty_library(self, upstream, context, make_descriptor) -> None:
        """An empty library still reports zero totals."""
        upstream.add("/api/v1/author", [])

        samples = await collect_readarr(make_descriptor(ServiceKind.READARR), context)

        assert all(s.value == 0 for s in samples)
        assert len(samples) == 3
