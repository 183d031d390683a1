"""Tests for the Prometheus text encoder."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from homers.core.encoding import encode, encode_openmetrics
from homers.core.errors import EncodingError
from homers.core.metrics import CATALOGUE
from homers.core.models import MetricSample, Snapshot

pytestmark = [pytest.mark.core, pytest.mark.tier(1)]


def _movie_total(name: str, value: float) -> MetricSample:
    return MetricSample(name="homers_radarr_movie_total", value=value, labels={"name": name})


class TestEncode:
    """Tests for encode()."""

    def test_empty_snapshot_documents_every_family(self) -> None:
        """HELP and TYPE appear once per catalogued family, even without samples."""
        output = encode(Snapshot())

        for name in CATALOGUE:
            assert output.count(f"# HELP {name} ") == 1
            assert output.count(f"# TYPE {name} gauge\n") == 1

    def test_output_ends_with_newline(self) -> None:
        """The body is newline terminated."""
        assert encode(Snapshot()).endswith("\n")

    def test_families_are_sorted(self) -> None:
        """Family blocks appear in name order."""
        output = encode(Snapshot())
        names = [line.split()[2] for line in output.splitlines() if line.startswith("# TYPE")]
        assert names == sorted(names)

    def test_sample_line_format(self) -> None:
        """Labels are sorted by key and values use repr(float)."""
        sample = MetricSample(
            name="homers_service_up", value=1, labels={"service": "plex", "name": "home"}
        )
        output = encode(Snapshot(samples=(sample,)))
        assert 'homers_service_up{name="home",service="plex"} 1.0\n' in output

    def test_fractional_value(self) -> None:
        """Fractions render with a dot regardless of locale."""
        sample = MetricSample(
            name="homers_tautulli_history_play_seconds",
            value=45.5,
            labels={"name": "main", "media_type": "movie"},
        )
        output = encode(Snapshot(samples=(sample,)))
        assert 'homers_tautulli_history_play_seconds{media_type="movie",name="main"} 45.5' in output

    def test_label_values_are_escaped(self) -> None:
        """Backslash, double quote and newline are escaped."""
        sample = MetricSample(
            name="homers_lidarr_artist",
            value=3,
            labels={"name": "main", "artist": 'AC\\DC "live"\nx', "monitored": "1"},
        )
        output = encode(Snapshot(samples=(sample,)))
        assert 'artist="AC\\\\DC \\"live\\"\\nx"' in output

    def test_samples_are_sorted_within_family(self) -> None:
        """Sample lines are ordered by their label block."""
        output = encode(Snapshot(samples=(_movie_total("b", 1), _movie_total("a", 2))))
        lines = [
            line for line in output.splitlines() if line.startswith("homers_radarr_movie_total{")
        ]
        assert lines == [
            'homers_radarr_movie_total{name="a"} 2.0',
            'homers_radarr_movie_total{name="b"} 1.0',
        ]

    def test_duplicate_series_raises(self) -> None:
        """Two samples of the same series cannot be encoded."""
        with pytest.raises(EncodingError, match="duplicate series"):
            encode(Snapshot(samples=(_movie_total("a", 1), _movie_total("a", 2))))

    def test_unknown_family_raises(self) -> None:
        """Samples of uncatalogued families cannot be encoded."""
        with pytest.raises(EncodingError, match="undocumented family"):
            encode(Snapshot(samples=(MetricSample(name="other_metric", value=1.0),)))

    @given(
        st.lists(
            st.tuples(
                st.text(min_size=1, max_size=12),
                st.floats(allow_nan=False, allow_infinity=False, width=32),
            ),
            unique_by=lambda item: item[0],
            max_size=8,
        ),
        st.randoms(use_true_random=False),
    )
    def test_output_is_independent_of_sample_order(self, items, rnd) -> None:
        """The same samples in any order encode to identical bytes."""
        samples = [_movie_total(name, value) for name, value in items]
        shuffled = list(samples)
        rnd.shuffle(shuffled)

        assert encode(Snapshot(samples=tuple(samples))) == encode(
            Snapshot(samples=tuple(shuffled))
        )


class TestEncodeOpenMetrics:
    """Tests for encode_openmetrics()."""

    def test_terminated_by_eof(self) -> None:
        """OpenMetrics output ends with # EOF."""
        output = encode_openmetrics(Snapshot())
        assert output.endswith("# EOF\n")
        assert output.count("# EOF") == 1

    def test_body_matches_prometheus_rendering(self) -> None:
        """Apart from the EOF marker, both formats render the same lines."""
        snapshot = Snapshot(samples=(_movie_total("a", 1),))
        assert encode_openmetrics(snapshot) == encode(snapshot) + "# EOF\n"
