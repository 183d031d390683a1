"""Metric catalogue and helper functions for creating MetricSample objects.

Every metric the exporter can emit is declared here once, with its help text
and its fixed label keys. The encoder documents the whole catalogue on every
scrape, and gauge() refuses samples that do not match their family.
"""

from collections.abc import Mapping
from dataclasses import dataclass

from homers.core.models import SERVICE_UP, MetricSample

PREFIX = "homers"


@dataclass(frozen=True)
class MetricFamily:
    """Static description of one gauge family.

    Attributes:
        name: Full metric name, prefix included.
        help: One-line description rendered as # HELP.
        labels: Label keys every sample of the family carries.
    """

    name: str
    help: str
    labels: tuple[str, ...]


CATALOGUE: dict[str, MetricFamily] = {}


def _family(name: str, help: str, *labels: str) -> MetricFamily:
    family = MetricFamily(name=f"{PREFIX}_{name}", help=help, labels=labels)
    CATALOGUE[family.name] = family
    return family


LIVENESS = MetricFamily(
    name=SERVICE_UP,
    help="Whether the last collection of the instance succeeded",
    labels=("service", "name"),
)
CATALOGUE[LIVENESS.name] = LIVENESS

# Calendar manager
_EPISODE_LABELS = ("name", "serie", "sxe", "season_number", "episode_number", "title")
_family("sonarr_today_episode", "Sonarr episodes airing today (1 when downloaded)", *_EPISODE_LABELS)
_family("sonarr_today_episode_total", "Number of Sonarr episodes airing today", "name")
_family("sonarr_missing_episode", "Sonarr aired episodes without a file", *_EPISODE_LABELS)
_family("sonarr_missing_episode_total", "Number of Sonarr aired episodes without a file", "name")

# Library managers
_family(
    "radarr_movie",
    "Radarr movie status (1 when downloaded)",
    "name",
    "title",
    "year",
    "monitored",
    "is_available",
    "missing_available",
)
_family("radarr_movie_total", "Number of Radarr movies", "name")
_family("radarr_movie_file_total", "Number of Radarr movies with a file", "name")
_family("radarr_movie_monitored_total", "Number of monitored Radarr movies", "name")
_family(
    "radarr_movie_missing_available_total",
    "Number of available Radarr movies without a file",
    "name",
)
_family("lidarr_artist", "Lidarr track files per artist", "name", "artist", "monitored")
_family("lidarr_artist_total", "Number of Lidarr artists", "name")
_family("lidarr_artist_monitored_total", "Number of monitored Lidarr artists", "name")
_family("lidarr_track_file_total", "Number of Lidarr track files", "name")
_family("readarr_author", "Readarr book files per author", "name", "author", "monitored")
_family("readarr_author_total", "Number of Readarr authors", "name")
_family("readarr_author_monitored_total", "Number of monitored Readarr authors", "name")
_family("readarr_book_file_total", "Number of Readarr book files", "name")

# Watch-history service
_TAUTULLI_PROGRESS_LABELS = (
    "name",
    "session_id",
    "user",
    "title",
    "state",
    "media_type",
    "season_number",
    "episode_number",
    "video_stream",
    "quality",
    "quality_profile",
    "city",
)
_family(
    "tautulli_session",
    "Tautulli active session",
    *_TAUTULLI_PROGRESS_LABELS,
    "longitude",
    "latitude",
)
_family("tautulli_session_percentage", "Tautulli session progress", *_TAUTULLI_PROGRESS_LABELS)
_family("tautulli_session_total", "Number of Tautulli active sessions", "name")
_LIBRARY_SECTION_LABELS = ("name", "section_name", "section_type")
_family("tautulli_library", "Tautulli library item count", *_LIBRARY_SECTION_LABELS)
_family("tautulli_library_parent_count", "Tautulli library parent item count", *_LIBRARY_SECTION_LABELS)
_family("tautulli_library_child_count", "Tautulli library child item count", *_LIBRARY_SECTION_LABELS)
_family("tautulli_history_plays", "Tautulli plays in the trailing history window", "name", "media_type")
_family(
    "tautulli_history_play_seconds",
    "Tautulli seconds played in the trailing history window",
    "name",
    "media_type",
)
_family("tautulli_history_users", "Tautulli distinct users in the trailing history window", "name")

# Playback servers
SESSION_LABELS = (
    "name",
    "session_id",
    "title",
    "user",
    "decision",
    "state",
    "platform",
    "local",
    "relayed",
    "secure",
    "address",
    "public_address",
    "season_number",
    "episode_number",
    "quality",
    "city",
    "longitude",
    "latitude",
)
LIBRARY_LABELS = ("name", "library_name", "library_type")
for _server, _label in (("plex", "Plex"), ("jellyfin", "Jellyfin")):
    _family(f"{_server}_session", f"{_label} active session", *SESSION_LABELS)
    _family(f"{_server}_session_percentage", f"{_label} session progress", *SESSION_LABELS)
    _family(
        f"{_server}_session_bandwidth",
        f"{_label} session bandwidth in kbps",
        "name",
        "session_id",
        "user",
        "title",
        "location",
    )
    _family(f"{_server}_session_total", f"Number of {_label} active sessions", "name")
    _family(f"{_server}_library", f"{_label} library item count", *LIBRARY_LABELS)
    _family(
        f"{_server}_library_child_count",
        f"{_label} library child item count (seasons, albums)",
        *LIBRARY_LABELS,
    )
    _family(
        f"{_server}_library_grandchild_count",
        f"{_label} library grandchild item count (episodes, tracks)",
        *LIBRARY_LABELS,
    )

# Request-management services
for _service, _label in (("overseerr", "Overseerr"), ("jellyseerr", "Jellyseerr")):
    _family(
        f"{_service}_request",
        f"{_label} request status code",
        "name",
        "request_id",
        "media_type",
        "media_title",
        "requested_by",
        "request_status",
        "media_status",
        "requested_at",
    )
    _family(
        f"{_service}_request_status_total",
        f"Number of {_label} requests per status",
        "name",
        "status",
    )


def metric_name(*parts: str) -> str:
    """Build a prefixed metric name, e.g. metric_name("plex", "session")."""
    return "_".join((PREFIX, *parts))


def gauge(name: str, value: float, labels: Mapping[str, str] | None = None) -> MetricSample:
    """Create a gauge sample for a catalogued family.

    Args:
        name: Full metric name (e.g., "homers_service_up")
        value: Current gauge value, must be finite
        labels: Label values, keyed exactly like the family's labels

    Returns:
        MetricSample for the family

    Raises:
        ValueError: If the family is unknown, the label keys do not match,
            or the value is not finite.
    """
    family = CATALOGUE.get(name)
    if family is None:
        raise ValueError(f"unknown metric family: {name}")
    labels = dict(labels or {})
    if set(labels) != set(family.labels):
        raise ValueError(
            f"{name} expects labels {sorted(family.labels)}, got {sorted(labels)}"
        )
    return MetricSample(name=name, value=float(value), labels=labels)


def flag(value: bool) -> str:
    """Render a boolean label value."""
    return "1" if value else "0"


def optional(value: object | None) -> str:
    """Render an optional label value, empty when absent."""
    return "" if value is None else str(value)
