"""Shared sample mapping for playback servers (Plex, Jellyfin).

Each server adapter normalises its API responses into PlaybackSession and
LibraryCount values; this module renders them into the same metric families
under the server's namespace.
"""

from dataclasses import dataclass
from enum import Enum

from homers.core.metrics import flag, gauge, metric_name, optional
from homers.core.models import MetricSample
from homers.providers.geolocation import UNKNOWN_LOCATION, Location


class StreamDecision(str, Enum):
    """How the server delivers a stream."""

    DIRECT_PLAY = "Direct Play"
    DIRECT_STREAM = "Direct Stream"
    TRANSCODE = "Transcode"
    NONE = "None"


class MediaType(str, Enum):
    """Normalised library type."""

    MOVIE = "Movie"
    SHOW = "Show"
    MUSIC = "Music"
    BOOK = "Book"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: str) -> "MediaType":
        return {
            "movie": cls.MOVIE,
            "movies": cls.MOVIE,
            "show": cls.SHOW,
            "shows": cls.SHOW,
            "series": cls.SHOW,
            "music": cls.MUSIC,
            "artist": cls.MUSIC,
            "book": cls.BOOK,
            "books": cls.BOOK,
        }.get(value.lower(), cls.UNKNOWN)


@dataclass(frozen=True)
class PlaybackSession:
    """An active playback, independent of the server it runs on."""

    session_id: str
    title: str
    user: str
    decision: StreamDecision
    state: str
    platform: str
    address: str
    public_address: str = ""
    progress: float | None = None
    season_number: int | None = None
    episode_number: int | None = None
    quality: str = "Unknown"
    local: bool = False
    relayed: bool = False
    secure: bool = False
    location: Location = UNKNOWN_LOCATION
    bandwidth: int | None = None
    bandwidth_location: str = "Undefined"


@dataclass(frozen=True)
class LibraryCount:
    """Item counts of one library."""

    name: str
    media_type: MediaType
    count: int
    child_count: int | None = None
    grandchild_count: int | None = None


def progress_percent(position: float, duration: float) -> float | None:
    """Return playback progress in percent, or None when undefined."""
    if duration <= 0:
        return None
    return position / duration * 100.0


def session_samples(
    server: str, name: str, sessions: list[PlaybackSession]
) -> list[MetricSample]:
    """Render sessions into <server>_session* samples."""
    samples: list[MetricSample] = []
    for session in sessions:
        labels = {
            "name": name,
            "session_id": session.session_id,
            "title": session.title,
            "user": session.user,
            "decision": session.decision.value,
            "state": session.state,
            "platform": session.platform,
            "local": flag(session.local),
            "relayed": flag(session.relayed),
            "secure": flag(session.secure),
            "address": session.address,
            "public_address": session.public_address,
            "season_number": optional(session.season_number),
            "episode_number": optional(session.episode_number),
            "quality": session.quality,
            "city": session.location.city,
            "longitude": session.location.longitude,
            "latitude": session.location.latitude,
        }
        samples.append(gauge(metric_name(server, "session"), 1.0, labels))
        if session.progress is not None:
            samples.append(
                gauge(metric_name(server, "session_percentage"), session.progress, labels)
            )
        if session.bandwidth is not None:
            samples.append(
                gauge(
                    metric_name(server, "session_bandwidth"),
                    session.bandwidth,
                    {
                        "name": name,
                        "session_id": session.session_id,
                        "user": session.user,
                        "title": session.title,
                        "location": session.bandwidth_location,
                    },
                )
            )
    samples.append(gauge(metric_name(server, "session_total"), len(sessions), {"name": name}))
    return samples


def library_samples(server: str, name: str, libraries: list[LibraryCount]) -> list[MetricSample]:
    """Render library counts into <server>_library* samples."""
    samples: list[MetricSample] = []
    for library in libraries:
        labels = {
            "name": name,
            "library_name": library.name,
            "library_type": library.media_type.value,
        }
        samples.append(gauge(metric_name(server, "library"), library.count, labels))
        if library.child_count is not None:
            samples.append(
                gauge(metric_name(server, "library_child_count"), library.child_count, labels)
            )
        if library.grandchild_count is not None:
            samples.append(
                gauge(
                    metric_name(server, "library_grandchild_count"),
                    library.grandchild_count,
                    labels,
                )
            )
    return samples
