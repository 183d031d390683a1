"""Tautulli adapter: active sessions, library counts and watch history.

Tautulli wraps every command result in a {"response": {"result", "data"}}
envelope and authenticates through the apikey query argument.
"""

import asyncio
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, field_validator

from homers.core.errors import UpstreamError
from homers.core.metrics import gauge, metric_name, optional
from homers.core.models import InstanceDescriptor, MetricSample
from homers.core.ports import CollectionContext
from homers.providers.geolocation import Location, locate
from homers.providers.http import decode, get_json

API_PATH = "/api/v2"


class _Body(BaseModel):
    result: str
    message: str | None = None
    data: Any = None


class _Envelope(BaseModel):
    response: _Body


class ActivitySession(BaseModel):
    """One entry of get_activity's sessions."""

    session_key: str
    user: str
    title: str
    grandparent_title: str = ""
    state: str = "unknown"
    media_type: str
    progress_percent: float = 0.0
    video_full_resolution: str = ""
    quality_profile: str = ""
    video_decision: str = ""
    parent_media_index: str = ""
    media_index: str = ""
    ip_address: str = ""
    ip_address_public: str = ""

    @property
    def is_episode(self) -> bool:
        return self.media_type == "episode"

    @property
    def display_title(self) -> str:
        """Series title for episodes, item title otherwise."""
        return self.grandparent_title if self.is_episode else self.title

    @property
    def public_address(self) -> str:
        return self.ip_address_public or self.ip_address


class _Activity(BaseModel):
    sessions: list[ActivitySession] = []


class Library(BaseModel):
    """One entry of get_libraries."""

    section_name: str
    section_type: str
    count: int = 0
    parent_count: int | None = None
    child_count: int | None = None

    @field_validator("parent_count", "child_count", mode="before")
    @classmethod
    def _blank_as_missing(cls, value: Any) -> Any:
        return None if value == "" else value


class HistoryRow(BaseModel):
    """One row of get_history."""

    started: int
    media_type: str = "unknown"
    user: str = ""
    duration: int | None = None
    play_duration: int | None = None

    @property
    def played_seconds(self) -> int:
        if self.play_duration is not None:
            return self.play_duration
        return self.duration or 0


class _History(BaseModel):
    data: list[HistoryRow] = []


async def _command(
    context: CollectionContext,
    descriptor: InstanceDescriptor,
    cmd: str,
    **params: str | int,
) -> Any:
    payload = await get_json(
        context,
        descriptor,
        API_PATH,
        params={"apikey": descriptor.credential, "cmd": cmd, **params},
        headers={"Accept": "application/json"},
    )
    envelope = decode(_Envelope, payload)
    if envelope.response.result != "success":
        raise UpstreamError(
            f"{cmd} answered {envelope.response.result}: {envelope.response.message or ''}"
        )
    return envelope.response.data


def history_window(now: datetime, hours: int) -> datetime:
    """Return the start of the sliding history window ending at now."""
    return now - timedelta(hours=hours)


def _session_samples(
    name: str, session: ActivitySession, location: Location
) -> list[MetricSample]:
    labels = {
        "name": name,
        "session_id": session.session_key,
        "user": session.user,
        "title": session.display_title,
        "state": session.state,
        "media_type": session.media_type,
        "season_number": optional(session.parent_media_index if session.is_episode else None),
        "episode_number": optional(session.media_index if session.is_episode else None),
        "video_stream": session.video_decision,
        "quality": session.video_full_resolution,
        "quality_profile": session.quality_profile,
        "city": location.city,
    }
    return [
        gauge(
            metric_name("tautulli", "session"),
            1.0,
            {**labels, "longitude": location.longitude, "latitude": location.latitude},
        ),
        gauge(metric_name("tautulli", "session_percentage"), session.progress_percent, labels),
    ]


def _library_samples(name: str, libraries: list[Library]) -> list[MetricSample]:
    samples: list[MetricSample] = []
    for library in libraries:
        labels = {
            "name": name,
            "section_name": library.section_name,
            "section_type": library.section_type,
        }
        samples.append(gauge(metric_name("tautulli", "library"), library.count, labels))
        if library.parent_count is not None:
            samples.append(
                gauge(metric_name("tautulli", "library_parent_count"), library.parent_count, labels)
            )
        if library.child_count is not None:
            samples.append(
                gauge(metric_name("tautulli", "library_child_count"), library.child_count, labels)
            )
    return samples


def _history_samples(
    name: str, rows: list[HistoryRow], since: datetime
) -> list[MetricSample]:
    threshold = since.timestamp()
    recent = [row for row in rows if row.started >= threshold]
    plays: dict[str, int] = defaultdict(int)
    seconds: dict[str, int] = defaultdict(int)
    for row in recent:
        plays[row.media_type] += 1
        seconds[row.media_type] += row.played_seconds

    samples: list[MetricSample] = []
    for media_type in sorted(plays):
        labels = {"name": name, "media_type": media_type}
        samples.append(gauge(metric_name("tautulli", "history_plays"), plays[media_type], labels))
        samples.append(
            gauge(metric_name("tautulli", "history_play_seconds"), seconds[media_type], labels)
        )
    users = {row.user for row in recent}
    samples.append(gauge(metric_name("tautulli", "history_users"), len(users), {"name": name}))
    return samples


async def collect(descriptor: InstanceDescriptor, context: CollectionContext) -> list[MetricSample]:
    """Collect sessions, libraries and watch-history aggregates."""
    options = descriptor.options
    since = history_window(context.clock(), options.history_hours)
    activity_data, libraries_data, history_data = await asyncio.gather(
        _command(context, descriptor, "get_activity"),
        _command(context, descriptor, "get_libraries"),
        _command(
            context,
            descriptor,
            "get_history",
            after=since.date().isoformat(),
            length=options.history_length,
        ),
    )
    activity = decode(_Activity, activity_data)
    libraries = decode(list[Library], libraries_data)
    history = decode(_History, history_data)

    locations = await asyncio.gather(
        *(
            locate(context, session.public_address, options.geolocate)
            for session in activity.sessions
        )
    )

    name = descriptor.name
    samples: list[MetricSample] = []
    for session, location in zip(activity.sessions, locations, strict=True):
        samples.extend(_session_samples(name, session, location))
    samples.append(
        gauge(metric_name("tautulli", "session_total"), len(activity.sessions), {"name": name})
    )
    samples.extend(_library_samples(name, libraries))
    samples.extend(_history_samples(name, history.data, since))
    return samples
