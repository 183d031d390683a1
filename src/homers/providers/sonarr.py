"""Sonarr adapter: today's episodes and recently aired missing episodes."""

import asyncio
from datetime import UTC, datetime, time, timedelta, timezone

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from homers.core.metrics import gauge, metric_name
from homers.core.models import InstanceDescriptor, MetricSample
from homers.core.ports import CollectionContext
from homers.providers.http import api_key_headers, decode, get_json

CALENDAR_PATH = "/api/v3/calendar"


class _Series(BaseModel):
    title: str


class CalendarEpisode(BaseModel):
    """One entry of /api/v3/calendar."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str
    season_number: int
    episode_number: int
    has_file: bool
    air_date_utc: datetime | None = None
    series: _Series

    @property
    def sxe(self) -> str:
        return f"S{self.season_number:02}E{self.episode_number:02}"

    @property
    def aired_at(self) -> datetime | None:
        if self.air_date_utc is None:
            return None
        if self.air_date_utc.tzinfo is None:
            return self.air_date_utc.replace(tzinfo=UTC)
        return self.air_date_utc


def _is_system_local(now: datetime) -> bool:
    """True when now carries the fixed offset astimezone() gives local time."""
    if not isinstance(now.tzinfo, timezone):
        return False
    return now.utcoffset() == now.replace(tzinfo=None).astimezone().utcoffset()


def today_window(now: datetime) -> tuple[datetime, datetime]:
    """Return the calendar day containing now, as [start, end).

    Midnights are taken in the zone of now. A local clock only carries the
    offset of the current instant, so its midnights are resolved against the
    system zone rules and the window is 23 or 25 hours on a DST change.
    """
    start = datetime.combine(now.date(), time(), tzinfo=now.tzinfo)
    end = datetime.combine(now.date() + timedelta(days=1), time(), tzinfo=now.tzinfo)
    if _is_system_local(now):
        return start.replace(tzinfo=None).astimezone(), end.replace(tzinfo=None).astimezone()
    return start, end


def missing_window(now: datetime, days: int) -> tuple[datetime, datetime]:
    """Return the trailing lookback window ending at now."""
    return now - timedelta(days=days), now


def _iso_utc(moment: datetime) -> str:
    return moment.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


async def _calendar(
    context: CollectionContext,
    descriptor: InstanceDescriptor,
    start: datetime,
    end: datetime,
) -> list[CalendarEpisode]:
    payload = await get_json(
        context,
        descriptor,
        CALENDAR_PATH,
        params={"start": _iso_utc(start), "end": _iso_utc(end), "includeSeries": "true"},
        headers=api_key_headers(descriptor),
    )
    return decode(list[CalendarEpisode], payload)


def _episode_sample(
    name: str, family: str, episode: CalendarEpisode, value: float
) -> MetricSample:
    return gauge(
        metric_name("sonarr", family),
        value,
        {
            "name": name,
            "serie": episode.series.title,
            "sxe": episode.sxe,
            "season_number": str(episode.season_number),
            "episode_number": str(episode.episode_number),
            "title": episode.title,
        },
    )


async def collect(descriptor: InstanceDescriptor, context: CollectionContext) -> list[MetricSample]:
    """Collect today's calendar and the missing-episode backlog."""
    now = context.clock()
    today_start, today_end = today_window(now)
    missing_start, missing_end = missing_window(now, descriptor.options.missing_days)
    today, recent = await asyncio.gather(
        _calendar(context, descriptor, today_start, today_end),
        _calendar(context, descriptor, missing_start, missing_end),
    )

    name = descriptor.name
    samples: list[MetricSample] = []

    airing = [
        episode
        for episode in today
        if episode.aired_at is not None and today_start <= episode.aired_at < today_end
    ]
    for episode in airing:
        samples.append(
            _episode_sample(name, "today_episode", episode, 1.0 if episode.has_file else 0.0)
        )
    samples.append(
        gauge(metric_name("sonarr", "today_episode_total"), len(airing), {"name": name})
    )

    missing = [
        episode
        for episode in recent
        if not episode.has_file
        and episode.aired_at is not None
        and missing_start <= episode.aired_at <= missing_end
    ]
    for episode in missing:
        samples.append(_episode_sample(name, "missing_episode", episode, 0.0))
    samples.append(
        gauge(metric_name("sonarr", "missing_episode_total"), len(missing), {"name": name})
    )
    return samples
