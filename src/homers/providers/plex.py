"""Plex adapter: active sessions and library sizes."""

import asyncio

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from homers.core.models import InstanceDescriptor, MetricSample
from homers.core.ports import CollectionContext
from homers.providers.geolocation import locate
from homers.providers.http import decode, get_json
from homers.providers.media_server import (
    LibraryCount,
    MediaType,
    PlaybackSession,
    StreamDecision,
    library_samples,
    progress_percent,
    session_samples,
)

SESSIONS_PATH = "/status/sessions"
SECTIONS_PATH = "/library/sections"

_VIDEO_STREAM = 1
_BANDWIDTH_LOCATIONS = {"wan": "WAN", "lan": "LAN"}


class _PlexModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Stream(_PlexModel):
    stream_type: int
    display_title: str = "Unknown"
    decision: str | None = None


class Part(_PlexModel):
    decision: str = "directplay"
    streams: list[Stream] = Field(default=[], alias="Stream")


class Media(_PlexModel):
    duration: int = 0
    parts: list[Part] = Field(default=[], alias="Part")


class Player(_PlexModel):
    platform: str = "Unknown"
    state: str = "unknown"
    local: bool = False
    relayed: bool = False
    secure: bool = False
    address: str = ""
    remote_public_address: str = ""


class _User(_PlexModel):
    title: str


class _Session(_PlexModel):
    id: str
    bandwidth: int | None = None
    location: str = ""


class SessionMetadata(_PlexModel):
    """One playing item of /status/sessions."""

    title: str
    grandparent_title: str | None = None
    type: str = "unknown"
    index: int | None = None
    parent_index: int | None = None
    view_offset: int = 0
    media: list[Media] = Field(default=[], alias="Media")
    user: _User = Field(alias="User")
    player: Player = Field(alias="Player")
    session: _Session = Field(alias="Session")

    @property
    def video_stream(self) -> Stream | None:
        for media in self.media[:1]:
            for part in media.parts[:1]:
                for stream in part.streams:
                    if stream.stream_type == _VIDEO_STREAM:
                        return stream
        return None

    @property
    def decision(self) -> StreamDecision:
        """Direct Play, Direct Stream (video copied) or Transcode."""
        part_decision = ""
        if self.media and self.media[0].parts:
            part_decision = self.media[0].parts[0].decision
        if part_decision == "directplay":
            return StreamDecision.DIRECT_PLAY
        stream = self.video_stream
        if part_decision == "transcode" and stream is not None and stream.decision == "copy":
            return StreamDecision.DIRECT_STREAM
        return StreamDecision.TRANSCODE


class _SessionContainer(_PlexModel):
    metadata: list[SessionMetadata] = Field(default=[], alias="Metadata")


class Directory(_PlexModel):
    """One library section of /library/sections."""

    key: str
    title: str
    type: str


class _SectionContainer(_PlexModel):
    directories: list[Directory] = Field(default=[], alias="Directory")


class _ItemMetadata(_PlexModel):
    child_count: int | None = None
    leaf_count: int | None = None


class _ItemContainer(_PlexModel):
    size: int = 0
    metadata: list[_ItemMetadata] = Field(default=[], alias="Metadata")


class _Envelope(BaseModel):
    media_container: dict = Field(alias="MediaContainer")


def plex_headers(descriptor: InstanceDescriptor) -> dict[str, str]:
    return {"X-Plex-Token": descriptor.credential, "Accept": "application/json"}


async def _container(
    context: CollectionContext, descriptor: InstanceDescriptor, path: str
) -> dict:
    payload = await get_json(context, descriptor, path, headers=plex_headers(descriptor))
    return decode(_Envelope, payload).media_container


async def _session(
    context: CollectionContext, descriptor: InstanceDescriptor, meta: SessionMetadata
) -> PlaybackSession:
    duration = meta.media[0].duration if meta.media else 0
    stream = meta.video_stream
    location = await locate(
        context, meta.player.remote_public_address, descriptor.options.geolocate
    )
    return PlaybackSession(
        session_id=meta.session.id,
        title=meta.grandparent_title or meta.title,
        user=meta.user.title,
        decision=meta.decision,
        state=meta.player.state,
        platform=meta.player.platform,
        address=meta.player.address,
        public_address=meta.player.remote_public_address,
        progress=progress_percent(meta.view_offset, duration),
        season_number=meta.parent_index,
        episode_number=meta.index,
        quality=stream.display_title if stream else "Unknown",
        local=meta.player.local,
        relayed=meta.player.relayed,
        secure=meta.player.secure,
        location=location,
        bandwidth=meta.session.bandwidth,
        bandwidth_location=_BANDWIDTH_LOCATIONS.get(meta.session.location, "Undefined"),
    )


async def _library(
    context: CollectionContext, descriptor: InstanceDescriptor, directory: Directory
) -> LibraryCount:
    container = decode(
        _ItemContainer,
        await _container(context, descriptor, f"{SECTIONS_PATH}/{directory.key}/all"),
    )
    media_type = MediaType.parse(directory.type)
    if media_type is not MediaType.SHOW:
        return LibraryCount(name=directory.title, media_type=media_type, count=container.size)
    return LibraryCount(
        name=directory.title,
        media_type=media_type,
        count=container.size,
        child_count=sum(item.child_count or 0 for item in container.metadata),
        grandchild_count=sum(item.leaf_count or 0 for item in container.metadata),
    )


async def _sessions(
    context: CollectionContext, descriptor: InstanceDescriptor
) -> list[PlaybackSession]:
    container = decode(_SessionContainer, await _container(context, descriptor, SESSIONS_PATH))
    return list(
        await asyncio.gather(*(_session(context, descriptor, m) for m in container.metadata))
    )


async def _libraries(
    context: CollectionContext, descriptor: InstanceDescriptor
) -> list[LibraryCount]:
    sections = decode(_SectionContainer, await _container(context, descriptor, SECTIONS_PATH))
    return list(
        await asyncio.gather(
            *(_library(context, descriptor, directory) for directory in sections.directories)
        )
    )


async def collect(descriptor: InstanceDescriptor, context: CollectionContext) -> list[MetricSample]:
    """Collect active sessions and per-library item counts."""
    sessions, libraries = await asyncio.gather(
        _sessions(context, descriptor), _libraries(context, descriptor)
    )
    return [
        *session_samples("plex", descriptor.name, sessions),
        *library_samples("plex", descriptor.name, libraries),
    ]
