"""Jellyfin adapter: active sessions and item counts.

Jellyfin has no per-library size endpoint cheap enough to call on every
scrape, so library samples come from the server-wide /Items/Counts totals,
grouped into Movies, Shows, Music and Books.
"""

import asyncio

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_pascal

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

SESSIONS_PATH = "/Sessions"
COUNTS_PATH = "/Items/Counts"


class _JellyfinModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True)


class MediaStream(_JellyfinModel):
    type: str
    display_title: str | None = None
    title: str | None = None


class NowPlayingItem(_JellyfinModel):
    name: str
    type: str = "Unknown"
    series_name: str | None = None
    index_number: int | None = None
    parent_index_number: int | None = None
    run_time_ticks: int | None = None
    media_streams: list[MediaStream] = []

    @property
    def quality(self) -> str:
        for stream in self.media_streams:
            if stream.type == "Video":
                return stream.display_title or stream.title or "Unknown"
        return "Unknown"


class PlayState(_JellyfinModel):
    position_ticks: int | None = None
    is_paused: bool = False
    play_method: str | None = None


class TranscodingInfo(_JellyfinModel):
    is_video_direct: bool = False


class SessionInfo(_JellyfinModel):
    """One entry of /Sessions."""

    id: str
    user_name: str = "Unknown"
    client: str = "Unknown"
    remote_end_point: str = ""
    now_playing_item: NowPlayingItem | None = None
    play_state: PlayState = PlayState()
    transcoding_info: TranscodingInfo | None = None

    @property
    def decision(self) -> StreamDecision:
        method = self.play_state.play_method
        if method is None:
            return StreamDecision.NONE
        if method == "DirectPlay":
            return StreamDecision.DIRECT_PLAY
        if method == "DirectStream":
            return StreamDecision.DIRECT_STREAM
        if self.transcoding_info is not None and self.transcoding_info.is_video_direct:
            return StreamDecision.DIRECT_STREAM
        return StreamDecision.TRANSCODE


class ItemCounts(_JellyfinModel):
    """Body of /Items/Counts."""

    movie_count: int = 0
    series_count: int = 0
    episode_count: int = 0
    artist_count: int = 0
    album_count: int = 0
    song_count: int = 0
    book_count: int = 0

    def libraries(self) -> list[LibraryCount]:
        return [
            LibraryCount(name="Movies", media_type=MediaType.MOVIE, count=self.movie_count),
            LibraryCount(
                name="Shows",
                media_type=MediaType.SHOW,
                count=self.series_count,
                grandchild_count=self.episode_count,
            ),
            LibraryCount(
                name="Music",
                media_type=MediaType.MUSIC,
                count=self.artist_count,
                child_count=self.album_count,
                grandchild_count=self.song_count,
            ),
            LibraryCount(name="Books", media_type=MediaType.BOOK, count=self.book_count),
        ]


def jellyfin_headers(descriptor: InstanceDescriptor) -> dict[str, str]:
    return {
        "Authorization": f'MediaBrowser Token="{descriptor.credential}"',
        "Accept": "application/json",
    }


async def _session(
    context: CollectionContext,
    descriptor: InstanceDescriptor,
    info: SessionInfo,
    item: NowPlayingItem,
) -> PlaybackSession:
    progress = None
    if info.play_state.position_ticks is not None and item.run_time_ticks:
        progress = progress_percent(info.play_state.position_ticks, item.run_time_ticks)
    location = await locate(context, info.remote_end_point, descriptor.options.geolocate)
    return PlaybackSession(
        session_id=info.id,
        title=item.series_name or item.name,
        user=info.user_name,
        decision=info.decision,
        state="Paused" if info.play_state.is_paused else "Playing",
        platform=info.client,
        address=info.remote_end_point,
        public_address=info.remote_end_point,
        progress=progress,
        season_number=item.parent_index_number,
        episode_number=item.index_number,
        quality=item.quality,
        location=location,
    )


async def collect(descriptor: InstanceDescriptor, context: CollectionContext) -> list[MetricSample]:
    """Collect playing sessions and server-wide item counts."""
    headers = jellyfin_headers(descriptor)
    sessions_payload, counts_payload = await asyncio.gather(
        get_json(context, descriptor, SESSIONS_PATH, headers=headers),
        get_json(context, descriptor, COUNTS_PATH, headers=headers),
    )
    playing = [
        (info, info.now_playing_item)
        for info in decode(list[SessionInfo], sessions_payload)
        if info.now_playing_item is not None
    ]
    counts = decode(ItemCounts, counts_payload)
    sessions = await asyncio.gather(
        *(_session(context, descriptor, info, item) for info, item in playing)
    )
    return [
        *session_samples("jellyfin", descriptor.name, list(sessions)),
        *library_samples("jellyfin", descriptor.name, counts.libraries()),
    ]
