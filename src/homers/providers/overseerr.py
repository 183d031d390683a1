"""Overseerr and Jellyseerr adapter: latest media requests.

Jellyseerr is a fork of Overseerr with the same v1 API, so both kinds share
this module and differ only in their metric namespace.
"""

import asyncio
import logging
from collections import Counter
from enum import IntEnum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from homers.core.errors import ProviderError
from homers.core.metrics import gauge, metric_name
from homers.core.models import InstanceDescriptor, MetricSample
from homers.core.ports import CollectionContext
from homers.providers.http import api_key_headers, decode, get_json

logger = logging.getLogger(__name__)

REQUEST_PATH = "/api/v1/request"
UNKNOWN_TITLE = "Unknown"


class RequestStatus(IntEnum):
    """Request approval status; the value is the sample value."""

    UNKNOWN = 0
    PENDING_APPROVAL = 1
    APPROVED = 2
    DECLINED = 3
    FAILED = 4
    COMPLETED = 5

    @classmethod
    def parse(cls, code: int) -> "RequestStatus":
        try:
            return cls(code)
        except ValueError:
            return cls.UNKNOWN

    @property
    def label(self) -> str:
        return self.name.lower()


class MediaStatus(IntEnum):
    """Availability of the requested media."""

    UNKNOWN = 1
    PENDING = 2
    PROCESSING = 3
    PARTIALLY_AVAILABLE = 4
    AVAILABLE = 5

    @classmethod
    def parse(cls, code: int) -> "MediaStatus":
        try:
            return cls(code)
        except ValueError:
            return cls.UNKNOWN

    @property
    def label(self) -> str:
        return self.name.lower()


class _SeerrModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RequestMedia(_SeerrModel):
    media_type: str
    tmdb_id: int | None = None
    status: int = MediaStatus.UNKNOWN


class RequestedBy(_SeerrModel):
    username: str | None = None
    plex_username: str | None = None
    jellyfin_username: str | None = None
    display_name: str | None = None

    @property
    def label(self) -> str:
        return (
            self.username
            or self.plex_username
            or self.jellyfin_username
            or self.display_name
            or "Unknown"
        )


class MediaRequest(_SeerrModel):
    """One entry of /api/v1/request results."""

    id: int
    status: int
    created_at: str = ""
    media: RequestMedia
    requested_by: RequestedBy = RequestedBy()


class _RequestPage(_SeerrModel):
    results: list[MediaRequest] = []


class _MovieDetails(_SeerrModel):
    title: str | None = None
    original_title: str | None = None


class _TvDetails(_SeerrModel):
    name: str | None = None
    original_name: str | None = None


async def _fetch_title(
    context: CollectionContext, descriptor: InstanceDescriptor, media: RequestMedia
) -> str:
    payload = await get_json(
        context,
        descriptor,
        f"/api/v1/{media.media_type}/{media.tmdb_id}",
        headers=api_key_headers(descriptor),
    )
    if media.media_type == "movie":
        movie = decode(_MovieDetails, payload)
        return movie.title or movie.original_title or UNKNOWN_TITLE
    tv = decode(_TvDetails, payload)
    return tv.name or tv.original_name or UNKNOWN_TITLE


async def _media_title(
    context: CollectionContext, descriptor: InstanceDescriptor, media: RequestMedia
) -> str:
    """Resolve the title of the requested media.

    The title only labels a request that is already known, so a failed lookup
    falls back to UNKNOWN_TITLE instead of failing the instance.
    """
    if media.tmdb_id is None or media.media_type not in ("movie", "tv"):
        return UNKNOWN_TITLE
    try:
        return await _fetch_title(context, descriptor, media)
    except ProviderError as exc:
        logger.warning(
            "Title lookup of %s %s failed: %s",
            media.media_type,
            media.tmdb_id,
            exc,
            extra={"service": descriptor.kind.value, "instance": descriptor.name},
        )
        return UNKNOWN_TITLE


async def _collect_requests(
    service: str, descriptor: InstanceDescriptor, context: CollectionContext
) -> list[MetricSample]:
    take = descriptor.options.requests
    payload = await get_json(
        context,
        descriptor,
        REQUEST_PATH,
        params={"take": take, "skip": 0, "sort": "added"},
        headers=api_key_headers(descriptor),
    )
    requests = decode(_RequestPage, payload).results[:take]
    titles = await asyncio.gather(
        *(_media_title(context, descriptor, request.media) for request in requests)
    )

    name = descriptor.name
    samples: list[MetricSample] = []
    statuses: Counter[RequestStatus] = Counter()
    for request, title in zip(requests, titles, strict=True):
        status = RequestStatus.parse(request.status)
        statuses[status] += 1
        samples.append(
            gauge(
                metric_name(service, "request"),
                status.value,
                {
                    "name": name,
                    "request_id": str(request.id),
                    "media_type": request.media.media_type,
                    "media_title": title,
                    "requested_by": request.requested_by.label,
                    "request_status": status.label,
                    "media_status": MediaStatus.parse(request.media.status).label,
                    "requested_at": request.created_at,
                },
            )
        )
    for status, count in sorted(statuses.items()):
        samples.append(
            gauge(
                metric_name(service, "request_status_total"),
                count,
                {"name": name, "status": status.label},
            )
        )
    return samples


async def collect_overseerr(
    descriptor: InstanceDescriptor, context: CollectionContext
) -> list[MetricSample]:
    """Collect the latest requests from Overseerr."""
    return await _collect_requests("overseerr", descriptor, context)


async def collect_jellyseerr(
    descriptor: InstanceDescriptor, context: CollectionContext
) -> list[MetricSample]:
    """Collect the latest requests from Jellyseerr."""
    return await _collect_requests("jellyseerr", descriptor, context)
