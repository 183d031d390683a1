"""Lidarr and Readarr adapters.

Both services expose the same v1 API shape: a list of catalog entities
(artists or authors) with a monitored flag and file statistics. One
collection routine serves both, parameterised by a CatalogService.
"""

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from homers.core.metrics import flag, gauge, metric_name
from homers.core.models import InstanceDescriptor, MetricSample
from homers.core.ports import CollectionContext
from homers.providers.http import api_key_headers, decode, get_json


class _Statistics(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    track_file_count: int = 0
    book_file_count: int = 0


class Artist(BaseModel):
    """One entry of Lidarr's /api/v1/artist."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    artist_name: str
    monitored: bool
    statistics: _Statistics | None = None

    @property
    def label(self) -> str:
        return self.artist_name

    @property
    def file_count(self) -> int:
        return self.statistics.track_file_count if self.statistics else 0


class Author(BaseModel):
    """One entry of Readarr's /api/v1/author."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    author_name: str
    monitored: bool
    statistics: _Statistics | None = None

    @property
    def label(self) -> str:
        return self.author_name

    @property
    def file_count(self) -> int:
        return self.statistics.book_file_count if self.statistics else 0


@dataclass(frozen=True)
class CatalogService:
    """How one catalog service maps onto metric families."""

    service: str
    path: str
    schema: type[Artist] | type[Author]
    entity: str
    files: str


LIDARR = CatalogService(
    service="lidarr", path="/api/v1/artist", schema=Artist, entity="artist", files="track_file"
)
READARR = CatalogService(
    service="readarr", path="/api/v1/author", schema=Author, entity="author", files="book_file"
)


async def _collect_catalog(
    catalog: CatalogService, descriptor: InstanceDescriptor, context: CollectionContext
) -> list[MetricSample]:
    payload = await get_json(
        context, descriptor, catalog.path, headers=api_key_headers(descriptor)
    )
    entities = decode(list[catalog.schema], payload)  # type: ignore[valid-type]

    name = descriptor.name
    samples = [
        gauge(
            metric_name(catalog.service, catalog.entity),
            entity.file_count,
            {"name": name, catalog.entity: entity.label, "monitored": flag(entity.monitored)},
        )
        for entity in entities
    ]
    totals = {
        f"{catalog.entity}_total": len(entities),
        f"{catalog.entity}_monitored_total": sum(entity.monitored for entity in entities),
        f"{catalog.files}_total": sum(entity.file_count for entity in entities),
    }
    for family, value in totals.items():
        samples.append(gauge(metric_name(catalog.service, family), value, {"name": name}))
    return samples


async def collect_lidarr(
    descriptor: InstanceDescriptor, context: CollectionContext
) -> list[MetricSample]:
    """Collect artists and track file counts from Lidarr."""
    return await _collect_catalog(LIDARR, descriptor, context)


async def collect_readarr(
    descriptor: InstanceDescriptor, context: CollectionContext
) -> list[MetricSample]:
    """Collect authors and book file counts from Readarr."""
    return await _collect_catalog(READARR, descriptor, context)
