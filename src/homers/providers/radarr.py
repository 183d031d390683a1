"""Radarr adapter: movie library status."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from homers.core.metrics import flag, gauge, metric_name
from homers.core.models import InstanceDescriptor, MetricSample
from homers.core.ports import CollectionContext
from homers.providers.http import api_key_headers, decode, get_json

MOVIE_PATH = "/api/v3/movie"


class Movie(BaseModel):
    """One entry of /api/v3/movie."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str
    year: int = 0
    has_file: bool
    monitored: bool
    is_available: bool

    @property
    def missing_available(self) -> bool:
        """Released and wanted, but not downloaded yet."""
        return self.is_available and not self.has_file


async def collect(descriptor: InstanceDescriptor, context: CollectionContext) -> list[MetricSample]:
    """Collect one sample per movie plus library totals."""
    payload = await get_json(
        context, descriptor, MOVIE_PATH, headers=api_key_headers(descriptor)
    )
    movies = decode(list[Movie], payload)

    name = descriptor.name
    samples = [
        gauge(
            metric_name("radarr", "movie"),
            1.0 if movie.has_file else 0.0,
            {
                "name": name,
                "title": movie.title,
                "year": str(movie.year),
                "monitored": flag(movie.monitored),
                "is_available": flag(movie.is_available),
                "missing_available": flag(movie.missing_available),
            },
        )
        for movie in movies
    ]
    totals = {
        "movie_total": len(movies),
        "movie_file_total": sum(movie.has_file for movie in movies),
        "movie_monitored_total": sum(movie.monitored for movie in movies),
        "movie_missing_available_total": sum(movie.missing_available for movie in movies),
    }
    for family, value in totals.items():
        samples.append(gauge(metric_name("radarr", family), value, {"name": name}))
    return samples
