"""Core domain models for the exporter."""

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)

SERVICE_UP = "homers_service_up"


class ServiceKind(str, Enum):
    """Supported upstream service kinds.

    The value doubles as the configuration section name and the metric
    namespace.
    """

    SONARR = "sonarr"
    RADARR = "radarr"
    LIDARR = "lidarr"
    READARR = "readarr"
    TAUTULLI = "tautulli"
    PLEX = "plex"
    JELLYFIN = "jellyfin"
    OVERSEERR = "overseerr"
    JELLYSEERR = "jellyseerr"


@dataclass(frozen=True, order=True)
class InstanceIdentity:
    """Identity of one configured instance.

    Attributes:
        kind: Service kind of the instance.
        name: User-assigned name, unique within the kind.
    """

    kind: ServiceKind
    name: str

    def __str__(self) -> str:
        return f"{self.kind.value}/{self.name}"


@dataclass(frozen=True)
class InstanceOptions:
    """Service-specific options of an instance.

    Attributes:
        requests: Maximum number of requests fetched from request services.
        missing_days: Lookback window, in days, for missing episodes.
        history_hours: Sliding window, in hours, for watch-history aggregates.
        history_length: Maximum number of history rows fetched per collection.
        geolocate: Resolve session IP addresses to a location.
    """

    requests: int = 20
    missing_days: int = 7
    history_hours: int = 24
    history_length: int = 1000
    geolocate: bool = False


@dataclass(frozen=True)
class InstanceDescriptor:
    """Everything an adapter needs to collect one instance.

    Attributes:
        identity: Kind and name of the instance.
        address: Base URL without a trailing slash.
        credential: API key or token; excluded from repr.
        options: Service-specific options.
    """

    identity: InstanceIdentity
    address: str
    credential: str = field(repr=False)
    options: InstanceOptions = field(default_factory=InstanceOptions)

    @property
    def kind(self) -> ServiceKind:
        return self.identity.kind

    @property
    def name(self) -> str:
        return self.identity.name


@dataclass(frozen=True)
class MetricSample:
    """A single gauge observation.

    Attributes:
        name: Metric family name (e.g., homers_service_up).
        value: Finite gauge value.
        labels: Key-value pairs for metric dimensions.
    """

    name: str
    value: float
    labels: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not math.isfinite(self.value):
            raise ValueError(f"{self.name} value must be finite, got {self.value}")

    @property
    def series_key(self) -> tuple[str, tuple[tuple[str, str], ...]]:
        """Identity of the series this sample belongs to."""
        return self.name, tuple(sorted(self.labels.items()))


@dataclass(frozen=True)
class Success:
    """Collection outcome carrying the full sample set of an instance."""

    identity: InstanceIdentity
    samples: tuple[MetricSample, ...]

    @property
    def up(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    """Collection outcome of an instance that yielded no samples.

    Attributes:
        identity: The failed instance.
        error_kind: Failure category (unreachable, unauthorized, ...).
        message: Human-readable detail.
    """

    identity: InstanceIdentity
    error_kind: str
    message: str

    @property
    def up(self) -> bool:
        return False


CollectionOutcome = Success | Failure


@dataclass(frozen=True)
class Snapshot:
    """All samples of one aggregation cycle, liveness samples included."""

    samples: tuple[MetricSample, ...] = ()

    @classmethod
    def build(cls, outcomes: Iterable[CollectionOutcome]) -> "Snapshot":
        """Merge collection outcomes into a snapshot.

        Successful samples come first, in outcome order, followed by one
        homers_service_up sample per outcome. A series already present is
        dropped with a warning, so the result never holds duplicates.

        Args:
            outcomes: One outcome per configured instance.

        Returns:
            The merged Snapshot.
        """
        outcomes = list(outcomes)
        samples: list[MetricSample] = []
        seen: set[tuple[str, tuple[tuple[str, str], ...]]] = set()

        def add(sample: MetricSample, identity: InstanceIdentity) -> None:
            if sample.series_key in seen:
                logger.warning(
                    "Dropping duplicate series %s",
                    sample.name,
                    extra={"service": identity.kind.value, "instance": identity.name},
                )
                return
            seen.add(sample.series_key)
            samples.append(sample)

        for outcome in outcomes:
            if isinstance(outcome, Success):
                for sample in outcome.samples:
                    add(sample, outcome.identity)
        for outcome in outcomes:
            add(
                MetricSample(
                    name=SERVICE_UP,
                    value=1.0 if outcome.up else 0.0,
                    labels={
                        "service": outcome.identity.kind.value,
                        "name": outcome.identity.name,
                    },
                ),
                outcome.identity,
            )
        return cls(samples=tuple(samples))

    def __len__(self) -> int:
        return len(self.samples)

    def by_name(self, name: str) -> list[MetricSample]:
        """Return the samples of one metric family, in snapshot order."""
        return [sample for sample in self.samples if sample.name == name]
