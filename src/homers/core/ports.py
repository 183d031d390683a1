"""Port interfaces for provider adapters.

These protocols define the contract every service adapter must satisfy.
The aggregator depends only on these interfaces, not on concrete adapters.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol, runtime_checkable

import httpx

from homers.core.models import InstanceDescriptor, MetricSample


def local_now() -> datetime:
    """Return the current time as an aware datetime in the local zone."""
    return datetime.now().astimezone()


@dataclass(frozen=True)
class CollectionContext:
    """Runtime collaborators handed to an adapter for one collection.

    Attributes:
        client: Shared HTTP client used for every upstream call.
        timeout: Per-request timeout in seconds.
        clock: Returns the current aware datetime; windows are computed from it.
    """

    client: httpx.AsyncClient
    timeout: float = 10.0
    clock: Callable[[], datetime] = field(default=local_now)


@runtime_checkable
class CollectorPort(Protocol):
    """Port for collecting one instance of a service kind.

    Implementations return every sample derivable for the instance, or raise
    a ProviderError. They never return a partial set and keep no state
    between calls.
    """

    async def __call__(
        self, descriptor: InstanceDescriptor, context: CollectionContext
    ) -> list[MetricSample]:
        """Collect the samples of one instance."""
        ...
