"""Concurrent collection of every configured instance into one snapshot.

Each scrape fans out one observation per instance. Observations of the same
instance that overlap in time share a single upstream collection; every
observer applies its own deadline to that shared work.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime

import httpx

from homers.core.errors import ConfigurationError, ProviderError
from homers.core.models import (
    CollectionOutcome,
    Failure,
    InstanceDescriptor,
    InstanceIdentity,
    MetricSample,
    ServiceKind,
    Snapshot,
    Success,
)
from homers.core.ports import CollectionContext, CollectorPort, local_now

logger = logging.getLogger(__name__)

DEFAULT_DEADLINE = 10.0
DEFAULT_REQUEST_TIMEOUT = 10.0


@dataclass
class _InFlight:
    """A running collection and the number of observers awaiting it."""

    task: "asyncio.Task[list[MetricSample]]"
    waiters: int = 0


class Aggregator:
    """Collects every configured instance concurrently.

    Args:
        descriptors: Instances to collect; at least one is required.
        collectors: Collector per service kind. Defaults to the built-in
            provider adapters.
        client: Shared HTTP client. When omitted, the aggregator creates one
            and closes it in aclose().
        request_timeout: Per-request timeout handed to adapters.
        clock: Clock handed to adapters for time windows.

    Raises:
        ConfigurationError: If no instance is configured, an identity is
            configured twice, or a kind has no collector.
    """

    def __init__(
        self,
        descriptors: Iterable[InstanceDescriptor],
        collectors: Mapping[ServiceKind, CollectorPort] | None = None,
        client: httpx.AsyncClient | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        if collectors is None:
            from homers.providers import COLLECTORS

            collectors = COLLECTORS
        self._descriptors = tuple(descriptors)
        if not self._descriptors:
            raise ConfigurationError("no instances configured")
        identities = [descriptor.identity for descriptor in self._descriptors]
        if len(set(identities)) != len(identities):
            raise ConfigurationError("an instance is configured more than once")
        missing = {d.kind for d in self._descriptors} - set(collectors)
        if missing:
            kinds = ", ".join(sorted(kind.value for kind in missing))
            raise ConfigurationError(f"no collector for service kind(s): {kinds}")

        self._collectors = dict(collectors)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=request_timeout)
        self._context = CollectionContext(
            client=self._client, timeout=request_timeout, clock=clock
        )
        self._in_flight: dict[InstanceIdentity, _InFlight] = {}

    @property
    def descriptors(self) -> tuple[InstanceDescriptor, ...]:
        return self._descriptors

    @property
    def in_flight(self) -> int:
        """Number of instances with a collection currently running."""
        return len(self._in_flight)

    async def collect_all(self, deadline: float = DEFAULT_DEADLINE) -> Snapshot:
        """Collect every instance within a deadline.

        Args:
            deadline: Budget in seconds for this scrape. Instances that do not
                finish in time are reported as unreachable.

        Returns:
            Snapshot with all successful samples and one liveness sample per
            configured instance.
        """
        expires_at = asyncio.get_running_loop().time() + deadline
        outcomes = await asyncio.gather(
            *(self._observe(descriptor, expires_at) for descriptor in self._descriptors)
        )
        return Snapshot.build(outcomes)

    async def aclose(self) -> None:
        """Cancel running collections and close the owned HTTP client."""
        for entry in list(self._in_flight.values()):
            entry.task.cancel()
        self._in_flight.clear()
        if self._owns_client:
            await self._client.aclose()

    def _claim(self, descriptor: InstanceDescriptor) -> _InFlight:
        # No await between lookup and insert: one task per identity.
        identity = descriptor.identity
        entry = self._in_flight.get(identity)
        if entry is None:
            collector = self._collectors[descriptor.kind]
            task = asyncio.create_task(
                collector(descriptor, self._context), name=f"collect {identity}"
            )
            entry = _InFlight(task=task)
            self._in_flight[identity] = entry
            task.add_done_callback(lambda done: self._release(identity, entry, done))
        else:
            logger.debug("Joining in-flight collection of %s", identity)
        entry.waiters += 1
        return entry

    def _release(
        self,
        identity: InstanceIdentity,
        entry: _InFlight,
        task: "asyncio.Task[list[MetricSample]]",
    ) -> None:
        if self._in_flight.get(identity) is entry:
            del self._in_flight[identity]
        if not task.cancelled():
            # Mark the exception retrieved; observers handle it.
            task.exception()

    def _leave(self, identity: InstanceIdentity, entry: _InFlight) -> None:
        entry.waiters -= 1
        if entry.waiters == 0 and not entry.task.done():
            if self._in_flight.get(identity) is entry:
                del self._in_flight[identity]
            entry.task.cancel()

    async def _observe(
        self, descriptor: InstanceDescriptor, expires_at: float
    ) -> CollectionOutcome:
        identity = descriptor.identity
        entry = self._claim(descriptor)
        remaining = max(expires_at - asyncio.get_running_loop().time(), 0.0)
        try:
            samples = await asyncio.wait_for(asyncio.shield(entry.task), timeout=remaining)
        except TimeoutError:
            return self._failed(identity, "unreachable", "deadline exceeded")
        except ProviderError as exc:
            return self._failed(identity, exc.kind, exc.message)
        except Exception as exc:
            logger.exception(
                "Unexpected error while collecting %s",
                identity,
                extra={"service": identity.kind.value, "instance": identity.name},
            )
            return self._failed(identity, "internal", f"{type(exc).__name__}: {exc}")
        finally:
            self._leave(identity, entry)
        return Success(identity=identity, samples=tuple(samples))

    def _failed(self, identity: InstanceIdentity, error_kind: str, message: str) -> Failure:
        logger.warning(
            "collection failed",
            extra={
                "service": identity.kind.value,
                "instance": identity.name,
                "error_kind": error_kind,
                "detail": message,
            },
        )
        return Failure(identity=identity, error_kind=error_kind, message=message)
