"""Prometheus exporter for home media services."""

from homers.core.aggregator import Aggregator
from homers.core.errors import ConfigurationError, HomersError, ProviderError
from homers.core.models import InstanceDescriptor, MetricSample, ServiceKind, Snapshot

__version__ = "0.1.0"

__all__ = [
    "Aggregator",
    "ConfigurationError",
    "HomersError",
    "InstanceDescriptor",
    "MetricSample",
    "ProviderError",
    "ServiceKind",
    "Snapshot",
    "__version__",
]
