"""Exception hierarchy for the exporter.

ConfigurationError is fatal and only raised at startup. ProviderError and its
subclasses are scoped to one instance and one collection cycle; the aggregator
turns them into a liveness sample of 0. EncodingError signals a broken
snapshot and should never happen in normal operation.
"""


class HomersError(Exception):
    """Base class for all exporter errors."""


class ConfigurationError(HomersError):
    """Configuration is malformed or declares no instances."""


class EncodingError(HomersError):
    """A snapshot violates the exposition invariants (duplicate series)."""


class ProviderError(HomersError):
    """An upstream collection failed.

    Attributes:
        kind: Short failure category used in logs and outcomes.
        message: Human-readable detail.
    """

    kind = "upstream"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnreachableError(ProviderError):
    """Connection failure or timeout."""

    kind = "unreachable"


class UnauthorizedError(ProviderError):
    """The upstream rejected the credential."""

    kind = "unauthorized"


class DecodeError(ProviderError):
    """The response did not match the expected schema."""

    kind = "decode"


class UpstreamError(ProviderError):
    """Non-2xx response not covered by a more specific error."""

    kind = "upstream"
