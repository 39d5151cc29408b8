class DiscoveryError(Exception):
    """Base class for everything the discovery pipeline raises on purpose."""


class ChainClientError(DiscoveryError):
    def __init__(self, message: str, from_block=None, to_block=None):
        super().__init__(message)
        self.from_block = from_block
        self.to_block = to_block


class RateLimited(ChainClientError):
    """Provider signalled throughput exhaustion (HTTP 429, -32005, CU limits)."""


class QueryTimeout(ChainClientError):
    """The call exceeded the bounded wait."""


class TransientRPCError(ChainClientError):
    """Any other network / node failure."""


class DecodeError(DiscoveryError):
    """A single log could not be decoded into a pool creation."""


class StoreUnavailable(DiscoveryError):
    """The database cannot be reached; dedup correctness depends on it."""
