"""Exception hierarchy for the distributed sort system."""


class DistSortError(Exception):
    """Base class for all distsort errors."""


class ConfigError(DistSortError):
    pass


class NoWorkersError(DistSortError):
    """Raised when a job is requested while no worker is registered."""


class TransportError(DistSortError):
    """I/O failure while exchanging a chunk with a worker."""


class SerializationError(DistSortError):
    """Malformed, oversized or mismatched payload."""
