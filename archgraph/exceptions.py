"""Exception types for archgraph.

Recoverable scan problems are reported as ScanWarning records, not raised.
The exceptions here are for contract violations the caller must not ignore.
"""


class ArchgraphError(Exception):
    """Base class for archgraph errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class GraphIntegrityError(ArchgraphError):
    """A connection references a component that does not exist in the result.

    Raised instead of emitting a dangling edge.
    """


class ConfigError(ArchgraphError):
    """Invalid configuration file contents."""
