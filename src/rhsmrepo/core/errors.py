"""Exception hierarchy for entitlement content processing.

Each stage of the pipeline (certificate decoding, payload parsing, repo file
writing, release discovery) raises its own subclass so callers can decide
which failures are fatal for a single certificate and which abort the whole
operation.
"""

from __future__ import annotations

__all__ = [
    "RhsmError",
    "DecodeError",
    "MalformedContentError",
    "WriteError",
    "NotRegisteredError",
    "ContentOverrideError",
    "ListingFetchError",
    "ReleaseTagError",
    "ConfigurationError",
]


class RhsmError(RuntimeError):
    """Base exception for all rhsmrepo failures."""


class DecodeError(RhsmError):
    """Raised when no entitlement data can be decoded from a certificate."""


class MalformedContentError(RhsmError):
    """Raised when the inflated entitlement payload is not a valid document."""


class WriteError(RhsmError):
    """Raised when a file (repo file, certificate, key) cannot be written."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class NotRegisteredError(RhsmError):
    """Raised when the system has no usable identity or connection (not registered)."""


class ContentOverrideError(RhsmError):
    """Raised when content overrides cannot be retrieved from the server."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ListingFetchError(RhsmError):
    """Raised when a CDN listing file cannot be retrieved."""

    def __init__(self, message: str, *, path: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.path = path
        self.status_code = status_code


class ReleaseTagError(RhsmError):
    """Raised when no release tags can be determined for this system."""


class ConfigurationError(RhsmError):
    """Raised when rhsm.conf cannot be read or contains invalid values."""
