"""
Core functionality for rhsmrepo.

This package provides ambient services like configuration management,
errors, logging and HTTPS connections.
"""

from rhsmrepo.core.config import (
    CertDaemonConfig,
    ConfigLoader,
    LoggingConfig,
    RhsmConfig,
    RhsmSectionConfig,
    ServerConfig,
    load_config,
)
from rhsmrepo.core.errors import (
    ConfigurationError,
    ContentOverrideError,
    DecodeError,
    ListingFetchError,
    MalformedContentError,
    NotRegisteredError,
    ReleaseTagError,
    RhsmError,
    WriteError,
)

__all__ = [
    "CertDaemonConfig",
    "ConfigLoader",
    "ConfigurationError",
    "ContentOverrideError",
    "DecodeError",
    "ListingFetchError",
    "LoggingConfig",
    "MalformedContentError",
    "NotRegisteredError",
    "ReleaseTagError",
    "RhsmConfig",
    "RhsmError",
    "RhsmSectionConfig",
    "ServerConfig",
    "WriteError",
    "load_config",
]
