from __future__ import annotations

"""
rhsmrepo - Entitlement content for subscription-managed systems

A library that reads the content payload of entitlement certificates,
applies server-side content overrides, generates the redhat.repo file and
discovers available releases from the CDN listing files.
"""

__version__ = "0.1.0"
__license__ = "MIT"

# Make version accessible
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _version

try:
    __version__ = _version("rhsmrepo")
except PackageNotFoundError:
    # Package not installed yet
    pass
