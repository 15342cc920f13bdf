from __future__ import annotations

"""
Release discovery from CDN listing files.

Content paths containing $releasever point to directories that publish a
plain text "listing" file with the releases available below them. This module
derives those directories from the entitled content and merges the releases
they list.
"""

import logging
from typing import Iterable, Mapping, Sequence

import requests

from rhsmrepo.content.models import RELEASEVER, EngineeringProduct
from rhsmrepo.core.connection import Connection
from rhsmrepo.core.errors import ListingFetchError, NotRegisteredError
from rhsmrepo.release.tags import is_any_required_tag_provided

logger = logging.getLogger(__name__)

LISTING_FILE = "listing"


def get_listing_path(content_path: str) -> str:
    """Get the directory holding the listing file for a content path.

    Args:
        content_path: Content path such as "/content/dist/rhel11/$releasever/x86_64/os"

    Returns:
        Prefix before the first $releasever (e.g., "/content/dist/rhel11/")

    Raises:
        ValueError: If the path does not contain $releasever
    """
    if RELEASEVER not in content_path:
        raise ValueError(f"Content path '{content_path}' does not contain '{RELEASEVER}'")
    return content_path.split(RELEASEVER, 1)[0]


def derive_listing_paths(
    products_map: Mapping[int, Sequence[EngineeringProduct]],
    provided_tags: Sequence[str] | None,
) -> set[str]:
    """Collect listing paths of enabled content available to this system.

    Content is a candidate when it is enabled (absent counts as enabled), its
    required tags are provided and its path contains $releasever.

    Args:
        products_map: Map of certificate serial to engineering products
        provided_tags: Tags provided by the installed products

    Returns:
        Set of listing paths
    """
    listing_paths: set[str] = set()

    for products in products_map.values():
        for product in products:
            for content in product.content:
                if not content.is_enabled:
                    continue
                if not is_any_required_tag_provided(content.required_tags, provided_tags):
                    logger.debug(
                        f"Skipping content '{content.label}'; none of its required tags "
                        f"{content.required_tags} is provided by {list(provided_tags or [])}"
                    )
                    continue
                if not content.has_releasever:
                    continue
                listing_path = get_listing_path(content.path)
                if listing_path not in listing_paths:
                    logger.debug(f"Adding {listing_path} to listing paths")
                    listing_paths.add(listing_path)

    return listing_paths


def parse_listing(body: str, listing_path: str = "") -> list[str]:
    """Parse a listing file.

    Lines are trimmed; blank lines and lines starting with '#' are ignored.

    Args:
        body: Listing file content
        listing_path: Where the listing came from (for log messages)

    Returns:
        Unique releases, sorted as plain strings ("10" < "10.0" < "10.1")
    """
    releases: set[str] = set()
    for line in body.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if line in releases:
            logger.warning(f"Duplicate release {line} in {listing_path or 'listing'}")
            continue
        releases.add(line)
    return sorted(releases)


def listing_url_path(base_path: str) -> str:
    """Join a listing path and the listing file name with a single slash."""
    return base_path.rstrip("/") + "/" + LISTING_FILE


def fetch_listing(connection: Connection, base_path: str) -> str:
    """Fetch the listing file below a listing path.

    Args:
        connection: CDN connection
        base_path: Listing path (e.g., "/content/dist/rhel11/")

    Returns:
        Listing file content

    Raises:
        ListingFetchError: On transport errors or non-200 status
    """
    path = listing_url_path(base_path)
    try:
        response = connection.get(path)
    except requests.RequestException as e:
        raise ListingFetchError(f"Unable to get content listing {path}: {e}", path=path) from e

    if response.status_code != 200:
        raise ListingFetchError(
            f"Unable to get content listing {path}: HTTP {response.status_code}",
            path=path,
            status_code=response.status_code,
        )
    return response.text


def get_all_releases_from_paths(connection: Connection, paths: Iterable[str]) -> list[str]:
    """Merge the releases listed below every listing path.

    A path whose listing cannot be fetched is logged and skipped. If all
    paths fail the result is empty.

    Args:
        connection: CDN connection
        paths: Listing paths

    Returns:
        Unique releases, sorted as plain strings
    """
    releases: set[str] = set()

    for base_path in sorted(paths):
        try:
            body = fetch_listing(connection, base_path)
        except ListingFetchError as e:
            logger.warning(f"Failed to retrieve listing file from path {base_path}: {e}")
            continue

        path_releases = parse_listing(body, listing_url_path(base_path))
        logger.debug(f"Got releases {path_releases} from path {base_path}")
        releases.update(path_releases)

    return sorted(releases)


def get_cdn_releases(
    connection: Connection | None,
    products_map: Mapping[int, Sequence[EngineeringProduct]],
    provided_tags: Sequence[str] | None,
) -> list[str]:
    """Get releases available on the CDN for the entitled content.

    Args:
        connection: CDN connection authenticated with an entitlement certificate
        products_map: Map of certificate serial to engineering products
        provided_tags: Tags provided by the installed products

    Returns:
        Unique releases, sorted as plain strings

    Raises:
        NotRegisteredError: If there is no connection (checked before any request)
    """
    if connection is None:
        raise NotRegisteredError("Connection to repository does not exist; system is not registered")

    listing_paths = derive_listing_paths(products_map, provided_tags)
    logger.debug(f"Listing paths: {sorted(listing_paths)}")
    return get_all_releases_from_paths(connection, listing_paths)
