from __future__ import annotations

"""
Content overrides.

Content overrides are attribute replacements (e.g., enabled=0) declared on the
entitlement server for a given content label. They are applied on top of the
attributes computed from the entitlement certificates when the repo file is
generated.
"""

import json
import logging
from typing import Iterable

import requests
from pydantic import TypeAdapter, ValidationError

from rhsmrepo.content.models import ContentOverride
from rhsmrepo.core.connection import Connection
from rhsmrepo.core.errors import ContentOverrideError

logger = logging.getLogger(__name__)

OverrideMap = dict[str, dict[str, str]]

_OVERRIDE_LIST = TypeAdapter(list[ContentOverride])

_STATUS_MESSAGES = {
    403: "insufficient permissions",
    404: "consumer could not be found",
    500: "an unexpected exception has occurred on the server",
}


def create_override_map(overrides: Iterable[ContentOverride]) -> OverrideMap:
    """Index overrides by content label and attribute name.

    When the same (label, name) pair occurs more than once, the last one
    wins. The server does not guarantee any order, so a conflicting
    duplicate is logged.

    Args:
        overrides: Overrides as returned by the server

    Returns:
        Map of content label to {attribute name: value}
    """
    override_map: OverrideMap = {}
    for override in overrides:
        attributes = override_map.setdefault(override.content_label, {})
        previous = attributes.get(override.name)
        if previous is not None and previous != override.value:
            logger.warning(
                f"Conflicting content override for {override.content_label}: "
                f"{override.name}={previous!r} replaced by {override.value!r}"
            )
        attributes[override.name] = override.value
    return override_map


def parse_content_overrides(body: str | bytes) -> list[ContentOverride]:
    """Parse the JSON array of content overrides.

    Raises:
        ContentOverrideError: If body is not a valid override list
    """
    try:
        return _OVERRIDE_LIST.validate_python(json.loads(body))
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
        raise ContentOverrideError(f"Unable to parse content overrides: {e}") from e


def fetch_content_overrides(connection: Connection, consumer_uuid: str) -> list[ContentOverride]:
    """Get content overrides of a consumer from the entitlement server.

    Args:
        connection: Connection authenticated with the consumer certificate
        consumer_uuid: UUID of the registered consumer

    Returns:
        List of content overrides

    Raises:
        ContentOverrideError: On transport errors, non-200 status or bad body
    """
    try:
        response = connection.get(f"consumers/{consumer_uuid}/content_overrides")
    except requests.RequestException as e:
        raise ContentOverrideError(f"Unable to get content overrides: {e}") from e

    if response.status_code != 200:
        reason = _STATUS_MESSAGES.get(response.status_code, "unexpected response")
        if response.status_code == 404:
            reason = f"consumer with UUID {consumer_uuid} could not be found"
        logger.error(f"Unable to get content overrides: {reason} (HTTP {response.status_code})")
        raise ContentOverrideError(
            f"Unable to get content overrides: HTTP {response.status_code}",
            status_code=response.status_code,
        )

    overrides = parse_content_overrides(response.content)
    logger.debug(f"Got {len(overrides)} content override(s)")
    return overrides
