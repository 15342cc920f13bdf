"""Tests for content overrides."""

import json
from unittest.mock import Mock

import pytest
import requests

from rhsmrepo.content.models import ContentOverride
from rhsmrepo.content.overrides import (
    create_override_map,
    fetch_content_overrides,
    parse_content_overrides,
)
from rhsmrepo.core.errors import ContentOverrideError

OVERRIDES_BODY = json.dumps(
    [
        {
            "created": "2026-02-01T10:00:00+0000",
            "updated": "2026-02-01T10:00:00+0000",
            "name": "enabled",
            "contentLabel": "rhel-11-for-x86_64-baseos-debug-rpms",
            "value": "1",
        },
        {
            "created": "2026-02-01T10:00:00+0000",
            "updated": "2026-02-01T10:00:00+0000",
            "name": "gpgcheck",
            "contentLabel": "rhel-11-for-x86_64-baseos-debug-rpms",
            "value": "0",
        },
    ]
)


def _override(label, name, value):
    return ContentOverride(contentLabel=label, name=name, value=value)


def test_parse_content_overrides():
    """Test parsing the override array."""
    overrides = parse_content_overrides(OVERRIDES_BODY)

    assert len(overrides) == 2
    assert overrides[0].content_label == "rhel-11-for-x86_64-baseos-debug-rpms"
    assert overrides[0].name == "enabled"
    assert overrides[0].value == "1"


def test_parse_content_overrides_invalid():
    """Test that an invalid body raises ContentOverrideError."""
    with pytest.raises(ContentOverrideError):
        parse_content_overrides("{}")
    with pytest.raises(ContentOverrideError):
        parse_content_overrides("not json")


def test_create_override_map():
    """Test indexing overrides by label and name."""
    override_map = create_override_map(
        [
            _override("repo-a", "enabled", "1"),
            _override("repo-a", "gpgcheck", "0"),
            _override("repo-b", "enabled", "0"),
        ]
    )

    assert override_map == {
        "repo-a": {"enabled": "1", "gpgcheck": "0"},
        "repo-b": {"enabled": "0"},
    }


def test_create_override_map_last_wins(caplog):
    """Test that the last override of a duplicate key wins and is logged."""
    override_map = create_override_map(
        [_override("repo-a", "enabled", "1"), _override("repo-a", "enabled", "0")]
    )

    assert override_map == {"repo-a": {"enabled": "0"}}
    assert "Conflicting content override" in caplog.text


def test_create_override_map_empty():
    """Test that no overrides give an empty map."""
    assert create_override_map([]) == {}


class TestFetchContentOverrides:
    """Tests for fetching overrides from the entitlement server."""

    def test_fetch_success(self):
        """Test that a 200 response is parsed."""
        connection = Mock()
        mock_response = Mock(status_code=200, content=OVERRIDES_BODY.encode())
        connection.get = Mock(return_value=mock_response)

        overrides = fetch_content_overrides(connection, "uuid-1")

        connection.get.assert_called_once_with("consumers/uuid-1/content_overrides")
        assert [o.name for o in overrides] == ["enabled", "gpgcheck"]

    @pytest.mark.parametrize("status_code", [403, 404, 500, 502])
    def test_fetch_error_status(self, status_code):
        """Test that non-200 responses fail without parsing the body."""
        connection = Mock()
        # No content/text attributes: reading the body would raise AttributeError
        mock_response = Mock(spec=["status_code"])
        mock_response.status_code = status_code
        connection.get = Mock(return_value=mock_response)

        with pytest.raises(ContentOverrideError) as exc_info:
            fetch_content_overrides(connection, "uuid-1")

        assert exc_info.value.status_code == status_code

    def test_fetch_transport_error(self):
        """Test that transport errors are wrapped."""
        connection = Mock()
        connection.get = Mock(side_effect=requests.ConnectionError("connection refused"))

        with pytest.raises(ContentOverrideError, match="connection refused"):
            fetch_content_overrides(connection, "uuid-1")
