"""
Unit tests for permission results and authentication context.
"""

import pytest
from dataclasses import FrozenInstanceError

from service_permissions.app.context import AuthenticationContext
from service_permissions.app.policies.models import UserRecord
from service_permissions.app.results import ReasonCode, deny, grant


class TestPermissionResult:
    """Test cases for PermissionResult builders."""

    def test_grant(self):
        """Test grant builder."""
        result = grant("user-1", "post-1", "post-read", "Owner", ReasonCode.OWNER, {"k": "v"})

        assert result.granted is True
        assert result.reason_code == ReasonCode.OWNER
        assert result.metadata == {"k": "v"}
        assert result.timestamp.tzinfo is not None

    def test_deny_defaults(self):
        """Test deny defaults to DEFAULT_DENY with empty metadata."""
        result = deny("user-1", None, "post-create", "No")

        assert result.granted is False
        assert result.reason_code == ReasonCode.DEFAULT_DENY
        assert result.metadata == {}

    def test_results_are_immutable(self):
        """Test results cannot be altered after construction."""
        result = deny("user-1", None, "op", "No")

        with pytest.raises(FrozenInstanceError):
            result.granted = True

    def test_to_dict(self):
        """Test serialised form uses plain values."""
        payload = grant("user-1", "m-1", "media-read", "Public", ReasonCode.PUBLIC_MEDIA).to_dict()

        assert payload["granted"] is True
        assert payload["reason_code"] == "PUBLIC_MEDIA"
        assert payload["resource_id"] == "m-1"
        assert isinstance(payload["timestamp"], str)


class TestAuthenticationContext:
    """Test cases for AuthenticationContext."""

    def test_anonymous(self):
        """Test anonymous context carries a request id only."""
        ctx = AuthenticationContext.anonymous()

        assert ctx.is_authenticated is False
        assert ctx.user_id is None
        assert ctx.request_id

    def test_for_user(self):
        """Test context built from a user record."""
        user = UserRecord(id="user-1", can_publish_locked_media=True)
        ctx = AuthenticationContext.for_user(user, session_id="s-1")

        assert ctx.is_authenticated is True
        assert ctx.user_id == "user-1"
        assert ctx.user is user
        assert ctx.session_id == "s-1"

    def test_from_request_headers(self):
        """Test header extraction is case-insensitive."""
        ctx = AuthenticationContext.from_request(
            UserRecord(id="user-1"),
            {
                "X-Forwarded-For": "203.0.113.7, 10.0.0.2",
                "User-Agent": "pytest",
                "X-Request-ID": "req-42",
                "X-Session-Id": "sess-9",
                "Authorization": "Bearer abc.def",
            },
            client_ip="10.0.0.2"
        )

        assert ctx.ip_address == "203.0.113.7"
        assert ctx.user_agent == "pytest"
        assert ctx.request_id == "req-42"
        assert ctx.session_id == "sess-9"
        assert ctx.token == "abc.def"

    def test_from_request_defaults(self):
        """Test fallbacks when headers are missing."""
        ctx = AuthenticationContext.from_request(None, {}, client_ip="10.0.0.9")

        assert ctx.is_authenticated is False
        assert ctx.ip_address == "10.0.0.9"
        assert ctx.token is None
        assert ctx.request_id
