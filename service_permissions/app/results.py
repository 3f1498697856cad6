"""
Permission decision results.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ReasonCode(str, Enum):
    """Machine-readable reason codes attached to every decision."""
    # Outcomes shared by all policies
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    DEFAULT_DENY = "DEFAULT_DENY"
    PERMISSION_CHECK_ERROR = "PERMISSION_CHECK_ERROR"
    AUTHENTICATED = "AUTHENTICATED"

    # Ownership
    OWNER = "OWNER"
    SELF = "SELF"
    CONTENT_OWNER = "CONTENT_OWNER"

    # Public visibility
    PUBLIC = "PUBLIC"
    PUBLIC_POST = "PUBLIC_POST"
    PUBLIC_MEDIA = "PUBLIC_MEDIA"
    PUBLIC_PROFILE = "PUBLIC_PROFILE"
    PUBLIC_GROUP = "PUBLIC_GROUP"
    PUBLIC_CONTENT = "PUBLIC_CONTENT"

    # Elevated facets
    GLOBAL_ADMIN = "GLOBAL_ADMIN"
    GLOBAL_FACET_ADMIN = "GLOBAL_FACET_ADMIN"
    DIVISIONAL_ADMIN = "DIVISIONAL_ADMIN"
    HR_ADMIN = "HR_ADMIN"
    MANAGER = "MANAGER"
    MODERATOR = "MODERATOR"
    PLATFORM_MODERATOR = "PLATFORM_MODERATOR"
    LOCKED_MEDIA_PERMISSION = "LOCKED_MEDIA_PERMISSION"
    LOCKED_POSTS_FACET = "LOCKED_POSTS_FACET"
    HAS_PERMISSION = "HAS_PERMISSION"

    # Relationships
    FRIENDS = "FRIENDS"
    FRIEND = "FRIEND"
    LINE_MANAGER = "LINE_MANAGER"
    SENIOR_MANAGER = "SENIOR_MANAGER"

    # Connection requests
    STANDARD = "STANDARD"
    SELF_REQUEST = "SELF_REQUEST"
    RECEIVER = "RECEIVER"
    NOT_RECEIVER = "NOT_RECEIVER"
    SENDER = "SENDER"
    NOT_SENDER = "NOT_SENDER"
    PRIVATE_PROFILE = "PRIVATE_PROFILE"

    # Communities
    MEMBER = "MEMBER"
    ADMIN = "ADMIN"
    GROUP_MEMBER = "GROUP_MEMBER"
    NOT_GROUP_MEMBER = "NOT_GROUP_MEMBER"
    NOT_MEMBER = "NOT_MEMBER"
    NOT_OWNER = "NOT_OWNER"
    NOT_AUTHORIZED = "NOT_AUTHORIZED"
    ALREADY_MEMBER = "ALREADY_MEMBER"
    PENDING_APPLICATION = "PENDING_APPLICATION"
    CAN_APPLY = "CAN_APPLY"
    SELF_ROLE_CHANGE = "SELF_ROLE_CHANGE"
    INSUFFICIENT_ROLE = "INSUFFICIENT_ROLE"
    SUSPENDED = "SUSPENDED"
    OWNER_CANNOT_LEAVE = "OWNER_CANNOT_LEAVE"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PermissionResult:
    """Outcome of a single permission check.

    Grants and denials share one shape; callers branch on ``granted`` only.
    Build instances with :func:`grant` or :func:`deny`.
    """
    granted: bool
    user_id: Optional[str]
    resource_id: Optional[str]
    operation: str
    reason: str
    reason_code: ReasonCode
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "granted": self.granted,
            "user_id": self.user_id,
            "resource_id": self.resource_id,
            "operation": self.operation,
            "reason": self.reason,
            "reason_code": self.reason_code.value,
            "metadata": dict(self.metadata),
            "timestamp": self.timestamp.isoformat(),
        }


def grant(user_id: Optional[str], resource_id: Optional[str], operation: str,
          reason: str, reason_code: ReasonCode,
          metadata: Optional[Dict[str, Any]] = None) -> PermissionResult:
    """Build a granting result."""
    return PermissionResult(
        granted=True,
        user_id=user_id,
        resource_id=resource_id,
        operation=operation,
        reason=reason,
        reason_code=reason_code,
        metadata=metadata or {},
    )


def deny(user_id: Optional[str], resource_id: Optional[str], operation: str,
         reason: str, reason_code: ReasonCode = ReasonCode.DEFAULT_DENY,
         metadata: Optional[Dict[str, Any]] = None) -> PermissionResult:
    """Build a denying result."""
    return PermissionResult(
        granted=False,
        user_id=user_id,
        resource_id=resource_id,
        operation=operation,
        reason=reason,
        reason_code=reason_code,
        metadata=metadata or {},
    )
