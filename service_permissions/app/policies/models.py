"""
Read-only resource records consumed by the decision policies.

These records are owned by the surrounding platform; the engine only reads
the fields it needs to decide.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class Visibility(str, Enum):
    """Audience of a content item."""
    PUBLIC = "PUBLIC"
    FRIENDS_ONLY = "FRIENDS_ONLY"
    PRIVATE = "PRIVATE"


class PublicationStatus(str, Enum):
    """Moderation state of a content item."""
    PUBLIC = "PUBLIC"
    PAUSED = "PAUSED"
    CONTROLLED = "CONTROLLED"
    DELETED = "DELETED"


class FriendRequestStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class GroupVisibility(str, Enum):
    PUBLIC = "PUBLIC"
    PRIVATE_VISIBLE = "PRIVATE_VISIBLE"
    PRIVATE_HIDDEN = "PRIVATE_HIDDEN"


class GroupMemberRole(str, Enum):
    """Community roles, ranked by :attr:`rank`."""
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MODERATOR = "MODERATOR"
    MEMBER = "MEMBER"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]

    def outranks(self, other: "GroupMemberRole") -> bool:
        return self.rank > other.rank


_ROLE_RANK = {
    GroupMemberRole.OWNER: 4,
    GroupMemberRole.ADMIN: 3,
    GroupMemberRole.MODERATOR: 2,
    GroupMemberRole.MEMBER: 1,
}


class GroupMemberStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    BANNED = "BANNED"
    PENDING_APPROVAL = "PENDING_APPROVAL"


@dataclass(frozen=True)
class UserRecord:
    """Platform user."""
    id: str
    is_private: bool = False
    line_manager_id: Optional[str] = None
    can_publish_locked_media: bool = False
    name: Optional[str] = None


@dataclass(frozen=True)
class Post:
    id: str
    author_id: str
    visibility: Visibility = Visibility.PUBLIC
    publication_status: PublicationStatus = PublicationStatus.PUBLIC
    is_locked: bool = False

    @property
    def is_public(self) -> bool:
        return self.visibility == Visibility.PUBLIC and self.publication_status == PublicationStatus.PUBLIC


@dataclass(frozen=True)
class Media:
    id: str
    author_id: str
    visibility: Visibility = Visibility.PUBLIC


@dataclass(frozen=True)
class Comment:
    id: str
    author_id: str
    post_id: Optional[str] = None
    media_id: Optional[str] = None


@dataclass(frozen=True)
class FriendRequest:
    id: str
    sender_id: str
    receiver_id: str
    status: FriendRequestStatus = FriendRequestStatus.PENDING


@dataclass(frozen=True)
class Group:
    id: str
    visibility: GroupVisibility = GroupVisibility.PUBLIC
    name: Optional[str] = None


@dataclass(frozen=True)
class GroupMember:
    group_id: str
    user_id: str
    role: GroupMemberRole = GroupMemberRole.MEMBER
    status: GroupMemberStatus = GroupMemberStatus.ACTIVE
    suspended_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == GroupMemberStatus.ACTIVE
