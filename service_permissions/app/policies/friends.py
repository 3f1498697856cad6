"""
Connection (friend) request permissions.
"""

from .base import BasePolicy
from .models import FriendRequest
from ..context import AuthenticationContext
from ..facets import catalog
from ..results import PermissionResult, ReasonCode, deny, grant


class FriendPolicy(BasePolicy):
    """Decisions on connection requests and friendships."""

    resource_type = "friend_request"

    async def can_send_request(self, ctx: AuthenticationContext, target_user_id: str) -> PermissionResult:
        op = "friend-request-send"
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(target_user_id, op)

        if user_id == target_user_id:
            return deny(user_id, target_user_id, op, "Cannot send to yourself", ReasonCode.SELF_REQUEST)

        if await self.has_facet(user_id, catalog.GLOBAL_ADMIN):
            return self.facet_grant(user_id, target_user_id, op, "Global admin", ReasonCode.GLOBAL_ADMIN,
                                    catalog.GLOBAL_ADMIN)

        return grant(user_id, target_user_id, op, "Standard friend request", ReasonCode.STANDARD)

    async def can_view_received(self, ctx: AuthenticationContext) -> PermissionResult:
        return self._own_requests(ctx, "friend-requests-view-received")

    async def can_view_sent(self, ctx: AuthenticationContext) -> PermissionResult:
        return self._own_requests(ctx, "friend-requests-view-sent")

    def _own_requests(self, ctx: AuthenticationContext, op: str) -> PermissionResult:
        if ctx.user_id is None:
            return self.not_authenticated(None, op)
        return grant(ctx.user_id, ctx.user_id, op, "Own requests", ReasonCode.SELF)

    async def can_accept(self, ctx: AuthenticationContext, request: FriendRequest) -> PermissionResult:
        return await self._receiver_only(ctx, request, "friend-request-accept", "Only receiver can accept")

    async def can_reject(self, ctx: AuthenticationContext, request: FriendRequest) -> PermissionResult:
        return await self._receiver_only(ctx, request, "friend-request-reject", "Only receiver can reject")

    async def _receiver_only(
        self, ctx: AuthenticationContext, request: FriendRequest, op: str, denial: str
    ) -> PermissionResult:
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(request.id, op)

        if user_id == request.receiver_id:
            return grant(user_id, request.id, op, "Request receiver", ReasonCode.RECEIVER)

        if await self.has_facet(user_id, catalog.GLOBAL_ADMIN):
            return self.facet_grant(user_id, request.id, op, "Global admin", ReasonCode.GLOBAL_ADMIN,
                                    catalog.GLOBAL_ADMIN)

        return deny(user_id, request.id, op, denial, ReasonCode.NOT_RECEIVER)

    async def can_cancel(self, ctx: AuthenticationContext, request: FriendRequest) -> PermissionResult:
        op = "friend-request-cancel"
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(request.id, op)

        if user_id == request.sender_id:
            return grant(user_id, request.id, op, "Request sender", ReasonCode.SENDER)

        if await self.has_facet(user_id, catalog.GLOBAL_ADMIN):
            return self.facet_grant(user_id, request.id, op, "Global admin", ReasonCode.GLOBAL_ADMIN,
                                    catalog.GLOBAL_ADMIN)

        return deny(user_id, request.id, op, "Only sender can cancel", ReasonCode.NOT_SENDER)

    async def can_view_status(self, ctx: AuthenticationContext, target_user_id: str) -> PermissionResult:
        op = "friendship-status-view"
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(target_user_id, op)

        if user_id == target_user_id:
            return grant(user_id, target_user_id, op, "Own status", ReasonCode.SELF)

        # Friendship status between two users is public information
        return grant(user_id, target_user_id, op, "Public friendship status", ReasonCode.PUBLIC)

    async def can_view_friends_list(
        self,
        ctx: AuthenticationContext,
        target_user_id: str,
        is_private_profile: bool,
    ) -> PermissionResult:
        op = "friends-list-view"
        user_id = ctx.user_id

        if not is_private_profile:
            return grant(user_id, target_user_id, op, "Public profile", ReasonCode.PUBLIC_PROFILE)

        if user_id is None:
            return self.not_authenticated(target_user_id, op)

        if user_id == target_user_id:
            return grant(user_id, target_user_id, op, "Own friends", ReasonCode.SELF)

        if await self.has_facet(user_id, catalog.GLOBAL_ADMIN):
            return self.facet_grant(user_id, target_user_id, op, "Global admin", ReasonCode.GLOBAL_ADMIN,
                                    catalog.GLOBAL_ADMIN)

        if await self.relations.is_administrator_for(user_id, target_user_id):
            return grant(user_id, target_user_id, op, "Line manager", ReasonCode.LINE_MANAGER)

        if await self.relations.is_friends_with(user_id, target_user_id):
            return grant(user_id, target_user_id, op, "Friend", ReasonCode.FRIEND)

        return deny(user_id, target_user_id, op, "Private profile", ReasonCode.PRIVATE_PROFILE)

    async def can_remove_friend(self, ctx: AuthenticationContext, friend_user_id: str) -> PermissionResult:
        op = "friendship-remove"
        if ctx.user_id is None:
            return self.not_authenticated(friend_user_id, op)

        return grant(ctx.user_id, friend_user_id, op, "Remove own friendship", ReasonCode.SELF)
