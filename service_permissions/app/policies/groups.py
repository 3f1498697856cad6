"""
Community (group) permissions.

Role-ordered actions compare ranks OWNER > ADMIN > MODERATOR > MEMBER. An
actor acts only on members ranked strictly below them; the owner acts on
anyone except themselves, and nobody changes their own role.
"""

from typing import Optional

from .base import BasePolicy
from .models import Group, GroupMember, GroupMemberRole, GroupVisibility
from ..context import AuthenticationContext
from ..facets import catalog
from ..facets.store import FacetStore
from ..persistence.protocols import CommunityDirectory
from ..relations.resolver import RelationshipResolver
from ..results import PermissionResult, ReasonCode, deny, grant

_STAFF = frozenset({GroupMemberRole.OWNER, GroupMemberRole.ADMIN, GroupMemberRole.MODERATOR})
_MANAGERS = frozenset({GroupMemberRole.OWNER, GroupMemberRole.ADMIN})


def _role_code(role: GroupMemberRole) -> ReasonCode:
    return ReasonCode(role.value)


class GroupPolicy(BasePolicy):
    """Decisions on communities, their members and their posts."""

    resource_type = "group"

    def __init__(self, facets: FacetStore, relations: RelationshipResolver, communities: CommunityDirectory):
        super().__init__(facets, relations)
        self.communities = communities

    async def _active_membership(self, group_id: str, user_id: str) -> Optional[GroupMember]:
        membership = await self.communities.get_membership(group_id, user_id)
        if membership is None or not membership.is_active:
            return None
        return membership

    async def _global_admin(self, user_id: str, group_id: str, op: str) -> Optional[PermissionResult]:
        if await self.has_facet(user_id, catalog.GLOBAL_ADMIN):
            return self.facet_grant(user_id, group_id, op, "Global admin", ReasonCode.GLOBAL_ADMIN,
                                    catalog.GLOBAL_ADMIN)
        return None

    async def can_view(self, ctx: AuthenticationContext, group: Group) -> PermissionResult:
        op = "group-view"
        user_id = ctx.user_id

        if group.visibility in (GroupVisibility.PUBLIC, GroupVisibility.PRIVATE_VISIBLE):
            return grant(user_id, group.id, op, "Group is publicly visible", ReasonCode.PUBLIC_GROUP)

        if user_id is None:
            return deny(None, group.id, op, "Private group requires authentication", ReasonCode.NOT_AUTHENTICATED)

        admin = await self._global_admin(user_id, group.id, op)
        if admin is not None:
            return admin

        if await self._active_membership(group.id, user_id):
            return grant(user_id, group.id, op, "User is a member", ReasonCode.MEMBER)

        return deny(user_id, group.id, op, "Private group and not a member", ReasonCode.NOT_MEMBER)

    async def can_create(self, ctx: AuthenticationContext) -> PermissionResult:
        op = "group-create"
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(None, op)

        elevated = await self.first_facet_grant(user_id, None, op, (
            (catalog.CAN_CREATE_GROUPS, ReasonCode.HAS_PERMISSION, "Has group creation permission"),
            (catalog.GLOBAL_ADMIN, ReasonCode.GLOBAL_ADMIN, "Global admin"),
        ))
        if elevated is not None:
            return elevated

        return grant(user_id, None, op, "Authenticated user", ReasonCode.AUTHENTICATED)

    async def can_update(self, ctx: AuthenticationContext, group: Group) -> PermissionResult:
        return await self._by_role(ctx, group, "group-update", _MANAGERS, "Must be group owner or admin")

    async def can_delete(self, ctx: AuthenticationContext, group: Group) -> PermissionResult:
        op = "group-delete"
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(group.id, op)

        membership = await self._active_membership(group.id, user_id)
        if membership is not None and membership.role == GroupMemberRole.OWNER:
            return grant(user_id, group.id, op, "Group owner", ReasonCode.OWNER)

        admin = await self._global_admin(user_id, group.id, op)
        if admin is not None:
            return admin

        return deny(user_id, group.id, op, "Must be group owner", ReasonCode.NOT_OWNER)

    async def can_join(self, ctx: AuthenticationContext, group: Group) -> PermissionResult:
        op = "group-join"
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(group.id, op)

        if await self._active_membership(group.id, user_id):
            return deny(user_id, group.id, op, "Already a member", ReasonCode.ALREADY_MEMBER)

        if await self.communities.has_pending_application(group.id, user_id):
            return deny(user_id, group.id, op, "Application already pending", ReasonCode.PENDING_APPLICATION)

        # Approval of the application is decided elsewhere
        return grant(user_id, group.id, op, "Can apply for membership", ReasonCode.CAN_APPLY)

    async def can_invite(self, ctx: AuthenticationContext, group: Group) -> PermissionResult:
        return await self._by_role(ctx, group, "group-invite", _STAFF, "Must be group staff")

    async def can_review_applications(self, ctx: AuthenticationContext, group: Group) -> PermissionResult:
        return await self._by_role(ctx, group, "group-review-applications", _STAFF, "Must be group staff")

    async def can_view_activity(self, ctx: AuthenticationContext, group: Group) -> PermissionResult:
        return await self._by_role(ctx, group, "group-activity-view", _MANAGERS, "Must be group owner or admin")

    async def can_moderate_posts(self, ctx: AuthenticationContext, group: Group) -> PermissionResult:
        op = "group-moderate"
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(group.id, op)

        membership = await self._active_membership(group.id, user_id)
        if membership is not None and membership.role == GroupMemberRole.OWNER:
            return grant(user_id, group.id, op, "Group owner", ReasonCode.OWNER)

        elevated = await self.first_facet_grant(user_id, group.id, op, (
            (catalog.GLOBAL_ADMIN, ReasonCode.GLOBAL_ADMIN, "Global admin"),
            (catalog.ROLE_MODERATOR, ReasonCode.PLATFORM_MODERATOR, "Platform moderator"),
        ))
        if elevated is not None:
            return elevated

        if membership is not None and membership.role in _STAFF:
            return grant(user_id, group.id, op, f"Group {membership.role.value.lower()}",
                         _role_code(membership.role))

        return deny(user_id, group.id, op, "Must be group staff or platform moderator", ReasonCode.NOT_AUTHORIZED)

    async def can_post(self, ctx: AuthenticationContext, group: Group) -> PermissionResult:
        """Posting requires an active, unsuspended membership, even for admins."""
        op = "group-post"
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(group.id, op)

        membership = await self._active_membership(group.id, user_id)
        if membership is None:
            return deny(user_id, group.id, op, "Must be a member", ReasonCode.NOT_MEMBER)

        if membership.suspended_at is not None:
            return deny(user_id, group.id, op, "Membership suspended", ReasonCode.SUSPENDED)

        admin = await self._global_admin(user_id, group.id, op)
        if admin is not None:
            return admin

        return grant(user_id, group.id, op, "Active member", ReasonCode.MEMBER)

    async def can_manage_member_roles(
        self,
        ctx: AuthenticationContext,
        group: Group,
        target: GroupMember,
        new_role: Optional[GroupMemberRole] = None,
    ) -> PermissionResult:
        op = "group-manage-roles"
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(group.id, op)

        if user_id == target.user_id:
            return deny(user_id, group.id, op, "Cannot change own role", ReasonCode.SELF_ROLE_CHANGE)

        membership = await self._active_membership(group.id, user_id)
        if membership is not None and membership.role == GroupMemberRole.OWNER:
            return grant(user_id, group.id, op, "Group owner", ReasonCode.OWNER)

        admin = await self._global_admin(user_id, group.id, op)
        if admin is not None:
            return admin

        if membership is None:
            return deny(user_id, group.id, op, "Not a member", ReasonCode.NOT_MEMBER)

        if not membership.role.outranks(target.role):
            return deny(user_id, group.id, op, "Can only change roles of lower-ranked members",
                        ReasonCode.INSUFFICIENT_ROLE)

        if new_role is not None and not membership.role.outranks(new_role):
            return deny(user_id, group.id, op, "Cannot promote to a role at or above your own",
                        ReasonCode.INSUFFICIENT_ROLE)

        return grant(user_id, group.id, op, f"Group {membership.role.value.lower()}", _role_code(membership.role))

    async def can_remove_member(
        self,
        ctx: AuthenticationContext,
        group: Group,
        target: GroupMember,
    ) -> PermissionResult:
        op = "group-remove-member"
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(group.id, op)

        if user_id == target.user_id:
            if target.role == GroupMemberRole.OWNER:
                return deny(user_id, group.id, op, "Owner must transfer ownership before leaving",
                            ReasonCode.OWNER_CANNOT_LEAVE)
            return grant(user_id, group.id, op, "Leaving group", ReasonCode.SELF)

        membership = await self._active_membership(group.id, user_id)
        if membership is not None and membership.role == GroupMemberRole.OWNER:
            return grant(user_id, group.id, op, "Group owner", ReasonCode.OWNER)

        admin = await self._global_admin(user_id, group.id, op)
        if admin is not None:
            return admin

        if membership is None:
            return deny(user_id, group.id, op, "Not a member", ReasonCode.NOT_MEMBER)

        if membership.role.outranks(target.role):
            return grant(user_id, group.id, op, f"Group {membership.role.value.lower()}",
                         _role_code(membership.role))

        return deny(user_id, group.id, op, "Can only remove lower-ranked members", ReasonCode.INSUFFICIENT_ROLE)

    async def _by_role(
        self,
        ctx: AuthenticationContext,
        group: Group,
        op: str,
        roles: frozenset,
        denial: str,
    ) -> PermissionResult:
        """Owner, then global admin, then any other role in ``roles``."""
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(group.id, op)

        membership = await self._active_membership(group.id, user_id)
        if membership is not None and membership.role == GroupMemberRole.OWNER:
            return grant(user_id, group.id, op, "Group owner", ReasonCode.OWNER)

        admin = await self._global_admin(user_id, group.id, op)
        if admin is not None:
            return admin

        if membership is not None and membership.role in roles:
            return grant(user_id, group.id, op, f"Group {membership.role.value.lower()}",
                         _role_code(membership.role))

        return deny(user_id, group.id, op, denial, ReasonCode.NOT_AUTHORIZED)
