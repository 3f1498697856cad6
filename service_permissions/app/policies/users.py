"""
User profile and organisation hierarchy permissions.
"""

from typing import Optional

from .base import BasePolicy
from .models import UserRecord
from ..context import AuthenticationContext
from ..facets import catalog
from ..results import PermissionResult, ReasonCode, deny, grant

_ADMIN_OR_HR = (
    (catalog.GLOBAL_ADMIN, ReasonCode.GLOBAL_ADMIN, "Global admin"),
    (catalog.ROLE_HR_ADMIN, ReasonCode.HR_ADMIN, "HR admin"),
)


class UserPolicy(BasePolicy):
    """Decisions on user profiles and reporting lines."""

    resource_type = "user"

    async def can_view(self, ctx: AuthenticationContext, target: UserRecord) -> PermissionResult:
        op = "user-view"
        user_id = ctx.user_id

        if not target.is_private:
            return grant(user_id, target.id, op, "Profile is public", ReasonCode.PUBLIC_PROFILE)

        if user_id is None:
            return self.not_authenticated(target.id, op)

        if user_id == target.id:
            return grant(user_id, target.id, op, "Own profile", ReasonCode.SELF)

        elevated = await self.first_facet_grant(user_id, target.id, op, _ADMIN_OR_HR)
        if elevated is not None:
            return elevated

        if await self.relations.is_administrator_for(user_id, target.id):
            return grant(user_id, target.id, op, "Line manager", ReasonCode.LINE_MANAGER)

        if await self.relations.is_friends_with(user_id, target.id):
            return grant(user_id, target.id, op, "Friend", ReasonCode.FRIEND)

        return self.default_deny(ctx, target.id, op)

    async def can_update(self, ctx: AuthenticationContext, target: UserRecord) -> PermissionResult:
        op = "user-update"
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(target.id, op)

        if user_id == target.id:
            return grant(user_id, target.id, op, "Own profile", ReasonCode.SELF)

        elevated = await self.first_facet_grant(user_id, target.id, op, _ADMIN_OR_HR)
        if elevated is not None:
            return elevated

        return self.default_deny(ctx, target.id, op)

    async def can_set_line_manager(
        self,
        ctx: AuthenticationContext,
        target_user_id: str,
        new_manager_id: Optional[str] = None,
    ) -> PermissionResult:
        """Divisional admins may only rewire users inside their own division.

        Cycle prevention is a separate question, answered by
        ``RelationshipResolver.check_for_circular_reference``.
        """
        op = "user-set-line-manager"
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(target_user_id, op)

        elevated = await self.first_facet_grant(user_id, target_user_id, op, _ADMIN_OR_HR)
        if elevated is not None:
            return elevated

        if await self.has_facet(user_id, catalog.DIVISIONAL_ADMIN):
            in_division = await self.relations.share_division(user_id, target_user_id)
            if in_division and new_manager_id is not None:
                in_division = await self.relations.share_division(user_id, new_manager_id)

            if in_division:
                return self.facet_grant(user_id, target_user_id, op, "Divisional admin within own division",
                                        ReasonCode.DIVISIONAL_ADMIN, catalog.DIVISIONAL_ADMIN)

            return deny(user_id, target_user_id, op, "Users are outside the admin's division",
                        ReasonCode.DEFAULT_DENY, {"facets_checked": [str(catalog.DIVISIONAL_ADMIN)]})

        return self.default_deny(ctx, target_user_id, op, "Insufficient permissions")

    async def can_view_org_hierarchy(self, ctx: AuthenticationContext) -> PermissionResult:
        op = "org-hierarchy-view"
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(None, op)

        elevated = await self.first_facet_grant(user_id, None, op, _ADMIN_OR_HR)
        if elevated is not None:
            return elevated

        # Everyone else may see their own reporting tree
        return grant(user_id, None, op, "Authenticated user can view their own tree", ReasonCode.AUTHENTICATED)

    async def can_view_line_manager(self, ctx: AuthenticationContext, target_user_id: str) -> PermissionResult:
        op = "user-view-line-manager"
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(target_user_id, op)

        if user_id == target_user_id:
            return grant(user_id, target_user_id, op, "Own line manager", ReasonCode.SELF)

        elevated = await self.first_facet_grant(user_id, target_user_id, op, _ADMIN_OR_HR)
        if elevated is not None:
            return elevated

        if await self.relations.is_administrator_for(user_id, target_user_id):
            return grant(user_id, target_user_id, op, "Line manager", ReasonCode.LINE_MANAGER)

        return self.default_deny(ctx, target_user_id, op)

    async def can_view_direct_reports(self, ctx: AuthenticationContext, manager_id: str) -> PermissionResult:
        op = "user-view-direct-reports"
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(manager_id, op)

        if user_id == manager_id:
            return grant(user_id, manager_id, op, "Own reports", ReasonCode.SELF)

        elevated = await self.first_facet_grant(user_id, manager_id, op, _ADMIN_OR_HR)
        if elevated is not None:
            return elevated

        if await self.relations.is_administrator_for(user_id, manager_id):
            return grant(user_id, manager_id, op, "Senior manager", ReasonCode.SENIOR_MANAGER)

        return self.default_deny(ctx, manager_id, op)
