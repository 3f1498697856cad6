"""
Facet administration permissions.
"""

from typing import Union

from .base import BasePolicy
from ..context import AuthenticationContext
from ..facets import catalog
from ..facets.models import FacetRef
from ..results import PermissionResult, ReasonCode, grant

# Viewing someone else's facets or history
_VIEWERS = (
    (catalog.GLOBAL_ADMIN, ReasonCode.GLOBAL_ADMIN, "Global admin"),
    (catalog.FACET_ADMIN, ReasonCode.GLOBAL_FACET_ADMIN, "Global facet admin"),
    (catalog.ROLE_HR_ADMIN, ReasonCode.HR_ADMIN, "HR admin"),
)


class FacetAdminPolicy(BasePolicy):
    """Decisions on assigning, revoking and inspecting facets."""

    resource_type = "facet"

    async def can_assign(
        self,
        ctx: AuthenticationContext,
        target_user_id: str,
        facet: Union[str, FacetRef],
    ) -> PermissionResult:
        op = "facet-assign"
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(target_user_id, op)

        # Malformed references raise InvalidFacetError; the guard turns that into a denial
        ref = FacetRef.parse(facet)

        elevated = await self.first_facet_grant(user_id, target_user_id, op, (
            (catalog.FACET_ADMIN, ReasonCode.GLOBAL_FACET_ADMIN, "User is global facet admin"),
            (catalog.GLOBAL_ADMIN, ReasonCode.GLOBAL_ADMIN, "User is global admin"),
        ))
        if elevated is not None:
            return elevated

        if ref.scope == catalog.DIVISION_SCOPE and await self.has_facet(user_id, catalog.DIVISIONAL_ADMIN):
            return self.facet_grant(user_id, target_user_id, op, "Divisional admin assigning divisional facet",
                                    ReasonCode.DIVISIONAL_ADMIN, catalog.DIVISIONAL_ADMIN)

        if ref.scope in catalog.ORG_SCOPES and await self.has_facet(user_id, catalog.ROLE_HR_ADMIN):
            return self.facet_grant(user_id, target_user_id, op, "HR admin assigning org facet",
                                    ReasonCode.HR_ADMIN, catalog.ROLE_HR_ADMIN)

        if (ref.scope == catalog.ROLE_MANAGER.scope
                and ref.name not in catalog.ADMIN_ROLE_NAMES
                and await self.has_facet(user_id, catalog.ROLE_MANAGER)):
            return self.facet_grant(user_id, target_user_id, op, "Manager assigning non-admin role",
                                    ReasonCode.MANAGER, catalog.ROLE_MANAGER)

        return self.default_deny(ctx, target_user_id, op, "No permission to assign this facet")

    async def can_revoke(
        self,
        ctx: AuthenticationContext,
        target_user_id: str,
        facet: Union[str, FacetRef],
    ) -> PermissionResult:
        op = "facet-revoke"
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(target_user_id, op)

        ref = FacetRef.parse(facet)

        elevated = await self.first_facet_grant(user_id, target_user_id, op, (
            (catalog.FACET_ADMIN, ReasonCode.GLOBAL_FACET_ADMIN, "User is global facet admin"),
            (catalog.GLOBAL_ADMIN, ReasonCode.GLOBAL_ADMIN, "User is global admin"),
        ))
        if elevated is not None:
            return elevated

        if ref.scope in catalog.ORG_SCOPES and await self.has_facet(user_id, catalog.ROLE_HR_ADMIN):
            return self.facet_grant(user_id, target_user_id, op, "HR admin revoking org facet",
                                    ReasonCode.HR_ADMIN, catalog.ROLE_HR_ADMIN)

        return self.default_deny(ctx, target_user_id, op, "No permission to revoke this facet")

    async def can_view_history(self, ctx: AuthenticationContext, target_user_id: str) -> PermissionResult:
        return await self._self_or_viewer(ctx, target_user_id, "facet-history-view", "Viewing own history")

    async def can_view_user_facets(self, ctx: AuthenticationContext, target_user_id: str) -> PermissionResult:
        return await self._self_or_viewer(ctx, target_user_id, "user-facets-view", "Viewing own facets")

    async def can_view_definitions(self, ctx: AuthenticationContext) -> PermissionResult:
        op = "facet-definitions-view"
        if ctx.user_id is None:
            return self.not_authenticated(None, op)

        return grant(ctx.user_id, None, op, "Authenticated user", ReasonCode.AUTHENTICATED)

    async def _self_or_viewer(
        self, ctx: AuthenticationContext, target_user_id: str, op: str, own_reason: str
    ) -> PermissionResult:
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(target_user_id, op)

        if user_id == target_user_id:
            return grant(user_id, target_user_id, op, own_reason, ReasonCode.SELF)

        elevated = await self.first_facet_grant(user_id, target_user_id, op, _VIEWERS)
        if elevated is not None:
            return elevated

        return self.default_deny(ctx, target_user_id, op)
