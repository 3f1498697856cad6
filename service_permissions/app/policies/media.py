"""
Media permissions.
"""

from typing import List, Sequence

from .base import BasePolicy
from .models import Media, Visibility
from ..context import AuthenticationContext
from ..facets import catalog
from ..guard import filter_by_permission
from ..results import PermissionResult, ReasonCode, grant


class MediaPolicy(BasePolicy):
    """Decisions on media items."""

    resource_type = "media"

    async def can_read(self, ctx: AuthenticationContext, media: Media) -> PermissionResult:
        op = "media-read"
        user_id = ctx.user_id

        if media.visibility == Visibility.PUBLIC:
            return grant(user_id, media.id, op, "Media is public", ReasonCode.PUBLIC_MEDIA)

        if user_id is None:
            return self.not_authenticated(media.id, op)

        if media.author_id == user_id:
            return grant(user_id, media.id, op, "Request user is the owner", ReasonCode.OWNER)

        if await self.has_facet(user_id, catalog.GLOBAL_ADMIN):
            return self.facet_grant(user_id, media.id, op, "Request user is a global admin",
                                    ReasonCode.GLOBAL_ADMIN, catalog.GLOBAL_ADMIN)

        # Divisional admins only see media owned inside their own division
        if await self.has_facet(user_id, catalog.DIVISIONAL_ADMIN):
            if await self.relations.share_division(user_id, media.author_id):
                return self.facet_grant(user_id, media.id, op,
                                        "Request user is divisional admin for the owner's division",
                                        ReasonCode.DIVISIONAL_ADMIN, catalog.DIVISIONAL_ADMIN)

        if await self.relations.is_administrator_for(user_id, media.author_id):
            return grant(user_id, media.id, op, "Request user is line manager for owner", ReasonCode.LINE_MANAGER)

        if media.visibility == Visibility.FRIENDS_ONLY:
            if await self.relations.is_friends_with(user_id, media.author_id):
                return grant(user_id, media.id, op,
                             "Request user is friends with owner and media is friends-only", ReasonCode.FRIENDS)

        return self.default_deny(ctx, media.id, op)

    async def can_create(self, ctx: AuthenticationContext) -> PermissionResult:
        op = "media-create"
        if ctx.user_id is None:
            return self.not_authenticated(None, op)

        return grant(ctx.user_id, None, op, "Authenticated user", ReasonCode.AUTHENTICATED)

    async def can_update(self, ctx: AuthenticationContext, media: Media) -> PermissionResult:
        return await self._owner_or_admin(ctx, media, "media-update")

    async def can_delete(self, ctx: AuthenticationContext, media: Media) -> PermissionResult:
        return await self._owner_or_admin(ctx, media, "media-delete")

    async def _owner_or_admin(self, ctx: AuthenticationContext, media: Media, op: str) -> PermissionResult:
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(media.id, op)

        if media.author_id == user_id:
            return grant(user_id, media.id, op, "User is owner", ReasonCode.OWNER)

        if await self.has_facet(user_id, catalog.GLOBAL_ADMIN):
            return self.facet_grant(user_id, media.id, op, "Global admin", ReasonCode.GLOBAL_ADMIN,
                                    catalog.GLOBAL_ADMIN)

        return self.default_deny(ctx, media.id, op)

    async def filter_readable(self, ctx: AuthenticationContext, items: Sequence[Media]) -> List[Media]:
        return await filter_by_permission(items, ctx, lambda media, c: self.can_read(c, media))
