"""
Post permissions.
"""

from typing import List, Sequence

from .base import BasePolicy
from .models import Post, PublicationStatus, Visibility
from ..context import AuthenticationContext
from ..facets import catalog
from ..guard import filter_by_permission
from ..results import PermissionResult, ReasonCode, grant


class PostPolicy(BasePolicy):
    """Decisions on posts."""

    resource_type = "post"

    async def can_read(self, ctx: AuthenticationContext, post: Post) -> PermissionResult:
        op = "post-read"
        user_id = ctx.user_id

        if post.is_public:
            return grant(user_id, post.id, op, "Post is public", ReasonCode.PUBLIC_POST)

        if user_id is None:
            return self.not_authenticated(post.id, op)

        if post.author_id == user_id:
            return grant(user_id, post.id, op, "User is owner", ReasonCode.OWNER)

        if await self.has_facet(user_id, catalog.GLOBAL_ADMIN):
            return self.facet_grant(user_id, post.id, op, "Global admin", ReasonCode.GLOBAL_ADMIN,
                                    catalog.GLOBAL_ADMIN)

        if await self.relations.is_administrator_for(user_id, post.author_id):
            return grant(user_id, post.id, op, "Line manager of author", ReasonCode.LINE_MANAGER)

        if post.visibility == Visibility.FRIENDS_ONLY and post.publication_status == PublicationStatus.PUBLIC:
            if await self.relations.is_friends_with(user_id, post.author_id):
                return grant(user_id, post.id, op, "User is friend and post is friends-only", ReasonCode.FRIENDS)

        return self.default_deny(ctx, post.id, op)

    async def can_create(self, ctx: AuthenticationContext) -> PermissionResult:
        op = "post-create"
        if ctx.user_id is None:
            return self.not_authenticated(None, op)

        return grant(ctx.user_id, None, op, "Authenticated user", ReasonCode.AUTHENTICATED)

    async def can_create_locked(self, ctx: AuthenticationContext) -> PermissionResult:
        """Locked (paywalled) posts are gated independently of ``can_create``."""
        op = "post-create-locked"
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(None, op)

        if ctx.user is not None and ctx.user.can_publish_locked_media:
            return grant(user_id, None, op, "User has locked media permission", ReasonCode.LOCKED_MEDIA_PERMISSION)

        if await self.has_facet(user_id, catalog.LOCKED_POSTS):
            return self.facet_grant(user_id, None, op, "User has locked posts facet",
                                    ReasonCode.LOCKED_POSTS_FACET, catalog.LOCKED_POSTS)

        return self.default_deny(ctx, None, op, "No permission for locked posts")

    async def can_update(self, ctx: AuthenticationContext, post: Post) -> PermissionResult:
        op = "post-update"
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(post.id, op)

        if post.author_id == user_id:
            return grant(user_id, post.id, op, "User is owner", ReasonCode.OWNER)

        if await self.has_facet(user_id, catalog.GLOBAL_ADMIN):
            return self.facet_grant(user_id, post.id, op, "Global admin", ReasonCode.GLOBAL_ADMIN,
                                    catalog.GLOBAL_ADMIN)

        return self.default_deny(ctx, post.id, op)

    async def can_delete(self, ctx: AuthenticationContext, post: Post) -> PermissionResult:
        op = "post-delete"
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(post.id, op)

        if post.author_id == user_id:
            return grant(user_id, post.id, op, "User is owner", ReasonCode.OWNER)

        elevated = await self.first_facet_grant(user_id, post.id, op, (
            (catalog.GLOBAL_ADMIN, ReasonCode.GLOBAL_ADMIN, "Global admin"),
            (catalog.ROLE_MODERATOR, ReasonCode.MODERATOR, "Moderator"),
        ))
        if elevated is not None:
            return elevated

        return self.default_deny(ctx, post.id, op)

    async def filter_readable(self, ctx: AuthenticationContext, posts: Sequence[Post]) -> List[Post]:
        return await filter_by_permission(posts, ctx, lambda post, c: self.can_read(c, post))
