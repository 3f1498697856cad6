"""
Comment permissions.

Viewing comments follows the parent item's read decision. Commenting on a
post that belongs to an approved community post is decided by active
community membership alone, in place of the post's visibility rules.
"""

from typing import Optional

from .base import BasePolicy
from .media import MediaPolicy
from .models import Comment, Media, Post, Visibility
from .posts import PostPolicy
from ..context import AuthenticationContext
from ..facets import catalog
from ..facets.store import FacetStore
from ..persistence.protocols import CommunityDirectory
from ..relations.resolver import RelationshipResolver
from ..results import PermissionResult, ReasonCode, deny, grant


class CommentPolicy(BasePolicy):
    """Decisions on comments."""

    resource_type = "comment"

    def __init__(
        self,
        facets: FacetStore,
        relations: RelationshipResolver,
        communities: CommunityDirectory,
        posts: PostPolicy,
        media: MediaPolicy,
    ):
        super().__init__(facets, relations)
        self.communities = communities
        self.posts = posts
        self.media = media

    async def can_view_on_post(self, ctx: AuthenticationContext, post: Post) -> PermissionResult:
        return await self.posts.can_read(ctx, post)

    async def can_view_on_media(self, ctx: AuthenticationContext, media: Media) -> PermissionResult:
        return await self.media.can_read(ctx, media)

    async def can_comment_on_post(self, ctx: AuthenticationContext, post: Post) -> PermissionResult:
        op = "comment-create-post"
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(post.id, op)

        if post.author_id == user_id:
            return grant(user_id, post.id, op, "Own post", ReasonCode.SELF)

        elevated = await self._elevated(user_id, post.id, op, post.author_id)
        if elevated is not None:
            return elevated

        group_id = await self.communities.find_approved_group_for_post(post.id)
        if group_id is not None:
            membership = await self.communities.get_membership(group_id, user_id)
            if membership is None or not membership.is_active:
                return deny(user_id, post.id, op, "Must be a group member to comment",
                            ReasonCode.NOT_GROUP_MEMBER, {"group_id": group_id})
            return grant(user_id, post.id, op, "Group member", ReasonCode.GROUP_MEMBER, {"group_id": group_id})

        if post.is_public:
            return grant(user_id, post.id, op, "Public post", ReasonCode.PUBLIC_CONTENT)

        if post.visibility == Visibility.FRIENDS_ONLY:
            if await self.relations.is_friends_with(user_id, post.author_id):
                return grant(user_id, post.id, op, "Friend", ReasonCode.FRIEND)

        return self.default_deny(ctx, post.id, op, "Cannot comment on this post")

    async def can_comment_on_media(self, ctx: AuthenticationContext, media: Media) -> PermissionResult:
        op = "comment-create-media"
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(media.id, op)

        if media.author_id == user_id:
            return grant(user_id, media.id, op, "Own media", ReasonCode.SELF)

        elevated = await self._elevated(user_id, media.id, op, media.author_id)
        if elevated is not None:
            return elevated

        if media.visibility == Visibility.PUBLIC:
            return grant(user_id, media.id, op, "Public media", ReasonCode.PUBLIC_CONTENT)

        if media.visibility == Visibility.FRIENDS_ONLY:
            if await self.relations.is_friends_with(user_id, media.author_id):
                return grant(user_id, media.id, op, "Friend", ReasonCode.FRIEND)

        return self.default_deny(ctx, media.id, op, "Cannot comment on this media")

    async def can_update(self, ctx: AuthenticationContext, comment: Comment) -> PermissionResult:
        op = "comment-update"
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(comment.id, op)

        if comment.author_id == user_id:
            return grant(user_id, comment.id, op, "Own comment", ReasonCode.SELF)

        elevated = await self.first_facet_grant(user_id, comment.id, op, (
            (catalog.GLOBAL_ADMIN, ReasonCode.GLOBAL_ADMIN, "Global admin"),
            (catalog.ROLE_MODERATOR, ReasonCode.MODERATOR, "Moderator"),
        ))
        if elevated is not None:
            return elevated

        return self.default_deny(ctx, comment.id, op, "Can only edit own comments")

    async def can_delete(
        self,
        ctx: AuthenticationContext,
        comment: Comment,
        parent_author_id: Optional[str] = None,
    ) -> PermissionResult:
        """``parent_author_id`` is the author of the post or media commented on."""
        op = "comment-delete"
        user_id = ctx.user_id
        if user_id is None:
            return self.not_authenticated(comment.id, op)

        if comment.author_id == user_id:
            return grant(user_id, comment.id, op, "Own comment", ReasonCode.SELF)

        if parent_author_id is not None and parent_author_id == user_id:
            return grant(user_id, comment.id, op, "Content owner", ReasonCode.CONTENT_OWNER)

        elevated = await self.first_facet_grant(user_id, comment.id, op, (
            (catalog.GLOBAL_ADMIN, ReasonCode.GLOBAL_ADMIN, "Global admin"),
            (catalog.ROLE_MODERATOR, ReasonCode.MODERATOR, "Moderator"),
        ))
        if elevated is not None:
            return elevated

        if parent_author_id is not None and await self.relations.is_administrator_for(user_id, parent_author_id):
            return grant(user_id, comment.id, op, "Line manager", ReasonCode.LINE_MANAGER)

        return self.default_deny(ctx, comment.id, op, "Cannot delete this comment")

    async def _elevated(
        self, user_id: str, resource_id: str, op: str, author_id: str
    ) -> Optional[PermissionResult]:
        """Admin, moderator, then line manager of the author."""
        elevated = await self.first_facet_grant(user_id, resource_id, op, (
            (catalog.GLOBAL_ADMIN, ReasonCode.GLOBAL_ADMIN, "Global admin"),
            (catalog.ROLE_MODERATOR, ReasonCode.MODERATOR, "Moderator"),
        ))
        if elevated is not None:
            return elevated

        if await self.relations.is_administrator_for(user_id, author_id):
            return grant(user_id, resource_id, op, "Line manager", ReasonCode.LINE_MANAGER)

        return None
