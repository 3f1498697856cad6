"""
Bundle of every decision policy over shared collaborators.
"""

from .comments import CommentPolicy
from .facets import FacetAdminPolicy
from .friends import FriendPolicy
from .groups import GroupPolicy
from .media import MediaPolicy
from .posts import PostPolicy
from .users import UserPolicy
from ..facets.store import FacetStore
from ..persistence.protocols import CommunityDirectory
from ..relations.resolver import RelationshipResolver


class DecisionEngine:
    """One policy instance per resource kind."""

    def __init__(self, facets: FacetStore, relations: RelationshipResolver, communities: CommunityDirectory):
        self.posts = PostPolicy(facets, relations)
        self.media = MediaPolicy(facets, relations)
        self.comments = CommentPolicy(facets, relations, communities, self.posts, self.media)
        self.friends = FriendPolicy(facets, relations)
        self.facets = FacetAdminPolicy(facets, relations)
        self.users = UserPolicy(facets, relations)
        self.groups = GroupPolicy(facets, relations, communities)
