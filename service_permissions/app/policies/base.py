"""
Shared plumbing for decision policies.
"""

from typing import Optional, Sequence, Tuple

from shared.logging import get_logger

from ..context import AuthenticationContext
from ..facets.models import FacetRef
from ..facets.store import FacetStore
from ..relations.resolver import RelationshipResolver
from ..results import PermissionResult, ReasonCode, deny, grant

# (facet, reason code, human reason), checked in order
FacetGrant = Tuple[FacetRef, ReasonCode, str]


class BasePolicy:
    """Base class for per-resource policies."""

    resource_type = "resource"

    def __init__(self, facets: FacetStore, relations: RelationshipResolver):
        self.facets = facets
        self.relations = relations
        self.logger = get_logger(f"permissions.policies.{self.resource_type}")

    async def has_facet(self, user_id: str, facet: FacetRef) -> bool:
        return await self.facets.user_has_facet(user_id, facet)

    async def first_facet_grant(
        self,
        user_id: str,
        resource_id: Optional[str],
        operation: str,
        candidates: Sequence[FacetGrant],
    ) -> Optional[PermissionResult]:
        """Grant for the first candidate facet the user holds, if any."""
        for facet, code, reason in candidates:
            if await self.facets.user_has_facet(user_id, facet):
                return self.facet_grant(user_id, resource_id, operation, reason, code, facet)
        return None

    @staticmethod
    def facet_grant(
        user_id: str,
        resource_id: Optional[str],
        operation: str,
        reason: str,
        code: ReasonCode,
        facet: FacetRef,
    ) -> PermissionResult:
        return grant(user_id, resource_id, operation, reason, code, {"facets_checked": [str(facet)]})

    @staticmethod
    def not_authenticated(resource_id: Optional[str], operation: str) -> PermissionResult:
        return deny(None, resource_id, operation, "Not authenticated", ReasonCode.NOT_AUTHENTICATED)

    @staticmethod
    def default_deny(
        ctx: AuthenticationContext,
        resource_id: Optional[str],
        operation: str,
        reason: str = "No permission rules matched",
    ) -> PermissionResult:
        return deny(ctx.user_id, resource_id, operation, reason, ReasonCode.DEFAULT_DENY)
