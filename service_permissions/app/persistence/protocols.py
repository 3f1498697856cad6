"""
Storage interfaces consumed by the engine.
"""

from datetime import datetime
from typing import List, Optional, Protocol, Tuple

from ..audit.models import AuditRecord
from ..facets.models import (
    EntityType, FacetAssignment, FacetAssignmentHistory, FacetDefinition, FacetRef
)
from ..policies.models import GroupMember, UserRecord


class FacetRepository(Protocol):
    """Durable store for facet definitions, assignments and history.

    Assignment rows are unique per (facet_id, entity_type, entity_id).
    """

    async def find_definition(self, ref: FacetRef) -> Optional[FacetDefinition]:
        ...

    async def list_definitions(self, scope: Optional[str] = None) -> List[FacetDefinition]:
        ...

    async def find_effective_assignments(
        self,
        entity_type: EntityType,
        entity_id: str,
        now: datetime,
        scope: Optional[str] = None,
        name: Optional[str] = None,
        value: Optional[str] = None,
    ) -> List[Tuple[FacetDefinition, FacetAssignment]]:
        """Assignments effective at ``now``; ``None`` filters match anything."""
        ...

    async def get_assignment(
        self, facet_id: str, entity_type: EntityType, entity_id: str
    ) -> Optional[FacetAssignment]:
        ...

    async def upsert_assignment(self, assignment: FacetAssignment) -> FacetAssignment:
        ...

    async def deactivate_assignments(
        self, facet_id: str, entity_type: EntityType, entity_id: str
    ) -> int:
        """Deactivate active rows, returning how many changed."""
        ...

    async def append_history(self, entry: FacetAssignmentHistory) -> None:
        ...

    async def list_history(
        self, entity_type: EntityType, entity_id: str, limit: int = 100
    ) -> List[FacetAssignmentHistory]:
        """History rows, newest first."""
        ...


class UserDirectory(Protocol):
    """Read access to users and the reports-to edge."""

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        ...

    async def get_line_manager_id(self, user_id: str) -> Optional[str]:
        ...

    async def list_direct_report_ids(self, manager_id: str) -> List[str]:
        ...


class ConnectionDirectory(Protocol):
    """Read access to connection (friend) requests."""

    async def has_accepted_connection(self, user_a: str, user_b: str) -> bool:
        """True if an accepted request exists in either direction."""
        ...


class CommunityDirectory(Protocol):
    """Read access to community membership."""

    async def get_membership(self, group_id: str, user_id: str) -> Optional[GroupMember]:
        ...

    async def has_pending_application(self, group_id: str, user_id: str) -> bool:
        ...

    async def find_approved_group_for_post(self, post_id: str) -> Optional[str]:
        """Group id of the approved community post wrapping ``post_id``."""
        ...


class AuditLogRepository(Protocol):
    """Append-only audit log."""

    async def insert_audit_record(self, record: AuditRecord) -> None:
        ...
