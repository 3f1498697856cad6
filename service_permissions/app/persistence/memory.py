"""
In-memory backend implementing every storage interface.

Used for embedding the engine without a database and throughout the tests.
"""

from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, Tuple

from shared.logging import get_logger

from ..audit.models import AuditRecord
from ..facets.models import (
    EntityType, FacetAssignment, FacetAssignmentHistory, FacetDefinition, FacetRef
)
from ..policies.models import FriendRequest, FriendRequestStatus, GroupMember, UserRecord

AssignmentKey = Tuple[str, EntityType, str]


class InMemoryBackend:
    """Facet, audit and directory storage held in dictionaries."""

    def __init__(self, definitions: Iterable[FacetDefinition] = ()):
        self.logger = get_logger("permissions.persistence.memory")
        self.definitions: Dict[str, FacetDefinition] = {}
        self.assignments: Dict[AssignmentKey, FacetAssignment] = {}
        self.history: List[FacetAssignmentHistory] = []
        self.audit_log: List[AuditRecord] = []
        self.users: Dict[str, UserRecord] = {}
        self.friend_requests: List[FriendRequest] = []
        self.memberships: Dict[Tuple[str, str], GroupMember] = {}
        self.pending_applications: Set[Tuple[str, str]] = set()
        self.group_posts: Dict[str, str] = {}

        for definition in definitions:
            self.definitions[definition.id] = definition

    async def start(self):
        self.logger.info("In-memory persistence started")

    async def stop(self):
        pass

    async def health_check(self) -> bool:
        return True

    # Catalog

    async def seed_definitions(self, definitions: Iterable[FacetDefinition]) -> None:
        for definition in definitions:
            self.definitions.setdefault(definition.id, definition)

    async def find_definition(self, ref: FacetRef) -> Optional[FacetDefinition]:
        for definition in self.definitions.values():
            if (definition.scope, definition.name, definition.value) == (ref.scope, ref.name, ref.value):
                return definition
        return None

    async def list_definitions(self, scope: Optional[str] = None) -> List[FacetDefinition]:
        return sorted(
            (d for d in self.definitions.values() if scope is None or d.scope == scope),
            key=lambda d: (d.scope, d.name, d.value)
        )

    # Assignments

    async def find_effective_assignments(
        self,
        entity_type: EntityType,
        entity_id: str,
        now: datetime,
        scope: Optional[str] = None,
        name: Optional[str] = None,
        value: Optional[str] = None,
    ) -> List[Tuple[FacetDefinition, FacetAssignment]]:
        rows = []
        for (facet_id, row_type, row_id), assignment in self.assignments.items():
            if row_type != entity_type or row_id != entity_id or not assignment.is_effective(now):
                continue

            definition = self.definitions.get(facet_id)
            if definition is None:
                continue
            if scope is not None and definition.scope != scope:
                continue
            if name is not None and definition.name != name:
                continue
            if value is not None and definition.value != value:
                continue

            rows.append((definition, replace(assignment)))

        # Same ordering as the SQL backend: most senior definition first, then oldest grant
        rows.sort(key=lambda row: (-row[0].hierarchy_level, row[1].assigned_at))
        return rows

    async def get_assignment(
        self, facet_id: str, entity_type: EntityType, entity_id: str
    ) -> Optional[FacetAssignment]:
        assignment = self.assignments.get((facet_id, entity_type, entity_id))
        return replace(assignment) if assignment else None

    async def upsert_assignment(self, assignment: FacetAssignment) -> FacetAssignment:
        key = (assignment.facet_id, assignment.entity_type, assignment.entity_id)
        existing = self.assignments.get(key)
        if existing is not None:
            assignment = replace(assignment, id=existing.id)
        self.assignments[key] = replace(assignment)
        return assignment

    async def deactivate_assignments(self, facet_id: str, entity_type: EntityType, entity_id: str) -> int:
        key = (facet_id, entity_type, entity_id)
        existing = self.assignments.get(key)
        if existing is None or not existing.is_active:
            return 0
        self.assignments[key] = replace(existing, is_active=False)
        return 1

    async def append_history(self, entry: FacetAssignmentHistory) -> None:
        self.history.append(replace(entry, id=entry.id or f"history-{len(self.history) + 1}"))

    async def list_history(
        self, entity_type: EntityType, entity_id: str, limit: int = 100
    ) -> List[FacetAssignmentHistory]:
        rows = [h for h in self.history if h.entity_type == entity_type and h.entity_id == entity_id]
        return list(reversed(rows))[:limit]

    # Audit log

    async def insert_audit_record(self, record: AuditRecord) -> None:
        self.audit_log.append(record)

    # Users

    def add_user(self, user: UserRecord) -> UserRecord:
        self.users[user.id] = user
        return user

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self.users.get(user_id)

    async def get_line_manager_id(self, user_id: str) -> Optional[str]:
        user = self.users.get(user_id)
        return user.line_manager_id if user else None

    async def list_direct_report_ids(self, manager_id: str) -> List[str]:
        return [u.id for u in self.users.values() if u.line_manager_id == manager_id]

    # Connections

    def add_friend_request(self, request: FriendRequest) -> FriendRequest:
        self.friend_requests.append(request)
        return request

    async def has_accepted_connection(self, user_a: str, user_b: str) -> bool:
        pair = {user_a, user_b}
        return any(
            r.status == FriendRequestStatus.ACCEPTED and {r.sender_id, r.receiver_id} == pair
            for r in self.friend_requests
        )

    # Communities

    def add_membership(self, member: GroupMember) -> GroupMember:
        self.memberships[(member.group_id, member.user_id)] = member
        return member

    def add_application(self, group_id: str, user_id: str) -> None:
        self.pending_applications.add((group_id, user_id))

    def add_group_post(self, post_id: str, group_id: str) -> None:
        """Record ``post_id`` as an approved post in ``group_id``."""
        self.group_posts[post_id] = group_id

    async def get_membership(self, group_id: str, user_id: str) -> Optional[GroupMember]:
        return self.memberships.get((group_id, user_id))

    async def has_pending_application(self, group_id: str, user_id: str) -> bool:
        return (group_id, user_id) in self.pending_applications

    async def find_approved_group_for_post(self, post_id: str) -> Optional[str]:
        return self.group_posts.get(post_id)
