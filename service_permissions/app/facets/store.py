"""
Facet assignment store.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from shared.errors import FacetNotDefinedError
from shared.logging import get_logger

from .models import (
    EntityType, FacetAction, FacetAssignment, FacetAssignmentHistory,
    FacetDefinition, FacetRef, FacetWithAssignment
)
from ..persistence.protocols import FacetRepository

FacetLike = Union[str, FacetRef]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FacetStore:
    """Answers facet questions and records facet changes.

    Effectiveness is evaluated against ``clock()`` on every call; nothing is
    cached, so an expiry takes effect the moment it passes.
    """

    def __init__(self, repository: FacetRepository, clock: Callable[[], datetime] = utcnow):
        self.repository = repository
        self.clock = clock
        self.logger = get_logger("permissions.facets")

    async def has_facet(self, entity_type: EntityType, entity_id: str, facet: FacetLike) -> bool:
        """True iff an effective assignment matches scope, name and value."""
        ref = FacetRef.parse(facet)
        matches = await self.repository.find_effective_assignments(
            entity_type, entity_id, self.clock(),
            scope=ref.scope, name=ref.name, value=ref.value
        )
        return bool(matches)

    async def get_facets(
        self,
        entity_type: EntityType,
        entity_id: str,
        scope: Optional[str] = None,
    ) -> List[FacetWithAssignment]:
        """All effective assignments, annotated with expiry and review flags."""
        now = self.clock()
        rows = await self.repository.find_effective_assignments(entity_type, entity_id, now, scope=scope)

        return [
            FacetWithAssignment(
                facet=definition,
                assignment=assignment,
                is_expired=assignment.expires_at is not None and assignment.expires_at <= now,
                needs_review=assignment.review_at is not None and assignment.review_at <= now,
            )
            for definition, assignment in rows
        ]

    async def get_facet_value(
        self, entity_type: EntityType, entity_id: str, scope: str, name: str
    ) -> Optional[str]:
        """Value of a single-valued facet, or its name when no value was stored."""
        rows = await self.repository.find_effective_assignments(
            entity_type, entity_id, self.clock(), scope=scope, name=name
        )
        if not rows:
            return None

        definition, _ = rows[0]
        return definition.value or definition.name

    async def has_facet_at_level(
        self,
        entity_type: EntityType,
        entity_id: str,
        facet: FacetLike,
        minimum_level: int,
    ) -> bool:
        """True iff an effective scope/name match ranks at or above ``minimum_level``."""
        ref = FacetRef.parse(facet)
        rows = await self.repository.find_effective_assignments(
            entity_type, entity_id, self.clock(), scope=ref.scope, name=ref.name
        )
        return any(definition.hierarchy_level >= minimum_level for definition, _ in rows)

    async def assign(
        self,
        facet: FacetLike,
        entity_type: EntityType,
        entity_id: str,
        actor: Optional[str],
        reason: str,
        expiry_days: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> FacetAssignment:
        """Assign a facet, reactivating and refreshing any existing row.

        Raises:
            FacetNotDefinedError: the facet has no catalog definition.
        """
        ref = FacetRef.parse(facet)
        definition = await self.repository.find_definition(ref)
        if definition is None:
            raise FacetNotDefinedError(str(ref))

        now = self.clock()
        days = expiry_days or definition.expiry_days
        expires_at = now + timedelta(days=days) if days else None
        review_at = now + timedelta(days=definition.review_days) if definition.review_days else None

        existing = await self.repository.get_assignment(definition.id, entity_type, entity_id)
        previous_expires_at = existing.expires_at if existing and existing.is_active else None

        assignment = await self.repository.upsert_assignment(FacetAssignment(
            id=existing.id if existing else str(uuid.uuid4()),
            facet_id=definition.id,
            entity_type=entity_type,
            entity_id=entity_id,
            assigned_by=actor,
            assigned_at=now,
            is_active=True,
            expires_at=expires_at,
            review_at=review_at,
            reason=reason,
            metadata=dict(metadata or {}),
        ))

        await self.repository.append_history(FacetAssignmentHistory(
            facet_id=definition.id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=FacetAction.ASSIGNED,
            performed_by=actor,
            performed_at=now,
            reason=reason,
            expires_at=expires_at,
            previous_expires_at=previous_expires_at,
            metadata=dict(metadata or {}),
        ))

        self.logger.info(
            "Facet assigned",
            facet=str(ref),
            entity_type=entity_type.value,
            entity_id=entity_id,
            actor=actor,
            expires_at=expires_at.isoformat() if expires_at else None,
            audited=definition.requires_audit
        )
        return assignment

    async def revoke(
        self,
        facet: FacetLike,
        entity_type: EntityType,
        entity_id: str,
        actor: Optional[str],
        reason: str,
    ) -> None:
        """Soft-revoke a facet; a silent no-op when nothing is active."""
        ref = FacetRef.parse(facet)
        definition = await self.repository.find_definition(ref)
        if definition is None:
            self.logger.debug("Revoke skipped, facet not defined", facet=str(ref))
            return

        changed = await self.repository.deactivate_assignments(definition.id, entity_type, entity_id)
        if not changed:
            self.logger.debug(
                "Revoke skipped, no active assignment",
                facet=str(ref),
                entity_type=entity_type.value,
                entity_id=entity_id
            )
            return

        await self.repository.append_history(FacetAssignmentHistory(
            facet_id=definition.id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=FacetAction.REVOKED,
            performed_by=actor,
            performed_at=self.clock(),
            reason=reason,
        ))

        self.logger.info(
            "Facet revoked",
            facet=str(ref),
            entity_type=entity_type.value,
            entity_id=entity_id,
            actor=actor
        )

    async def get_history(
        self, entity_type: EntityType, entity_id: str, limit: int = 100
    ) -> List[FacetAssignmentHistory]:
        return await self.repository.list_history(entity_type, entity_id, limit)

    async def list_definitions(self, scope: Optional[str] = None) -> List[FacetDefinition]:
        return await self.repository.list_definitions(scope)

    # User conveniences

    async def user_has_facet(self, user_id: str, facet: FacetLike) -> bool:
        return await self.has_facet(EntityType.USER, user_id, facet)

    async def user_get_facets(self, user_id: str, scope: Optional[str] = None) -> List[FacetWithAssignment]:
        return await self.get_facets(EntityType.USER, user_id, scope)

    async def user_get_facet_value(self, user_id: str, scope: str, name: str) -> Optional[str]:
        return await self.get_facet_value(EntityType.USER, user_id, scope, name)
