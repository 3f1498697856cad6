"""
Facet data models.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from shared.errors import InvalidFacetError


class EntityType(str, Enum):
    """Kinds of entity a facet can be attached to."""
    USER = "USER"
    GROUP = "GROUP"
    POST = "POST"
    MEDIA = "MEDIA"


class FacetAction(str, Enum):
    """Actions recorded in assignment history."""
    ASSIGNED = "ASSIGNED"
    REVOKED = "REVOKED"
    EXPIRED = "EXPIRED"
    REVIEWED = "REVIEWED"
    EXTENDED = "EXTENDED"
    MODIFIED = "MODIFIED"


@dataclass(frozen=True)
class FacetRef:
    """Typed facet reference, ``scope:name`` or ``scope:name:value``."""
    scope: str
    name: str
    value: str = ""

    @classmethod
    def parse(cls, facet: Union[str, "FacetRef"]) -> "FacetRef":
        """Parse a delimited reference; values may themselves contain ``:``."""
        if isinstance(facet, FacetRef):
            return facet

        parts = facet.split(":")
        if len(parts) < 2 or not parts[0] or not parts[1]:
            raise InvalidFacetError(facet)

        return cls(scope=parts[0], name=parts[1], value=":".join(parts[2:]))

    def __str__(self) -> str:
        if self.value:
            return f"{self.scope}:{self.name}:{self.value}"
        return f"{self.scope}:{self.name}"


@dataclass
class FacetDefinition:
    """Catalog entry for a facet."""
    id: str
    scope: str
    name: str
    value: str = ""
    description: Optional[str] = None
    hierarchy_level: int = 0
    requires_audit: bool = False
    expiry_days: Optional[int] = None
    requires_review: bool = False
    review_days: Optional[int] = None
    parent_facet_id: Optional[str] = None
    is_active: bool = True

    @property
    def ref(self) -> FacetRef:
        return FacetRef(self.scope, self.name, self.value)


@dataclass
class FacetAssignment:
    """Binding of a facet definition to an entity."""
    id: str
    facet_id: str
    entity_type: EntityType
    entity_id: str
    assigned_by: Optional[str]
    assigned_at: datetime
    is_active: bool = True
    expires_at: Optional[datetime] = None
    review_at: Optional[datetime] = None
    reason: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def is_effective(self, now: datetime) -> bool:
        """Active and not yet expired at ``now``."""
        return self.is_active and (self.expires_at is None or self.expires_at > now)


@dataclass
class FacetAssignmentHistory:
    """Append-only record of an assign or revoke."""
    facet_id: str
    entity_type: EntityType
    entity_id: str
    action: FacetAction
    performed_by: Optional[str]
    performed_at: datetime
    reason: Optional[str] = None
    expires_at: Optional[datetime] = None
    previous_expires_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None


@dataclass
class FacetWithAssignment:
    """An effective assignment joined with its definition."""
    facet: FacetDefinition
    assignment: FacetAssignment
    is_expired: bool
    needs_review: bool
