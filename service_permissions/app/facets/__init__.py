"""
Facet catalog and assignment store.
"""

from .models import (
    EntityType, FacetAction, FacetRef, FacetDefinition, FacetAssignment,
    FacetAssignmentHistory, FacetWithAssignment
)
from .store import FacetStore

__all__ = [
    "EntityType",
    "FacetAction",
    "FacetRef",
    "FacetDefinition",
    "FacetAssignment",
    "FacetAssignmentHistory",
    "FacetWithAssignment",
    "FacetStore",
]
