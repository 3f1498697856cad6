"""
Well-known platform facets and the default catalog.
"""

from typing import List

from .models import FacetDefinition, FacetRef

# Elevated roles
GLOBAL_ADMIN = FacetRef("platform-admin", "global")
DIVISIONAL_ADMIN = FacetRef("platform-admin", "divisional")
FACET_ADMIN = FacetRef("facet-admin", "global")

# User roles
ROLE_ADMIN = FacetRef("user-role", "admin")
ROLE_MANAGER = FacetRef("user-role", "manager")
ROLE_DIRECTOR = FacetRef("user-role", "director")
ROLE_HR_ADMIN = FacetRef("user-role", "hr-admin")
ROLE_MODERATOR = FacetRef("user-role", "moderator")

# Feature gates
LOCKED_POSTS = FacetRef("feature-access", "locked-posts")
CAN_CREATE_GROUPS = FacetRef("group-permissions", "can-create-groups")

# Organisation lookups (scope, name)
DIVISION_SCOPE = "org-division"
DIVISION_NAME = "division"
DEPARTMENT_SCOPE = "org-department"
DEPARTMENT_NAME = "department"

ORG_SCOPES = frozenset({DIVISION_SCOPE, DEPARTMENT_SCOPE})

# user-role names a manager may not hand out
ADMIN_ROLE_NAMES = frozenset({ROLE_ADMIN.name, ROLE_HR_ADMIN.name})

DEFAULT_DIVISIONS = ("engineering", "sales", "marketing", "hr", "finance")


def default_definitions() -> List[FacetDefinition]:
    """Catalog seeded into a fresh store."""
    definitions = [
        FacetDefinition(
            id="facet-platform-admin-global",
            scope=GLOBAL_ADMIN.scope,
            name=GLOBAL_ADMIN.name,
            description="Global administrator with full system access",
            hierarchy_level=100,
            requires_audit=True,
            requires_review=True,
            review_days=90,
        ),
        FacetDefinition(
            id="facet-platform-admin-divisional",
            scope=DIVISIONAL_ADMIN.scope,
            name=DIVISIONAL_ADMIN.name,
            description="Divisional administrator with access to division resources",
            hierarchy_level=50,
            requires_audit=True,
            requires_review=True,
            review_days=90,
        ),
        FacetDefinition(
            id="facet-facet-admin-global",
            scope=FACET_ADMIN.scope,
            name=FACET_ADMIN.name,
            description="Can assign and revoke any facet",
            hierarchy_level=100,
            requires_audit=True,
            requires_review=True,
            review_days=30,
        ),
        FacetDefinition(
            id="facet-feature-access-locked-posts",
            scope=LOCKED_POSTS.scope,
            name=LOCKED_POSTS.name,
            description="Can create and manage locked posts",
            hierarchy_level=10,
            requires_audit=True,
            expiry_days=365,
        ),
        FacetDefinition(
            id="facet-group-permissions-can-create-groups",
            scope=CAN_CREATE_GROUPS.scope,
            name=CAN_CREATE_GROUPS.name,
            description="Can create communities",
            hierarchy_level=10,
        ),
    ]

    roles = (
        (ROLE_ADMIN, "User has admin role", 50),
        (ROLE_DIRECTOR, "User has director role", 45),
        (ROLE_MANAGER, "User has manager role", 40),
        (ROLE_HR_ADMIN, "User has HR admin role", 35),
        (ROLE_MODERATOR, "User has moderator role", 30),
    )
    for ref, description, level in roles:
        definitions.append(FacetDefinition(
            id=f"facet-user-role-{ref.name}",
            scope=ref.scope,
            name=ref.name,
            description=description,
            hierarchy_level=level,
            requires_audit=True,
            requires_review=True,
            review_days=180,
        ))

    for division in DEFAULT_DIVISIONS:
        definitions.append(FacetDefinition(
            id=f"facet-org-division-{division}",
            scope=DIVISION_SCOPE,
            name=DIVISION_NAME,
            value=division,
            description=f"User belongs to {division} division",
        ))

    return definitions
