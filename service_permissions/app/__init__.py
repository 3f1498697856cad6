"""
Facet permissions engine.

This package decides whether a caller may perform a sensitive operation
and durably records every decision. It provides:

- app.facets: Facet catalog and time-bounded assignment store.
- app.relations: Friendship and management-hierarchy resolution.
- app.policies: One decision policy per resource kind.
- app.guard: Fail-closed wrapper and result aggregators.
- app.audit: Two-tier audit delivery (queue, then durable store).
- app.persistence: PostgreSQL and in-memory backends.
- app.main: PermissionsService composition root.

Guidelines:
- Decision functions return PermissionResult; they raise only on
  configuration errors.
- Call decision functions through app.guard.safe_permission_check.
- Facet effectiveness is computed at read time and never cached.
"""
