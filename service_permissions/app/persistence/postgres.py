"""
PostgreSQL persistence layer for the permissions engine.

Owns the facet and audit tables; reads the platform's ``users``,
``friend_requests``, ``group_members``, ``group_applications`` and
``group_posts`` tables without writing to them.
"""

import json
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

import asyncpg

from shared.errors import PersistenceError
from shared.logging import get_logger

from ..audit.models import AuditRecord
from ..facets.models import (
    EntityType, FacetAction, FacetAssignment, FacetAssignmentHistory, FacetDefinition, FacetRef
)
from ..policies.models import GroupMember, GroupMemberRole, GroupMemberStatus, UserRecord


class PostgreSQLPersistence:
    """asyncpg-backed implementation of every storage interface."""

    def __init__(self, dsn: str, min_size: int = 2, max_size: int = 10):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.logger = get_logger("permissions.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=30,
                init=self._init_connection
            )

            await self._create_tables()

            self.logger.info("PostgreSQL persistence started")

        except Exception as e:
            self.logger.error("Failed to start PostgreSQL persistence", error=str(e))
            raise PersistenceError(str(e), {"stage": "start"})

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL persistence stopped")

    @staticmethod
    async def _init_connection(conn):
        await conn.set_type_codec("jsonb", encoder=json.dumps, decoder=json.loads, schema="pg_catalog")

    async def _create_tables(self):
        """Create the tables this engine owns."""
        async with self.pool.acquire() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS facets (
                    id VARCHAR(255) PRIMARY KEY,
                    scope VARCHAR(100) NOT NULL,
                    name VARCHAR(100) NOT NULL,
                    value VARCHAR(255) NOT NULL DEFAULT '',
                    description TEXT,
                    hierarchy_level INTEGER NOT NULL DEFAULT 0,
                    requires_audit BOOLEAN NOT NULL DEFAULT FALSE,
                    expiry_days INTEGER,
                    requires_review BOOLEAN NOT NULL DEFAULT FALSE,
                    review_days INTEGER,
                    parent_facet_id VARCHAR(255) REFERENCES facets(id),
                    is_active BOOLEAN NOT NULL DEFAULT TRUE,
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
                    UNIQUE (scope, name, value)
                );
            """)

            await conn.execute("""
                CREATE TABLE IF NOT EXISTS facet_assignments (
                    id VARCHAR(255) PRIMARY KEY,
                    facet_id VARCHAR(255) NOT NULL REFERENCES facets(id) ON DELETE CASCADE,
                    entity_type VARCHAR(20) NOT NULL,
                    entity_id VARCHAR(255) NOT NULL,
                    assigned_by VARCHAR(255),
                    assigned_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
                    expires_at TIMESTAMP WITH TIME ZONE,
                    review_at TIMESTAMP WITH TIME ZONE,
                    reason TEXT,
                    metadata JSONB NOT NULL DEFAULT '{}',
                    is_active BOOLEAN NOT NULL DEFAULT TRUE,
                    UNIQUE (facet_id, entity_type, entity_id)
                );
            """)

            await conn.execute("""
                CREATE TABLE IF NOT EXISTS facet_assignment_history (
                    id VARCHAR(255) PRIMARY KEY,
                    facet_id VARCHAR(255) NOT NULL REFERENCES facets(id) ON DELETE CASCADE,
                    entity_type VARCHAR(20) NOT NULL,
                    entity_id VARCHAR(255) NOT NULL,
                    action VARCHAR(20) NOT NULL,
                    performed_by VARCHAR(255),
                    performed_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
                    reason TEXT,
                    expires_at TIMESTAMP WITH TIME ZONE,
                    previous_expires_at TIMESTAMP WITH TIME ZONE,
                    metadata JSONB NOT NULL DEFAULT '{}'
                );
            """)

            await conn.execute("""
                CREATE TABLE IF NOT EXISTS permission_audit_logs (
                    id VARCHAR(255) PRIMARY KEY,
                    user_id VARCHAR(255),
                    resource_type VARCHAR(100) NOT NULL,
                    resource_id VARCHAR(255) NOT NULL DEFAULT '',
                    operation VARCHAR(100) NOT NULL,
                    granted BOOLEAN NOT NULL,
                    reason TEXT NOT NULL,
                    reason_code VARCHAR(100) NOT NULL,
                    ip_address VARCHAR(64),
                    user_agent TEXT,
                    request_id VARCHAR(255),
                    execution_time_ms DOUBLE PRECISION,
                    facets_checked JSONB NOT NULL DEFAULT '[]',
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                );
            """)

            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_facet_assignments_entity
                ON facet_assignments(entity_type, entity_id, is_active);
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_facet_assignments_expires ON facet_assignments(expires_at);
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_facet_history_entity
                ON facet_assignment_history(entity_type, entity_id, performed_at DESC);
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_audit_user_created ON permission_audit_logs(user_id, created_at);
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_audit_resource
                ON permission_audit_logs(resource_type, resource_id);
            """)

    async def seed_definitions(self, definitions: Iterable[FacetDefinition]) -> None:
        """Insert catalog entries that do not exist yet."""
        async with self.pool.acquire() as conn:
            await conn.executemany("""
                INSERT INTO facets (
                    id, scope, name, value, description, hierarchy_level, requires_audit,
                    expiry_days, requires_review, review_days, parent_facet_id, is_active
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
                ON CONFLICT (scope, name, value) DO NOTHING
            """, [
                (d.id, d.scope, d.name, d.value, d.description, d.hierarchy_level, d.requires_audit,
                 d.expiry_days, d.requires_review, d.review_days, d.parent_facet_id, d.is_active)
                for d in definitions
            ])

    # Catalog

    async def find_definition(self, ref: FacetRef) -> Optional[FacetDefinition]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow("""
                SELECT * FROM facets WHERE scope = $1 AND name = $2 AND value = $3
            """, ref.scope, ref.name, ref.value)

            return self._row_to_definition(row) if row else None

    async def list_definitions(self, scope: Optional[str] = None) -> List[FacetDefinition]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT * FROM facets
                WHERE ($1::text IS NULL OR scope = $1)
                ORDER BY scope, name, value
            """, scope)

            return [self._row_to_definition(row) for row in rows]

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
        async with self.pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT f.*,
                       a.id AS assignment_id, a.facet_id, a.entity_type, a.entity_id, a.assigned_by,
                       a.assigned_at, a.expires_at, a.review_at, a.reason, a.metadata,
                       a.is_active AS assignment_active
                FROM facet_assignments a
                JOIN facets f ON f.id = a.facet_id
                WHERE a.entity_type = $1
                  AND a.entity_id = $2
                  AND a.is_active = TRUE
                  AND (a.expires_at IS NULL OR a.expires_at > $3)
                  AND ($4::text IS NULL OR f.scope = $4)
                  AND ($5::text IS NULL OR f.name = $5)
                  AND ($6::text IS NULL OR f.value = $6)
                ORDER BY f.hierarchy_level DESC, a.assigned_at ASC
            """, entity_type.value, entity_id, now, scope, name, value)

            return [
                (self._row_to_definition(row), self._row_to_assignment(row, id_column="assignment_id",
                                                                       active_column="assignment_active"))
                for row in rows
            ]

    async def get_assignment(
        self, facet_id: str, entity_type: EntityType, entity_id: str
    ) -> Optional[FacetAssignment]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow("""
                SELECT * FROM facet_assignments
                WHERE facet_id = $1 AND entity_type = $2 AND entity_id = $3
            """, facet_id, entity_type.value, entity_id)

            return self._row_to_assignment(row) if row else None

    async def upsert_assignment(self, assignment: FacetAssignment) -> FacetAssignment:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow("""
                INSERT INTO facet_assignments (
                    id, facet_id, entity_type, entity_id, assigned_by, assigned_at,
                    expires_at, review_at, reason, metadata, is_active
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                ON CONFLICT (facet_id, entity_type, entity_id) DO UPDATE SET
                    assigned_by = EXCLUDED.assigned_by,
                    assigned_at = EXCLUDED.assigned_at,
                    expires_at = EXCLUDED.expires_at,
                    review_at = EXCLUDED.review_at,
                    reason = EXCLUDED.reason,
                    metadata = EXCLUDED.metadata,
                    is_active = EXCLUDED.is_active
                RETURNING *
            """,
                assignment.id, assignment.facet_id, assignment.entity_type.value, assignment.entity_id,
                assignment.assigned_by, assignment.assigned_at, assignment.expires_at, assignment.review_at,
                assignment.reason, assignment.metadata, assignment.is_active
            )

            return self._row_to_assignment(row)

    async def deactivate_assignments(self, facet_id: str, entity_type: EntityType, entity_id: str) -> int:
        async with self.pool.acquire() as conn:
            result = await conn.execute("""
                UPDATE facet_assignments SET is_active = FALSE
                WHERE facet_id = $1 AND entity_type = $2 AND entity_id = $3 AND is_active = TRUE
            """, facet_id, entity_type.value, entity_id)

            # asyncpg returns the command tag, e.g. "UPDATE 1"
            return int(result.split()[-1])

    async def append_history(self, entry: FacetAssignmentHistory) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute("""
                INSERT INTO facet_assignment_history (
                    id, facet_id, entity_type, entity_id, action, performed_by, performed_at,
                    reason, expires_at, previous_expires_at, metadata
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
            """,
                entry.id or str(uuid.uuid4()), entry.facet_id, entry.entity_type.value, entry.entity_id,
                entry.action.value, entry.performed_by, entry.performed_at, entry.reason,
                entry.expires_at, entry.previous_expires_at, entry.metadata
            )

    async def list_history(
        self, entity_type: EntityType, entity_id: str, limit: int = 100
    ) -> List[FacetAssignmentHistory]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT * FROM facet_assignment_history
                WHERE entity_type = $1 AND entity_id = $2
                ORDER BY performed_at DESC
                LIMIT $3
            """, entity_type.value, entity_id, limit)

            return [self._row_to_history(row) for row in rows]

    # Audit log

    async def insert_audit_record(self, record: AuditRecord) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute("""
                INSERT INTO permission_audit_logs (
                    id, user_id, resource_type, resource_id, operation, granted, reason, reason_code,
                    ip_address, user_agent, request_id, execution_time_ms, facets_checked, created_at
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14)
            """,
                str(uuid.uuid4()), record.user_id, record.resource_type, record.resource_id,
                record.operation, record.granted, record.reason, record.reason_code,
                record.ip_address, record.user_agent, record.request_id, record.execution_time_ms,
                record.facets_checked, record.created_at
            )

    # Users

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow("""
                SELECT id, name, is_private, line_manager_id, can_publish_locked_media
                FROM users WHERE id = $1
            """, user_id)

            if not row:
                return None

            return UserRecord(
                id=row['id'],
                name=row['name'],
                is_private=row['is_private'],
                line_manager_id=row['line_manager_id'],
                can_publish_locked_media=row['can_publish_locked_media']
            )

    async def get_line_manager_id(self, user_id: str) -> Optional[str]:
        async with self.pool.acquire() as conn:
            return await conn.fetchval("SELECT line_manager_id FROM users WHERE id = $1", user_id)

    async def list_direct_report_ids(self, manager_id: str) -> List[str]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch("SELECT id FROM users WHERE line_manager_id = $1", manager_id)
            return [row['id'] for row in rows]

    # Connections

    async def has_accepted_connection(self, user_a: str, user_b: str) -> bool:
        async with self.pool.acquire() as conn:
            found = await conn.fetchval("""
                SELECT EXISTS (
                    SELECT 1 FROM friend_requests
                    WHERE status = 'ACCEPTED'
                      AND ((sender_id = $1 AND receiver_id = $2) OR (sender_id = $2 AND receiver_id = $1))
                )
            """, user_a, user_b)
            return bool(found)

    # Communities

    async def get_membership(self, group_id: str, user_id: str) -> Optional[GroupMember]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow("""
                SELECT group_id, user_id, role, status, suspended_at
                FROM group_members WHERE group_id = $1 AND user_id = $2
            """, group_id, user_id)

            if not row:
                return None

            return GroupMember(
                group_id=row['group_id'],
                user_id=row['user_id'],
                role=GroupMemberRole(row['role']),
                status=GroupMemberStatus(row['status']),
                suspended_at=row['suspended_at']
            )

    async def has_pending_application(self, group_id: str, user_id: str) -> bool:
        async with self.pool.acquire() as conn:
            found = await conn.fetchval("""
                SELECT EXISTS (
                    SELECT 1 FROM group_applications
                    WHERE group_id = $1 AND applicant_id = $2 AND status = 'PENDING'
                )
            """, group_id, user_id)
            return bool(found)

    async def find_approved_group_for_post(self, post_id: str) -> Optional[str]:
        async with self.pool.acquire() as conn:
            return await conn.fetchval("""
                SELECT group_id FROM group_posts
                WHERE post_id = $1 AND status = 'APPROVED'
                LIMIT 1
            """, post_id)

    async def health_check(self) -> bool:
        """Check database health."""
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except Exception:
            return False

    def _row_to_definition(self, row) -> FacetDefinition:
        """Convert database row to FacetDefinition."""
        return FacetDefinition(
            id=row['id'],
            scope=row['scope'],
            name=row['name'],
            value=row['value'],
            description=row['description'],
            hierarchy_level=row['hierarchy_level'],
            requires_audit=row['requires_audit'],
            expiry_days=row['expiry_days'],
            requires_review=row['requires_review'],
            review_days=row['review_days'],
            parent_facet_id=row['parent_facet_id'],
            is_active=row['is_active']
        )

    def _row_to_assignment(self, row, id_column: str = "id", active_column: str = "is_active") -> FacetAssignment:
        """Convert database row to FacetAssignment."""
        return FacetAssignment(
            id=row[id_column],
            facet_id=row['facet_id'],
            entity_type=EntityType(row['entity_type']),
            entity_id=row['entity_id'],
            assigned_by=row['assigned_by'],
            assigned_at=row['assigned_at'],
            is_active=row[active_column],
            expires_at=row['expires_at'],
            review_at=row['review_at'],
            reason=row['reason'],
            metadata=_as_dict(row['metadata'])
        )

    def _row_to_history(self, row) -> FacetAssignmentHistory:
        return FacetAssignmentHistory(
            id=row['id'],
            facet_id=row['facet_id'],
            entity_type=EntityType(row['entity_type']),
            entity_id=row['entity_id'],
            action=FacetAction(row['action']),
            performed_by=row['performed_by'],
            performed_at=row['performed_at'],
            reason=row['reason'],
            expires_at=row['expires_at'],
            previous_expires_at=row['previous_expires_at'],
            metadata=_as_dict(row['metadata'])
        )


def _as_dict(value: Any) -> Dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, str):
        return json.loads(value)
    return dict(value)
