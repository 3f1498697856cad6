"""
Permissions engine entry point.

Wires the facet store, relationship resolver, decision policies and audit
sink over one storage backend. There is no transport here: callers embed
``PermissionsService`` in-process and route every access decision through
``authorize``.
"""

import time
from typing import Any, Dict, List, Optional, Union

from prometheus_client import REGISTRY

from shared.circuit_breaker import CircuitBreaker
from shared.config import PermissionsConfig, get_config
from shared.errors import AuditDeliveryError, PersistenceError, QueueUnavailableError
from shared.logging import clear_context, configure_logging, get_logger, set_request_id, set_user_context
from shared.metrics import MetricsCollector, get_metrics_collector
from shared.retry import RetryConfig, retry_on_exception

from .audit.auditor import PermissionAuditor
from .audit.models import AuditOptions
from .audit.sinks import AuditSink, FallbackAuditSink, QueueAuditSink, StoreAuditSink
from .context import AuthenticationContext
from .facets import catalog
from .facets.models import EntityType, FacetAssignment, FacetRef, FacetWithAssignment
from .facets.store import FacetStore
from .guard import CheckFn, filter_by_permission, require_all, require_any, safe_permission_check
from .kafka.producer import KafkaProducerManager
from .persistence.postgres import PostgreSQLPersistence
from .policies.engine import DecisionEngine
from .relations.resolver import RelationshipResolver
from .results import PermissionResult, ReasonCode, deny

__all__ = [
    "PermissionsService",
    "filter_by_permission",
    "require_all",
    "require_any",
]


class PermissionsService:
    """Permissions engine implementation."""

    def __init__(
        self,
        config: Optional[PermissionsConfig] = None,
        backend: Optional[Any] = None,
        producer: Optional[KafkaProducerManager] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.config = config or get_config()

        configure_logging(self.config.service_name, self.config.log_level, self.config.log_format)
        self.logger = get_logger("permissions.service")
        self.metrics = metrics or get_metrics_collector(self.config.service_name)

        self.backend = backend or PostgreSQLPersistence(
            self.config.postgres_dsn,
            min_size=self.config.postgres_min_pool,
            max_size=self.config.postgres_max_pool
        )
        self.producer = producer

        self.facets = FacetStore(self.backend)
        self.relations = RelationshipResolver(
            self.backend, self.backend, self.facets, max_depth=self.config.hierarchy_max_depth
        )
        self.engine = DecisionEngine(self.facets, self.relations, self.backend)

        self.store_sink = StoreAuditSink(self.backend)
        self.auditor = PermissionAuditor(self.store_sink, self.store_sink, self.metrics)
        self._started = False

    async def start(self):
        """Start the storage backend, then the audit queue."""
        start_backend = retry_on_exception(
            (PersistenceError,), RetryConfig(max_attempts=3, base_delay=0.5)
        )(self.backend.start)
        await start_backend()

        if self.config.seed_catalog:
            await self.backend.seed_definitions(catalog.default_definitions())

        self.auditor.queued = await self._build_queued_sink()

        if self.config.metrics_port:
            self.metrics.start_metrics_server(self.config.metrics_port)

        self._started = True
        self.logger.info(
            "Permissions engine started",
            audit_channel=self.auditor.queued.channel,
            hierarchy_max_depth=self.config.hierarchy_max_depth
        )

    async def stop(self):
        """Stop the audit queue, then the storage backend."""
        if self.producer and self.producer.started:
            await self.producer.stop()
        await self.backend.stop()

        self._started = False
        self.logger.info("Permissions engine stopped")

    async def _build_queued_sink(self) -> AuditSink:
        """Queue-with-fallback sink, or the store alone when no queue is reachable."""
        if self.producer is None:
            self.logger.info("No audit queue configured, writing audit records directly")
            return self.store_sink

        if not self.producer.started:
            try:
                await self.producer.start()
            except QueueUnavailableError as e:
                self.logger.warning("Audit queue unavailable, writing audit records directly", error=e.message)
                return self.store_sink

        queue_sink = QueueAuditSink(
            self.producer,
            self.config.audit_topic,
            CircuitBreaker(
                failure_threshold=self.config.audit_breaker_failure_threshold,
                recovery_timeout=self.config.audit_breaker_recovery_timeout,
                name="audit-queue"
            )
        )
        return FallbackAuditSink(queue_sink, self.store_sink, self.metrics)

    async def health_check(self) -> Dict[str, Any]:
        """Report backend and audit channel health."""
        backend_ok = await self.backend.health_check()

        audit_queue = "disabled"
        if isinstance(self.auditor.queued, FallbackAuditSink):
            breaker = self.auditor.queued.primary.breaker
            audit_queue = "degraded" if breaker.is_open() else "ok"

        return {
            "service": self.config.service_name,
            "status": "ok" if backend_ok and self._started else "error",
            "dependencies": {
                "store": "ok" if backend_ok else "error",
                "audit_queue": audit_queue,
            },
        }

    # Decisions

    async def authorize(
        self,
        check: CheckFn,
        ctx: AuthenticationContext,
        resource_type: str,
        operation: str,
        audit: Optional[AuditOptions] = None,
    ) -> PermissionResult:
        """Run ``check`` fail-closed, measure it and record the decision.

        A grant whose audit record cannot be delivered anywhere is returned as
        a denial.
        """
        set_request_id(ctx.request_id)
        set_user_context(ctx.user_id)
        try:
            return await self._decide(check, ctx, resource_type, operation, audit)
        finally:
            clear_context()

    async def _decide(
        self,
        check: CheckFn,
        ctx: AuthenticationContext,
        resource_type: str,
        operation: str,
        audit: Optional[AuditOptions],
    ) -> PermissionResult:
        start_time = time.perf_counter()
        result = await safe_permission_check(check, fallback_operation=operation)
        duration = time.perf_counter() - start_time

        if result.reason_code == ReasonCode.PERMISSION_CHECK_ERROR:
            self.metrics.record_check_error(operation)
        self.metrics.record_permission_check(operation, result.granted, duration)

        options = audit or AuditOptions(enabled=self.config.audit_enabled, asynchronous=self.config.audit_async)
        try:
            await self.auditor.audit_permission(
                result, ctx, resource_type, options, execution_time_ms=round(duration * 1000, 3)
            )
        except AuditDeliveryError as e:
            self.metrics.record_error("audit_delivery")
            if not result.granted:
                return result

            self.logger.error("Grant withheld, decision could not be audited", operation=operation)
            return deny(
                ctx.user_id,
                result.resource_id,
                operation,
                "Decision could not be recorded",
                ReasonCode.PERMISSION_CHECK_ERROR,
                {"error": e.message, **e.details}
            )

        return result

    # Administration surface

    async def assign_facet(
        self,
        facet: Union[str, FacetRef],
        entity_type: EntityType,
        entity_id: str,
        actor: Optional[str],
        reason: str,
        expiry_days: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> FacetAssignment:
        return await self.facets.assign(facet, entity_type, entity_id, actor, reason, expiry_days, metadata)

    async def revoke_facet(
        self,
        facet: Union[str, FacetRef],
        entity_type: EntityType,
        entity_id: str,
        actor: Optional[str],
        reason: str,
    ) -> None:
        await self.facets.revoke(facet, entity_type, entity_id, actor, reason)

    async def has_facet(self, entity_type: EntityType, entity_id: str, facet: Union[str, FacetRef]) -> bool:
        return await self.facets.has_facet(entity_type, entity_id, facet)

    async def get_facets(
        self, entity_type: EntityType, entity_id: str, scope: Optional[str] = None
    ) -> List[FacetWithAssignment]:
        return await self.facets.get_facets(entity_type, entity_id, scope)

    async def get_facet_value(self, entity_type: EntityType, entity_id: str, scope: str, name: str) -> Optional[str]:
        return await self.facets.get_facet_value(entity_type, entity_id, scope, name)


def create_service(**overrides) -> PermissionsService:
    """Build a service from environment configuration."""
    config = get_config(**overrides)
    producer = KafkaProducerManager(config.kafka_bootstrap, publish_timeout=config.kafka_publish_timeout)
    # Process-wide collector so the metrics server exposes it
    metrics = get_metrics_collector(config.service_name, REGISTRY)
    return PermissionsService(config, producer=producer, metrics=metrics)
