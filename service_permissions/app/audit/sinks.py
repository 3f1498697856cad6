"""
Audit delivery strategies.

``QueueAuditSink`` publishes to Kafka, ``StoreAuditSink`` writes straight to
the audit table, and ``FallbackAuditSink`` composes the two so a record is
written to the store whenever the queue cannot take it.
"""

from typing import Optional, Protocol

from shared.circuit_breaker import CircuitBreaker
from shared.errors import AuditDeliveryError, QueueUnavailableError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig, retry_on_exception

from .models import AuditRecord
from ..kafka.producer import KafkaProducerManager
from ..persistence.protocols import AuditLogRepository


class AuditSink(Protocol):
    """Destination for audit records."""

    channel: str

    async def write(self, record: AuditRecord) -> None:
        """Record ``record`` or raise."""
        ...


class QueueAuditSink:
    """Publishes audit records to a Kafka topic."""

    channel = "queue"

    def __init__(
        self,
        producer: KafkaProducerManager,
        topic: str,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.producer = producer
        self.topic = topic
        self.breaker = breaker or CircuitBreaker(name="audit-queue")
        self.logger = get_logger("permissions.audit.queue")

    async def write(self, record: AuditRecord) -> None:
        await self.breaker.call(self._publish, record)

    async def _publish(self, record: AuditRecord) -> None:
        sent = await self.producer.send_message(
            topic=self.topic,
            message=record.to_message(),
            key=record.user_id,
            headers={"request-id": record.request_id} if record.request_id else None
        )
        if not sent:
            raise QueueUnavailableError(
                "Audit record was not acknowledged",
                {"topic": self.topic, "operation": record.operation}
            )


class StoreAuditSink:
    """Writes audit records directly to the durable audit log."""

    channel = "store"

    def __init__(self, repository: AuditLogRepository, retry: Optional[RetryConfig] = None):
        self.repository = repository
        self._insert = retry_on_exception((Exception,), retry or RetryConfig())(
            self.repository.insert_audit_record
        )

    async def write(self, record: AuditRecord) -> None:
        await self._insert(record)


class FallbackAuditSink:
    """Tries ``primary`` and falls back to ``fallback`` on any failure."""

    def __init__(
        self,
        primary: AuditSink,
        fallback: AuditSink,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.primary = primary
        self.fallback = fallback
        self.metrics = metrics
        self.logger = get_logger("permissions.audit.fallback")

    @property
    def channel(self) -> str:
        return self.primary.channel

    async def write(self, record: AuditRecord) -> None:
        try:
            await self.primary.write(record)
            if self.metrics:
                self.metrics.record_audit(self.primary.channel)
            return
        except Exception as e:
            self.logger.warning(
                "Primary audit channel failed, writing to fallback",
                channel=self.primary.channel,
                operation=record.operation,
                error=str(e)
            )
            primary_error = e

        if self.metrics:
            self.metrics.record_audit_fallback()

        try:
            await self.fallback.write(record)
        except Exception as e:
            self.logger.error(
                "Audit record lost on every channel",
                operation=record.operation,
                request_id=record.request_id,
                primary_error=str(primary_error),
                error=str(e)
            )
            raise AuditDeliveryError(details={
                "operation": record.operation,
                "primary_error": str(primary_error),
                "fallback_error": str(e),
            }) from e

        if self.metrics:
            self.metrics.record_audit(self.fallback.channel)
