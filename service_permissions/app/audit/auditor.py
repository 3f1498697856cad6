"""
Permission decision auditing.
"""

from typing import Optional

from shared.errors import AuditDeliveryError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from .models import AuditOptions, AuditRecord
from .sinks import AuditSink, FallbackAuditSink
from ..context import AuthenticationContext
from ..results import PermissionResult


class PermissionAuditor:
    """Routes decisions to the asynchronous or direct audit channel.

    ``queued`` is normally a FallbackAuditSink over the queue and the store,
    so asynchronous delivery degrades to a blocking store write.
    """

    def __init__(
        self,
        queued: AuditSink,
        direct: AuditSink,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.queued = queued
        self.direct = direct
        self.metrics = metrics
        self.logger = get_logger("permissions.audit")

    async def audit_permission(
        self,
        result: PermissionResult,
        ctx: AuthenticationContext,
        resource_type: str,
        options: Optional[AuditOptions] = None,
        execution_time_ms: Optional[float] = None,
    ) -> None:
        """Record one decision; a no-op when auditing is disabled."""
        options = options or AuditOptions()
        if not options.enabled:
            return

        record = AuditRecord.from_result(result, ctx, resource_type, execution_time_ms)

        sink = self.queued if options.asynchronous else self.direct
        try:
            await sink.write(record)
        except AuditDeliveryError:
            raise
        except Exception as e:
            self.logger.error(
                "Audit write failed",
                channel=sink.channel,
                operation=record.operation,
                request_id=record.request_id,
                error=str(e)
            )
            raise AuditDeliveryError(details={"operation": record.operation, "channel": sink.channel}) from e

        # FallbackAuditSink counts its own deliveries
        if self.metrics and not isinstance(sink, FallbackAuditSink):
            self.metrics.record_audit(sink.channel)

        self.logger.debug(
            "Permission decision audited",
            operation=record.operation,
            granted=record.granted,
            reason_code=record.reason_code,
            asynchronous=options.asynchronous
        )
