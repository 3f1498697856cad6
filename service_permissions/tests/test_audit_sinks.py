"""
Unit tests for audit sinks.
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException
from shared.errors import AuditDeliveryError, QueueUnavailableError
from shared.retry import RetryConfig, RetryError
from service_permissions.app.audit.models import AuditRecord
from service_permissions.app.audit.sinks import FallbackAuditSink, QueueAuditSink, StoreAuditSink


@pytest.fixture
def record():
    """Create audit record."""
    return AuditRecord(
        user_id="user-1",
        resource_type="post",
        resource_id="post-1",
        operation="post-read",
        granted=True,
        reason="User is owner",
        reason_code="OWNER",
        request_id="req-1",
        facets_checked=[],
        created_at=datetime(2026, 3, 2, tzinfo=timezone.utc),
    )


class TestQueueAuditSink:
    """Test cases for QueueAuditSink."""

    @pytest.fixture
    def producer(self):
        producer = MagicMock()
        producer.send_message = AsyncMock(return_value=True)
        return producer

    @pytest.mark.asyncio
    async def test_publishes_json_payload(self, producer, record):
        """Test record is published keyed by user with request header."""
        sink = QueueAuditSink(producer, "permissions.audit.v1")

        await sink.write(record)

        kwargs = producer.send_message.call_args.kwargs
        assert kwargs["topic"] == "permissions.audit.v1"
        assert kwargs["key"] == "user-1"
        assert kwargs["headers"] == {"request-id": "req-1"}
        assert kwargs["message"]["operation"] == "post-read"
        assert kwargs["message"]["created_at"] == "2026-03-02T00:00:00Z"

    @pytest.mark.asyncio
    async def test_unacknowledged_publish_raises(self, producer, record):
        """Test a False send result is a failure."""
        producer.send_message.return_value = False
        sink = QueueAuditSink(producer, "topic")

        with pytest.raises(QueueUnavailableError):
            await sink.write(record)

    @pytest.mark.asyncio
    async def test_breaker_opens_and_fails_fast(self, producer, record):
        """Test repeated failures open the breaker so the producer is skipped."""
        producer.send_message.return_value = False
        sink = QueueAuditSink(producer, "topic", CircuitBreaker(failure_threshold=2, recovery_timeout=60))

        for _ in range(2):
            with pytest.raises(QueueUnavailableError):
                await sink.write(record)

        with pytest.raises(CircuitBreakerOpenException):
            await sink.write(record)

        assert producer.send_message.await_count == 2


class TestStoreAuditSink:
    """Test cases for StoreAuditSink."""

    @pytest.mark.asyncio
    async def test_writes_to_repository(self, record):
        """Test direct insert."""
        repository = MagicMock()
        repository.insert_audit_record = AsyncMock()

        await StoreAuditSink(repository).write(record)

        repository.insert_audit_record.assert_awaited_once_with(record)

    @pytest.mark.asyncio
    async def test_retries_transient_failure(self, record):
        """Test a transient failure is retried."""
        repository = MagicMock()
        repository.insert_audit_record = AsyncMock(side_effect=[ConnectionError("blip"), None])
        sink = StoreAuditSink(repository, RetryConfig(max_attempts=3, base_delay=0, jitter=False))

        await sink.write(record)

        assert repository.insert_audit_record.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_attempts(self, record):
        """Test persistent failure raises RetryError."""
        repository = MagicMock()
        repository.insert_audit_record = AsyncMock(side_effect=ConnectionError("down"))
        sink = StoreAuditSink(repository, RetryConfig(max_attempts=2, base_delay=0, jitter=False))

        with pytest.raises(RetryError):
            await sink.write(record)

        assert repository.insert_audit_record.await_count == 2


class TestFallbackAuditSink:
    """Test cases for FallbackAuditSink."""

    @pytest.fixture
    def primary(self):
        sink = MagicMock()
        sink.channel = "queue"
        sink.write = AsyncMock()
        return sink

    @pytest.fixture
    def fallback(self):
        sink = MagicMock()
        sink.channel = "store"
        sink.write = AsyncMock()
        return sink

    @pytest.fixture
    def metrics(self):
        return MagicMock()

    @pytest.mark.asyncio
    async def test_primary_success(self, primary, fallback, metrics, record):
        """Test fallback is untouched when the primary succeeds."""
        await FallbackAuditSink(primary, fallback, metrics).write(record)

        primary.write.assert_awaited_once_with(record)
        fallback.write.assert_not_awaited()
        metrics.record_audit.assert_called_once_with("queue")

    @pytest.mark.asyncio
    async def test_falls_back_on_failure(self, primary, fallback, metrics, record):
        """Test primary failure writes through the fallback."""
        primary.write.side_effect = QueueUnavailableError("broker down")

        await FallbackAuditSink(primary, fallback, metrics).write(record)

        fallback.write.assert_awaited_once_with(record)
        metrics.record_audit_fallback.assert_called_once()
        metrics.record_audit.assert_called_once_with("store")

    @pytest.mark.asyncio
    async def test_both_fail(self, primary, fallback, record):
        """Test delivery error when every channel fails."""
        primary.write.side_effect = QueueUnavailableError("broker down")
        fallback.write.side_effect = ConnectionError("db down")

        with pytest.raises(AuditDeliveryError) as exc_info:
            await FallbackAuditSink(primary, fallback).write(record)

        assert exc_info.value.code == "AUDIT_DELIVERY_FAILED"
        assert exc_info.value.details["operation"] == "post-read"
        assert exc_info.value.details["fallback_error"] == "db down"

    def test_channel_is_primary(self, primary, fallback):
        """Test reported channel."""
        assert FallbackAuditSink(primary, fallback).channel == "queue"
