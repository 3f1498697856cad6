"""
Unit tests for the PermissionsService composition root.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, PropertyMock

from shared.config import get_config
from shared.errors import QueueUnavailableError
from shared.logging import request_id_var, user_id_var
from service_permissions.app.audit.models import AuditOptions
from service_permissions.app.audit.sinks import FallbackAuditSink, StoreAuditSink
from service_permissions.app.context import AuthenticationContext
from service_permissions.app.facets import catalog
from service_permissions.app.facets.models import EntityType
from service_permissions.app.main import PermissionsService
from service_permissions.app.persistence.memory import InMemoryBackend
from service_permissions.app.policies.models import Post, Visibility
from service_permissions.app.results import ReasonCode


class TestPermissionsService:
    """Test cases for PermissionsService."""

    @pytest.fixture
    def config(self):
        return get_config(audit_async=False)

    @pytest.fixture
    def memory(self):
        return InMemoryBackend()

    @pytest.fixture
    def service(self, config, memory):
        return PermissionsService(config, backend=memory, metrics=MagicMock())

    @pytest.fixture
    def context(self):
        return AuthenticationContext(user_id="user-1", request_id="req-1")

    @pytest.mark.asyncio
    async def test_start_seeds_catalog(self, service, memory):
        """Test default definitions are seeded on start."""
        await service.start()

        assert {d.id for d in catalog.default_definitions()} <= set(memory.definitions)
        assert (await service.health_check())["status"] == "ok"

    @pytest.mark.asyncio
    async def test_start_without_producer_audits_to_store(self, service):
        """Test no queue means direct audit writes."""
        await service.start()

        assert isinstance(service.auditor.queued, StoreAuditSink)

    @pytest.mark.asyncio
    async def test_start_with_unreachable_queue(self, config, memory):
        """Test a producer that cannot start degrades to direct writes."""
        producer = MagicMock()
        type(producer).started = PropertyMock(return_value=False)
        producer.start = AsyncMock(side_effect=QueueUnavailableError("no brokers"))

        service = PermissionsService(config, backend=memory, producer=producer, metrics=MagicMock())
        await service.start()

        assert isinstance(service.auditor.queued, StoreAuditSink)
        assert (await service.health_check())["dependencies"]["audit_queue"] == "disabled"

    @pytest.mark.asyncio
    async def test_start_with_queue(self, config, memory):
        """Test a started producer is used behind the store fallback."""
        producer = MagicMock()
        type(producer).started = PropertyMock(return_value=True)
        producer.stop = AsyncMock()

        service = PermissionsService(config, backend=memory, producer=producer, metrics=MagicMock())
        await service.start()
        await service.stop()

        assert isinstance(service.auditor.queued, FallbackAuditSink)
        producer.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_administration_surface(self, service):
        """Test assign, query and revoke through the service."""
        await service.start()

        await service.assign_facet("org-division:division:hr", EntityType.USER, "user-1", "admin", "Hired")

        assert await service.has_facet(EntityType.USER, "user-1", "org-division:division:hr") is True
        assert await service.get_facet_value(EntityType.USER, "user-1", "org-division", "division") == "hr"
        assert len(await service.get_facets(EntityType.USER, "user-1")) == 1

        await service.revoke_facet("org-division:division:hr", EntityType.USER, "user-1", "admin", "Left")

        assert await service.has_facet(EntityType.USER, "user-1", "org-division:division:hr") is False

    @pytest.mark.asyncio
    async def test_authorize_audits_and_measures(self, service, memory, context):
        """Test authorize records metrics and a direct audit row."""
        await service.start()
        post = Post(id="post-1", author_id="user-1", visibility=Visibility.PRIVATE)

        result = await service.authorize(
            lambda: service.engine.posts.can_read(context, post), context, "post", "post-read"
        )

        assert result.reason_code == ReasonCode.OWNER
        service.metrics.record_permission_check.assert_called_once()
        assert service.metrics.record_permission_check.call_args.args[:2] == ("post-read", True)

        assert len(memory.audit_log) == 1
        audit = memory.audit_log[0]
        assert audit.operation == "post-read"
        assert audit.request_id == "req-1"
        assert audit.execution_time_ms is not None

    @pytest.mark.asyncio
    async def test_authorize_fails_closed(self, service, memory, context):
        """Test a crashing check becomes an audited denial."""
        await service.start()

        async def broken():
            raise RuntimeError("lookup failed")

        result = await service.authorize(broken, context, "post", "post-read")

        assert result.granted is False
        assert result.reason_code == ReasonCode.PERMISSION_CHECK_ERROR
        service.metrics.record_check_error.assert_called_once_with("post-read")
        assert memory.audit_log[0].reason_code == "PERMISSION_CHECK_ERROR"
        assert memory.audit_log[0].user_id == "user-1"

    @pytest.mark.asyncio
    async def test_authorize_audit_disabled(self, service, memory, context):
        """Test per-call audit opt-out."""
        await service.start()

        await service.authorize(
            lambda: service.engine.posts.can_create(context), context, "post", "post-create",
            audit=AuditOptions(enabled=False)
        )

        assert memory.audit_log == []

    @pytest.mark.asyncio
    async def test_unaudited_grant_is_withheld(self, service, memory, context):
        """Test a grant that cannot be recorded is returned as a denial."""
        await service.start()
        service.auditor.direct = MagicMock(channel="store", write=AsyncMock(side_effect=ConnectionError("db")))

        result = await service.authorize(
            lambda: service.engine.posts.can_create(context), context, "post", "post-create"
        )

        assert result.granted is False
        assert result.reason_code == ReasonCode.PERMISSION_CHECK_ERROR
        service.metrics.record_error.assert_called_once_with("audit_delivery")

    @pytest.mark.asyncio
    async def test_authorize_scopes_log_context(self, service, context):
        """Test request and user ids are bound only while the decision runs."""
        await service.start()
        seen = {}

        async def check():
            seen["request_id"] = request_id_var.get()
            seen["user_id"] = user_id_var.get()
            return await service.engine.posts.can_create(context)

        await service.authorize(check, context, "post", "post-create")

        assert seen == {"request_id": "req-1", "user_id": "user-1"}
        assert request_id_var.get() is None
        assert user_id_var.get() is None
