"""
Unit tests for UserPolicy.
"""

import pytest

from service_permissions.app.facets import catalog
from service_permissions.app.policies.models import FriendRequest, FriendRequestStatus, UserRecord
from service_permissions.app.results import ReasonCode


class TestUserPolicy:
    """Test cases for UserPolicy."""

    @pytest.fixture
    def policy(self, engine):
        return engine.users

    @pytest.fixture
    def private_user(self, backend):
        return backend.add_user(UserRecord(id="target", is_private=True, line_manager_id="boss"))

    @pytest.mark.asyncio
    async def test_view_public_profile(self, policy, anonymous):
        """Test public profiles are visible to anyone."""
        result = await policy.can_view(anonymous, UserRecord(id="target"))

        assert result.reason_code == ReasonCode.PUBLIC_PROFILE

    @pytest.mark.asyncio
    async def test_view_private_profile(self, policy, ctx, backend, give_facet, private_user):
        """Test private profile visibility by relation."""
        backend.add_friend_request(FriendRequest("fr-1", "target", "pal", FriendRequestStatus.ACCEPTED))
        await give_facet("hr", catalog.ROLE_HR_ADMIN)

        assert (await policy.can_view(ctx("target"), private_user)).reason_code == ReasonCode.SELF
        assert (await policy.can_view(ctx("hr"), private_user)).reason_code == ReasonCode.HR_ADMIN
        assert (await policy.can_view(ctx("boss"), private_user)).reason_code == ReasonCode.LINE_MANAGER
        assert (await policy.can_view(ctx("pal"), private_user)).reason_code == ReasonCode.FRIEND
        assert (await policy.can_view(ctx("stranger"), private_user)).granted is False

    @pytest.mark.asyncio
    async def test_update(self, policy, ctx, give_facet, private_user):
        """Test only self and admins update profiles."""
        await give_facet("admin", catalog.GLOBAL_ADMIN)

        assert (await policy.can_update(ctx("target"), private_user)).reason_code == ReasonCode.SELF
        assert (await policy.can_update(ctx("admin"), private_user)).reason_code == ReasonCode.GLOBAL_ADMIN
        assert (await policy.can_update(ctx("boss"), private_user)).granted is False

    @pytest.mark.asyncio
    async def test_set_line_manager_hr(self, policy, ctx, give_facet):
        """Test HR admins rewire anyone."""
        await give_facet("hr", catalog.ROLE_HR_ADMIN)

        result = await policy.can_set_line_manager(ctx("hr"), "target", "new-boss")

        assert result.reason_code == ReasonCode.HR_ADMIN

    @pytest.mark.asyncio
    async def test_set_line_manager_divisional_admin(self, policy, ctx, give_facet):
        """Test divisional admins stay inside their division."""
        await give_facet("div", catalog.DIVISIONAL_ADMIN)
        await give_facet("div", "org-division:division:engineering")
        await give_facet("target", "org-division:division:engineering")
        await give_facet("inside", "org-division:division:engineering")
        await give_facet("outside", "org-division:division:sales")

        allowed = await policy.can_set_line_manager(ctx("div"), "target", "inside")
        denied = await policy.can_set_line_manager(ctx("div"), "target", "outside")
        no_manager = await policy.can_set_line_manager(ctx("div"), "target")

        assert allowed.reason_code == ReasonCode.DIVISIONAL_ADMIN
        assert denied.granted is False
        assert denied.metadata == {"facets_checked": ["platform-admin:divisional"]}
        assert no_manager.granted is True

    @pytest.mark.asyncio
    async def test_set_line_manager_plain_user(self, policy, ctx):
        """Test ordinary users cannot rewire the hierarchy."""
        result = await policy.can_set_line_manager(ctx("user"), "target")

        assert result.granted is False
        assert result.reason == "Insufficient permissions"

    @pytest.mark.asyncio
    async def test_org_hierarchy(self, policy, ctx, give_facet, anonymous):
        """Test hierarchy visibility."""
        await give_facet("admin", catalog.GLOBAL_ADMIN)

        assert (await policy.can_view_org_hierarchy(ctx("admin"))).reason_code == ReasonCode.GLOBAL_ADMIN
        assert (await policy.can_view_org_hierarchy(ctx("user"))).reason_code == ReasonCode.AUTHENTICATED
        assert (await policy.can_view_org_hierarchy(anonymous)).granted is False

    @pytest.mark.asyncio
    async def test_view_line_manager_and_reports(self, policy, ctx, backend):
        """Test reporting line visibility."""
        backend.add_user(UserRecord(id="ceo"))
        backend.add_user(UserRecord(id="vp", line_manager_id="ceo"))
        backend.add_user(UserRecord(id="eng", line_manager_id="vp"))

        assert (await policy.can_view_line_manager(ctx("eng"), "eng")).reason_code == ReasonCode.SELF
        assert (await policy.can_view_line_manager(ctx("ceo"), "eng")).reason_code == ReasonCode.LINE_MANAGER
        assert (await policy.can_view_line_manager(ctx("eng"), "vp")).granted is False

        assert (await policy.can_view_direct_reports(ctx("ceo"), "vp")).reason_code == ReasonCode.SENIOR_MANAGER
        assert (await policy.can_view_direct_reports(ctx("eng"), "vp")).granted is False
