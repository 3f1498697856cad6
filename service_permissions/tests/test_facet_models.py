"""
Unit tests for facet references and the default catalog.
"""

import pytest
from datetime import datetime, timedelta, timezone

from shared.errors import InvalidFacetError
from service_permissions.app.facets import catalog
from service_permissions.app.facets.models import EntityType, FacetAssignment, FacetRef


class TestFacetRef:
    """Test cases for FacetRef parsing."""

    def test_parse_scope_and_name(self):
        """Test two-part reference has empty value."""
        ref = FacetRef.parse("platform-admin:global")

        assert ref == FacetRef("platform-admin", "global", "")
        assert str(ref) == "platform-admin:global"

    def test_parse_with_value(self):
        """Test three-part reference."""
        ref = FacetRef.parse("org-division:division:engineering")

        assert ref.scope == "org-division"
        assert ref.name == "division"
        assert ref.value == "engineering"
        assert str(ref) == "org-division:division:engineering"

    def test_parse_value_containing_separator(self):
        """Test extra separators stay in the value."""
        ref = FacetRef.parse("feature-access:endpoint:https://example.com")

        assert ref.value == "https://example.com"

    def test_parse_passes_ref_through(self):
        """Test already-typed references are returned unchanged."""
        assert FacetRef.parse(catalog.GLOBAL_ADMIN) is catalog.GLOBAL_ADMIN

    @pytest.mark.parametrize("raw", ["platform-admin", "", ":global", "platform-admin:"])
    def test_parse_malformed(self, raw):
        """Test malformed references raise a configuration error."""
        with pytest.raises(InvalidFacetError) as exc_info:
            FacetRef.parse(raw)

        assert exc_info.value.code == "INVALID_FACET"
        assert exc_info.value.details == {"facet": raw}


class TestFacetAssignment:
    """Test cases for assignment effectiveness."""

    @pytest.fixture
    def now(self):
        return datetime(2026, 1, 1, tzinfo=timezone.utc)

    def _assignment(self, now, **overrides):
        fields = dict(
            id="a-1",
            facet_id="facet-platform-admin-global",
            entity_type=EntityType.USER,
            entity_id="user-1",
            assigned_by="system",
            assigned_at=now,
        )
        fields.update(overrides)
        return FacetAssignment(**fields)

    def test_active_without_expiry_is_effective(self, now):
        """Test open-ended assignment."""
        assert self._assignment(now).is_effective(now) is True

    def test_inactive_is_not_effective(self, now):
        """Test revoked assignment."""
        assert self._assignment(now, is_active=False).is_effective(now) is False

    def test_expiry_boundary(self, now):
        """Test assignment stops being effective at its expiry instant."""
        assignment = self._assignment(now, expires_at=now + timedelta(hours=1))

        assert assignment.is_effective(now + timedelta(minutes=59)) is True
        assert assignment.is_effective(now + timedelta(hours=1)) is False


class TestDefaultCatalog:
    """Test cases for the seeded catalog."""

    def test_ids_and_refs_are_unique(self):
        """Test no duplicate definitions are seeded."""
        definitions = catalog.default_definitions()

        assert len({d.id for d in definitions}) == len(definitions)
        assert len({d.ref for d in definitions}) == len(definitions)

    def test_well_known_facets_are_defined(self):
        """Test every facet the policies consult is seeded."""
        refs = {d.ref for d in catalog.default_definitions()}

        for ref in (
            catalog.GLOBAL_ADMIN, catalog.DIVISIONAL_ADMIN, catalog.FACET_ADMIN,
            catalog.ROLE_MANAGER, catalog.ROLE_HR_ADMIN, catalog.ROLE_MODERATOR,
            catalog.LOCKED_POSTS, catalog.CAN_CREATE_GROUPS,
        ):
            assert ref in refs

    def test_divisions_are_valued_facets(self):
        """Test one division definition per default division."""
        divisions = [d for d in catalog.default_definitions() if d.scope == catalog.DIVISION_SCOPE]

        assert sorted(d.value for d in divisions) == sorted(catalog.DEFAULT_DIVISIONS)
        assert all(d.name == catalog.DIVISION_NAME for d in divisions)

    def test_locked_posts_expires(self):
        """Test locked posts access is time-bounded by default."""
        locked = next(d for d in catalog.default_definitions() if d.ref == catalog.LOCKED_POSTS)

        assert locked.expiry_days == 365
