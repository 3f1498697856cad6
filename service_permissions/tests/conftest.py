"""
Shared fixtures for permissions engine tests.
"""

import pytest
from datetime import datetime, timedelta, timezone

from service_permissions.app.context import AuthenticationContext
from service_permissions.app.facets import catalog
from service_permissions.app.facets.models import EntityType
from service_permissions.app.facets.store import FacetStore
from service_permissions.app.persistence.memory import InMemoryBackend
from service_permissions.app.policies.engine import DecisionEngine
from service_permissions.app.relations.resolver import RelationshipResolver


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    """Create a fixed clock."""
    return FixedClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def backend():
    """Create in-memory backend seeded with the default catalog."""
    return InMemoryBackend(catalog.default_definitions())


@pytest.fixture
def facet_store(backend, clock):
    """Create FacetStore over the in-memory backend."""
    return FacetStore(backend, clock=clock)


@pytest.fixture
def resolver(backend, facet_store):
    """Create RelationshipResolver."""
    return RelationshipResolver(backend, backend, facet_store)


@pytest.fixture
def engine(facet_store, resolver, backend):
    """Create DecisionEngine."""
    return DecisionEngine(facet_store, resolver, backend)


@pytest.fixture
def ctx():
    """Factory for authenticated contexts."""
    def _ctx(user_id: str) -> AuthenticationContext:
        return AuthenticationContext(user_id=user_id, request_id=f"req-{user_id}", ip_address="10.0.0.1")
    return _ctx


@pytest.fixture
def anonymous():
    """Create unauthenticated context."""
    return AuthenticationContext.anonymous(request_id="req-anon")


@pytest.fixture
def give_facet(facet_store):
    """Assign a facet to a user through the store."""
    async def _give(user_id: str, facet, expiry_days=None):
        return await facet_store.assign(facet, EntityType.USER, user_id, "system", "test setup", expiry_days)
    return _give
