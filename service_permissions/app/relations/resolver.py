"""
Derived relationship facts: friendship and management reachability.
"""

import asyncio
from collections import deque
from typing import List, Optional

from shared.logging import get_logger

from ..facets import catalog
from ..facets.store import FacetStore
from ..persistence.protocols import ConnectionDirectory, UserDirectory

DEFAULT_MAX_DEPTH = 10


class RelationshipResolver:
    """Resolves friendship and the reports-to hierarchy.

    The hierarchy is walked online, one directory round-trip per hop. Every
    walk is iterative and bounded by ``max_depth`` and a visited set, since
    the underlying pointers are externally mutable and may contain cycles.
    """

    def __init__(
        self,
        users: UserDirectory,
        connections: ConnectionDirectory,
        facets: FacetStore,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        self.users = users
        self.connections = connections
        self.facets = facets
        self.max_depth = max_depth
        self.logger = get_logger("permissions.relations")

    async def is_friends_with(self, user_a: str, user_b: str) -> bool:
        """True iff an accepted connection exists in either direction."""
        return await self.connections.has_accepted_connection(user_a, user_b)

    async def is_administrator_for(
        self,
        manager_id: str,
        subordinate_id: str,
        include_indirect: bool = True,
    ) -> bool:
        """True iff ``manager_id`` is above ``subordinate_id`` in the hierarchy."""
        if manager_id == subordinate_id:
            return False

        current: Optional[str] = await self.users.get_line_manager_id(subordinate_id)
        if current is None:
            return False
        if current == manager_id:
            return True
        if not include_indirect:
            return False

        visited = {subordinate_id}
        depth = 0
        while current is not None and depth < self.max_depth:
            if current == manager_id:
                return True
            if current in visited:
                self.logger.warning(
                    "Cycle detected in management chain",
                    subordinate_id=subordinate_id,
                    revisited=current
                )
                return False

            visited.add(current)
            current = await self.users.get_line_manager_id(current)
            depth += 1

        return False

    async def get_direct_reports(self, manager_id: str) -> List[str]:
        return await self.users.list_direct_report_ids(manager_id)

    async def get_all_reports(self, manager_id: str) -> List[str]:
        """All transitive reports, breadth-first, at most ``max_depth`` levels deep."""
        seen = {manager_id}
        reports: List[str] = []
        frontier = deque([manager_id])

        for _ in range(self.max_depth):
            if not frontier:
                break

            next_frontier: deque = deque()
            while frontier:
                current = frontier.popleft()
                for report_id in await self.users.list_direct_report_ids(current):
                    if report_id in seen:
                        continue
                    seen.add(report_id)
                    reports.append(report_id)
                    next_frontier.append(report_id)

            frontier = next_frontier

        return reports

    async def check_for_circular_reference(self, user_id: str, proposed_manager_id: str) -> bool:
        """True if making ``proposed_manager_id`` the manager of ``user_id`` forms a cycle."""
        if user_id == proposed_manager_id:
            return True

        return proposed_manager_id in await self.get_all_reports(user_id)

    async def share_division(self, user_a: str, user_b: str) -> bool:
        """True iff both users carry the same division facet value."""
        division_a, division_b = await asyncio.gather(
            self.facets.user_get_facet_value(user_a, catalog.DIVISION_SCOPE, catalog.DIVISION_NAME),
            self.facets.user_get_facet_value(user_b, catalog.DIVISION_SCOPE, catalog.DIVISION_NAME),
        )
        if not division_a or not division_b:
            return False
        return division_a == division_b
