"""
Audit data models.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..context import AuthenticationContext
from ..results import PermissionResult


class AuditOptions(BaseModel):
    """Per-check audit behaviour."""
    enabled: bool = Field(True, description="Record this decision at all")
    asynchronous: bool = Field(True, description="Publish to the queue instead of writing directly")


class AuditRecord(BaseModel):
    """One recorded permission decision."""
    user_id: Optional[str] = Field(None, description="Acting user ID")
    resource_type: str = Field(..., description="Kind of resource checked")
    resource_id: str = Field("", description="Resource ID, empty for collection operations")
    operation: str = Field(..., description="Operation name")
    granted: bool = Field(..., description="Decision")
    reason: str = Field(..., description="Human-readable reason")
    reason_code: str = Field(..., description="Machine-readable reason code")
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    request_id: Optional[str] = None
    facets_checked: List[str] = Field(default_factory=list)
    execution_time_ms: Optional[float] = None
    created_at: datetime

    @classmethod
    def from_result(
        cls,
        result: PermissionResult,
        ctx: AuthenticationContext,
        resource_type: str,
        execution_time_ms: Optional[float] = None,
    ) -> "AuditRecord":
        return cls(
            user_id=result.user_id if result.user_id is not None else ctx.user_id,
            resource_type=resource_type,
            resource_id=result.resource_id or "",
            operation=result.operation,
            granted=result.granted,
            reason=result.reason,
            reason_code=result.reason_code.value,
            ip_address=ctx.ip_address,
            user_agent=ctx.user_agent,
            request_id=ctx.request_id,
            facets_checked=list(result.metadata.get("facets_checked", [])),
            execution_time_ms=execution_time_ms,
            created_at=result.timestamp,
        )

    def to_message(self) -> Dict[str, Any]:
        """JSON-safe payload for the queue."""
        return self.model_dump(mode="json")
