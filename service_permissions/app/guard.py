"""
Fail-closed invocation of decision functions and result aggregation.
"""

import asyncio
import inspect
from typing import Awaitable, Callable, List, Sequence, TypeVar, Union

from shared.logging import get_logger

from .context import AuthenticationContext
from .results import PermissionResult, ReasonCode, deny

T = TypeVar("T")

CheckFn = Callable[[], Union[PermissionResult, Awaitable[PermissionResult]]]
ItemCheckFn = Callable[[T, AuthenticationContext], Union[PermissionResult, Awaitable[PermissionResult]]]

logger = get_logger("permissions.guard")


async def safe_permission_check(
    check: CheckFn,
    fallback_operation: str = "unknown-operation",
) -> PermissionResult:
    """Run a decision function, converting any error into a denial."""
    try:
        result = check()
        if inspect.isawaitable(result):
            result = await result
        return result
    except Exception as e:
        logger.error(
            "Permission check error",
            operation=fallback_operation,
            error=str(e),
            error_type=type(e).__name__
        )
        return deny(
            None,
            None,
            fallback_operation,
            "Permission check failed due to internal error",
            ReasonCode.PERMISSION_CHECK_ERROR,
            {"error": str(e)}
        )


def require_all(*results: PermissionResult) -> PermissionResult:
    """First denial, else the first grant."""
    if not results:
        raise ValueError("require_all needs at least one result")

    for result in results:
        if not result.granted:
            return result
    return results[0]


def require_any(*results: PermissionResult) -> PermissionResult:
    """First grant, else the first denial."""
    if not results:
        raise ValueError("require_any needs at least one result")

    for result in results:
        if result.granted:
            return result
    return results[0]


async def filter_by_permission(
    items: Sequence[T],
    ctx: AuthenticationContext,
    check: ItemCheckFn,
) -> List[T]:
    """Items whose wrapped check grants, in their original order.

    Checks run concurrently; a failing check denies its item only.
    """
    results = await asyncio.gather(*(
        safe_permission_check(lambda item=item: check(item, ctx))
        for item in items
    ))
    return [item for item, result in zip(items, results) if result.granted]
