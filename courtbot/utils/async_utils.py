"""
CourtBot - Async Utilities
==========================

Helpers for running blocking store calls and mixed sync/async callables
from the event loop.

Usage:
    from courtbot.utils.async_utils import call_blocking

    is_admin = await call_blocking(
        "find_admin_grant", db.find_admin_grant, scope_id, actor_id,
        timeout=2.0,
    )
"""

import asyncio
import inspect
from typing import Any, Callable, TypeVar

from courtbot.core.errors import StoreUnavailable

T = TypeVar("T")


async def call_blocking(
    operation: str,
    func: Callable[..., T],
    *args: Any,
    timeout: float,
) -> T:
    """
    Run a blocking callable in a worker thread with a bounded wait.

    Args:
        operation: Name used in the error when the call fails.
        func: Blocking callable, usually a DatabaseManager method.
        *args: Positional arguments for func.
        timeout: Seconds to wait before giving up.

    Returns:
        Whatever func returns.

    Raises:
        StoreUnavailable: On timeout or on any exception raised by func.
    """
    try:
        return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise StoreUnavailable(operation, TimeoutError(f"timed out after {timeout}s")) from e
    except asyncio.CancelledError:
        raise
    except Exception as e:
        raise StoreUnavailable(operation, e) from e


async def maybe_await(value: Any) -> Any:
    """Await value if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value


__all__ = [
    "call_blocking",
    "maybe_await",
]
