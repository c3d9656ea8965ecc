"""Async utilities for bridging the synchronous deploy engine to async callers."""

import asyncio
from typing import Any, Callable, TypeVar

T = TypeVar("T")


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    One worker thread drives one call, so a deploy attempt started this way
    stays single-threaded and is the only mutator of its fingerprint store.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        # In MCP tool handler:
        report = await run_sync(orchestrator.deploy, dry_run=True)
    """
    return await asyncio.to_thread(func, *args, **kwargs)
