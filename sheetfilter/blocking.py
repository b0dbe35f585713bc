from __future__ import annotations

import functools
from typing import Any, Callable, TypeVar

import anyio

T = TypeVar("T")


async def run_blocking(fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a blocking call (the boto3 fetch) on a worker thread."""

    return await anyio.to_thread.run_sync(functools.partial(fn, *args, **kwargs))
