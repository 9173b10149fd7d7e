from __future__ import annotations

import asyncio
from typing import Any, Coroutine

_running: set[asyncio.Task[Any]] = set()


def run_background(
    coro: Coroutine[Any, Any, Any], *, name: str | None = None
) -> asyncio.Task[Any]:
    """Schedule ``coro`` on the running loop and keep it alive until it finishes."""

    task = asyncio.get_running_loop().create_task(coro, name=name)
    _running.add(task)
    task.add_done_callback(_running.discard)
    return task


__all__ = ["run_background"]
