"""Start coroutines from synchronous widget and trait callbacks."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any, Optional

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

_PENDING: set[asyncio.Task] = set()


def _on_done(task: asyncio.Task) -> None:
    _PENDING.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("background task %s failed", task.get_name(), exc_info=exc)


def schedule(coro: Coroutine[Any, Any, Any], *, name: Optional[str] = None) -> Optional[asyncio.Task]:
    """Run ``coro`` as a task on the running loop.

    Widget callbacks inside a kernel execute on the kernel's event loop, so a
    loop is normally available. Without one the coroutine is closed unrun and
    ``None`` is returned, since a dialog waiting for a click could never
    complete.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        coro.close()
        logger.warning("no running event loop; %s was not started", name or "task")
        return None
    task = loop.create_task(coro, name=name)
    _PENDING.add(task)
    task.add_done_callback(_on_done)
    return task
