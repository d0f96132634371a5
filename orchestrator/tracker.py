"""Fail-fast aggregation of many completion handles into one future."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from .completion import CompletionHandle
from .models import DependentGroup
from .tree import collect_handles

logger = logging.getLogger(__name__)


class AggregateTracker:
    """
    Counts settlements of a fixed set of handles.

    The future resolves to None once every handle has succeeded, or fails with
    the cause of the first failed handle it is told about. Later
    notifications are ignored. When several units fail concurrently, which
    cause wins depends on the order the event loop runs their launches and is
    not defined.

    Handles left pending forever (units skipped because an ancestor failed) do
    not matter: a failure has already resolved the future by then.
    """

    def __init__(self, handles: Iterable[CompletionHandle], loop: asyncio.AbstractEventLoop | None = None):
        self.handles = list(handles)
        self._loop = loop or asyncio.get_running_loop()
        self.future: asyncio.Future[None] = self._loop.create_future()
        self._remaining = len(self.handles)
        if self._remaining == 0:
            self.future.set_result(None)
        for handle in self.handles:
            handle.add_done_callback(self._on_settled)

    @classmethod
    def for_tree(cls, tree: DependentGroup, loop: asyncio.AbstractEventLoop | None = None) -> AggregateTracker:
        return cls(collect_handles(tree), loop=loop)

    @property
    def remaining(self) -> int:
        """Handles that have not succeeded yet."""
        return self._remaining

    def _on_settled(self, handle: CompletionHandle) -> None:
        if self.future.done():
            return
        if handle.failed:
            assert handle.cause is not None
            logger.debug("Aggregate failing on %r", handle)
            self.future.set_exception(handle.cause)
            return
        self._remaining -= 1
        if self._remaining == 0:
            self.future.set_result(None)


__all__ = ["AggregateTracker"]
