"""Single-assignment completion cells attached to each unit descriptor."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable

from .exceptions import AlreadySettled

logger = logging.getLogger(__name__)


class UnitState(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class CompletionHandle:
    """
    Outcome of one unit for one run.

    A handle starts PENDING and is settled exactly once, either to SUCCEEDED
    with the instance id returned by the host or to FAILED with the cause.
    Only the orchestrator settles handles; everybody else reads the
    properties or subscribes with ``add_done_callback``.

    A handle that is never launched (its parent failed) stays PENDING for good.
    """

    def __init__(self) -> None:
        self._state = UnitState.PENDING
        self._instance_id: str | None = None
        self._cause: BaseException | None = None
        self._launched = False
        self._callbacks: list[Callable[[CompletionHandle], None]] = []

    def __repr__(self) -> str:
        if self._state is UnitState.SUCCEEDED:
            return f"<CompletionHandle succeeded id={self._instance_id!r}>"
        if self._state is UnitState.FAILED:
            return f"<CompletionHandle failed cause={self._cause!r}>"
        return f"<CompletionHandle pending launched={self._launched}>"

    # read-only view

    @property
    def state(self) -> UnitState:
        return self._state

    @property
    def settled(self) -> bool:
        return self._state is not UnitState.PENDING

    @property
    def succeeded(self) -> bool:
        return self._state is UnitState.SUCCEEDED

    @property
    def failed(self) -> bool:
        return self._state is UnitState.FAILED

    @property
    def launched(self) -> bool:
        """True once the orchestrator has asked the host to start the unit."""
        return self._launched

    @property
    def instance_id(self) -> str | None:
        """Instance id reported by the host, or None unless succeeded."""
        return self._instance_id

    @property
    def cause(self) -> BaseException | None:
        """Failure cause, or None unless failed."""
        return self._cause

    def add_done_callback(self, fn: Callable[[CompletionHandle], None]) -> None:
        """Call ``fn(handle)`` once the handle settles (right away if it already has)."""
        if self.settled:
            fn(self)
        else:
            self._callbacks.append(fn)

    # orchestrator side

    def mark_launched(self) -> None:
        self._launched = True

    def succeed(self, instance_id: str) -> None:
        self._settle(UnitState.SUCCEEDED)
        self._instance_id = instance_id
        self._notify()

    def fail(self, cause: BaseException) -> None:
        self._settle(UnitState.FAILED)
        self._cause = cause
        self._notify()

    def _settle(self, state: UnitState) -> None:
        if self.settled:
            raise AlreadySettled(f"completion handle already {self._state.value}, cannot become {state.value}")
        self._state = state

    def _notify(self) -> None:
        callbacks, self._callbacks = self._callbacks, []
        for fn in callbacks:
            try:
                fn(self)
            except Exception:
                logger.exception("Completion callback %r raised", fn)


__all__ = ["CompletionHandle", "UnitState"]
