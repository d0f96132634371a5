"""Exceptions raised by the orchestrator and by host deployment services."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class StageDeployError(Exception):
    """Base exception with a message. Optionally logs itself when raised."""

    def __init__(self, message: str = "A deployment error occurred", log: bool = False):
        self.message = message
        super().__init__(self.message)
        if log:
            logger.error(message)


class InvalidConfiguration(StageDeployError, ValueError):
    """The deployment tree is malformed (e.g. a unit without a name)."""


class UnitNotFound(StageDeployError, LookupError):
    """The host could not resolve a unit identifier."""

    def __init__(self, identifier: str, log: bool = False):
        self.identifier = identifier
        super().__init__(f"unit not found: {identifier}", log=log)


class StartFailure(StageDeployError):
    """A host could not start a unit.

    The original exception raised by the host is kept as ``__cause__`` and its
    description is part of the message, so callers can match on it.
    """

    def __init__(self, identifier: str, reason: BaseException | str):
        self.identifier = identifier
        self.reason = reason
        super().__init__(f"deploying unit {identifier!r} failed: {_describe(reason)}")
        if isinstance(reason, BaseException):
            self.__cause__ = reason


class AlreadySettled(StageDeployError, RuntimeError):
    """A completion handle was settled a second time."""


class TreeAlreadyRun(StageDeployError, RuntimeError):
    """A deployment tree whose handles already hold an outcome was run again."""


def _describe(reason: BaseException | str) -> str:
    if isinstance(reason, BaseException):
        text = str(reason)
        name = type(reason).__name__
        return f"{name}: {text}" if text else name
    return reason


__all__ = [
    "AlreadySettled",
    "InvalidConfiguration",
    "StageDeployError",
    "StartFailure",
    "TreeAlreadyRun",
    "UnitNotFound",
]
