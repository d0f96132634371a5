"""
Dependent deployment orchestration.

Units of the top-level group are started together. When a unit starts, every
unit of each of its dependent groups is started in turn (recursively); when
it fails, none of its dependents are started. The run succeeds only if every
unit in the tree starts.

Failures do not roll back, cancel or retry anything: units already started
keep running and units already requested keep going.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from connectors.host_interface import HostDeploymentService

from .exceptions import StageDeployError, StartFailure, TreeAlreadyRun
from .models import DependentGroup, UnitDescriptor, load_tree
from .tracker import AggregateTracker
from .tree import collect_handles

logger = logging.getLogger(__name__)


class Orchestrator:
    """Starts the units of deployment trees on a host deployment service."""

    def __init__(self, host: HostDeploymentService):
        self.host = host
        self._tasks: set[asyncio.Task[None]] = set()

    def run(self, tree: Any) -> asyncio.Future[None]:
        """
        Start every unit of ``tree`` and return the aggregate future.

        Must be called with a running event loop. Returns immediately; the
        future resolves to None when all units started, or raises the
        StartFailure of the first failed unit. ``tree`` may be a DeploymentTree,
        a plain DependentGroup, or anything else load_tree accepts.
        """
        tree = load_tree(tree)
        handles = collect_handles(tree)
        if any(handle.launched or handle.settled for handle in handles):
            raise TreeAlreadyRun("Deployment tree has already been run; build a new one")

        tracker = AggregateTracker(handles)
        tracker.future.add_done_callback(self._log_outcome)
        for descriptor in tree.units:
            self._spawn(descriptor)
        return tracker.future

    async def wait_idle(self) -> None:
        """Wait until every launch issued so far has returned from the host."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, descriptor: UnitDescriptor) -> None:
        descriptor.completion.mark_launched()
        task = asyncio.ensure_future(self._launch(descriptor))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _launch(self, descriptor: UnitDescriptor) -> None:
        name = descriptor.identifier
        logger.debug("deploying %s", name)
        try:
            instance_id = await self.host.start(name, descriptor.options)
        except Exception as exc:
            descriptor.completion.fail(StartFailure(name, exc))
            logger.warning("deploying unit %s failed: %s", name, exc)
            return

        descriptor.completion.succeed(instance_id)
        logger.info("deployed %s as %s", name, instance_id)
        # dependents only after the parent's success is recorded
        for group in descriptor.dependent_groups:
            for child in group.units:
                self._spawn(child)

    @staticmethod
    def _log_outcome(future: asyncio.Future[None]) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.warning("One or more units failed to deploy: %s", exc)
        else:
            logger.info("All units deployed")


class DependentDeployer:
    """
    Embedding surface: holds a deployment tree and completes a caller-supplied
    future once the whole tree is deployed, or fails it with the first cause.

        deployer = DependentDeployer(host, tree)
        done = loop.create_future()
        deployer.start(done)
        await done
    """

    def __init__(self, host: HostDeploymentService, tree: Any = None):
        self.orchestrator = Orchestrator(host)
        self.tree: DependentGroup | None = load_tree(tree) if tree is not None else None

    def start(self, result: asyncio.Future[None]) -> None:
        if self.tree is None or not self.tree.units:
            result.set_result(None)
            return
        try:
            outcome = self.orchestrator.run(self.tree)
        except StageDeployError as exc:
            result.set_exception(exc)
            return
        outcome.add_done_callback(lambda done: _transfer(done, result))


def _transfer(source: asyncio.Future[None], target: asyncio.Future[None]) -> None:
    if target.done():
        return
    if source.cancelled():
        target.cancel()
    elif source.exception() is not None:
        target.set_exception(source.exception())
    else:
        target.set_result(None)


async def deploy(host: HostDeploymentService, tree: Any) -> DependentGroup:
    """Run ``tree`` on ``host`` and wait for the outcome. Returns the tree so its
    handles can be inspected; raises the first StartFailure."""
    tree = load_tree(tree)
    await Orchestrator(host).run(tree)
    return tree


__all__ = ["DependentDeployer", "Orchestrator", "deploy"]
