"""
local_host.py
-------------
An in-process host deployment service.

Units are ``Unit`` subclasses. An identifier is resolved against the units
registered on the host first, then as an import path
(``package.module:ClassName`` or ``package.module.ClassName``).

The ``instances`` option starts several objects of the same unit under a
single deployment id.
"""

from __future__ import annotations

import asyncio
import importlib
import inspect
import logging
import uuid
from typing import Any, Mapping

from box import Box

from connectors.host_interface import UnitOptions, as_unit_options
from orchestrator.exceptions import UnitNotFound

logger = logging.getLogger(__name__)


class Unit:
    """
    Base class for units deployable on a LocalHost.

    Override ``start``; raise to report that the unit could not start.
    ``deployment_id`` is set by the host before ``start`` is called.
    """

    deployment_id: str | None = None

    async def start(self, options: UnitOptions) -> None:
        return None


class LocalHost:
    """Starts units in the current process and keeps track of what it started."""

    def __init__(self, units: Mapping[str, type[Unit]] | None = None):
        self._registry: dict[str, type[Unit]] = dict(units or {})
        self._deployments: dict[str, list[Unit]] = {}

    @property
    def info(self) -> Box:
        return Box({
            "type": "local",
            "registered": sorted(self._registry),
            "deployments": len(self._deployments),
        })

    def register(self, identifier: str, unit_cls: type[Unit]) -> None:
        if not (inspect.isclass(unit_cls) and issubclass(unit_cls, Unit)):
            raise TypeError(f"{unit_cls!r} is not a Unit subclass")
        self._registry[identifier] = unit_cls

    def resolve(self, identifier: str) -> type[Unit]:
        """Return the Unit class for ``identifier`` or raise UnitNotFound."""
        if identifier in self._registry:
            return self._registry[identifier]
        module_name, sep, attr = identifier.partition(":")
        if not sep:
            module_name, _, attr = identifier.rpartition(".")
        if not module_name or not attr:
            raise UnitNotFound(identifier)
        try:
            module = importlib.import_module(module_name)
        except ImportError as exc:
            raise UnitNotFound(identifier) from exc
        unit_cls = getattr(module, attr, None)
        if not (inspect.isclass(unit_cls) and issubclass(unit_cls, Unit)):
            raise UnitNotFound(identifier)
        return unit_cls

    async def start(self, identifier: str, options: Mapping[str, Any] | None = None) -> str:
        unit_cls = self.resolve(identifier)
        opts = as_unit_options(options)
        count = opts.get("instances", 1)
        if not isinstance(count, int) or isinstance(count, bool) or count < 1:
            raise ValueError(f"'instances' must be a positive integer, got {count!r}")

        deployment_id = str(uuid.uuid4())
        units = [unit_cls() for _ in range(count)]
        for unit in units:
            unit.deployment_id = deployment_id
        # all instances start together; any failure fails the deployment
        await asyncio.gather(*(unit.start(opts) for unit in units))
        self._deployments[deployment_id] = units
        logger.info("Started %s x%d as %s", identifier, count, deployment_id)
        return deployment_id

    def deployment_ids(self) -> list[str]:
        return list(self._deployments)

    def instances(self, deployment_id: str) -> list[Unit]:
        return list(self._deployments[deployment_id])
