from typing import Any, Mapping, Protocol, runtime_checkable

from box import Box


class UnitOptions(Box):
    """
    Deployment options handed to a host, with dot access.
    See: https://github.com/cdgriffith/Box for Box documentation.
    The orchestrator never looks inside; hosts decide what the keys mean.
    Examples:
        options = UnitOptions({"instances": 2, "config": {"port": 8080}})
        options.instances         # 2
        options.config.port       # 8080
        options.get("worker", False)
    """


def as_unit_options(options: Mapping[str, Any] | None) -> UnitOptions:
    """Wrap ``options`` without modifying it (a None becomes an empty UnitOptions)."""
    return UnitOptions(dict(options) if options else {})


class HostSessionProtocol(Protocol):
    """Interface Protocol for sessions with a remote host.
    To be subclassed by actual session implementations.
    """
    @property
    def host_type(self) -> str: ...
    async def is_alive(self) -> bool: ...
    async def connect(self) -> None: ...
    async def disconnect(self) -> None: ...


@runtime_checkable
class HostDeploymentService(Protocol):
    """
    Protocol for anything able to start a unit.

    ``start`` resolves to the instance id of the new deployment, or raises
    when the unit cannot be started. The exception's str() must describe
    the reason; for identifiers that do not resolve, raise UnitNotFound.
    """

    async def start(self, identifier: str, options: Mapping[str, Any] | None = None) -> str: ...

    @property
    def info(self) -> Box:
        """
        Returns information about the host, such as its type and location, as a Box.
        """
        ...
