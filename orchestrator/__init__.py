"""Core orchestrator package: deployment trees, completion handles and the deployer."""

from .completion import CompletionHandle, UnitState
from .deployer import DependentDeployer, Orchestrator, deploy
from .exceptions import (
    AlreadySettled,
    InvalidConfiguration,
    StageDeployError,
    StartFailure,
    TreeAlreadyRun,
    UnitNotFound,
)
from .models import DependentGroup, DeploymentTree, UnitDescriptor, load_tree
from .tracker import AggregateTracker
from .tree import UnitReport, report

__all__ = [
    "AggregateTracker",
    "AlreadySettled",
    "CompletionHandle",
    "DependentDeployer",
    "DependentGroup",
    "DeploymentTree",
    "InvalidConfiguration",
    "Orchestrator",
    "StageDeployError",
    "StartFailure",
    "TreeAlreadyRun",
    "UnitDescriptor",
    "UnitNotFound",
    "UnitReport",
    "UnitState",
    "deploy",
    "load_tree",
    "report",
]
