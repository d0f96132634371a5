"""Pydantic models describing what to deploy and in which order."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError, field_validator

from .completion import CompletionHandle
from .exceptions import InvalidConfiguration


class _ConfigModel(BaseModel):
    """Common behaviour: accept aliases or field names, ignore unknown keys,
    and report validation problems as InvalidConfiguration."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise InvalidConfiguration(f"Invalid {type(self).__name__}: {exc}") from exc

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]):
        if not isinstance(data, Mapping):
            raise InvalidConfiguration(f"{cls.__name__} must be built from a mapping, got {type(data).__name__}")
        try:
            return cls.model_validate(dict(data))
        except ValidationError as exc:
            raise InvalidConfiguration(f"Invalid {cls.__name__}: {exc}") from exc


class UnitDescriptor(_ConfigModel):
    """One unit to deploy, plus the groups that wait for it."""

    identifier: str = Field(..., alias="name", description="Name the host uses to locate the unit")
    options: dict[str, Any] | None = Field(default=None, alias="deploymentOptions")
    dependent_groups: list[DependentGroup] = Field(default_factory=list, alias="dependents")
    _completion: CompletionHandle = PrivateAttr(default_factory=CompletionHandle)

    @field_validator("identifier")
    @classmethod
    def _identifier_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("unit name must not be blank")
        return value

    @property
    def completion(self) -> CompletionHandle:
        return self._completion

    def add_dependents(self, *units: UnitDescriptor) -> UnitDescriptor:
        """Append a new dependent group made of ``units``. Returns self."""
        self.dependent_groups.append(DependentGroup(units=list(units)))
        return self

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.identifier}
        if self.options is not None:
            data["deploymentOptions"] = self.options
        if self.dependent_groups or "dependent_groups" in self.model_fields_set:
            data["dependents"] = [group.to_dict() for group in self.dependent_groups]
        return data


class DependentGroup(_ConfigModel):
    """Sibling units started together once their parent is up."""

    units: list[UnitDescriptor] = Field(default_factory=list, alias="configurations")

    def add(self, *units: UnitDescriptor) -> DependentGroup:
        self.units.extend(units)
        return self

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.units or "units" in self.model_fields_set:
            data["configurations"] = [unit.to_dict() for unit in self.units]
        return data


class DeploymentTree(DependentGroup):
    """Top-level group: the units deployed first, with no parent."""


UnitDescriptor.model_rebuild()
DependentGroup.model_rebuild()
DeploymentTree.model_rebuild()


# ---------------------------------------------------------------------------
# helpers


def load_tree(value: Any) -> DependentGroup:
    """Normalize supported inputs into a tree.

    Accepts a DependentGroup (a DeploymentTree or any group, returned as is),
    a mapping, YAML/JSON text (str or bytes) or a Path.
    """
    if isinstance(value, DependentGroup):
        return value
    payload: Any
    if isinstance(value, Mapping):
        payload = value
    elif isinstance(value, (str, bytes)):
        payload = _load_text_payload(value)
    elif isinstance(value, Path):
        try:
            text = value.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise InvalidConfiguration(f"Configuration file {value} is not valid UTF-8: {exc}") from exc
        except OSError as exc:
            raise InvalidConfiguration(f"Cannot read configuration file {value}: {exc}") from exc
        payload = _load_text_payload(text)
    else:
        raise TypeError(f"Unsupported value for a deployment tree: {type(value).__name__}")
    return DeploymentTree.from_dict(payload)


def _load_text_payload(raw: str | bytes) -> Any:
    """Interpret raw text as YAML first, falling back to JSON."""
    try:
        text = raw.decode() if isinstance(raw, bytes) else raw
    except UnicodeDecodeError as exc:
        raise InvalidConfiguration(f"Configuration is not valid UTF-8: {exc}") from exc
    try:
        return yaml.safe_load(text) or {}
    except yaml.YAMLError:
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise InvalidConfiguration(f"Configuration is neither YAML nor JSON: {exc}") from exc


__all__ = [
    "DependentGroup",
    "DeploymentTree",
    "UnitDescriptor",
    "load_tree",
]
