"""Shared value objects for the Terraform orchestration layer."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Union


class Phase(Enum):
    """One discrete lifecycle operation, mapped to exactly one Terraform run."""

    VERSION = "version"
    INIT = "init"
    PLAN = "plan"
    APPLY = "apply"
    APPLY_WITH_PLAN = "apply_with_plan"
    DESTROY = "destroy"
    OUTPUT = "output"
    GET_MODULE = "get_module"

    @property
    def subcommand(self) -> str:
        if self is Phase.APPLY_WITH_PLAN:
            return "apply"
        if self is Phase.GET_MODULE:
            return "get"
        return self.value


@dataclass(frozen=True, slots=True)
class RegistryCredential:
    """Token for one private registry host, rendered as a ``credentials`` block."""

    host: str
    token: str

    def __post_init__(self) -> None:
        for name in ("host", "token"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise ValueError(f"RegistryCredential.{name} must be a non-empty string")

    def to_dict(self) -> dict[str, str]:
        return {"host": self.host, "token": self.token}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "RegistryCredential":
        return cls(host=str(data["host"]), token=str(data["token"]))


@dataclass(frozen=True, slots=True)
class ModuleReference:
    """Module source and version constraint for a single ``terraform get``."""

    source: str
    version: str

    # Fixed module name; the fetched sources land in .terraform/modules/<name>.
    NAME = "module"

    def to_document(self) -> dict[str, Any]:
        return {
            "module": {
                self.NAME: {
                    "source": self.source,
                    "version": self.version,
                }
            }
        }


def canonical_json(value: Any) -> str:
    """Serialise ``value`` as compact JSON with sorted keys."""

    return json.dumps(value, separators=(",", ":"), sort_keys=True, ensure_ascii=False)


@dataclass(frozen=True, slots=True)
class StringOutput:
    """Output declared with Terraform type ``string``."""

    value: str
    sensitive: bool = False

    def render(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class StructuredOutput:
    """Output of any non-string type (number, bool, list, map, object, ...)."""

    value: Any
    type_expr: Any
    sensitive: bool = False

    def render(self) -> str:
        return canonical_json(self.value)


OutputValue = Union[StringOutput, StructuredOutput]
