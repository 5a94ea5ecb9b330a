"""Turn a Terraform configuration and a lifecycle phase into a process invocation."""

from __future__ import annotations

import os
import shlex
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO

from .types import Phase, RegistryCredential

AUTOMATION_ENV = "TF_IN_AUTOMATION"
CLI_CONFIG_ENV = "TF_CLI_CONFIG_FILE"
# hashicorp/terraform#18026: destroy fails on outputs referencing removed resources.
WARN_OUTPUT_ERRORS_ENV = "TF_WARN_OUTPUT_ERRORS"

CONFIG_FILE_NAME = ".terraformrc"
MODULE_FILE_NAME = "main.tf.json"

_NON_INTERACTIVE = ("-no-color", "-input=false")


@dataclass
class TerraformConfig:
    """Mutable configuration owned by a single :class:`~tfrunner.Terraform`."""

    binary: Path
    working_dir: Path
    vars: dict[str, str] = field(default_factory=dict)
    backend_vars: dict[str, str] = field(default_factory=dict)
    env: dict[str, str] = field(default_factory=dict)
    credentials: list[RegistryCredential] = field(default_factory=list)
    stdout: BinaryIO | None = None
    stderr: BinaryIO | None = None

    def __post_init__(self) -> None:
        self.binary = Path(self.binary)
        self.working_dir = Path(self.working_dir)

    @property
    def config_file_path(self) -> Path:
        return self.working_dir / CONFIG_FILE_NAME

    @property
    def module_file_path(self) -> Path:
        return self.working_dir / MODULE_FILE_NAME

    @property
    def has_credentials(self) -> bool:
        return bool(self.credentials)


@dataclass(frozen=True)
class Invocation:
    """Exact argument vector, environment and directory for one Terraform run."""

    phase: Phase
    args: tuple[str, ...]
    env: Mapping[str, str]
    cwd: Path

    def command_line(self) -> str:
        return shlex.join(self.args)


def merge_args(*groups: Iterable[str]) -> list[str]:
    """Concatenate argument groups, preserving their order."""

    merged: list[str] = []
    for group in groups:
        merged.extend(group)
    return merged


def map_to_args(params: Mapping[str, str] | None, option: str) -> list[str]:
    """Emit one ``-<option> key=value`` pair per key of ``params``."""

    args: list[str] = []
    if not params:
        return args
    for key, value in params.items():
        args.extend((f"-{option}", f"{key}={value}"))
    return args


def build_environment(
    config: TerraformConfig, base: Mapping[str, str] | None = None
) -> dict[str, str]:
    """Inherited environment plus automation flag, overrides and CLI config path."""

    env = dict(os.environ if base is None else base)
    env[AUTOMATION_ENV] = "true"
    env.update(config.env)
    if config.has_credentials:
        env[CLI_CONFIG_ENV] = str(config.config_file_path)
    return env


def _phase_args(
    phase: Phase, config: TerraformConfig, plan_file: Path | str | None
) -> list[str]:
    if phase is Phase.VERSION:
        return ["version", "-json"]
    if phase is Phase.OUTPUT:
        return ["output", "-json"]
    if phase is Phase.GET_MODULE:
        return ["get", "-no-color"]
    if phase is Phase.INIT:
        return merge_args(
            ["init", *_NON_INTERACTIVE, "-force-copy", "-get=true"],
            map_to_args(config.backend_vars, "backend-config"),
        )
    if phase is Phase.APPLY:
        return merge_args(
            ["apply", *_NON_INTERACTIVE, "-auto-approve"],
            map_to_args(config.vars, "var"),
        )
    if phase is Phase.DESTROY:
        return merge_args(
            ["destroy", *_NON_INTERACTIVE, "-auto-approve"],
            map_to_args(config.vars, "var"),
        )
    if plan_file is None:
        raise ValueError(f"{phase.value} requires a plan file")
    if phase is Phase.PLAN:
        return merge_args(
            ["plan", *_NON_INTERACTIVE],
            map_to_args(config.vars, "var"),
            [f"-out={plan_file}"],
        )
    if phase is Phase.APPLY_WITH_PLAN:
        # Variables are baked into a saved plan; terraform rejects -var here.
        return ["apply", *_NON_INTERACTIVE, "-auto-approve", str(plan_file)]
    raise ValueError(f"Unsupported phase: {phase!r}")


def build_invocation(
    phase: Phase,
    config: TerraformConfig,
    *,
    plan_file: Path | str | None = None,
    base_environ: Mapping[str, str] | None = None,
) -> Invocation:
    """Build the :class:`Invocation` for ``phase`` from ``config``.

    ``plan`` passes ``plan_file`` as ``-out=<plan_file>``, the flag terraform
    reads; ``apply_with_plan`` passes it positionally.
    """

    args = merge_args([str(config.binary)], _phase_args(phase, config, plan_file))
    env = build_environment(config, base_environ)
    if phase is Phase.DESTROY:
        env[WARN_OUTPUT_ERRORS_ENV] = "1"
    return Invocation(phase=phase, args=tuple(args), env=env, cwd=config.working_dir)
