"""Lifecycle orchestrator driving the Terraform CLI."""

from __future__ import annotations

import io
import os
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import BinaryIO

import structlog
from structlog.typing import FilteringBoundLogger

from .config import TerraformSettings
from .descriptors import write_credentials_descriptor, write_module_descriptor
from .download import download_terraform
from .errors import ModulePlacementError, ProcessError
from .invocation import Invocation, TerraformConfig, build_invocation
from .outputs import decode_outputs, decode_version, parse_outputs
from .runner import ProcessRunner, SubprocessRunner
from .types import ModuleReference, OutputValue, Phase, RegistryCredential


class Terraform:
    """Drive ``terraform`` for a single working directory.

    Every lifecycle method spawns exactly one process and blocks until it exits.
    Instances are not safe for concurrent use; run parallel provisioning from
    separate working directories with separate instances.
    """

    def __init__(
        self,
        binary: Path | str,
        working_dir: Path | str,
        *,
        stdout: BinaryIO | None = None,
        stderr: BinaryIO | None = None,
        runner: ProcessRunner | None = None,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        self.config = TerraformConfig(
            binary=Path(binary),
            working_dir=Path(working_dir),
            stdout=stdout,
            stderr=stderr,
        )
        self.runner: ProcessRunner = runner or SubprocessRunner()
        self.logger: FilteringBoundLogger = logger or structlog.get_logger(__name__)
        self.logger.debug(
            "terraform.client_created",
            binary=str(self.config.binary),
            working_dir=str(self.config.working_dir),
        )

    @classmethod
    def from_settings(
        cls,
        settings: TerraformSettings,
        working_dir: Path | str | None = None,
        **kwargs,
    ) -> "Terraform":
        """Build a client from :class:`TerraformSettings`, downloading if needed."""

        binary = settings.binary or download_terraform(
            settings.version,
            force=settings.force_download,
            cache_root=settings.cache_dir,
            skip_ssl=settings.skip_ssl,
        )
        directory = working_dir or settings.working_dir
        if directory is None:
            raise ValueError("A working directory is required to build a Terraform client")
        client = cls(binary, directory, **kwargs)
        if settings.registry_credentials:
            client.with_registry(settings.registry_credentials)
        return client

    # Accessors --------------------------------------------------------------
    @property
    def working_dir(self) -> Path:
        return self.config.working_dir

    @property
    def config_file_path(self) -> Path:
        return self.config.config_file_path

    @property
    def stdout(self) -> BinaryIO | None:
        return self.config.stdout

    @property
    def stderr(self) -> BinaryIO | None:
        return self.config.stderr

    def set_stdout(self, stdout: BinaryIO | None) -> "Terraform":
        self.config.stdout = stdout
        return self

    def set_stderr(self, stderr: BinaryIO | None) -> "Terraform":
        self.config.stderr = stderr
        return self

    def set_working_dir(self, working_dir: Path | str) -> "Terraform":
        self.config.working_dir = Path(working_dir)
        return self

    # Configuration ----------------------------------------------------------
    def with_registry(self, credentials: Iterable[RegistryCredential] | None) -> "Terraform":
        """Configure private registry credentials used by init and module fetches."""

        self.config.credentials = list(credentials or ())
        return self

    def with_backend_vars(self, backend_vars: Mapping[str, str] | None) -> "Terraform":
        self.config.backend_vars = dict(backend_vars or {})
        return self

    def with_vars(self, variables: Mapping[str, str] | None) -> "Terraform":
        self.config.vars = dict(variables or {})
        return self

    def with_env(self, env: Mapping[str, str] | None) -> "Terraform":
        self.config.env = dict(env or {})
        return self

    def set_var(self, key: str, value: str) -> "Terraform":
        self.config.vars[key] = value
        return self

    def set_backend_var(self, key: str, value: str) -> "Terraform":
        self.config.backend_vars[key] = value
        return self

    def set_env(self, key: str, value: str) -> "Terraform":
        self.config.env[key] = value
        return self

    # Lifecycle --------------------------------------------------------------
    def init(self) -> None:
        self._write_config()
        self._run(self._invocation(Phase.INIT))

    def plan(self, plan_file: Path | str) -> None:
        self._run(self._invocation(Phase.PLAN, plan_file=plan_file))

    def apply(self) -> None:
        self._run(self._invocation(Phase.APPLY))

    def apply_with_plan(self, plan_file: Path | str) -> None:
        self._run(self._invocation(Phase.APPLY_WITH_PLAN, plan_file=plan_file))

    def destroy(self) -> None:
        self._run(self._invocation(Phase.DESTROY))

    def output(self) -> dict[str, str]:
        """Return every output as a string; non-string values as JSON text."""

        return decode_outputs(self._capture(Phase.OUTPUT))

    def output_values(self) -> dict[str, OutputValue]:
        """Return outputs keeping the string/structured distinction."""

        return parse_outputs(self._capture(Phase.OUTPUT))

    def version(self) -> str:
        return decode_version(self._capture(Phase.VERSION))

    def get_module(self, source: str, version: str) -> None:
        """Fetch ``source`` at ``version`` and place its files in the working dir.

        Configure :meth:`with_registry` first when the module lives in a private
        registry.
        """

        self.logger.info("terraform.module_fetch", source=source, version=version)
        self._write_config()
        self._download_module(source, version)
        self._copy_module_to_working_dir()

    # Internals --------------------------------------------------------------
    def _invocation(self, phase: Phase, *, plan_file: Path | str | None = None) -> Invocation:
        return build_invocation(phase, self.config, plan_file=plan_file)

    def _write_config(self) -> None:
        write_credentials_descriptor(self.config.config_file_path, self.config.credentials)

    def _download_module(self, source: str, version: str) -> None:
        module_file = self.config.module_file_path
        write_module_descriptor(module_file, source, version)
        try:
            self._run(self._invocation(Phase.GET_MODULE))
        except ProcessError as exc:
            raise ProcessError(
                f"cannot download module '{source}' version '{version}': {exc}",
                phase=exc.phase,
                returncode=exc.returncode,
                command=exc.command,
                details={"source": source, "version": version},
            ) from exc
        finally:
            # Never leave the temporary module file behind as real configuration.
            module_file.unlink(missing_ok=True)

    def _copy_module_to_working_dir(self) -> None:
        module_path = self.working_dir / ".terraform" / "modules" / ModuleReference.NAME
        try:
            entries = sorted(os.listdir(module_path))
        except OSError as exc:
            raise ModulePlacementError(
                f"preparing terraform module failed, cannot read module source: {exc}",
                {"path": str(module_path)},
            ) from exc
        for name in entries:
            try:
                os.replace(module_path / name, self.working_dir / name)
            except OSError as exc:
                raise ModulePlacementError(
                    "preparing terraform module failed, "
                    f"can not move module source file: {exc}",
                    {"path": str(module_path / name)},
                ) from exc
        self.logger.info("terraform.module_relocated", entries=entries)

    def _capture(self, phase: Phase) -> bytes:
        buffer = io.BytesIO()
        self._run(self._invocation(phase), stdout=buffer)
        return buffer.getvalue()

    def _run(self, invocation: Invocation, *, stdout: BinaryIO | None = None) -> None:
        command = invocation.command_line()
        self.logger.info(
            "terraform.command_run",
            phase=invocation.phase.value,
            command=command,
            cwd=str(invocation.cwd),
        )
        self.logger.debug("terraform.command_env", overrides=sorted(self.config.env))
        try:
            returncode = self.runner.run(
                invocation,
                stdout=stdout if stdout is not None else self.config.stdout,
                stderr=self.config.stderr,
            )
        except OSError as exc:
            self.logger.error(
                "terraform.command_failed", phase=invocation.phase.value, returncode=None
            )
            raise ProcessError(
                f"terraform {invocation.phase.subcommand} could not be started: {exc}",
                phase=invocation.phase.value,
                command=command,
            ) from exc
        if returncode != 0:
            self.logger.error(
                "terraform.command_failed",
                phase=invocation.phase.value,
                returncode=returncode,
            )
            raise ProcessError(
                f"terraform {invocation.phase.subcommand} exited with status {returncode}",
                phase=invocation.phase.value,
                returncode=returncode,
                command=command,
            )
