"""Error taxonomy raised by the Terraform orchestration layer."""

from __future__ import annotations

from typing import Any, Optional


class TerraformError(RuntimeError):
    """Base class for every failure surfaced by tfrunner."""

    code = "terraform_error"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigWriteError(TerraformError):
    """Raised when a descriptor file cannot be serialised or written."""

    code = "config_write"


class ProcessError(TerraformError):
    """Raised when the Terraform process fails to start or exits non-zero."""

    code = "process"

    def __init__(
        self,
        message: str,
        *,
        phase: str,
        returncode: int | None = None,
        command: str = "",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.phase = phase
        self.returncode = returncode
        self.command = command


class DecodeError(TerraformError):
    """Raised when Terraform's machine-readable output has an unexpected shape."""

    code = "decode"

    def __init__(
        self,
        message: str,
        *,
        key: str | None = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.key = key


class ModulePlacementError(TerraformError):
    """Raised when fetched module sources cannot be moved into the working dir."""

    code = "module_placement"


class DownloadError(TerraformError):
    """Raised when a Terraform release cannot be downloaded or extracted."""

    code = "download"
