"""Programmatic orchestration of the Terraform CLI."""

from .config import EnvSettingsProvider, SettingsProvider, TerraformSettings, load_settings
from .descriptors import (
    load_credentials_descriptor,
    write_credentials_descriptor,
    write_module_descriptor,
)
from .download import download_terraform, terraform_download_url
from .errors import (
    ConfigWriteError,
    DecodeError,
    DownloadError,
    ModulePlacementError,
    ProcessError,
    TerraformError,
)
from .invocation import Invocation, TerraformConfig, build_invocation, map_to_args
from .outputs import decode_outputs, decode_version, parse_outputs
from .runner import ProcessRunner, SubprocessRunner
from .terraform import Terraform
from .types import (
    ModuleReference,
    OutputValue,
    Phase,
    RegistryCredential,
    StringOutput,
    StructuredOutput,
)

__all__ = [
    "ConfigWriteError",
    "DecodeError",
    "DownloadError",
    "EnvSettingsProvider",
    "Invocation",
    "ModulePlacementError",
    "ModuleReference",
    "OutputValue",
    "Phase",
    "ProcessError",
    "ProcessRunner",
    "RegistryCredential",
    "SettingsProvider",
    "StringOutput",
    "StructuredOutput",
    "SubprocessRunner",
    "Terraform",
    "TerraformConfig",
    "TerraformError",
    "TerraformSettings",
    "build_invocation",
    "decode_outputs",
    "decode_version",
    "download_terraform",
    "load_credentials_descriptor",
    "load_settings",
    "map_to_args",
    "parse_outputs",
    "terraform_download_url",
    "write_credentials_descriptor",
    "write_module_descriptor",
]
