"""Environment-backed settings for building Terraform clients."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Protocol, runtime_checkable

from dotenv import load_dotenv

from .download import CACHE_ROOT as DEFAULT_CACHE_DIR
from .types import RegistryCredential

DEFAULT_TERRAFORM_VERSION = "1.1.6"


@runtime_checkable
class SettingsProvider(Protocol):
    """Protocol for retrieving named configuration values."""

    def get(self, name: str) -> str | None:
        """Return the value identified by *name*, or ``None`` when missing."""


@dataclass
class EnvSettingsProvider:
    """Provider that reads values directly from an environment mapping."""

    environ: Mapping[str, str]

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self.environ = dict(os.environ) if environ is None else environ

    def get(self, name: str) -> str | None:
        return self.environ.get(name)


@dataclass(frozen=True)
class TerraformSettings:
    binary: Path | None = None
    version: str = DEFAULT_TERRAFORM_VERSION
    cache_dir: Path = field(default_factory=lambda: DEFAULT_CACHE_DIR)
    force_download: bool = False
    skip_ssl: bool = False
    working_dir: Path | None = None
    registry_credentials: tuple[RegistryCredential, ...] = ()


def _get_value(name: str, default: str | None, provider: SettingsProvider) -> str | None:
    value = provider.get(name)
    return value if value is not None else default


def _env_bool(name: str, default: bool, provider: SettingsProvider) -> bool:
    value = _get_value(name, None, provider)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_path(name: str, provider: SettingsProvider) -> Path | None:
    value = _get_value(name, None, provider)
    if not value:
        return None
    return Path(value).expanduser()


def _env_json(name: str, provider: SettingsProvider) -> Any | None:
    value = _get_value(name, None, provider)
    if not value:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError as exc:
        raise ValueError(f"{name} must hold valid JSON: {exc}") from exc


def _registry_credentials(provider: SettingsProvider) -> tuple[RegistryCredential, ...]:
    payload = _env_json("TFRUNNER_REGISTRY_CREDENTIALS", provider)
    if payload is None:
        return ()
    if not isinstance(payload, dict):
        raise ValueError(
            "TFRUNNER_REGISTRY_CREDENTIALS must be a JSON object of host -> token"
        )
    return tuple(
        RegistryCredential(host=str(host), token=str(token))
        for host, token in payload.items()
    )


def load_settings(
    provider: SettingsProvider | None = None,
    *,
    dotenv_path: Path | None = None,
) -> TerraformSettings:
    """Build :class:`TerraformSettings` from the environment.

    When no provider is supplied a ``.env`` file is loaded first (``dotenv_path``
    or the nearest one found by python-dotenv); existing variables win.
    """

    if provider is None:
        if dotenv_path is not None:
            load_dotenv(dotenv_path)
        else:
            load_dotenv()
        provider = EnvSettingsProvider()

    return TerraformSettings(
        binary=_env_path("TFRUNNER_TERRAFORM_BINARY", provider),
        version=_get_value("TFRUNNER_TERRAFORM_VERSION", DEFAULT_TERRAFORM_VERSION, provider)
        or DEFAULT_TERRAFORM_VERSION,
        cache_dir=_env_path("TFRUNNER_CACHE_DIR", provider) or DEFAULT_CACHE_DIR,
        force_download=_env_bool("TFRUNNER_FORCE_DOWNLOAD", False, provider),
        skip_ssl=_env_bool("TFRUNNER_DOWNLOAD_SKIP_SSL", False, provider),
        working_dir=_env_path("TFRUNNER_WORKING_DIR", provider),
        registry_credentials=_registry_credentials(provider),
    )
