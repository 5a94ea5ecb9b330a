"""Writers for the small files Terraform reads next to a working directory.

Two documents are produced:

* the CLI configuration (``.terraformrc``) holding one ``credentials`` block per
  private registry host, written in HCL native syntax;
* a single-use ``main.tf.json`` referencing one module so ``terraform get`` can
  resolve it.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from pathlib import Path

from .errors import ConfigWriteError
from .types import ModuleReference, RegistryCredential

_HCL_ESCAPES = (
    ("\\", "\\\\"),
    ('"', '\\"'),
    ("\n", "\\n"),
    ("\r", "\\r"),
    ("\t", "\\t"),
    ("${", "$${"),
    ("%{", "%%{"),
)
_HCL_UNESCAPES = {'"': '"', "\\": "\\", "n": "\n", "r": "\r", "t": "\t"}

# Reads back only the blocks render_credentials writes; not a general HCL parser.
_QUOTED = r'"((?:[^"\\]|\\.)*)"'
_CREDENTIALS_BLOCK = re.compile(
    r"credentials\s+" + _QUOTED + r"\s*\{\s*token\s*=\s*" + _QUOTED + r"\s*\}",
    re.DOTALL,
)


def _hcl_quote(value: str) -> str:
    for raw, escaped in _HCL_ESCAPES:
        value = value.replace(raw, escaped)
    return f'"{value}"'


def _hcl_unquote(value: str) -> str:
    value = re.sub(r'\\(["\\nrt])', lambda match: _HCL_UNESCAPES[match.group(1)], value)
    return value.replace("$${", "${").replace("%%{", "%{")


def render_credentials(credentials: Iterable[RegistryCredential]) -> str:
    blocks = [
        f"credentials {_hcl_quote(credential.host)} {{\n"
        f"  token = {_hcl_quote(credential.token)}\n"
        "}\n"
        for credential in credentials
    ]
    return "\n".join(blocks)


def write_credentials_descriptor(
    path: Path, credentials: Iterable[RegistryCredential] | None
) -> bool:
    """Write the Terraform CLI configuration for ``credentials`` to ``path``.

    Returns ``False`` without touching the filesystem when no credentials are
    configured, so no CLI config file (and no ``TF_CLI_CONFIG_FILE``) is
    introduced unless it is needed.
    """

    entries = list(credentials or ())
    if not entries:
        return False
    try:
        Path(path).write_text(render_credentials(entries), encoding="utf-8")
    except OSError as exc:
        raise ConfigWriteError(
            f"cannot configure terraform registry credentials: {exc}",
            {"path": str(path)},
        ) from exc
    return True


def load_credentials_descriptor(path: Path) -> list[RegistryCredential]:
    """Read back the ``credentials`` blocks written by this module."""

    text = Path(path).read_text(encoding="utf-8")
    return [
        RegistryCredential(host=_hcl_unquote(host), token=_hcl_unquote(token))
        for host, token in _CREDENTIALS_BLOCK.findall(text)
    ]


def write_module_descriptor(path: Path, source: str, version: str) -> ModuleReference:
    """Write a ``main.tf.json`` that references a single module."""

    reference = ModuleReference(source=source, version=version)
    try:
        payload = json.dumps(reference.to_document(), indent=1)
        Path(path).write_text(payload, encoding="utf-8")
    except (OSError, TypeError, ValueError) as exc:
        raise ConfigWriteError(
            f"cannot prepare module file for '{source}' version '{version}': {exc}",
            {"path": str(path), "source": source, "version": version},
        ) from exc
    return reference
