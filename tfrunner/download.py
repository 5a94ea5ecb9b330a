"""Fetch official Terraform releases into a local cache."""

from __future__ import annotations

import logging
import platform
import shutil
import ssl
import stat
import tempfile
import urllib.error
import urllib.parse
import urllib.request
import zipfile
from pathlib import Path
from typing import BinaryIO

from .errors import DownloadError

logger = logging.getLogger(__name__)

CACHE_ROOT = Path.home() / ".tf" / "cache" / "terraform"
RELEASES_URL = "https://releases.hashicorp.com/terraform"

_SYSTEMS = {
    "linux": "linux",
    "darwin": "darwin",
    "windows": "windows",
    "freebsd": "freebsd",
    "openbsd": "openbsd",
    "sunos": "solaris",
}
_MACHINES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "armv7l": "arm",
    "armv6l": "arm",
}


def _host_labels(system: str | None, machine: str | None) -> tuple[str, str]:
    system = (system or platform.system()).lower()
    machine = (machine or platform.machine()).lower()
    try:
        return _SYSTEMS[system], _MACHINES[machine]
    except KeyError as exc:
        raise DownloadError(f"Unsupported platform: {system} {machine}") from exc


def binary_name(system: str | None = None) -> str:
    system = (system or platform.system()).lower()
    return "terraform.exe" if system == "windows" else "terraform"


def terraform_download_url(
    version: str, system: str | None = None, machine: str | None = None
) -> str:
    """Return the release archive URL for ``version`` on the given host."""

    os_label, arch_label = _host_labels(system, machine)
    version = version.lstrip("v")
    return (
        f"{RELEASES_URL}/{version}/terraform_{version}_{os_label}_{arch_label}.zip"
    )


def _download(url: str, destination: Path, *, skip_ssl: bool = False) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme.lower() != "https":
        raise DownloadError(f"Refusing to download from non-HTTPS URL: {url}")

    context = _unverified_context() if skip_ssl else None
    if context is not None:
        logger.warning("Certificate verification disabled for %s", url)
    try:
        with urllib.request.urlopen(url, context=context) as response:  # nosec B310
            _write_response(response, destination)
    except urllib.error.URLError as exc:
        raise DownloadError(f"Failed to download {url}: {exc.reason}") from exc
    except OSError as exc:
        raise DownloadError(f"Failed to download {url}: {exc}") from exc


def _unverified_context() -> ssl.SSLContext:
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


def _write_response(response: BinaryIO, destination: Path) -> None:
    # A partial archive never sits at the final path.
    partial = destination.with_name(destination.name + ".part")
    try:
        with partial.open("wb") as handle:
            shutil.copyfileobj(response, handle)
        partial.replace(destination)
    except OSError as exc:
        partial.unlink(missing_ok=True)
        raise DownloadError(
            f"Cannot store terraform archive at {destination}: {exc}"
        ) from exc


def _safe_extract_zip(archive: zipfile.ZipFile, target: Path) -> None:
    root = target.resolve()
    for member in archive.namelist():
        member_path = (target / member).resolve()
        if member_path != root and root not in member_path.parents:
            raise DownloadError(
                "Terraform archive member resolves outside extraction directory"
            )
    archive.extractall(path=target)


def download_terraform(
    version: str,
    *,
    force: bool = False,
    cache_root: Path | None = None,
    skip_ssl: bool = False,
) -> Path:
    """Ensure the Terraform ``version`` binary is cached and return its path.

    The binary lives at ``<cache_root>/<version>/terraform``. An existing binary
    is reused unless ``force`` is set.
    """

    version_dir = Path(cache_root or CACHE_ROOT) / version
    binary = version_dir / binary_name()
    if binary.is_file() and not force:
        return binary

    url = terraform_download_url(version)
    logger.info("Downloading terraform %s from %s", version, url)
    version_dir.mkdir(parents=True, exist_ok=True)
    try:
        with tempfile.NamedTemporaryFile(suffix=".zip", delete=False) as tmp:
            tmp_path = Path(tmp.name)
        try:
            _download(url, tmp_path, skip_ssl=skip_ssl)
            with zipfile.ZipFile(tmp_path) as archive:
                _safe_extract_zip(archive, version_dir)
        finally:
            tmp_path.unlink(missing_ok=True)
    except zipfile.BadZipFile as exc:
        raise DownloadError(f"Terraform archive from {url} is not a zip: {exc}") from exc
    except OSError as exc:  # pragma: no cover - network/runtime failures
        raise DownloadError(f"Failed to download terraform: {exc}") from exc

    if not binary.is_file():
        contents = sorted(entry.name for entry in version_dir.iterdir())
        raise DownloadError(
            f"Terraform executable not found: {binary}, Content: {contents}"
        )
    binary.chmod(binary.stat().st_mode | stat.S_IEXEC)
    return binary
