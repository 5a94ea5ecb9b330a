"""Tests for the Terraform release download helper."""

from __future__ import annotations

import io
import os
import shutil
import ssl
import urllib.error
import zipfile
from pathlib import Path
from unittest import mock

import pytest

from tfrunner import download
from tfrunner.errors import DownloadError


@pytest.fixture()
def fake_cache(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the download helper at a temporary cache directory."""

    cache = tmp_path / "cache"
    monkeypatch.setattr(download, "CACHE_ROOT", cache)
    monkeypatch.setattr(
        download,
        "terraform_download_url",
        lambda version: f"https://releases.example.invalid/{version}/terraform.zip",
    )
    return cache


def make_zip_with_member(path: Path, *, member_name: str, content: bytes) -> None:
    with zipfile.ZipFile(path, mode="w") as archive:
        archive.writestr(member_name, content)


def serve_archive(monkeypatch: pytest.MonkeyPatch, archive_path: Path) -> list[str]:
    requested: list[str] = []

    def fake_download(url: str, destination: Path, *, skip_ssl: bool = False) -> None:
        requested.append(url)
        shutil.copyfile(archive_path, destination)

    monkeypatch.setattr(download, "_download", fake_download)
    return requested


@pytest.mark.parametrize(
    ("system", "machine", "suffix"),
    [
        ("Linux", "x86_64", "terraform_1.1.6_linux_amd64.zip"),
        ("Darwin", "arm64", "terraform_1.1.6_darwin_arm64.zip"),
        ("Windows", "AMD64", "terraform_1.1.6_windows_amd64.zip"),
    ],
)
def test_download_url_targets_host_platform(system: str, machine: str, suffix: str) -> None:
    url = download.terraform_download_url("v1.1.6", system=system, machine=machine)

    assert url == f"https://releases.hashicorp.com/terraform/1.1.6/{suffix}"


def test_download_url_rejects_unknown_platform() -> None:
    with pytest.raises(DownloadError, match="Unsupported platform"):
        download.terraform_download_url("1.1.6", system="plan9", machine="mips")


def test_binary_name_on_windows() -> None:
    assert download.binary_name("Windows") == "terraform.exe"
    assert download.binary_name("Linux") == "terraform"


def test_download_extracts_binary_into_versioned_cache(
    fake_cache: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    archive_path = tmp_path / "terraform.zip"
    make_zip_with_member(
        archive_path, member_name=download.binary_name(), content=b"#!/bin/sh\necho tf\n"
    )
    requested = serve_archive(monkeypatch, archive_path)

    binary = download.download_terraform("1.1.6")

    assert binary == fake_cache / "1.1.6" / download.binary_name()
    assert binary.read_bytes() == b"#!/bin/sh\necho tf\n"
    assert os.access(binary, os.X_OK)
    assert requested == ["https://releases.example.invalid/1.1.6/terraform.zip"]


def test_cached_binary_is_reused_unless_forced(
    fake_cache: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    cached = fake_cache / "1.1.6" / download.binary_name()
    cached.parent.mkdir(parents=True)
    cached.write_bytes(b"old")
    archive_path = tmp_path / "terraform.zip"
    make_zip_with_member(archive_path, member_name=download.binary_name(), content=b"new")
    requested = serve_archive(monkeypatch, archive_path)

    assert download.download_terraform("1.1.6") == cached
    assert requested == []
    assert cached.read_bytes() == b"old"

    download.download_terraform("1.1.6", force=True)
    assert len(requested) == 1
    assert cached.read_bytes() == b"new"


def test_explicit_cache_root_wins(
    fake_cache: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    archive_path = tmp_path / "terraform.zip"
    make_zip_with_member(archive_path, member_name=download.binary_name(), content=b"tf")
    serve_archive(monkeypatch, archive_path)
    other = tmp_path / "other-cache"

    binary = download.download_terraform("1.5.7", cache_root=other)

    assert binary == other / "1.5.7" / download.binary_name()
    assert not fake_cache.exists()


def test_download_rejects_path_traversal(
    fake_cache: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    archive_path = tmp_path / "terraform.zip"
    make_zip_with_member(archive_path, member_name="../terraform", content=b"echo nope")
    serve_archive(monkeypatch, archive_path)

    with pytest.raises(DownloadError) as excinfo:
        download.download_terraform("1.1.6")

    assert "outside extraction directory" in str(excinfo.value)
    assert not (fake_cache / "terraform").exists()


def test_download_reports_missing_binary(
    fake_cache: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    archive_path = tmp_path / "terraform.zip"
    make_zip_with_member(archive_path, member_name="README.md", content=b"docs")
    serve_archive(monkeypatch, archive_path)

    with pytest.raises(DownloadError, match="Terraform executable not found") as excinfo:
        download.download_terraform("1.1.6")

    assert "README.md" in str(excinfo.value)


def test_download_rejects_non_zip_payload(
    fake_cache: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    archive_path = tmp_path / "terraform.zip"
    archive_path.write_bytes(b"<html>not found</html>")
    serve_archive(monkeypatch, archive_path)

    with pytest.raises(DownloadError, match="is not a zip"):
        download.download_terraform("1.1.6")


def test_download_refuses_plain_http(tmp_path: Path) -> None:
    with pytest.raises(DownloadError, match="non-HTTPS"):
        download._download("http://example.invalid/terraform.zip", tmp_path / "tf.zip")


def test_download_wraps_url_errors(tmp_path: Path) -> None:
    destination = tmp_path / "terraform.zip"
    error = urllib.error.URLError("network offline")

    with mock.patch("urllib.request.urlopen", side_effect=error):
        with pytest.raises(DownloadError) as excinfo:
            download._download("https://example.invalid/terraform.zip", destination)

    assert "network offline" in str(excinfo.value)
    assert not destination.exists()


def _recording_urlopen(seen: list, payload: bytes = b"zip-bytes"):
    def fake_urlopen(url: str, context=None):
        seen.append(context)
        return io.BytesIO(payload)

    return fake_urlopen


@pytest.mark.parametrize("raw", ["0", "false", "1"])
def test_download_verifies_certificates_unless_asked(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, raw: str
) -> None:
    monkeypatch.setenv("TFRUNNER_DOWNLOAD_SKIP_SSL", raw)
    seen: list = []
    destination = tmp_path / "terraform.zip"

    with mock.patch("urllib.request.urlopen", _recording_urlopen(seen)):
        download._download(
            "https://example.invalid/terraform.zip", destination, skip_ssl=False
        )

    assert len(seen) == 1
    assert seen[0] is None or seen[0].verify_mode != ssl.CERT_NONE
    assert destination.read_bytes() == b"zip-bytes"


def test_download_skips_verification_when_requested(tmp_path: Path) -> None:
    seen: list = []
    destination = tmp_path / "terraform.zip"

    with mock.patch("urllib.request.urlopen", _recording_urlopen(seen)):
        download._download(
            "https://example.invalid/terraform.zip", destination, skip_ssl=True
        )

    assert len(seen) == 1
    assert seen[0].verify_mode == ssl.CERT_NONE
    assert seen[0].check_hostname is False
    assert not (tmp_path / "terraform.zip.part").exists()
