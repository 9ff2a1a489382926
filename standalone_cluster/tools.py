# /*
# Copyright 2026 The Grove Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Tool binary acquisition: download, make executable, move into place."""

from __future__ import annotations

import enum
import os
import stat
import tarfile
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import requests
from rich.panel import Panel

from standalone_cluster import console, logger
from standalone_cluster.constants import (
    DOWNLOAD_CHUNK_SIZE,
    DOWNLOAD_TIMEOUT_SECONDS,
    HELM_RELEASE_URL,
    K3D_RELEASE_URL,
    KUBECTL_RELEASE_URL,
    KUBECTL_STABLE_URL,
    MKCERT_RELEASE_URL,
    TOOL_HELM,
    TOOL_K3D,
    TOOL_KUBECTL,
    TOOL_MKCERT,
    dep_value,
)
from standalone_cluster.errors import AcquisitionError
from standalone_cluster.utils import detect_platform


class AcquireResult(enum.Enum):
    INSTALLED = "installed"
    ALREADY_PRESENT = "already-present"


@dataclass(frozen=True)
class ExternalToolBinary:
    """A tool binary fetched over HTTPS into the tools directory.

    The existence of ``path`` is the only install marker. ``url`` may be a
    callable so that resolving it (e.g. looking up the latest kubectl release)
    only happens when the binary is actually missing.

    Attributes:
        name: Tool name, also the file name under the tools directory.
        url: Download URL, or a zero-argument callable returning it.
        path: Local target path.
        archive_member: Base name of the file to extract when the download is a
            ``.tar.gz`` archive, or None for a bare binary.
    """

    name: str
    url: str | Callable[[], str]
    path: Path
    archive_member: str | None = None


def _download(url: str, dest: Path, session: requests.Session) -> None:
    with session.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT_SECONDS, allow_redirects=True) as response:
        response.raise_for_status()
        with open(dest, "wb") as f:
            for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                f.write(chunk)


def _extract_member(archive: Path, member_name: str, dest: Path) -> None:
    with tarfile.open(archive, "r:gz") as tar:
        for member in tar.getmembers():
            if member.isfile() and Path(member.name).name == member_name:
                source = tar.extractfile(member)
                if source is None:
                    break
                with source, open(dest, "wb") as f:
                    f.write(source.read())
                return
    raise AcquisitionError(f"'{member_name}' not found in downloaded archive")


def ensure_binary(
    name: str,
    url: str | Callable[[], str],
    target: Path,
    *,
    archive_member: str | None = None,
    session: requests.Session | None = None,
) -> AcquireResult:
    """Ensure a tool binary exists at *target*.

    If *target* exists nothing else happens, no network call included. Otherwise the
    file is downloaded next to *target*, made executable and atomically renamed into
    place. A failed download leaves nothing behind.

    Args:
        name: Tool name, for messages.
        url: Download URL or a callable returning it.
        target: Final path of the executable.
        archive_member: File to extract when the download is a ``.tar.gz``.
        session: Optional requests session to reuse.

    Returns:
        ``AcquireResult.ALREADY_PRESENT`` or ``AcquireResult.INSTALLED``.

    Raises:
        AcquisitionError: If the download, extraction or move fails.
    """
    if target.exists():
        console.print(f"[yellow]\u2139\ufe0f  {name} already installed[/yellow]")
        return AcquireResult.ALREADY_PRESENT

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
    except OSError as err:
        raise AcquisitionError(f"Cannot create directory {target.parent}: {err}") from err

    console.print(f"[yellow]\u2139\ufe0f  Installing {name}...[/yellow]")
    tmp: Path | None = None
    archive: Path | None = None
    own_session = session is None
    session = session or requests.Session()
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{name}-", dir=target.parent)
        os.close(fd)
        tmp = Path(tmp_name)
        if archive_member:
            archive = tmp.with_suffix(".tar.gz")
        resolved = url() if callable(url) else url
        logger.info("Downloading %s from %s", name, resolved)
        if archive is not None:
            _download(resolved, archive, session)
            _extract_member(archive, archive_member, tmp)
        else:
            _download(resolved, tmp, session)
        tmp.chmod(tmp.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        os.replace(tmp, target)
    except (requests.RequestException, OSError, tarfile.TarError) as err:
        raise AcquisitionError(f"Failed to install {name}: {err}") from err
    finally:
        if tmp is not None:
            tmp.unlink(missing_ok=True)
        if archive is not None:
            archive.unlink(missing_ok=True)
        if own_session:
            session.close()

    console.print(f"[green]\u2705 {name} installed[/green]")
    return AcquireResult.INSTALLED


def latest_kubectl_version(session: requests.Session | None = None) -> str:
    """Look up the current stable kubectl release tag.

    Raises:
        AcquisitionError: If the release index cannot be fetched.
    """
    getter = session.get if session is not None else requests.get
    try:
        response = getter(KUBECTL_STABLE_URL, timeout=DOWNLOAD_TIMEOUT_SECONDS)
        response.raise_for_status()
    except requests.RequestException as err:
        raise AcquisitionError(f"Failed to resolve kubectl version: {err}") from err
    return response.text.strip()


def tool_binaries(tools_dir: Path, platform: tuple[str, str] | None = None) -> list[ExternalToolBinary]:
    """Describe the four tool binaries for the detected (or given) platform.

    Args:
        tools_dir: Directory that receives the binaries.
        platform: ``(os, arch)`` override, mainly for tests.

    Returns:
        List of binaries in install order.
    """
    os_name, arch = platform or detect_platform()

    k3d_version = dep_value("tools", "k3d", "version", default="latest")
    k3d_release = "latest/download" if k3d_version == "latest" else f"download/{k3d_version}"
    helm_version = dep_value("tools", "helm", "version", default="v3.13.3")
    mkcert_version = dep_value("tools", "mkcert", "version", default="latest")
    kubectl_version = dep_value("tools", "kubectl", "version", default="stable")

    def kubectl_url() -> str:
        version = latest_kubectl_version() if kubectl_version == "stable" else kubectl_version
        return KUBECTL_RELEASE_URL.format(version=version, os=os_name, arch=arch)

    return [
        ExternalToolBinary(
            TOOL_K3D, K3D_RELEASE_URL.format(release=k3d_release, os=os_name, arch=arch), tools_dir / TOOL_K3D,
        ),
        ExternalToolBinary(TOOL_KUBECTL, kubectl_url, tools_dir / TOOL_KUBECTL),
        ExternalToolBinary(
            TOOL_MKCERT, MKCERT_RELEASE_URL.format(version=mkcert_version, os=os_name, arch=arch),
            tools_dir / TOOL_MKCERT,
        ),
        ExternalToolBinary(
            TOOL_HELM, HELM_RELEASE_URL.format(version=helm_version, os=os_name, arch=arch),
            tools_dir / TOOL_HELM, archive_member=TOOL_HELM,
        ),
    ]


def binaries_present(binaries: list[ExternalToolBinary]) -> bool:
    return all(binary.path.exists() for binary in binaries)


def acquire_binaries(binaries: list[ExternalToolBinary]) -> dict[str, AcquireResult]:
    """Ensure every binary is installed, sharing one HTTP session.

    Raises:
        AcquisitionError: On the first binary that cannot be installed.
    """
    console.print(Panel.fit("Setting up tools", style="bold blue"))
    results: dict[str, AcquireResult] = {}
    with requests.Session() as session:
        for binary in binaries:
            results[binary.name] = ensure_binary(
                binary.name, binary.url, binary.path,
                archive_member=binary.archive_member, session=session,
            )
    return results
