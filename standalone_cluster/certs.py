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

"""Local CA trust root and wildcard leaf certificate provisioning."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import sh
from rich.panel import Panel

from standalone_cluster import console, logger
from standalone_cluster.constants import CA_CERT_FILE, CA_KEY_FILE, EXTRA_CERT_NAMES
from standalone_cluster.errors import CertificateError
from standalone_cluster.utils import Toolbox, command_error


@dataclass(frozen=True)
class CertificateMaterial:
    """CA root and issued wildcard credentials, all files on local disk."""

    ca_cert: Path
    ca_key: Path
    cert: Path
    key: Path


def domain_patterns(domain: str) -> list[str]:
    """Names covered by the wildcard leaf certificate."""
    return [f"*.{domain}", domain, *EXTRA_CERT_NAMES]


def install_root(tools: Toolbox) -> None:
    """Install the local CA into the system trust stores.

    Re-installing an already trusted root is harmless; failures (e.g. no trust
    store tooling on the host) are reported and tolerated.
    """
    try:
        tools.mkcert("-install")
        console.print("[green]\u2705 Local CA installed[/green]")
    except sh.ErrorReturnCode as err:
        console.print(f"[yellow]\u26a0\ufe0f  Local CA install reported problems: {command_error(err, 200)}[/yellow]")


def root_material_paths(tools: Toolbox) -> tuple[Path, Path]:
    """Return (ca_cert, ca_key) from the local CA's root directory.

    Raises:
        CertificateError: If the CA root directory cannot be queried.
    """
    try:
        caroot = Path(tools.mkcert("-CAROOT").strip())
    except sh.ErrorReturnCode as err:
        raise CertificateError(f"Cannot locate local CA root: {command_error(err)}") from err
    return caroot / CA_CERT_FILE, caroot / CA_KEY_FILE


def issue_leaf(tools: Toolbox, patterns: list[str], cert: Path, key: Path) -> CertificateMaterial:
    """Issue a leaf certificate for *patterns* into *cert* / *key*.

    The CA tool is noisy and may exit non-zero while still writing both files, so
    success is judged by the files, not the exit code.

    Raises:
        CertificateError: If the certificate or key file is missing afterwards.
    """
    cert.parent.mkdir(parents=True, exist_ok=True)
    key.parent.mkdir(parents=True, exist_ok=True)
    try:
        tools.mkcert("-cert-file", str(cert), "-key-file", str(key), *patterns)
    except sh.ErrorReturnCode as err:
        logger.warning("Certificate generation had warnings: %s", command_error(err, 200))
    if not (cert.exists() and key.exists()):
        raise CertificateError(f"Certificate issuance did not produce {cert} and {key}")
    ca_cert, ca_key = root_material_paths(tools)
    return CertificateMaterial(ca_cert=ca_cert, ca_key=ca_key, cert=cert, key=key)


def certificates_present(tools: Toolbox, cert: Path, key: Path) -> bool:
    """Whether both the CA root and the leaf pair already exist. Pure query."""
    if not (cert.exists() and key.exists()):
        return False
    try:
        ca_cert, ca_key = root_material_paths(tools)
    except CertificateError:
        return False
    return ca_cert.exists() and ca_key.exists()


def provision_certificates(tools: Toolbox, domain: str, cert: Path, key: Path) -> CertificateMaterial:
    """Install the CA root then issue the wildcard certificate for *domain*."""
    console.print(Panel.fit("Setting up certificates", style="bold blue"))
    install_root(tools)
    material = issue_leaf(tools, domain_patterns(domain), cert, key)
    console.print(f"[green]\u2705 Certificates created in {cert.parent}[/green]")
    return material
