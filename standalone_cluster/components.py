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

"""cert-manager and Argo CD installation."""

from __future__ import annotations

from pathlib import Path

import sh
from rich.panel import Panel
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from standalone_cluster import console
from standalone_cluster.config import ComponentConfig
from standalone_cluster.constants import (
    ARGOCD_HOST_PREFIX,
    ARGOCD_SERVER_SELECTOR,
    ARGOCD_SERVER_SERVICE,
    ARGOCD_TLS_SECRET,
    CA_SECRET_NAME,
    CLUSTER_ISSUER_NAME,
    HELM_KEY_INSTALL_CRDS,
    HELM_KEY_SERVER_INGRESS,
    HELM_KEY_SERVER_INSECURE,
    HELM_KEY_SERVER_SERVICE_TYPE,
    HELM_RELEASE_ARGOCD,
    HELM_RELEASE_CERT_MANAGER,
    ISSUER_APPLY_MAX_RETRIES,
    ISSUER_APPLY_POLL_INTERVAL_SECONDS,
    NS_ARGOCD,
    NS_CERT_MANAGER,
    dep_value,
)
from standalone_cluster.errors import ApplyError, CertificateError, ReadinessTimeoutError
from standalone_cluster.manifests import ca_cluster_issuer_manifest, ingress_manifest, tls_secret_manifest
from standalone_cluster.utils import (
    Toolbox,
    apply_manifests,
    command_error,
    condition_status,
    ensure_namespace,
    ingress_host,
    resource_exists,
    wait_for_condition,
)

HELM_TIMEOUT_MARKERS = ("timed out", "context deadline exceeded")


# ============================================================================
# Helm
# ============================================================================

def helm_set_args(values: dict[str, str]) -> list[str]:
    """Turn ``{key: value}`` into repeated ``--set key=value`` arguments."""
    return [item for key, value in values.items() for item in ("--set", f"{key}={value}")]


def add_chart_repo(tools: Toolbox, name: str, url: str) -> None:
    """Register (or refresh) a chart repository.

    Raises:
        ApplyError: If helm cannot reach the repository.
    """
    try:
        tools.helm("repo", "add", name, url, "--force-update")
        tools.helm("repo", "update", name)
    except sh.ErrorReturnCode as err:
        raise ApplyError(f"Failed to add chart repo {name}: {command_error(err)}") from err


def upgrade_install(
    tools: Toolbox,
    release: str,
    chart: str,
    namespace: str,
    *,
    values: dict[str, str],
    timeout: int,
    version: str = "",
) -> None:
    """Install or upgrade a release and wait for its resources to be ready.

    Raises:
        ReadinessTimeoutError: If helm gives up waiting for readiness.
        ApplyError: If helm rejects the release for any other reason.
    """
    args = [
        "upgrade", "--install", release, chart,
        "--namespace", namespace,
        *helm_set_args(values),
        "--wait", "--timeout", f"{timeout}s",
    ]
    if version:
        args += ["--version", version]
    try:
        tools.helm(*args)
    except sh.ErrorReturnCode as err:
        reason = command_error(err)
        if any(marker in reason for marker in HELM_TIMEOUT_MARKERS):
            raise ReadinessTimeoutError(f"helm release {release} in namespace {namespace}", timeout, reason) from err
        raise ApplyError(f"Failed to install {release}: {reason}") from err


# ============================================================================
# cert-manager
# ============================================================================

@retry(
    stop=stop_after_attempt(ISSUER_APPLY_MAX_RETRIES),
    wait=wait_fixed(ISSUER_APPLY_POLL_INTERVAL_SECONDS),
    retry=retry_if_exception_type(ApplyError),
    reraise=True,
)
def _apply_cluster_issuer(tools: Toolbox, issuer: str, secret_name: str) -> None:
    """Apply the ClusterIssuer, retrying while the cert-manager webhook warms up."""
    apply_manifests(tools, [ca_cluster_issuer_manifest(issuer, secret_name)], f"ClusterIssuer {issuer}")


def certificate_automation_ready(tools: Toolbox) -> bool:
    """Whether the CA ClusterIssuer already exists and reports Ready. Pure query."""
    return condition_status(tools, "clusterissuer", CLUSTER_ISSUER_NAME, "Ready")


def deploy_certificate_automation(
    tools: Toolbox, comp_cfg: ComponentConfig, ca_cert: Path, ca_key: Path,
) -> str:
    """Install cert-manager and a ClusterIssuer backed by the local CA.

    Args:
        tools: Toolbox resolving helm and kubectl.
        comp_cfg: Component configuration with chart version and timeout.
        ca_cert: Local CA root certificate.
        ca_key: Local CA root key.

    Returns:
        Name of the ClusterIssuer.

    Raises:
        CertificateError: If the CA material is missing on disk.
        ApplyError: If a chart or resource is rejected.
        ReadinessTimeoutError: If cert-manager does not become ready in time.
    """
    console.print(Panel.fit("Deploying cert-manager", style="bold blue"))
    for path in (ca_cert, ca_key):
        if not path.exists():
            raise CertificateError(f"CA material {path} not found; run certificate provisioning first")

    add_chart_repo(
        tools, dep_value("charts", "cert_manager", "repo"), dep_value("charts", "cert_manager", "repo_url"),
    )
    ensure_namespace(tools, NS_CERT_MANAGER)
    upgrade_install(
        tools, HELM_RELEASE_CERT_MANAGER, dep_value("charts", "cert_manager", "chart"), NS_CERT_MANAGER,
        values={HELM_KEY_INSTALL_CRDS: "true"},
        timeout=comp_cfg.chart_timeout,
        version=comp_cfg.cert_manager_version,
    )
    console.print("[green]\u2705 cert-manager installed[/green]")

    apply_manifests(
        tools, [tls_secret_manifest(CA_SECRET_NAME, NS_CERT_MANAGER, ca_cert, ca_key)], f"Secret {CA_SECRET_NAME}",
    )
    console.print("[yellow]\u2139\ufe0f  Creating ClusterIssuer (with retry for webhook readiness)...[/yellow]")
    _apply_cluster_issuer(tools, CLUSTER_ISSUER_NAME, CA_SECRET_NAME)
    console.print(f"[green]\u2705 ClusterIssuer {CLUSTER_ISSUER_NAME} created[/green]")
    return CLUSTER_ISSUER_NAME


# ============================================================================
# Argo CD
# ============================================================================

def gitops_host(domain: str) -> str:
    return f"{ARGOCD_HOST_PREFIX}.{domain}"


def gitops_controller_ready(tools: Toolbox, domain: str) -> bool:
    """Whether the Argo CD route serves *domain* and its server is Available. Pure query."""
    return ingress_host(tools, ARGOCD_SERVER_SERVICE, NS_ARGOCD) == gitops_host(domain) and condition_status(
        tools, "deployment", ARGOCD_SERVER_SERVICE, "Available", NS_ARGOCD,
    )


def deploy_gitops_controller(tools: Toolbox, comp_cfg: ComponentConfig, domain: str, issuer: str) -> None:
    """Install Argo CD and expose it through a TLS ingress signed by *issuer*.

    The route is only applied once *issuer* exists, since its certificate
    request is served by that issuer.

    Raises:
        ApplyError: If a chart or resource is rejected, or the issuer is missing.
        ReadinessTimeoutError: If no server pod becomes Ready in time.
    """
    console.print(Panel.fit("Deploying Argo CD", style="bold blue"))
    add_chart_repo(tools, dep_value("charts", "argo_cd", "repo"), dep_value("charts", "argo_cd", "repo_url"))
    ensure_namespace(tools, NS_ARGOCD)
    upgrade_install(
        tools, HELM_RELEASE_ARGOCD, dep_value("charts", "argo_cd", "chart"), NS_ARGOCD,
        values={
            HELM_KEY_SERVER_SERVICE_TYPE: "ClusterIP",
            HELM_KEY_SERVER_INGRESS: "false",
            HELM_KEY_SERVER_INSECURE: "true",
        },
        timeout=comp_cfg.chart_timeout,
        version=comp_cfg.argocd_version,
    )

    if not resource_exists(tools, "clusterissuer", issuer):
        raise ApplyError(f"ClusterIssuer {issuer} must exist before the Argo CD ingress is applied")
    apply_manifests(
        tools,
        [ingress_manifest(
            ARGOCD_SERVER_SERVICE, NS_ARGOCD, gitops_host(domain),
            ARGOCD_SERVER_SERVICE, 80, issuer, ARGOCD_TLS_SECRET,
        )],
        "Argo CD ingress",
    )

    console.print("[yellow]\u2139\ufe0f  Waiting for Argo CD server to be ready...[/yellow]")
    wait_for_condition(
        tools, "Ready", "pod",
        selector=ARGOCD_SERVER_SELECTOR, namespace=NS_ARGOCD, timeout=comp_cfg.gitops_ready_timeout,
    )
    console.print("[green]\u2705 Argo CD deployed[/green]")
