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

"""Configuration classes and config display."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.table import Table

from standalone_cluster import console
from standalone_cluster.constants import (
    DEFAULT_CERTS_DIR,
    DEFAULT_CHART_TIMEOUT,
    DEFAULT_CLUSTER_CREATE_MAX_RETRIES,
    DEFAULT_CLUSTER_NAME,
    DEFAULT_CLUSTER_TIMEOUT,
    DEFAULT_DATA_DIR,
    DEFAULT_DOMAIN,
    DEFAULT_GITOPS_READY_TIMEOUT,
    DEFAULT_HTTP_BASE_PORT,
    DEFAULT_HTTPS_BASE_PORT,
    DEFAULT_INOTIFY_MAX_USER_INSTANCES,
    DEFAULT_NODE_READY_TIMEOUT,
    DEFAULT_PORT_PROBE_LIMIT,
    DEFAULT_REGISTRY_NAME,
    DEFAULT_REGISTRY_PORT,
    DEFAULT_TOOLS_DIR,
    DEFAULT_WORKLOAD_TIMEOUT,
    dep_value,
)


# ============================================================================
# Configuration classes
# ============================================================================

class ClusterConfig(BaseSettings):
    """Cluster identity and local paths, auto-loaded from unprefixed env vars.

    Attributes:
        cluster_name: Name of the k3d cluster.
        domain: Wildcard routing domain served by the ingress.
        tools_dir: Directory holding the downloaded tool binaries.
        certs_dir: Directory receiving the issued wildcard certificate.
        data_dir: Host directory mounted into the server node at /data.
    """

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    cluster_name: str = Field(default=DEFAULT_CLUSTER_NAME, pattern=r"^[a-z0-9][a-z0-9-]*$")
    domain: str = DEFAULT_DOMAIN
    tools_dir: Path = Path(DEFAULT_TOOLS_DIR)
    certs_dir: Path = Path(DEFAULT_CERTS_DIR)
    data_dir: Path = Path(DEFAULT_DATA_DIR)


class K3dConfig(BaseSettings):
    """k3d cluster creation settings, auto-loaded from STANDALONE_* env vars.

    Attributes:
        http_base_port: First host port probed for the HTTP ingress.
        https_base_port: First host port probed for the HTTPS ingress.
        port_probe_limit: Number of ports probed upward from each base.
        registry_name: Name of the k3d-managed local registry.
        registry_port: Host port of the local registry.
        cluster_timeout: Seconds k3d waits for the server node on create.
        node_ready_timeout: Seconds to wait for nodes to report Ready.
        max_retries: Cluster creation attempts before giving up.
    """

    model_config = SettingsConfigDict(env_prefix="STANDALONE_", extra="ignore")

    http_base_port: int = Field(default=DEFAULT_HTTP_BASE_PORT, ge=1, le=65535)
    https_base_port: int = Field(default=DEFAULT_HTTPS_BASE_PORT, ge=1, le=65535)
    port_probe_limit: int = Field(default=DEFAULT_PORT_PROBE_LIMIT, ge=1, le=10000)
    registry_name: str = DEFAULT_REGISTRY_NAME
    registry_port: int = Field(default=DEFAULT_REGISTRY_PORT, ge=1, le=65535)
    cluster_timeout: int = Field(default=DEFAULT_CLUSTER_TIMEOUT, gt=0)
    node_ready_timeout: int = Field(default=DEFAULT_NODE_READY_TIMEOUT, gt=0)
    max_retries: int = Field(default=DEFAULT_CLUSTER_CREATE_MAX_RETRIES, ge=1, le=10)


class ComponentConfig(BaseSettings):
    """Chart versions, readiness bounds and host tuning, from STANDALONE_* env vars.

    Attributes:
        cert_manager_version: cert-manager chart version, or empty for latest.
        argocd_version: argo-cd chart version, or empty for latest.
        chart_timeout: Seconds helm waits for a release to become ready.
        gitops_ready_timeout: Seconds to wait for the GitOps server pod.
        workload_timeout: Seconds for each test workload readiness wait.
        inotify_max_user_instances: Target value for fs.inotify.max_user_instances.
    """

    model_config = SettingsConfigDict(env_prefix="STANDALONE_", extra="ignore")

    cert_manager_version: str = dep_value("charts", "cert_manager", "version", default="")
    argocd_version: str = dep_value("charts", "argo_cd", "version", default="")
    chart_timeout: int = Field(default=DEFAULT_CHART_TIMEOUT, gt=0)
    gitops_ready_timeout: int = Field(default=DEFAULT_GITOPS_READY_TIMEOUT, gt=0)
    workload_timeout: int = Field(default=DEFAULT_WORKLOAD_TIMEOUT, gt=0)
    inotify_max_user_instances: int = Field(default=DEFAULT_INOTIFY_MAX_USER_INSTANCES, gt=0)


def display_config(cluster_cfg: ClusterConfig, k3d_cfg: K3dConfig, comp_cfg: ComponentConfig) -> None:
    """Print the resolved configuration as a table."""
    table = Table(title="Configuration", show_header=False, title_style="bold blue")
    table.add_column("key", style="cyan")
    table.add_column("value")
    table.add_row("Cluster", cluster_cfg.cluster_name)
    table.add_row("Domain", cluster_cfg.domain)
    table.add_row("Tools dir", str(cluster_cfg.tools_dir))
    table.add_row("Certs dir", str(cluster_cfg.certs_dir))
    table.add_row("Data dir", str(cluster_cfg.data_dir))
    table.add_row("Base ports", f"{k3d_cfg.http_base_port}/{k3d_cfg.https_base_port}")
    table.add_row("Registry", f"{k3d_cfg.registry_name}:{k3d_cfg.registry_port}")
    table.add_row("cert-manager chart", comp_cfg.cert_manager_version or "latest")
    table.add_row("argo-cd chart", comp_cfg.argocd_version or "latest")
    console.print(table)
