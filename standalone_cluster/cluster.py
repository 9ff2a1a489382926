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

"""k3d cluster lifecycle: list, create-or-reuse, start, stop, delete."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

import sh
from rich.panel import Panel
from tenacity import retry, stop_after_attempt, wait_fixed

from standalone_cluster import console, logger
from standalone_cluster.constants import CLUSTER_CREATE_RETRY_WAIT_SECONDS, DATA_MOUNT_PATH
from standalone_cluster.errors import ClusterCreateError
from standalone_cluster.utils import Toolbox, command_error


@dataclass(frozen=True)
class ClusterHandle:
    """Reference to a cluster known to k3d.

    Attributes:
        name: Cluster name.
        running: Whether at least one server node was running when last queried.
    """

    name: str
    running: bool = True


# ============================================================================
# Queries
# ============================================================================

def list_clusters(tools: Toolbox) -> dict[str, dict]:
    """Return the live k3d cluster list keyed by name.

    Raises:
        ClusterCreateError: If k3d cannot list clusters.
    """
    try:
        output = tools.k3d("cluster", "list", "-o", "json")
    except sh.ErrorReturnCode as err:
        raise ClusterCreateError(f"Failed to list clusters: {command_error(err)}") from err
    return {entry["name"]: entry for entry in json.loads(output or "[]")}


def find_cluster(tools: Toolbox, name: str) -> ClusterHandle | None:
    """Look *name* up in the live cluster list. Pure query."""
    entry = list_clusters(tools).get(name)
    if entry is None:
        return None
    return ClusterHandle(name=name, running=entry.get("serversRunning", 1) > 0)


def cluster_exists(tools: Toolbox, name: str) -> bool:
    return find_cluster(tools, name) is not None


def nodes_ready(tools: Toolbox) -> bool:
    """Whether every node in the current context reports Ready. Pure query."""
    try:
        output = tools.kubectl("get", "nodes", "-o", "json")
    except sh.ErrorReturnCode:
        return False
    items = json.loads(output or "{}").get("items", [])
    if not items:
        return False
    for node in items:
        conditions = node.get("status", {}).get("conditions", [])
        if not any(c.get("type") == "Ready" and c.get("status") == "True" for c in conditions):
            return False
    return True


# ============================================================================
# Cluster operations
# ============================================================================

def create_args(
    name: str, http_port: int, https_port: int, volume_host_path: Path, registry: str, timeout: int,
) -> list[str]:
    """Build the ``k3d cluster create`` argument list."""
    return [
        "cluster", "create", name,
        "--servers", "1",
        "--agents", "0",
        "--port", f"{http_port}:80@loadbalancer",
        "--port", f"{https_port}:443@loadbalancer",
        "--registry-create", registry,
        "--volume", f"{volume_host_path.resolve()}:{DATA_MOUNT_PATH}@server:0",
        "--wait",
        "--timeout", f"{timeout}s",
    ]


def create_or_reuse_cluster(
    tools: Toolbox,
    name: str,
    http_port: int,
    https_port: int,
    volume_host_path: Path,
    registry: str,
    *,
    timeout: int,
    max_retries: int = 1,
) -> ClusterHandle:
    """Create the cluster, or return the existing one unchanged.

    A cluster that already exists is reused as-is: its ports, volume and registry
    are not compared against the requested ones. A stopped cluster is started.

    Args:
        tools: Toolbox resolving k3d.
        name: Cluster name.
        http_port: Host port bound to the load balancer's port 80.
        https_port: Host port bound to the load balancer's port 443.
        volume_host_path: Host directory mounted at /data in the server node.
        registry: ``name:port`` of the k3d-managed registry to create.
        timeout: Seconds k3d waits for the server node.
        max_retries: Creation attempts before giving up.

    Returns:
        Handle to the created or reused cluster.

    Raises:
        ClusterCreateError: If creation fails or times out on every attempt.
    """
    console.print(Panel.fit(f"Creating k3d cluster: {name}", style="bold blue"))
    existing = find_cluster(tools, name)
    if existing is not None:
        console.print(f"[yellow]\u26a0\ufe0f  Cluster {name} already exists[/yellow]")
        if not existing.running:
            start_cluster(tools, name)
        return ClusterHandle(name=name, running=True)

    volume_host_path.mkdir(parents=True, exist_ok=True)
    args = create_args(name, http_port, https_port, volume_host_path, registry, timeout)

    @retry(
        stop=stop_after_attempt(max_retries),
        wait=wait_fixed(CLUSTER_CREATE_RETRY_WAIT_SECONDS),
        reraise=True,
    )
    def _attempt() -> None:
        try:
            tools.k3d(*args)
        except sh.ErrorReturnCode as err:
            logger.warning("Cluster creation failed: %s", command_error(err, 200))
            if cluster_exists(tools, name):
                _delete_quietly(tools, name)
            raise ClusterCreateError(f"k3d could not create cluster {name}: {command_error(err)}") from err

    _attempt()
    console.print(f"[green]\u2705 Cluster created on ports {http_port}/{https_port}[/green]")
    return ClusterHandle(name=name, running=True)


def merge_kubeconfig(tools: Toolbox, name: str) -> None:
    """Merge the cluster's kubeconfig into the default one and switch context.

    Raises:
        ClusterCreateError: If k3d cannot produce the kubeconfig.
    """
    try:
        tools.k3d("kubeconfig", "merge", name, "--kubeconfig-merge-default", "--kubeconfig-switch-context")
    except sh.ErrorReturnCode as err:
        raise ClusterCreateError(f"Failed to merge kubeconfig for {name}: {command_error(err)}") from err


def start_cluster(tools: Toolbox, name: str) -> None:
    """Start a stopped cluster.

    Raises:
        ClusterCreateError: If k3d fails to start it.
    """
    console.print(f"[yellow]\u2139\ufe0f  Starting cluster '{name}'...[/yellow]")
    try:
        tools.k3d("cluster", "start", name, "--wait")
    except sh.ErrorReturnCode as err:
        raise ClusterCreateError(f"Failed to start cluster {name}: {command_error(err)}") from err
    console.print(f"[green]\u2705 Cluster '{name}' started[/green]")


def stop_cluster(tools: Toolbox, name: str) -> None:
    """Stop a running cluster.

    Raises:
        ClusterCreateError: If k3d fails to stop it.
    """
    console.print(f"[yellow]\u2139\ufe0f  Stopping cluster '{name}'...[/yellow]")
    try:
        tools.k3d("cluster", "stop", name)
    except sh.ErrorReturnCode as err:
        raise ClusterCreateError(f"Failed to stop cluster {name}: {command_error(err)}") from err
    console.print(f"[green]\u2705 Cluster '{name}' stopped[/green]")


def _delete_quietly(tools: Toolbox, name: str) -> None:
    try:
        tools.k3d("cluster", "delete", name)
    except sh.ErrorReturnCode as err:
        logger.warning("Cleanup of partial cluster %s failed: %s", name, command_error(err, 200))


def delete_cluster(tools: Toolbox, name: str) -> None:
    """Delete the k3d cluster. An already absent cluster is not an error.

    Raises:
        ClusterCreateError: If the cluster exists and k3d fails to delete it.
    """
    console.print(f"[yellow]\u2139\ufe0f  Deleting k3d cluster '{name}'...[/yellow]")
    if not cluster_exists(tools, name):
        console.print(f"[yellow]\u26a0\ufe0f  Cluster '{name}' not found or already deleted[/yellow]")
        return
    try:
        tools.k3d("cluster", "delete", name)
    except sh.ErrorReturnCode as err:
        raise ClusterCreateError(f"Failed to delete cluster {name}: {command_error(err)}") from err
    console.print(f"[green]\u2705 Cluster '{name}' deleted[/green]")
