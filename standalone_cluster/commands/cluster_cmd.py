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

"""Cluster lifecycle subcommands (start, stop, status)."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.table import Table

from standalone_cluster import console
from standalone_cluster.cluster import find_cluster, start_cluster, stop_cluster
from standalone_cluster.commands.common import resolve_cluster_config, run_or_exit
from standalone_cluster.errors import ClusterCreateError
from standalone_cluster.host import discover_ingress_ports
from standalone_cluster.orchestrator import cluster_toolbox

app = typer.Typer(help="Manage the lifecycle of an existing cluster.")

CLUSTER_NAME_OPTION = typer.Option(None, "--cluster-name", help="k3d cluster name (overrides CLUSTER_NAME)")
TOOLS_DIR_OPTION = typer.Option(None, "--tools-dir", help="Tools directory (overrides TOOLS_DIR)")


def _require_cluster(tools, name: str):
    handle = find_cluster(tools, name)
    if handle is None:
        raise ClusterCreateError(f"Cluster '{name}' does not exist; run 'setup' first")
    return handle


@app.command()
def start(
    cluster_name: str | None = CLUSTER_NAME_OPTION,
    tools_dir: Path | None = TOOLS_DIR_OPTION,
) -> None:
    """Start a stopped cluster."""
    cluster_cfg = resolve_cluster_config(cluster_name, tools_dir=tools_dir)

    def _start() -> None:
        tools = cluster_toolbox(cluster_cfg)
        handle = _require_cluster(tools, cluster_cfg.cluster_name)
        if handle.running:
            console.print(f"[green]\u2705 Cluster '{handle.name}' is already running[/green]")
            return
        start_cluster(tools, handle.name)

    run_or_exit(_start)


@app.command()
def stop(
    cluster_name: str | None = CLUSTER_NAME_OPTION,
    tools_dir: Path | None = TOOLS_DIR_OPTION,
) -> None:
    """Stop a running cluster without deleting it."""
    cluster_cfg = resolve_cluster_config(cluster_name, tools_dir=tools_dir)

    def _stop() -> None:
        tools = cluster_toolbox(cluster_cfg)
        stop_cluster(tools, _require_cluster(tools, cluster_cfg.cluster_name).name)

    run_or_exit(_stop)


@app.command()
def status(
    cluster_name: str | None = CLUSTER_NAME_OPTION,
    tools_dir: Path | None = TOOLS_DIR_OPTION,
) -> None:
    """Show whether the cluster exists, is running, and its ingress ports."""
    cluster_cfg = resolve_cluster_config(cluster_name, tools_dir=tools_dir)

    def _status() -> None:
        tools = cluster_toolbox(cluster_cfg)
        handle = find_cluster(tools, cluster_cfg.cluster_name)
        table = Table(title=f"Cluster {cluster_cfg.cluster_name}", show_header=False)
        table.add_column("key", style="cyan")
        table.add_column("value")
        if handle is None:
            table.add_row("State", "absent")
        else:
            http_port, https_port = discover_ingress_ports(handle.name)
            table.add_row("State", "running" if handle.running else "stopped")
            table.add_row("HTTP port", str(http_port or "-"))
            table.add_row("HTTPS port", str(https_port or "-"))
        console.print(table)

    run_or_exit(_status)
