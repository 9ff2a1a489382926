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

"""Pipeline subcommands (setup, cleanup, tools)."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.panel import Panel

from standalone_cluster import console
from standalone_cluster.commands.common import resolve_cluster_config, run_or_exit
from standalone_cluster.config import ComponentConfig, K3dConfig, display_config
from standalone_cluster.orchestrator import run_cleanup, run_setup, run_tools

CLUSTER_NAME_OPTION = typer.Option(None, "--cluster-name", help="k3d cluster name (overrides CLUSTER_NAME)")
DOMAIN_OPTION = typer.Option(None, "--domain", help="Routing domain (overrides DOMAIN)")
TOOLS_DIR_OPTION = typer.Option(None, "--tools-dir", help="Tools directory (overrides TOOLS_DIR)")


def setup(
    cluster_name: str | None = CLUSTER_NAME_OPTION,
    domain: str | None = DOMAIN_OPTION,
    tools_dir: Path | None = TOOLS_DIR_OPTION,
    http_port: int | None = typer.Option(None, "--http-port", help="First HTTP host port to probe"),
    https_port: int | None = typer.Option(None, "--https-port", help="First HTTPS host port to probe"),
) -> None:
    """Provision cluster, certificates, cert-manager, Argo CD and a test app."""
    console.print(Panel.fit("Standalone k8s-base-cluster\nSelf-contained: only Docker is required", style="bold"))
    cluster_cfg = resolve_cluster_config(cluster_name, domain, tools_dir)
    k3d_cfg = K3dConfig()
    overrides: dict = {}
    if http_port is not None:
        overrides["http_base_port"] = http_port
    if https_port is not None:
        overrides["https_base_port"] = https_port
    if overrides:
        k3d_cfg = k3d_cfg.model_copy(update=overrides)
    comp_cfg = ComponentConfig()

    display_config(cluster_cfg, k3d_cfg, comp_cfg)
    run_or_exit(lambda: run_setup(cluster_cfg, k3d_cfg, comp_cfg))


def cleanup(
    cluster_name: str | None = CLUSTER_NAME_OPTION,
    tools_dir: Path | None = TOOLS_DIR_OPTION,
) -> None:
    """Delete the cluster."""
    cluster_cfg = resolve_cluster_config(cluster_name, tools_dir=tools_dir)
    run_or_exit(lambda: run_cleanup(cluster_cfg))


def tools(tools_dir: Path | None = TOOLS_DIR_OPTION) -> None:
    """Download k3d, kubectl, helm and mkcert into the tools directory."""
    cluster_cfg = resolve_cluster_config(tools_dir=tools_dir)
    run_or_exit(lambda: run_tools(cluster_cfg))
