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

"""
cli.py - Disposable local k3d cluster with TLS, cert-manager and Argo CD.

Subcommands:
    setup     Provision everything (default when no subcommand is given)
    cleanup   Delete the cluster
    tools     Only download k3d, kubectl, helm and mkcert
    cluster   Lifecycle of an existing cluster (start, stop, status)

Environment Variables:
    CLUSTER_NAME (default: standalone-cluster)
    DOMAIN (default: 127-0-0-1.sslip.io)
    TOOLS_DIR (default: ./k8s-tools)
    STANDALONE_* for ports, timeouts and chart versions (see config.py)

Examples:
    # Full setup
    standalone-cluster

    # Delete the cluster
    standalone-cluster cleanup

    # Only fetch the tools
    TOOLS_DIR=~/bin standalone-cluster tools
"""

from __future__ import annotations

import logging

import typer

from standalone_cluster.commands import cluster_cmd, pipeline_cmd

app = typer.Typer(
    help="Disposable local k3d cluster with TLS, cert-manager and Argo CD.",
    invoke_without_command=True,
)


@app.callback()
def _main_callback(ctx: typer.Context) -> None:
    """Initialize logging; run setup when no subcommand is given."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    if ctx.invoked_subcommand is None:
        pipeline_cmd.setup(cluster_name=None, domain=None, tools_dir=None, http_port=None, https_port=None)


app.command("setup")(pipeline_cmd.setup)
app.command("cleanup")(pipeline_cmd.cleanup)
app.command("tools")(pipeline_cmd.tools)
app.add_typer(cluster_cmd.app, name="cluster")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
