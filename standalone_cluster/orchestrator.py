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

"""Orchestration functions that compose domain modules into workflows."""

from __future__ import annotations

from rich.panel import Panel

from standalone_cluster import console
from standalone_cluster.certs import certificates_present, provision_certificates, root_material_paths
from standalone_cluster.cluster import (
    cluster_exists,
    create_or_reuse_cluster,
    delete_cluster,
    find_cluster,
    merge_kubeconfig,
    nodes_ready,
    start_cluster,
)
from standalone_cluster.components import (
    certificate_automation_ready,
    deploy_certificate_automation,
    deploy_gitops_controller,
    gitops_controller_ready,
    gitops_host,
)
from standalone_cluster.config import ClusterConfig, ComponentConfig, K3dConfig
from standalone_cluster.constants import (
    ARGOCD_ADMIN_SECRET,
    CLUSTER_ISSUER_NAME,
    DATA_MOUNT_PATH,
    NS_ARGOCD,
    READINESS_POLL_INTERVAL_SECONDS,
    WILDCARD_CERT_FILE,
    WILDCARD_KEY_FILE,
)
from standalone_cluster.host import (
    check_container_runtime,
    discover_ingress_ports,
    inotify_limit_ok,
    raise_inotify_limit,
)
from standalone_cluster.pipeline import (
    FailurePolicy,
    PipelineResult,
    ReadinessGate,
    RunContext,
    Step,
    run_pipeline,
)
from standalone_cluster.ports import allocate_ports
from standalone_cluster.tools import acquire_binaries, binaries_present, tool_binaries
from standalone_cluster.utils import Toolbox, prepend_to_path
from standalone_cluster.workload import deploy_test_workload, workload_host, workload_ready

SETUP_STEP_NAMES = (
    "fix-host-limits",
    "acquire-binaries",
    "provision-certificates",
    "lifecycle-create",
    "deploy-infrastructure",
    "deploy-gitops",
    "deploy-workload",
    "summarize",
)


def build_context(cluster_cfg: ClusterConfig) -> RunContext:
    """Create the run context from configuration; produced fields start unset."""
    return RunContext(
        cluster_name=cluster_cfg.cluster_name,
        domain=cluster_cfg.domain,
        tools_dir=cluster_cfg.tools_dir,
        certs_dir=cluster_cfg.certs_dir,
        data_dir=cluster_cfg.data_dir,
        cert_file=cluster_cfg.certs_dir / WILDCARD_CERT_FILE,
        key_file=cluster_cfg.certs_dir / WILDCARD_KEY_FILE,
    )


# ============================================================================
# Step actions
# ============================================================================

def _acquire_step(tools: Toolbox) -> Step:
    binaries = tool_binaries(tools.tools_dir)
    return Step(
        name="acquire-binaries",
        check=lambda ctx: binaries_present(binaries),
        action=lambda ctx: acquire_binaries(binaries),
    )


def _create_cluster(ctx: RunContext, tools: Toolbox, k3d_cfg: K3dConfig) -> None:
    ctx.http_port, ctx.https_port = allocate_ports(
        k3d_cfg.http_base_port, k3d_cfg.https_base_port, k3d_cfg.port_probe_limit,
    )
    console.print(f"[yellow]\u2139\ufe0f  Using ports: HTTP={ctx.http_port}, HTTPS={ctx.https_port}[/yellow]")
    ctx.cluster = create_or_reuse_cluster(
        tools, ctx.cluster_name, ctx.http_port, ctx.https_port, ctx.data_dir,
        f"{k3d_cfg.registry_name}:{k3d_cfg.registry_port}",
        timeout=k3d_cfg.cluster_timeout,
        max_retries=k3d_cfg.max_retries,
    )
    merge_kubeconfig(tools, ctx.cluster_name)


def _adopt_cluster(ctx: RunContext, tools: Toolbox, k3d_cfg: K3dConfig) -> None:
    console.print(f"[yellow]\u26a0\ufe0f  Cluster {ctx.cluster_name} already exists, reusing it[/yellow]")
    handle = find_cluster(tools, ctx.cluster_name)
    if handle is not None and not handle.running:
        start_cluster(tools, ctx.cluster_name)
    http_port, https_port = discover_ingress_ports(ctx.cluster_name)
    ctx.http_port = http_port or k3d_cfg.http_base_port
    ctx.https_port = https_port or k3d_cfg.https_base_port
    ctx.cluster = handle
    merge_kubeconfig(tools, ctx.cluster_name)


def _deploy_infrastructure(ctx: RunContext, tools: Toolbox, comp_cfg: ComponentConfig) -> None:
    ca_cert, ca_key = root_material_paths(tools)
    ctx.issuer_name = deploy_certificate_automation(tools, comp_cfg, ca_cert, ca_key)


def _adopt_issuer(ctx: RunContext) -> None:
    ctx.issuer_name = CLUSTER_ISSUER_NAME


def render_summary(ctx: RunContext, k3d_cfg: K3dConfig) -> None:
    """Print the connection banner for a finished setup."""
    https_port = ctx.https_port or k3d_cfg.https_base_port
    registry = f"{k3d_cfg.registry_name}:{k3d_cfg.registry_port}"
    tools_dir = ctx.tools_dir
    lines = [
        f"[bold]Cluster:[/bold] {ctx.cluster_name}",
        f"[bold]Domain:[/bold]  {ctx.domain}",
        f"[bold]Tools:[/bold]   {tools_dir}",
        "",
        "[bold cyan]GitOps Platform URLs[/bold cyan]",
        f"  Argo CD:  https://{gitops_host(ctx.domain)}:{https_port}",
        f"  Test App: https://{workload_host(ctx.domain)}:{https_port}",
        "",
        "[bold cyan]Local Registry[/bold cyan]",
        f"  Registry: {registry}",
        f"  Usage: docker tag image {registry}/image",
        "",
        "[bold cyan]Built-in Storage[/bold cyan]",
        "  Storage Class: local-path (default)",
        f"  Host Mount: {ctx.data_dir} -> {DATA_MOUNT_PATH} (in containers)",
        "",
        "[bold cyan]Argo CD Credentials[/bold cyan]",
        "  Username: admin",
        f"  Password: kubectl -n {NS_ARGOCD} get secret {ARGOCD_ADMIN_SECRET} "
        "-o jsonpath='{.data.password}' | base64 -d",
        "",
        f"[bold cyan]Tools available in[/bold cyan] {tools_dir}",
        f"  export PATH=\"{tools_dir}:$PATH\"",
        "",
        "[bold cyan]Cleanup[/bold cyan]",
        f"  {tools_dir}/k3d cluster delete {ctx.cluster_name}",
    ]
    console.print(Panel("\n".join(lines), title="GitOps-Ready cluster complete", style="green", expand=False))


# ============================================================================
# Step sequences
# ============================================================================

def setup_steps(
    tools: Toolbox, k3d_cfg: K3dConfig, comp_cfg: ComponentConfig,
) -> list[Step]:
    """The ordered setup sequence.

    Args:
        tools: Toolbox bound to the configured tools directory.
        k3d_cfg: k3d settings (ports, registry, timeouts).
        comp_cfg: Component settings (chart versions, readiness bounds).

    Returns:
        Steps in execution order, named as in ``SETUP_STEP_NAMES``.
    """
    inotify_target = comp_cfg.inotify_max_user_instances
    return [
        Step(
            name="fix-host-limits",
            check=lambda ctx: inotify_limit_ok(inotify_target),
            action=lambda ctx: raise_inotify_limit(inotify_target),
            policy=FailurePolicy.WARN,
        ),
        _acquire_step(tools),
        Step(
            name="provision-certificates",
            check=lambda ctx: certificates_present(tools, ctx.cert_file, ctx.key_file),
            action=lambda ctx: provision_certificates(tools, ctx.domain, ctx.cert_file, ctx.key_file),
            policy=FailurePolicy.WARN,
        ),
        Step(
            name="lifecycle-create",
            check=lambda ctx: cluster_exists(tools, ctx.cluster_name),
            action=lambda ctx: _create_cluster(ctx, tools, k3d_cfg),
            adopt=lambda ctx: _adopt_cluster(ctx, tools, k3d_cfg),
            gate=ReadinessGate(
                description="all cluster nodes Ready",
                predicate=lambda ctx: nodes_ready(tools),
                timeout=k3d_cfg.node_ready_timeout,
                interval=READINESS_POLL_INTERVAL_SECONDS,
            ),
            produces=("http_port", "https_port", "cluster"),
        ),
        Step(
            name="deploy-infrastructure",
            check=lambda ctx: certificate_automation_ready(tools),
            action=lambda ctx: _deploy_infrastructure(ctx, tools, comp_cfg),
            adopt=_adopt_issuer,
            requires=("cluster",),
            produces=("issuer_name",),
        ),
        Step(
            name="deploy-gitops",
            check=lambda ctx: gitops_controller_ready(tools, ctx.domain),
            action=lambda ctx: deploy_gitops_controller(tools, comp_cfg, ctx.domain, ctx.issuer_name),
            requires=("cluster", "issuer_name"),
        ),
        Step(
            name="deploy-workload",
            check=lambda ctx: workload_ready(tools, ctx.domain),
            action=lambda ctx: deploy_test_workload(tools, ctx.domain, ctx.issuer_name, comp_cfg.workload_timeout),
            requires=("cluster", "issuer_name"),
        ),
        Step(
            name="summarize",
            action=lambda ctx: render_summary(ctx, k3d_cfg),
            policy=FailurePolicy.WARN,
        ),
    ]


def cleanup_steps(tools: Toolbox) -> list[Step]:
    return [
        Step(
            name="lifecycle-delete",
            check=lambda ctx: not cluster_exists(tools, ctx.cluster_name),
            action=lambda ctx: delete_cluster(tools, ctx.cluster_name),
        ),
    ]


def tools_steps(tools: Toolbox) -> list[Step]:
    return [_acquire_step(tools)]


# ============================================================================
# Public API
# ============================================================================

def _prepare(cluster_cfg: ClusterConfig) -> Toolbox:
    check_container_runtime()
    cluster_cfg.tools_dir.mkdir(parents=True, exist_ok=True)
    prepend_to_path(cluster_cfg.tools_dir)
    return Toolbox(cluster_cfg.tools_dir)


def run_setup(cluster_cfg: ClusterConfig, k3d_cfg: K3dConfig, comp_cfg: ComponentConfig) -> PipelineResult:
    """Provision the whole environment.

    Raises:
        PrerequisiteError: If the container runtime is unavailable.
        ProvisioningError: If a fatal step fails.
    """
    tools = _prepare(cluster_cfg)
    ctx = build_context(cluster_cfg)
    return run_pipeline(setup_steps(tools, k3d_cfg, comp_cfg), ctx)


def run_cleanup(cluster_cfg: ClusterConfig) -> PipelineResult:
    """Delete the cluster; an absent cluster is already clean."""
    tools = _prepare(cluster_cfg)
    result = run_pipeline(cleanup_steps(tools), build_context(cluster_cfg))
    console.print("[green]\u2705 Cleanup complete[/green]")
    return result


def run_tools(cluster_cfg: ClusterConfig) -> PipelineResult:
    """Only download the tool binaries."""
    tools = _prepare(cluster_cfg)
    result = run_pipeline(tools_steps(tools), build_context(cluster_cfg))
    console.print(f"Tools installed to: {cluster_cfg.tools_dir}")
    console.print(f"Add to PATH: export PATH=\"{cluster_cfg.tools_dir}:$PATH\"")
    return result


def cluster_toolbox(cluster_cfg: ClusterConfig) -> Toolbox:
    """Toolbox for single lifecycle operations (start/stop/status)."""
    return _prepare(cluster_cfg)
