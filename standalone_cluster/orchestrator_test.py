from unittest.mock import patch

import pytest

from standalone_cluster.cluster import ClusterHandle
from standalone_cluster.config import ClusterConfig, ComponentConfig, K3dConfig
from standalone_cluster.errors import PrerequisiteError
from standalone_cluster.orchestrator import (
    SETUP_STEP_NAMES,
    build_context,
    cleanup_steps,
    run_cleanup,
    run_setup,
    setup_steps,
)
from standalone_cluster.pipeline import FailurePolicy, StepOutcome, run_pipeline

ORCH = "standalone_cluster.orchestrator"


@pytest.fixture
def cluster_cfg(tmp_path, monkeypatch):
    monkeypatch.setenv("PATH", "/usr/bin:/bin")
    return ClusterConfig(
        tools_dir=tmp_path / "k8s-tools",
        certs_dir=tmp_path / "certs",
        data_dir=tmp_path / "data",
    )


def test_setup_sequence(tools):
    steps = setup_steps(tools, K3dConfig(), ComponentConfig())

    assert tuple(s.name for s in steps) == SETUP_STEP_NAMES
    warn = {s.name for s in steps if s.policy is FailurePolicy.WARN}
    assert warn == {"fix-host-limits", "provision-certificates", "summarize"}


def test_context_from_config(cluster_cfg):
    ctx = build_context(cluster_cfg)
    assert ctx.cluster_name == "standalone-cluster"
    assert ctx.cert_file == cluster_cfg.certs_dir / "wildcard.crt"
    assert ctx.http_port is None and ctx.issuer_name is None


def test_rerun_on_provisioned_environment_skips_everything(tools, cluster_cfg):
    ctx = build_context(cluster_cfg)
    with patch(f"{ORCH}.inotify_limit_ok", return_value=True), \
            patch(f"{ORCH}.binaries_present", return_value=True), \
            patch(f"{ORCH}.certificates_present", return_value=True), \
            patch(f"{ORCH}.cluster_exists", return_value=True), \
            patch(f"{ORCH}.find_cluster", return_value=ClusterHandle("standalone-cluster")), \
            patch(f"{ORCH}.discover_ingress_ports", return_value=(8081, 8443)), \
            patch(f"{ORCH}.merge_kubeconfig"), \
            patch(f"{ORCH}.certificate_automation_ready", return_value=True), \
            patch(f"{ORCH}.gitops_controller_ready", return_value=True) as gitops_ready, \
            patch(f"{ORCH}.workload_ready", return_value=True) as workload_ready, \
            patch(f"{ORCH}.create_or_reuse_cluster") as create, \
            patch(f"{ORCH}.deploy_certificate_automation") as infra, \
            patch(f"{ORCH}.deploy_gitops_controller") as gitops, \
            patch(f"{ORCH}.deploy_test_workload") as workload:
        result = run_pipeline(setup_steps(tools, K3dConfig(), ComponentConfig()), ctx)

    skipped = [name for name, outcome in result.outcomes.items() if outcome is StepOutcome.SKIPPED]
    assert skipped == list(SETUP_STEP_NAMES[:-1])
    assert result.outcomes["summarize"] is StepOutcome.COMPLETED
    for mock in (create, infra, gitops, workload):
        mock.assert_not_called()
    assert (ctx.http_port, ctx.https_port) == (8081, 8443)
    assert ctx.issuer_name == "mkcert-issuer"
    gitops_ready.assert_called_once_with(tools, "127-0-0-1.sslip.io")
    workload_ready.assert_called_once_with(tools, "127-0-0-1.sslip.io")


def test_stopped_cluster_started_on_reuse(tools, cluster_cfg):
    ctx = build_context(cluster_cfg)
    steps = [s for s in setup_steps(tools, K3dConfig(), ComponentConfig()) if s.name == "lifecycle-create"]
    with patch(f"{ORCH}.cluster_exists", return_value=True), \
            patch(f"{ORCH}.find_cluster", return_value=ClusterHandle("standalone-cluster", running=False)), \
            patch(f"{ORCH}.discover_ingress_ports", return_value=(None, None)), \
            patch(f"{ORCH}.merge_kubeconfig"), \
            patch(f"{ORCH}.start_cluster") as start:
        run_pipeline(steps, ctx)

    start.assert_called_once_with(tools, "standalone-cluster")
    assert (ctx.http_port, ctx.https_port) == (8080, 8443)


def test_fresh_cluster_allocates_ports_and_waits_for_nodes(tools, cluster_cfg):
    ctx = build_context(cluster_cfg)
    steps = [s for s in setup_steps(tools, K3dConfig(), ComponentConfig()) if s.name == "lifecycle-create"]
    with patch(f"{ORCH}.cluster_exists", return_value=False), \
            patch(f"{ORCH}.allocate_ports", return_value=(8081, 8444)), \
            patch(f"{ORCH}.create_or_reuse_cluster", return_value=ClusterHandle("standalone-cluster")) as create, \
            patch(f"{ORCH}.merge_kubeconfig"), \
            patch(f"{ORCH}.nodes_ready", return_value=True) as ready:
        run_pipeline(steps, ctx)

    assert create.call_args.args[2:4] == (8081, 8444)
    assert create.call_args.args[5] == "registry.localhost:5001"
    ready.assert_called()
    assert ctx.cluster.name == "standalone-cluster"


def test_cleanup_twice_succeeds(cluster_cfg):
    with patch(f"{ORCH}.check_container_runtime"), \
            patch(f"{ORCH}.cluster_exists", side_effect=[True, False]), \
            patch(f"{ORCH}.delete_cluster") as delete:
        first = run_cleanup(cluster_cfg)
        second = run_cleanup(cluster_cfg)

    delete.assert_called_once()
    assert first.outcomes["lifecycle-delete"] is StepOutcome.COMPLETED
    assert second.outcomes["lifecycle-delete"] is StepOutcome.SKIPPED


def test_cleanup_step_targets_named_cluster(tools, cluster_cfg):
    with patch(f"{ORCH}.cluster_exists", return_value=True), patch(f"{ORCH}.delete_cluster") as delete:
        run_pipeline(cleanup_steps(tools), build_context(cluster_cfg))
    delete.assert_called_once_with(tools, "standalone-cluster")


def test_prerequisite_checked_before_any_step(cluster_cfg):
    with patch(f"{ORCH}.check_container_runtime", side_effect=PrerequisiteError("docker not running")), \
            patch(f"{ORCH}.run_pipeline") as pipeline:
        with pytest.raises(PrerequisiteError):
            run_setup(cluster_cfg, K3dConfig(), ComponentConfig())
    pipeline.assert_not_called()
