import os

import pytest
import yaml

from standalone_cluster.errors import ApplyError, PrerequisiteError, ReadinessTimeoutError
from standalone_cluster.utils import (
    Toolbox,
    apply_manifests,
    condition_status,
    ensure_namespace,
    ingress_host,
    prepend_to_path,
    render_manifests,
    resource_exists,
    wait_for_condition,
)


def test_toolbox_prefers_tools_dir(tmp_path):
    script = tmp_path / "k3d"
    script.write_text("#!/bin/sh\necho local-k3d \"$@\"\n")
    script.chmod(0o755)

    assert Toolbox(tmp_path).k3d("version").strip() == "local-k3d version"


def test_toolbox_missing_tool(tmp_path):
    with pytest.raises(PrerequisiteError, match="tools"):
        Toolbox(tmp_path).command("no-such-tool-for-standalone-cluster")


def test_prepend_to_path(tmp_path, monkeypatch):
    monkeypatch.setenv("PATH", os.pathsep.join(["/usr/bin", str(tmp_path.resolve())]))
    prepend_to_path(tmp_path)
    prepend_to_path(tmp_path)
    assert os.environ["PATH"].split(os.pathsep) == [str(tmp_path.resolve()), "/usr/bin"]


def test_render_manifests_is_multi_document():
    docs = list(yaml.safe_load_all(render_manifests([{"kind": "A"}, {"kind": "B"}])))
    assert docs == [{"kind": "A"}, {"kind": "B"}]


def test_apply_manifests_uses_stdin(tools):
    apply_manifests(tools, [{"kind": "Namespace"}], "ns")
    args, kwargs = tools.kubectl.call_args
    assert args == ("apply", "-f", "-")
    assert yaml.safe_load(kwargs["_in"]) == {"kind": "Namespace"}


def test_apply_manifests_rejected(tools, command_failure):
    tools.kubectl.side_effect = command_failure("admission webhook denied")
    with pytest.raises(ApplyError, match="admission webhook denied"):
        apply_manifests(tools, [{"kind": "Namespace"}], "ns")


def test_ensure_namespace_pipes_dry_run_into_apply(tools):
    tools.kubectl.side_effect = ["apiVersion: v1\nkind: Namespace\n", ""]
    ensure_namespace(tools, "argocd")
    first, second = tools.kubectl.call_args_list
    assert first.args == ("create", "namespace", "argocd", "--dry-run=client", "-o", "yaml")
    assert second.args == ("apply", "-f", "-")
    assert second.kwargs["_in"] == "apiVersion: v1\nkind: Namespace\n"


def test_resource_exists(tools, command_failure):
    assert resource_exists(tools, "clusterissuer", "mkcert-issuer") is True
    tools.kubectl.side_effect = command_failure("NotFound")
    assert resource_exists(tools, "clusterissuer", "mkcert-issuer") is False


def test_condition_status(tools):
    tools.kubectl.return_value = "True"
    assert condition_status(tools, "certificate", "tls", "Ready", "ns") is True
    tools.kubectl.return_value = "False"
    assert condition_status(tools, "certificate", "tls", "Ready", "ns") is False


def test_ingress_host(tools, command_failure):
    tools.kubectl.return_value = "standalone.d.test"
    assert ingress_host(tools, "nginx", "standalone-test") == "standalone.d.test"
    assert tools.kubectl.call_args.args[-1] == "jsonpath={.spec.rules[0].host}"
    tools.kubectl.side_effect = command_failure("NotFound")
    assert ingress_host(tools, "nginx", "standalone-test") is None

def test_wait_polls_until_resource_exists(tools, command_failure):
    tools.kubectl.side_effect = [
        command_failure('Error from server (NotFound): certificates "tls" not found'),
        command_failure("error: no matching resources found"),
        "certificate/tls condition met",
    ]

    wait_for_condition(tools, "Ready", "certificate/tls", namespace="ns", timeout=30, interval=0)

    assert tools.kubectl.call_count == 3
    args = tools.kubectl.call_args.args
    assert args[:3] == ("wait", "--for=condition=Ready", "certificate/tls")
    assert args[-2:] == ("-n", "ns")


def test_wait_timeout_names_condition(tools, command_failure):
    tools.kubectl.side_effect = command_failure("error: timed out waiting for the condition on deployments/nginx")

    with pytest.raises(ReadinessTimeoutError, match="condition=Available on deployment/nginx") as excinfo:
        wait_for_condition(tools, "Available", "deployment/nginx", namespace="t", timeout=10, interval=0)

    assert isinstance(excinfo.value, TimeoutError)
    assert tools.kubectl.call_count == 1


def test_wait_gives_up_when_resource_never_appears(tools, command_failure):
    tools.kubectl.side_effect = command_failure("no matching resources found")

    with pytest.raises(ReadinessTimeoutError, match="never created"):
        wait_for_condition(tools, "Ready", "pod", selector="app=x", timeout=1, interval=0.05)
