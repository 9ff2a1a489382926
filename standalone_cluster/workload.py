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

"""Test workload deployment and readiness checks."""

from __future__ import annotations

from rich.panel import Panel

from standalone_cluster import console
from standalone_cluster.constants import NS_TEST, TEST_APP_NAME, TEST_HOST_PREFIX, TEST_TLS_SECRET
from standalone_cluster.manifests import workload_manifests
from standalone_cluster.utils import (
    Toolbox,
    apply_manifests,
    condition_status,
    ingress_host,
    wait_for_condition,
)


def workload_host(domain: str) -> str:
    return f"{TEST_HOST_PREFIX}.{domain}"


def workload_ready(tools: Toolbox, domain: str) -> bool:
    """Whether the route serves *domain* and the app and its certificate are ready. Pure query."""
    if ingress_host(tools, TEST_APP_NAME, NS_TEST) != workload_host(domain):
        return False
    return condition_status(tools, "deployment", TEST_APP_NAME, "Available", NS_TEST) and condition_status(
        tools, "certificate", TEST_TLS_SECRET, "Ready", NS_TEST,
    )


def deploy_test_workload(tools: Toolbox, domain: str, issuer: str, timeout: int) -> None:
    """Apply the test application in one submission, then wait for it.

    Pod availability and certificate issuance are independent, so both are
    awaited, each with its own *timeout*.

    Raises:
        ApplyError: If the manifests are rejected.
        ReadinessTimeoutError: If either wait exceeds *timeout*.
    """
    console.print(Panel.fit("Deploying test application", style="bold blue"))
    apply_manifests(tools, workload_manifests(domain, NS_TEST, issuer), "test workload")

    console.print("[yellow]\u2139\ufe0f  Waiting for deployment to be available...[/yellow]")
    wait_for_condition(tools, "Available", f"deployment/{TEST_APP_NAME}", namespace=NS_TEST, timeout=timeout)
    console.print("[yellow]\u2139\ufe0f  Waiting for certificate to be issued...[/yellow]")
    wait_for_condition(tools, "Ready", f"certificate/{TEST_TLS_SECRET}", namespace=NS_TEST, timeout=timeout)
    console.print(f"[green]\u2705 Test application deployed at https://{workload_host(domain)}[/green]")
