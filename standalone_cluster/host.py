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

"""Container runtime access: prerequisite check, host kernel limits, port discovery."""

from __future__ import annotations

import docker
from docker.errors import DockerException, NotFound
from rich.panel import Panel

from standalone_cluster import console, logger
from standalone_cluster.constants import K3D_LB_CONTAINER, SYSCTL_INOTIFY_INSTANCES, dep_value
from standalone_cluster.errors import PrerequisiteError

SYSCTL_IMAGE = dep_value("images", "sysctl_helper", default="alpine:3.20")


def check_container_runtime() -> None:
    """Verify the container runtime is installed and answering.

    Raises:
        PrerequisiteError: If the docker daemon is missing or not running.
    """
    try:
        client = docker.from_env()
    except DockerException as err:
        raise PrerequisiteError(f"Docker is required but not available: {err}") from err
    try:
        client.ping()
    except DockerException as err:
        raise PrerequisiteError(f"Docker is not running: {err}") from err
    finally:
        client.close()


def _run_privileged(command: str) -> str:
    client = docker.from_env()
    try:
        output = client.containers.run(SYSCTL_IMAGE, ["sh", "-c", command], privileged=True, remove=True)
    finally:
        client.close()
    return output.decode(errors="replace").strip() if isinstance(output, bytes) else str(output).strip()


def read_inotify_limit() -> int | None:
    """Read fs.inotify.max_user_instances as seen by containers, or None if unknown."""
    try:
        value = _run_privileged(f"sysctl -n {SYSCTL_INOTIFY_INSTANCES}")
        return int(value.split()[-1])
    except (DockerException, ValueError, IndexError) as err:
        logger.debug("Could not read %s: %s", SYSCTL_INOTIFY_INSTANCES, err)
        return None


def inotify_limit_ok(target: int) -> bool:
    current = read_inotify_limit()
    return current is not None and current >= target


def raise_inotify_limit(target: int) -> None:
    """Raise fs.inotify.max_user_instances through a privileged container.

    Raises:
        DockerException: If the container cannot be run.
    """
    console.print(Panel.fit("Checking inotify limits", style="bold blue"))
    _run_privileged(f"sysctl -w {SYSCTL_INOTIFY_INSTANCES}={target}")
    console.print(f"[green]\u2705 Increased inotify instance limit to {target}[/green]")


def discover_ingress_ports(cluster_name: str) -> tuple[int | None, int | None]:
    """Read the host ports bound to the cluster load balancer's 80 and 443.

    Returns:
        Tuple of (http_port, https_port); either is None when not published.
    """
    try:
        client = docker.from_env()
    except DockerException:
        return None, None
    try:
        container = client.containers.get(K3D_LB_CONTAINER.format(name=cluster_name))
        ports = container.attrs.get("NetworkSettings", {}).get("Ports") or {}
    except (NotFound, DockerException) as err:
        logger.debug("Load balancer for %s not inspectable: %s", cluster_name, err)
        return None, None
    finally:
        client.close()

    def _host_port(container_port: str) -> int | None:
        bindings = ports.get(container_port) or []
        for binding in bindings:
            if binding.get("HostPort"):
                return int(binding["HostPort"])
        return None

    return _host_port("80/tcp"), _host_port("443/tcp")
