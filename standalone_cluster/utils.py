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

"""Utility functions for external tool invocation, manifests and readiness waits."""

from __future__ import annotations

import os
import platform
import time
from dataclasses import dataclass
from pathlib import Path

import sh
import yaml
from tenacity import RetryError, retry, retry_if_exception_type, stop_after_delay, wait_fixed

from standalone_cluster import logger
from standalone_cluster.constants import (
    READINESS_POLL_INTERVAL_SECONDS,
    TOOL_HELM,
    TOOL_K3D,
    TOOL_KUBECTL,
    TOOL_MKCERT,
)
from standalone_cluster.errors import ApplyError, PrerequisiteError, ReadinessTimeoutError

ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
}

NOT_FOUND_MARKERS = ("NotFound", "not found", "no matching resources")


# ============================================================================
# Tool invocation
# ============================================================================

@dataclass(frozen=True)
class Toolbox:
    """Resolves tool binaries from the tools directory, falling back to PATH.

    Attributes:
        tools_dir: Directory populated by the binary acquisition step.
    """

    tools_dir: Path

    def command(self, name: str) -> sh.Command:
        """Return an ``sh.Command`` bound to the named tool.

        Raises:
            PrerequisiteError: If the tool is neither in tools_dir nor on PATH.
        """
        local = self.tools_dir / name
        if local.exists():
            return sh.Command(str(local.resolve()))
        try:
            return sh.Command(name)
        except sh.CommandNotFound as err:
            raise PrerequisiteError(
                f"Required command '{name}' not found in {self.tools_dir} or PATH. Run the 'tools' command first."
            ) from err

    def run(self, name: str, *args: str, **kwargs) -> str:
        logger.debug("%s %s", name, " ".join(args))
        return str(self.command(name)(*args, **kwargs))

    def k3d(self, *args: str, **kwargs) -> str:
        return self.run(TOOL_K3D, *args, **kwargs)

    def kubectl(self, *args: str, **kwargs) -> str:
        return self.run(TOOL_KUBECTL, *args, **kwargs)

    def helm(self, *args: str, **kwargs) -> str:
        return self.run(TOOL_HELM, *args, **kwargs)

    def mkcert(self, *args: str, **kwargs) -> str:
        return self.run(TOOL_MKCERT, *args, **kwargs)


def command_error(err: sh.ErrorReturnCode, limit: int = 500) -> str:
    """Extract a short, printable reason from a failed command.

    Args:
        err: The exception raised by ``sh``.
        limit: Maximum number of characters to keep.

    Returns:
        The command's stderr (or stdout when stderr is empty), truncated.
    """
    for stream in (err.stderr, err.stdout):
        text = stream.decode(errors="replace").strip() if stream else ""
        if text:
            return text[:limit]
    return f"exit code {err.exit_code}"


def detect_platform() -> tuple[str, str]:
    """Return the (os, arch) pair used in release download URLs.

    Returns:
        Tuple such as ``("linux", "amd64")`` or ``("darwin", "arm64")``.
    """
    machine = platform.machine().lower()
    return platform.system().lower(), ARCH_ALIASES.get(machine, machine)


def prepend_to_path(directory: Path) -> None:
    """Put *directory* first on PATH for this process and its children."""
    entry = str(directory.resolve())
    parts = os.environ.get("PATH", "").split(os.pathsep)
    if parts and parts[0] == entry:
        return
    os.environ["PATH"] = os.pathsep.join([entry, *[p for p in parts if p and p != entry]])


# ============================================================================
# Declarative resources
# ============================================================================

def render_manifests(manifests: list[dict]) -> str:
    """Serialize manifests into a single multi-document YAML stream."""
    return "---\n".join(
        yaml.safe_dump(manifest, default_flow_style=False, sort_keys=False)
        for manifest in manifests
    )


def apply_manifests(tools: Toolbox, manifests: list[dict], what: str) -> None:
    """Submit manifests with ``kubectl apply`` in one call.

    Args:
        tools: Toolbox resolving kubectl.
        manifests: Resource dictionaries to apply.
        what: Short description used in messages.

    Raises:
        ApplyError: If kubectl rejects the submission.
    """
    try:
        tools.kubectl("apply", "-f", "-", _in=render_manifests(manifests))
    except sh.ErrorReturnCode as err:
        raise ApplyError(f"Failed to apply {what}: {command_error(err)}") from err


def ensure_namespace(tools: Toolbox, namespace: str) -> None:
    """Create *namespace* if missing (client dry-run piped into apply).

    Raises:
        ApplyError: If the namespace cannot be rendered or applied.
    """
    try:
        rendered = tools.kubectl("create", "namespace", namespace, "--dry-run=client", "-o", "yaml")
        tools.kubectl("apply", "-f", "-", _in=rendered)
    except sh.ErrorReturnCode as err:
        raise ApplyError(f"Failed to ensure namespace {namespace}: {command_error(err)}") from err


def resource_exists(tools: Toolbox, kind: str, name: str, namespace: str | None = None) -> bool:
    """Return whether a resource exists. Pure query, never raises for kubectl errors."""
    args = ["get", kind, name, "-o", "name"]
    if namespace:
        args += ["-n", namespace]
    try:
        tools.kubectl(*args)
    except sh.ErrorReturnCode:
        return False
    return True


def condition_status(
    tools: Toolbox, kind: str, name: str, condition: str, namespace: str | None = None,
) -> bool:
    """Return whether the resource reports ``condition`` as True. Pure query."""
    args = ["get", kind, name, "-o", f"jsonpath={{.status.conditions[?(@.type=='{condition}')].status}}"]
    if namespace:
        args += ["-n", namespace]
    try:
        status = tools.kubectl(*args).strip()
    except sh.ErrorReturnCode:
        return False
    return status == "True"


def ingress_host(tools: Toolbox, name: str, namespace: str) -> str | None:
    """Return the host of the ingress's first rule, or None if it is missing. Pure query."""
    try:
        host = tools.kubectl("get", "ingress", name, "-n", namespace, "-o", "jsonpath={.spec.rules[0].host}")
    except sh.ErrorReturnCode:
        return None
    return host.strip() or None


class _NotYetCreated(Exception):
    """The awaited resource does not exist yet."""


def wait_for_condition(
    tools: Toolbox,
    condition: str,
    resource: str,
    *,
    timeout: int,
    namespace: str | None = None,
    selector: str | None = None,
    interval: float = READINESS_POLL_INTERVAL_SECONDS,
) -> None:
    """Block until ``kubectl wait --for=condition=...`` succeeds.

    A resource that does not exist yet (created asynchronously by a controller)
    is polled for until the overall bound elapses.

    Args:
        tools: Toolbox resolving kubectl.
        condition: Condition type, e.g. ``Available`` or ``Ready``.
        resource: Resource reference, e.g. ``deployment/nginx`` or ``pod``.
        timeout: Overall bound in seconds.
        namespace: Namespace of the resource, if namespaced.
        selector: Label selector, used instead of a resource name.
        interval: Seconds between attempts while the resource is missing.

    Raises:
        ReadinessTimeoutError: If the condition is not met within *timeout*.
    """
    description = f"condition={condition} on {resource}"
    if selector:
        description += f" ({selector})"
    if namespace:
        description += f" in namespace {namespace}"
    deadline = time.monotonic() + timeout

    @retry(
        stop=stop_after_delay(timeout),
        wait=wait_fixed(interval),
        retry=retry_if_exception_type(_NotYetCreated),
        reraise=False,
    )
    def _attempt() -> None:
        remaining = max(1, int(deadline - time.monotonic()))
        args = ["wait", f"--for=condition={condition}", resource, f"--timeout={remaining}s"]
        if selector:
            args += ["-l", selector]
        if namespace:
            args += ["-n", namespace]
        try:
            tools.kubectl(*args)
        except sh.ErrorReturnCode as err:
            reason = command_error(err)
            if any(marker in reason for marker in NOT_FOUND_MARKERS):
                raise _NotYetCreated(reason) from err
            raise ReadinessTimeoutError(description, timeout, reason) from err

    try:
        _attempt()
    except RetryError as err:
        raise ReadinessTimeoutError(description, timeout, "resource was never created") from err
