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

"""Shared option resolution and error reporting for the CLI commands."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

import typer

from standalone_cluster import console, logger
from standalone_cluster.config import ClusterConfig
from standalone_cluster.errors import ProvisioningError

T = TypeVar("T")


def resolve_cluster_config(
    cluster_name: str | None = None,
    domain: str | None = None,
    tools_dir: Path | None = None,
) -> ClusterConfig:
    """Load ClusterConfig from the environment and apply CLI overrides."""
    cluster_cfg = ClusterConfig()
    overrides: dict = {}
    if cluster_name is not None:
        overrides["cluster_name"] = cluster_name
    if domain is not None:
        overrides["domain"] = domain
    if tools_dir is not None:
        overrides["tools_dir"] = tools_dir
    if overrides:
        cluster_cfg = cluster_cfg.model_copy(update=overrides)
    return cluster_cfg


def run_or_exit(fn: Callable[[], T]) -> T:
    """Run *fn*, turning any failure into a red message and exit code 1."""
    try:
        return fn()
    except Exception as e:
        if not isinstance(e, ProvisioningError):
            logger.debug("Unexpected failure", exc_info=True)
        console.print(f"[red]\u274c {e}[/red]")
        raise typer.Exit(code=1) from e
