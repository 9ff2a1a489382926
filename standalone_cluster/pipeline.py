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

"""Step descriptors, the shared run context, and the sequential step runner."""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from tenacity import RetryError, Retrying, retry_if_result, stop_after_delay, wait_fixed

from standalone_cluster import console, logger
from standalone_cluster.errors import ProvisioningError, ReadinessTimeoutError


class FailurePolicy(enum.Enum):
    FATAL = "fatal"
    WARN = "warn"


class StepOutcome(enum.Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    WARNED = "warned"


@dataclass
class RunContext:
    """Values produced by early steps and read by later ones within one run.

    Only the step that produces a field writes it; the runner refuses to start a
    step whose ``requires`` fields are still unset.
    """

    cluster_name: str
    domain: str
    tools_dir: Path
    certs_dir: Path
    data_dir: Path
    cert_file: Path
    key_file: Path
    http_port: int | None = None
    https_port: int | None = None
    issuer_name: str | None = None
    cluster: Any = None

    def missing(self, names: tuple[str, ...]) -> list[str]:
        known = {f.name for f in fields(self)}
        unknown = [name for name in names if name not in known]
        if unknown:
            raise ProvisioningError(f"Unknown run context fields: {', '.join(unknown)}")
        return [name for name in names if getattr(self, name) is None]


@dataclass(frozen=True)
class ReadinessGate:
    """A predicate polled after a step's action until true or *timeout* elapses."""

    description: str
    predicate: Callable[[RunContext], bool]
    timeout: float
    interval: float = 5.0

    def wait(self, ctx: RunContext) -> None:
        """Poll the predicate.

        Raises:
            ReadinessTimeoutError: If the predicate is still false at the bound.
        """
        retrying = Retrying(
            stop=stop_after_delay(self.timeout),
            wait=wait_fixed(self.interval),
            retry=retry_if_result(lambda ok: not ok),
        )
        try:
            retrying(self.predicate, ctx)
        except RetryError as err:
            raise ReadinessTimeoutError(self.description, self.timeout) from err


@dataclass(frozen=True)
class Step:
    """Immutable description of one provisioning step.

    Attributes:
        name: Step name used in logs and results.
        action: Side-effecting operation.
        check: Pure predicate; True means the step's effect is already in place
            and ``action`` is skipped.
        adopt: Runs instead of ``action`` when ``check`` is True, to load the
            values the step would have produced from the existing state.
        gate: Readiness gate polled after ``action``.
        policy: Whether a failure aborts the run or is logged and skipped.
        requires: RunContext fields that must be set before the step starts.
        produces: RunContext fields the step sets.
    """

    name: str
    action: Callable[[RunContext], None]
    check: Callable[[RunContext], bool] | None = None
    adopt: Callable[[RunContext], None] | None = None
    gate: ReadinessGate | None = None
    policy: FailurePolicy = FailurePolicy.FATAL
    requires: tuple[str, ...] = ()
    produces: tuple[str, ...] = ()


@dataclass
class PipelineResult:
    outcomes: dict[str, StepOutcome] = field(default_factory=dict)

    @property
    def warnings(self) -> list[str]:
        return [name for name, outcome in self.outcomes.items() if outcome is StepOutcome.WARNED]


def _execute(step: Step, ctx: RunContext) -> StepOutcome:
    if step.check is not None and step.check(ctx):
        logger.info("Step %s already satisfied, skipping", step.name)
        if step.adopt is not None:
            step.adopt(ctx)
        return StepOutcome.SKIPPED
    step.action(ctx)
    if step.gate is not None:
        step.gate.wait(ctx)
    return StepOutcome.COMPLETED


def run_pipeline(steps: list[Step], ctx: RunContext) -> PipelineResult:
    """Run *steps* in order against *ctx*.

    A fatal step's error is re-raised unchanged and ends the run; a warn-policy
    step's error is printed and the run continues.

    Raises:
        ProvisioningError: If a step starts before its required fields exist.
        Exception: Whatever a fatal step raised.
    """
    result = PipelineResult()
    for step in steps:
        missing = ctx.missing(step.requires)
        if missing:
            raise ProvisioningError(f"Step {step.name} requires {', '.join(missing)}, which no earlier step produced")
        logger.info("Running step %s", step.name)
        try:
            result.outcomes[step.name] = _execute(step, ctx)
        except Exception as err:
            if step.policy is FailurePolicy.FATAL:
                logger.error("Step %s failed: %s", step.name, err)
                raise
            console.print(f"[yellow]\u26a0\ufe0f  {step.name}: {err}[/yellow]")
            result.outcomes[step.name] = StepOutcome.WARNED
    return result
