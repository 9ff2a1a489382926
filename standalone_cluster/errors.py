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

"""Error taxonomy shared by every provisioning component."""

from __future__ import annotations


class ProvisioningError(RuntimeError):
    """Base class for all provisioning failures."""


class PrerequisiteError(ProvisioningError):
    """Container runtime missing or unreachable."""


class AcquisitionError(ProvisioningError):
    """A tool binary could not be downloaded or moved into place."""


class PortExhaustedError(ProvisioningError):
    """No free port was found within the probe limit."""


class ClusterCreateError(ProvisioningError):
    """The cluster manager rejected or timed out a cluster operation."""


class ApplyError(ProvisioningError):
    """A declarative resource or chart submission was rejected."""


class CertificateError(ProvisioningError):
    """Leaf certificate issuance did not produce the expected files."""


class ReadinessTimeoutError(ProvisioningError, TimeoutError):
    """A readiness wait exceeded its bound.

    Attributes:
        condition: Human readable description of the awaited condition.
        timeout: The bound, in seconds.
    """

    def __init__(self, condition: str, timeout: float, detail: str = "") -> None:
        self.condition = condition
        self.timeout = timeout
        message = f"Timed out after {timeout:g}s waiting for {condition}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
