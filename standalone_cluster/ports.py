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

"""Host port allocation for the ingress load balancer."""

from __future__ import annotations

import errno
import socket
from collections.abc import Callable

from standalone_cluster import logger
from standalone_cluster.constants import DEFAULT_PORT_PROBE_LIMIT
from standalone_cluster.errors import PortExhaustedError

MAX_PORT = 65535


def _ipv6_in_use(port: int) -> bool:
    try:
        sock = socket.socket(socket.AF_INET6, socket.SOCK_STREAM)
    except OSError:
        return False
    with sock:
        sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 1)
        try:
            sock.bind(("::", port))
        except OSError as err:
            return err.errno == errno.EADDRINUSE
    return False


def port_in_use(port: int) -> bool:
    """Return whether *port* cannot be published on every host address.

    Binds the wildcard addresses without SO_REUSEADDR, the way the cluster load
    balancer will, so a listener on any local address counts as occupied.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind(("0.0.0.0", port))
        except OSError:
            return True
    return socket.has_ipv6 and _ipv6_in_use(port)


def find_free_port(
    base: int,
    limit: int = DEFAULT_PORT_PROBE_LIMIT,
    probe: Callable[[int], bool] = port_in_use,
) -> int:
    """Return the lowest port >= *base* that no local listener holds.

    Args:
        base: First port to probe.
        limit: Number of consecutive ports to probe before giving up.
        probe: Predicate reporting whether a port is taken.

    Raises:
        PortExhaustedError: If every probed port is taken.
    """
    last = min(base + limit, MAX_PORT + 1)
    for port in range(base, last):
        if not probe(port):
            return port
        logger.debug("Port %d in use", port)
    raise PortExhaustedError(f"No free port in range {base}-{last - 1} ({limit} attempts)")


def allocate_ports(
    base_http: int,
    base_https: int,
    limit: int = DEFAULT_PORT_PROBE_LIMIT,
    probe: Callable[[int], bool] = port_in_use,
) -> tuple[int, int]:
    """Pick the HTTP and HTTPS ingress host ports.

    The two sequences are probed independently from their own bases; nothing
    stops them from landing next to each other or on the same number when the
    bases overlap.

    Returns:
        Tuple of (http_port, https_port).

    Raises:
        PortExhaustedError: If either sequence runs out of candidates.
    """
    return find_free_port(base_http, limit, probe), find_free_port(base_https, limit, probe)
