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

"""Constants, dependency loading, and dep_value helper."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


def load_dependencies() -> dict:
    """Load tool versions, chart sources and images from dependencies.yaml.

    Returns:
        Parsed YAML content as a nested dictionary.
    """
    deps_file = Path(__file__).resolve().parent / "dependencies.yaml"
    with open(deps_file) as f:
        return yaml.safe_load(f)


DEPENDENCIES = load_dependencies()


def dep_value(*keys: str, default: Any = None) -> Any:
    """Safely traverse the DEPENDENCIES dict by key path.

    Args:
        *keys: Sequence of dictionary keys to traverse.
        default: Value to return if any key is missing.

    Returns:
        The value at the nested key path, or *default* if not found.
    """
    node = DEPENDENCIES
    for key in keys:
        if not isinstance(node, dict):
            return default
        node = node.get(key)
        if node is None:
            return default
    return node


# -- Tool binaries --
TOOL_K3D = "k3d"
TOOL_KUBECTL = "kubectl"
TOOL_HELM = "helm"
TOOL_MKCERT = "mkcert"

K3D_RELEASE_URL = "https://github.com/k3d-io/k3d/releases/{release}/k3d-{os}-{arch}"
KUBECTL_STABLE_URL = "https://dl.k8s.io/release/stable.txt"
KUBECTL_RELEASE_URL = "https://dl.k8s.io/release/{version}/bin/{os}/{arch}/kubectl"
HELM_RELEASE_URL = "https://get.helm.sh/helm-{version}-{os}-{arch}.tar.gz"
MKCERT_RELEASE_URL = "https://dl.filippo.io/mkcert/{version}?for={os}/{arch}"

DOWNLOAD_TIMEOUT_SECONDS = 120
DOWNLOAD_CHUNK_SIZE = 1 << 16

# -- Cluster defaults --
DEFAULT_CLUSTER_NAME = "standalone-cluster"
DEFAULT_DOMAIN = "127-0-0-1.sslip.io"
DEFAULT_TOOLS_DIR = "./k8s-tools"
DEFAULT_CERTS_DIR = "./certs"
DEFAULT_DATA_DIR = "./data"
DEFAULT_HTTP_BASE_PORT = 8080
DEFAULT_HTTPS_BASE_PORT = 8443
DEFAULT_PORT_PROBE_LIMIT = 100
DEFAULT_REGISTRY_NAME = "registry.localhost"
DEFAULT_REGISTRY_PORT = 5001
DEFAULT_CLUSTER_TIMEOUT = 120
DEFAULT_NODE_READY_TIMEOUT = 120
DEFAULT_CLUSTER_CREATE_MAX_RETRIES = 1
CLUSTER_CREATE_RETRY_WAIT_SECONDS = 10
DATA_MOUNT_PATH = "/data"
K3D_LB_CONTAINER = "k3d-{name}-serverlb"

# -- Component defaults --
DEFAULT_CHART_TIMEOUT = 300
DEFAULT_GITOPS_READY_TIMEOUT = 300
DEFAULT_WORKLOAD_TIMEOUT = 120
DEFAULT_INOTIFY_MAX_USER_INSTANCES = 1024
READINESS_POLL_INTERVAL_SECONDS = 5

ISSUER_APPLY_MAX_RETRIES = 12
ISSUER_APPLY_POLL_INTERVAL_SECONDS = 5

# -- Certificates --
WILDCARD_CERT_FILE = "wildcard.crt"
WILDCARD_KEY_FILE = "wildcard.key"
CA_CERT_FILE = "rootCA.pem"
CA_KEY_FILE = "rootCA-key.pem"
EXTRA_CERT_NAMES = ("localhost", "127.0.0.1")

# -- Namespaces --
NS_CERT_MANAGER = "cert-manager"
NS_ARGOCD = "argocd"
NS_TEST = "standalone-test"

# -- Helm releases --
HELM_RELEASE_CERT_MANAGER = "cert-manager"
HELM_RELEASE_ARGOCD = "argocd"

# -- Cluster resources --
CA_SECRET_NAME = "mkcert-ca-secret"
CLUSTER_ISSUER_NAME = "mkcert-issuer"
INGRESS_CLASS = "traefik"
ISSUER_ANNOTATION = "cert-manager.io/cluster-issuer"
ARGOCD_SERVER_SERVICE = "argocd-server"
ARGOCD_SERVER_SELECTOR = "app.kubernetes.io/name=argocd-server"
ARGOCD_TLS_SECRET = "argocd-tls"
ARGOCD_HOST_PREFIX = "argocd"
ARGOCD_ADMIN_SECRET = "argocd-initial-admin-secret"
TEST_APP_NAME = "nginx"
TEST_HOST_PREFIX = "standalone"
TEST_TLS_SECRET = "standalone-tls"

# -- Helm override keys --
HELM_KEY_INSTALL_CRDS = "installCRDs"
HELM_KEY_SERVER_SERVICE_TYPE = "server.service.type"
HELM_KEY_SERVER_INGRESS = "server.ingress.enabled"
HELM_KEY_SERVER_INSECURE = r"configs.params.server\.insecure"

# -- Host tuning --
SYSCTL_INOTIFY_INSTANCES = "fs.inotify.max_user_instances"
