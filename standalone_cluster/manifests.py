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

"""Kubernetes manifests for the CA secret, issuer, ingress routes and test workload."""

from __future__ import annotations

import base64
from pathlib import Path

from standalone_cluster.constants import (
    INGRESS_CLASS,
    ISSUER_ANNOTATION,
    TEST_APP_NAME,
    TEST_HOST_PREFIX,
    TEST_TLS_SECRET,
    dep_value,
)

TEST_IMAGE = dep_value("images", "test_workload", default="nginx:alpine")


def _b64_file(path: Path) -> str:
    return base64.b64encode(path.read_bytes()).decode("ascii")


def namespace_manifest(name: str) -> dict:
    return {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": name}}


def tls_secret_manifest(name: str, namespace: str, cert: Path, key: Path) -> dict:
    """Build a ``kubernetes.io/tls`` Secret from PEM files on disk."""
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "type": "kubernetes.io/tls",
        "metadata": {"name": name, "namespace": namespace},
        "data": {"tls.crt": _b64_file(cert), "tls.key": _b64_file(key)},
    }


def ca_cluster_issuer_manifest(name: str, secret_name: str) -> dict:
    """Build a cert-manager ClusterIssuer signing with the CA in *secret_name*."""
    return {
        "apiVersion": "cert-manager.io/v1",
        "kind": "ClusterIssuer",
        "metadata": {"name": name},
        "spec": {"ca": {"secretName": secret_name}},
    }


def ingress_manifest(
    name: str,
    namespace: str,
    host: str,
    service: str,
    port: int,
    issuer: str,
    tls_secret: str,
) -> dict:
    """Build a TLS-terminated Ingress whose certificate is requested from *issuer*.

    Args:
        name: Ingress name.
        namespace: Namespace of the ingress and backend service.
        host: Fully qualified host routed to the service.
        service: Backend service name.
        port: Backend service port.
        issuer: ClusterIssuer that signs the certificate.
        tls_secret: Secret the issued certificate is stored in.
    """
    return {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "Ingress",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "annotations": {ISSUER_ANNOTATION: issuer},
        },
        "spec": {
            "ingressClassName": INGRESS_CLASS,
            "tls": [{"hosts": [host], "secretName": tls_secret}],
            "rules": [{
                "host": host,
                "http": {"paths": [{
                    "path": "/",
                    "pathType": "Prefix",
                    "backend": {"service": {"name": service, "port": {"number": port}}},
                }]},
            }],
        },
    }


def deployment_manifest(name: str, namespace: str, image: str, port: int = 80) -> dict:
    labels = {"app": name}
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": name, "namespace": namespace},
        "spec": {
            "replicas": 1,
            "selector": {"matchLabels": labels},
            "template": {
                "metadata": {"labels": labels},
                "spec": {"containers": [{
                    "name": name,
                    "image": image,
                    "ports": [{"containerPort": port}],
                }]},
            },
        },
    }


def service_manifest(name: str, namespace: str, port: int = 80) -> dict:
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {"name": name, "namespace": namespace},
        "spec": {"selector": {"app": name}, "ports": [{"port": port}]},
    }


def workload_manifests(domain: str, namespace: str, issuer: str) -> list[dict]:
    """Namespace, deployment, service and ingress for the test application."""
    return [
        namespace_manifest(namespace),
        deployment_manifest(TEST_APP_NAME, namespace, TEST_IMAGE),
        service_manifest(TEST_APP_NAME, namespace),
        ingress_manifest(
            TEST_APP_NAME, namespace, f"{TEST_HOST_PREFIX}.{domain}",
            TEST_APP_NAME, 80, issuer, TEST_TLS_SECRET,
        ),
    ]
