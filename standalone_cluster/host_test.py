from unittest.mock import MagicMock, patch

import pytest
from docker.errors import DockerException, NotFound

from standalone_cluster.errors import PrerequisiteError
from standalone_cluster.host import (
    check_container_runtime,
    discover_ingress_ports,
    inotify_limit_ok,
    raise_inotify_limit,
)


@pytest.fixture
def docker_client():
    client = MagicMock()
    with patch("standalone_cluster.host.docker.from_env", return_value=client):
        yield client


def test_runtime_available(docker_client):
    check_container_runtime()
    docker_client.ping.assert_called_once()
    docker_client.close.assert_called_once()


def test_runtime_not_installed():
    with patch("standalone_cluster.host.docker.from_env", side_effect=DockerException("no socket")):
        with pytest.raises(PrerequisiteError, match="not available"):
            check_container_runtime()


def test_runtime_not_running(docker_client):
    docker_client.ping.side_effect = DockerException("connection refused")
    with pytest.raises(PrerequisiteError, match="not running"):
        check_container_runtime()


def test_inotify_limit_read_through_container(docker_client):
    docker_client.containers.run.return_value = b"128\n"
    assert inotify_limit_ok(1024) is False
    docker_client.containers.run.return_value = b"8192\n"
    assert inotify_limit_ok(1024) is True
    kwargs = docker_client.containers.run.call_args.kwargs
    assert kwargs["privileged"] is True and kwargs["remove"] is True


def test_inotify_limit_unknown_is_not_ok(docker_client):
    docker_client.containers.run.side_effect = DockerException("pull denied")
    assert inotify_limit_ok(1024) is False


def test_raise_inotify_limit(docker_client):
    raise_inotify_limit(1024)
    command = docker_client.containers.run.call_args.args[1]
    assert command == ["sh", "-c", "sysctl -w fs.inotify.max_user_instances=1024"]


def test_discover_ingress_ports(docker_client):
    docker_client.containers.get.return_value.attrs = {
        "NetworkSettings": {"Ports": {
            "80/tcp": [{"HostIp": "0.0.0.0", "HostPort": "8081"}],
            "443/tcp": [{"HostIp": "0.0.0.0", "HostPort": "8444"}],
            "6443/tcp": [{"HostIp": "0.0.0.0", "HostPort": "36443"}],
        }},
    }

    assert discover_ingress_ports("dev") == (8081, 8444)
    docker_client.containers.get.assert_called_once_with("k3d-dev-serverlb")


def test_discover_ingress_ports_without_load_balancer(docker_client):
    docker_client.containers.get.side_effect = NotFound("no such container")
    assert discover_ingress_ports("dev") == (None, None)
