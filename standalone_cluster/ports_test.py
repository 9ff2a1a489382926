import socket

import pytest

from standalone_cluster.errors import PortExhaustedError
from standalone_cluster.ports import allocate_ports, find_free_port, port_in_use


def _listen(host):
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind((host, 0))
    sock.listen(1)
    return sock


@pytest.fixture
def listener():
    sock = _listen("127.0.0.1")
    yield sock.getsockname()[1]
    sock.close()


@pytest.fixture
def other_loopback_listener():
    try:
        sock = _listen("127.0.0.2")
    except OSError:
        pytest.skip("127.0.0.2 is not bindable on this host")
    yield sock.getsockname()[1]
    sock.close()


def test_port_in_use_detects_open_socket(listener):
    assert port_in_use(listener) is True


def test_port_in_use_detects_listener_on_another_address(other_loopback_listener):
    assert port_in_use(other_loopback_listener) is True


def test_find_free_port_skips_real_listener(listener):
    port = find_free_port(listener, limit=10)
    assert port != listener
    assert port > listener


def test_find_free_port_skips_listener_on_another_address(other_loopback_listener):
    port = find_free_port(other_loopback_listener, limit=5)
    assert port != other_loopback_listener
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("0.0.0.0", port))


def test_allocate_skips_occupied_bases():
    occupied = {8080, 8443}
    assert allocate_ports(8080, 8443, probe=lambda p: p in occupied) == (8081, 8444)


def test_allocate_returns_bases_when_free():
    assert allocate_ports(8080, 8443, probe=lambda p: False) == (8080, 8443)


def test_sequences_are_probed_independently():
    occupied = {8080, 8081, 8082, 9000}
    http, https = allocate_ports(8080, 9000, probe=lambda p: p in occupied)
    assert http == 8083
    assert https == 9001


def test_overlapping_bases_may_coincide():
    assert allocate_ports(8080, 8080, probe=lambda p: False) == (8080, 8080)


def test_exhaustion_raises():
    with pytest.raises(PortExhaustedError, match="8080-8089"):
        find_free_port(8080, limit=10, probe=lambda p: True)


def test_probe_limit_is_respected():
    probed = []

    def probe(port):
        probed.append(port)
        return True

    with pytest.raises(PortExhaustedError):
        allocate_ports(8080, 8443, limit=100, probe=probe)
    assert len(probed) == 100
