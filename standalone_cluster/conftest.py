from unittest.mock import MagicMock

import pytest
import sh

from standalone_cluster.utils import Toolbox


@pytest.fixture
def tools(tmp_path):
    """A Toolbox whose k3d/kubectl/helm/mkcert calls are mocks."""
    mock = MagicMock(spec=Toolbox)
    mock.tools_dir = tmp_path / "k8s-tools"
    for name in ("k3d", "kubectl", "helm", "mkcert"):
        getattr(mock, name).return_value = ""
    return mock


@pytest.fixture
def command_failure():
    """Factory for the exception sh raises when a command exits 1."""

    def _make(stderr: str = "", stdout: str = "") -> sh.ErrorReturnCode:
        return sh.ErrorReturnCode_1("fake-cmd", stdout.encode(), stderr.encode())

    return _make


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    """Keep tenacity waits instant."""
    monkeypatch.setattr("time.sleep", lambda seconds: None)
