"""
Basic server tests.
"""

import pytest

from doodlehub.server import registry as registry_module
from doodlehub.server.main import main
from doodlehub.shared.constants import DEFAULT_REGISTRY_PORT


def test_server_import():
    """Test server module import."""
    assert callable(main)


class FakeServer:
    created = []

    def __init__(self, host, port):
        self.created.append((host, port))

    def start(self):
        raise KeyboardInterrupt

    def stop(self):
        self.created.append("stopped")


@pytest.fixture
def fake_server(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    FakeServer.created = []
    monkeypatch.setattr(registry_module, "RegistryServer", FakeServer)
    return FakeServer


def test_server_config_from_env(monkeypatch, fake_server):
    """Test server configuration."""
    monkeypatch.setenv("HOST", "0.0.0.0")
    monkeypatch.setenv("PORT", "6001")
    main()
    assert fake_server.created == [("0.0.0.0", 6001), "stopped"]


def test_invalid_port_falls_back_to_default(monkeypatch, fake_server):
    monkeypatch.delenv("HOST", raising=False)
    monkeypatch.setenv("PORT", "not-a-port")
    main()
    assert fake_server.created[0][1] == DEFAULT_REGISTRY_PORT
