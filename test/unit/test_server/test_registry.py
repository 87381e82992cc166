"""
Tests for room codes and the session registry.
"""

import random
from types import SimpleNamespace

import pytest

from doodlehub.server.registry import (
    MemoryRegistry,
    RegistryServer,
    RemoteRegistry,
    generate_room_code,
    normalize_code,
)
from doodlehub.shared.constants import ROOM_CODE_ALPHABET, ROOM_CODE_LENGTH


def test_room_code_shape():
    for _ in range(50):
        code = generate_room_code()
        assert len(code) == ROOM_CODE_LENGTH
        assert set(code) <= set(ROOM_CODE_ALPHABET)


def test_room_code_alphabet_avoids_lookalikes():
    assert not set("01IO") & set(ROOM_CODE_ALPHABET)


def test_room_code_is_reproducible_with_seeded_rng():
    assert generate_room_code(random.Random(1)) == generate_room_code(random.Random(1))


def test_normalize_code():
    assert normalize_code("  abc234 ") == "ABC234"
    assert normalize_code("") == ""
    assert normalize_code(None) == ""


class TestMemoryRegistry:
    def test_register_and_lookup(self):
        registry = MemoryRegistry()
        assert registry.register("ABC234", ("10.0.0.5", 6000))
        assert registry.lookup("abc234") == ("10.0.0.5", 6000)
        assert "ABC234" in registry
        assert len(registry) == 1

    def test_taken_code_is_refused(self):
        registry = MemoryRegistry()
        assert registry.register("ABC234", ("10.0.0.5", 6000))
        assert not registry.register("abc234", ("10.0.0.6", 7000))
        assert registry.lookup("ABC234") == ("10.0.0.5", 6000)

    def test_unregister(self):
        registry = MemoryRegistry()
        registry.register("ABC234", ("10.0.0.5", 6000))
        registry.unregister("ABC234")
        registry.unregister("ABC234")
        assert registry.lookup("ABC234") is None
        assert len(registry) == 0


@pytest.fixture
def registry_server():
    server = RegistryServer("127.0.0.1", 0)
    server.start()
    yield server
    server.stop()


@pytest.fixture
def remote(registry_server):
    client = RemoteRegistry("127.0.0.1", registry_server.port, timeout=2.0)
    yield client
    client.close()


class TestRegistryServer:
    def test_port_zero_picks_a_free_port(self, registry_server):
        assert registry_server.port != 0
        assert registry_server.address == ("127.0.0.1", registry_server.port)

    def test_register_lookup_unregister(self, remote):
        assert remote.register("ABC234", ("192.168.1.20", 6000))
        assert remote.lookup("abc234") == ("192.168.1.20", 6000)
        remote.unregister("ABC234")
        assert remote.lookup("ABC234") is None

    def test_codes_are_unique_across_hosts(self, registry_server, remote):
        other = RemoteRegistry("127.0.0.1", registry_server.port, timeout=2.0)
        try:
            assert remote.register("ABC234", ("192.168.1.20", 6000))
            assert not other.register("ABC234", ("192.168.1.21", 6000))
            # only the owning connection may unregister
            other.unregister("ABC234")
            assert other.lookup("ABC234") == ("192.168.1.20", 6000)
        finally:
            other.close()

    def test_closing_the_owner_connection_unregisters(self, registry_server, remote, wait):
        assert remote.register("ABC234", ("192.168.1.20", 6000))
        remote.close()
        assert wait(lambda: registry_server.registry.lookup("ABC234") is None)

    def test_client_reconnects_after_close(self, remote):
        assert remote.lookup("ABC234") is None
        remote.close()
        assert remote.register("ABC234", ("192.168.1.20", 6000))

    @pytest.mark.parametrize(
        "request_,reason",
        [
            ({"op": "lookup"}, "bad_request"),
            ({"op": "register", "code": "ABC234", "host": "h"}, "bad_request"),
            ({"op": "register", "code": "ABC234", "host": "h", "port": "x"}, "bad_request"),
            ({"op": "rename", "code": "ABC234"}, "unknown_op"),
            ({"op": "lookup", "code": "ZZZZZZ"}, "not_found"),
        ],
    )
    def test_bad_requests(self, registry_server, request_, reason):
        client = SimpleNamespace(codes=set())
        assert registry_server._handle_request(client, request_) == {"ok": False, "reason": reason}


def test_remote_registry_raises_os_error_when_unreachable(closed_port):
    client = RemoteRegistry("127.0.0.1", closed_port, timeout=1.0)
    with pytest.raises(OSError):
        client.lookup("ABC234")
    client.close()
