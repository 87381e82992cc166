"""
Tests for the host side of the star network.
"""

import json
import random
import socket
import threading

import pytest

from doodlehub.client.network import GuestTransport
from doodlehub.server.network import HostTransport, PeerConnection
from doodlehub.server.registry import MemoryRegistry, generate_room_code
from doodlehub.shared.constants import CREATE_MAX_ATTEMPTS
from doodlehub.shared.errors import SessionCreationError
from doodlehub.shared.protocols import Message, MessageType
from doodlehub.shared.transport import ConnectionLost, MessageReceived, PeerJoined, PeerLeft


class FullRegistry(MemoryRegistry):
    """Every code is already taken."""

    def __init__(self):
        super().__init__()
        self.attempts = 0

    def register(self, code, address):
        self.attempts += 1
        return False


class BrokenRegistry(MemoryRegistry):
    def register(self, code, address):
        raise ConnectionRefusedError("registry down")


def chat(text, name="Alice"):
    return Message(MessageType.CHAT, {"playerName": name, "message": text})


@pytest.fixture
def registry():
    return MemoryRegistry()


@pytest.fixture
def host(registry):
    transport = HostTransport(registry, "127.0.0.1", 0)
    transport.create_session()
    yield transport
    transport.close()


@pytest.fixture
def guests(registry):
    created = []

    def _join(code, peer_id=None):
        guest = GuestTransport(registry, peer_id=peer_id, timeout=2.0, sleep=lambda s: None)
        guest.join_session(code)
        created.append(guest)
        return guest

    yield _join
    for guest in created:
        guest.close()


class TestCreateSession:
    def test_registers_listening_address(self, registry, host):
        assert host.port != 0
        assert registry.lookup(host.code) == ("127.0.0.1", host.port)
        assert host.local_id == host.code

    def test_advertised_address(self, registry):
        transport = HostTransport(registry, "127.0.0.1", 0, advertise_host="192.168.1.20")
        try:
            code = transport.create_session()
            assert registry.lookup(code) == ("192.168.1.20", transport.port)
        finally:
            transport.close()

    def test_collision_is_retried(self, registry):
        taken = generate_room_code(random.Random(5))
        registry.register(taken, ("10.0.0.1", 1))
        transport = HostTransport(registry, "127.0.0.1", 0, rng=random.Random(5))
        try:
            code = transport.create_session()
            assert code != taken
            assert registry.lookup(code) == ("127.0.0.1", transport.port)
        finally:
            transport.close()

    def test_gives_up_after_repeated_collisions(self):
        registry = FullRegistry()
        transport = HostTransport(registry, "127.0.0.1", 0)
        with pytest.raises(SessionCreationError):
            transport.create_session()
        assert registry.attempts == CREATE_MAX_ATTEMPTS
        assert transport.code is None

    def test_unreachable_registry_fails_creation(self):
        transport = HostTransport(BrokenRegistry(), "127.0.0.1", 0)
        with pytest.raises(SessionCreationError):
            transport.create_session()

    def test_create_is_idempotent(self, host):
        assert host.create_session() == host.code

    def test_close_unregisters(self, registry):
        transport = HostTransport(registry, "127.0.0.1", 0)
        code = transport.create_session()
        transport.close()
        assert registry.lookup(code) is None


class TestPeers:
    def test_handshake_reports_peer(self, host, guests, event_log):
        log = event_log(host)
        guest = guests(host.code, peer_id="alice")
        assert guest.peer_id == "alice"
        assert log.wait_for(PeerJoined, peer_id="alice")
        assert host.peer_ids == ["alice"]

    def test_duplicate_peer_id_is_reassigned(self, host, guests, event_log):
        log = event_log(host)
        first = guests(host.code, peer_id="alice")
        second = guests(host.code, peer_id="alice")
        assert first.peer_id == "alice"
        assert second.peer_id != "alice"
        assert log.wait_for(PeerJoined, peer_id=second.peer_id)

    def test_peer_id_equal_to_room_code_is_reassigned(self, host, guests):
        guest = guests(host.code, peer_id=host.code)
        assert guest.peer_id != host.code

    def test_messages_carry_sender(self, host, guests, event_log):
        log = event_log(host)
        guest = guests(host.code, peer_id="alice")
        guest.send(chat("hello"))
        event = log.wait_for(MessageReceived, sender_id="alice")
        assert event.message.type is MessageType.CHAT
        assert event.message.payload["message"] == "hello"
        assert event.message.sender_id == "alice"

    def test_broadcast_with_exclusion(self, host, guests, event_log):
        alice = guests(host.code, peer_id="alice")
        bob = guests(host.code, peer_id="bob")
        alice_log, bob_log = event_log(alice), event_log(bob)
        event_log(host).wait_for(PeerJoined, peer_id="bob")

        host.broadcast(chat("to everyone but alice", "Host"), exclude_id="alice")
        host.send_to("alice", chat("just alice", "Host"))
        received = bob_log.wait_for(MessageReceived)
        assert received.message.payload["message"] == "to everyone but alice"
        assert received.sender_id == host.code
        only = alice_log.wait_for(MessageReceived)
        assert only.message.payload["message"] == "just alice"
        assert len(alice_log.poll()) == 1

    def test_send_to_unknown_peer_is_ignored(self, host):
        host.send_to("nobody", chat("hi"))

    def test_guest_leaving_emits_peer_left_once(self, host, guests, event_log):
        log = event_log(host)
        guest = guests(host.code, peer_id="alice")
        log.wait_for(PeerJoined, peer_id="alice")
        guest.close()
        assert log.wait_for(PeerLeft, peer_id="alice")
        host.disconnect("alice")
        log.poll()
        assert len(log.of(PeerLeft)) == 1
        assert host.peer_ids == []

    def test_disconnect_drops_peer(self, host, guests, event_log):
        host_log = event_log(host)
        guest = guests(host.code, peer_id="alice")
        guest_log = event_log(guest)
        host_log.wait_for(PeerJoined, peer_id="alice")
        host.disconnect("alice")
        assert host_log.wait_for(PeerLeft, peer_id="alice")
        assert guest_log.wait_for(ConnectionLost)
        assert not guest.connected

    def test_frames_before_handshake_are_ignored(self, host, event_log):
        log = event_log(host)
        with socket.create_connection(("127.0.0.1", host.port), timeout=2.0) as sock:
            sock.sendall(json.dumps({"frame": "data", "message": chat("sneaky").to_dict()}).encode() + b"\n")
            sock.sendall(json.dumps({"frame": "hello", "room": host.code, "peer_id": "late"}).encode() + b"\n")
            reply = json.loads(sock.makefile().readline())
        assert reply == {"frame": "welcome", "peer_id": "late"}
        assert log.wait_for(PeerJoined, peer_id="late")
        assert log.of(MessageReceived) == []

    def test_welcome_is_sent_before_peer_receives_broadcasts(self, host, event_log, monkeypatch):
        log = event_log(host)
        open_when_welcomed = []
        original = PeerConnection.send_frame

        def send_frame(peer, frame):
            if frame.get("frame") == "welcome":
                open_when_welcomed.append(peer.is_open)
            original(peer, frame)

        monkeypatch.setattr(PeerConnection, "send_frame", send_frame)
        with socket.create_connection(("127.0.0.1", host.port), timeout=2.0) as sock:
            sock.sendall(json.dumps({"frame": "hello", "room": host.code, "peer_id": "late"}).encode() + b"\n")
            assert json.loads(sock.makefile().readline())["frame"] == "welcome"
            assert log.wait_for(PeerJoined, peer_id="late")
        assert open_when_welcomed == [False]

    def test_welcome_comes_first_under_broadcast_load(self, host):
        stop = threading.Event()

        def flood():
            while not stop.is_set():
                host.broadcast(chat("busy"))

        flooder = threading.Thread(target=flood, daemon=True)
        flooder.start()
        try:
            for n in range(5):
                with socket.create_connection(("127.0.0.1", host.port), timeout=2.0) as sock:
                    hello = {"frame": "hello", "room": host.code, "peer_id": f"g{n}"}
                    sock.sendall(json.dumps(hello).encode() + b"\n")
                    first = json.loads(sock.makefile().readline())
                assert first["frame"] == "welcome"
        finally:
            stop.set()
            flooder.join(timeout=2.0)

    def test_wrong_room_is_rejected(self, host, event_log):
        log = event_log(host)
        with socket.create_connection(("127.0.0.1", host.port), timeout=2.0) as sock:
            sock.sendall(json.dumps({"frame": "hello", "room": "ZZZZZZ", "peer_id": "x"}).encode() + b"\n")
            reply = json.loads(sock.makefile().readline())
        assert reply == {"frame": "reject", "reason": "not_found"}
        assert log.poll() == []
