"""
Pytest configuration and shared fixtures for DoodleHub.
"""

import os
import random
import socket
import sys
import time

import pytest

# Add src to path for testing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

# Headless pygame
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

from doodlehub.game import GameSession, SessionObserver, WordBank  # noqa: E402
from doodlehub.shared.protocols import MessageType  # noqa: E402


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class RecordingOutbox:
    """Collects everything the host would put on the wire."""

    def __init__(self):
        self.sent = []  # (target, message); target None means broadcast

    def broadcast(self, message, exclude_id=None):
        self.sent.append((None, message, exclude_id))

    def send_to(self, peer_id, message):
        self.sent.append((peer_id, message, None))

    def of_type(self, msg_type):
        return [m for _, m, _ in self.sent if m.type is MessageType(msg_type)]

    def unicasts(self, peer_id):
        return [m for target, m, _ in self.sent if target == peer_id]

    def clear(self):
        self.sent.clear()


class RecordingObserver(SessionObserver):
    """Records every observer callback as (name, args)."""

    def __init__(self):
        self.events = []

    def __getattribute__(self, name):
        if name.startswith("on_"):
            events = object.__getattribute__(self, "events")
            return lambda *args: events.append((name, args))
        return object.__getattribute__(self, name)

    def calls(self, name):
        return [args for n, args in self.events if n == name]


TEST_WORDS = {
    "english": {
        "easy": ["cat", "dog", "sun", "tree", "fish"],
        "medium": ["rainbow", "ice cream"],
        "hard": ["lighthouse"],
    },
    "spanish": {"easy": ["gato", "perro"], "medium": [], "hard": []},
}


def tick(session, clock, seconds=1):
    """Advance the clock one second at a time, firing due timers."""
    for _ in range(seconds):
        clock.advance(1)
        session.timers.run_due()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def outbox():
    return RecordingOutbox()


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def word_bank():
    return WordBank(TEST_WORDS)


@pytest.fixture
def host_session(clock, outbox, observer, word_bank):
    """Authoritative session with the host and two guests in the lobby."""
    session = GameSession(
        "HOST",
        authoritative=True,
        outbox=outbox,
        observer=observer,
        word_bank=word_bank,
        clock=clock,
        rng=random.Random(7),
    )
    session.add_player("HOST", "Host", is_host=True)
    session.add_player("p1", "Alice")
    session.add_player("p2", "Bob")
    outbox.clear()
    observer.events.clear()
    return session


@pytest.fixture
def advance(host_session, clock):
    """advance(n): move the host session's clock forward n seconds."""

    def _advance(seconds=1):
        tick(host_session, clock, seconds)

    return _advance


class ReversedOrder(random.Random):
    """Shuffles by reversing, so drawing order is the reverse of join order."""

    def shuffle(self, x):
        x.reverse()


@pytest.fixture
def started(host_session):
    """Game started with drawing order p2, p1, HOST (p2 is choosing a word)."""
    host_session.rng = ReversedOrder(3)
    host_session.start_game()
    host_session.word_choices = ["cat", "rainbow", "ice cream"]
    return host_session


@pytest.fixture
def drawing(started, outbox, observer):
    """p2 is drawing "cat" with the full draw time left."""
    assert started.choose_word("p2", "cat")
    outbox.clear()
    observer.events.clear()
    return started


@pytest.fixture
def reversed_order():
    return ReversedOrder(1)


@pytest.fixture
def guest_observer():
    return RecordingObserver()


def wait_until(condition, timeout=3.0, interval=0.01):
    """Poll condition() until it is truthy or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(interval)
    return bool(condition())


class EventLog:
    """Accumulates the events a transport hands to its main loop."""

    def __init__(self, transport):
        self.transport = transport
        self.events = []

    def poll(self):
        self.events.extend(self.transport.poll_events())
        return self.events

    def of(self, kind):
        return [e for e in self.events if isinstance(e, kind)]

    def wait_for(self, kind, timeout=3.0, **fields):
        """Return the first event of this kind whose attributes match, or None."""

        def find():
            self.poll()
            for event in self.of(kind):
                if all(getattr(event, k) == v for k, v in fields.items()):
                    return event
            return None

        wait_until(lambda: find() is not None, timeout)
        return find()


@pytest.fixture
def wait():
    return wait_until


@pytest.fixture
def event_log():
    return EventLog


@pytest.fixture
def closed_port():
    """A loopback port nothing is listening on."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


@pytest.fixture
def make_observer():
    return RecordingObserver
