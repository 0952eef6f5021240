from __future__ import annotations

import queue
import socket
import time

import pytest

from trcd.config import RelayRuntimeConfig
from trcd.events import Connected, Disconnected
from trcd.service import RelayService
from trcd.transport import Listener


def _wait_for(predicate, timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


@pytest.fixture()
def service():
    cfg = RelayRuntimeConfig(
        host="127.0.0.1",
        port=0,
        message_interval_s=0.0,
        ask_name=False,
        prefix_names=False,
        safe_mode=True,
    )
    svc = RelayService(cfg)
    svc.start()
    yield svc
    svc.stop()


def test_relays_between_real_clients(service) -> None:
    clients = [socket.create_connection(service.address, timeout=2) for _ in range(3)]
    try:
        assert _wait_for(lambda: len(service.hub.session_manager) == 3)

        a, b, c = clients
        a.sendall(b"hello from a\n")

        assert b.recv(512) == b"hello from a\n"
        assert c.recv(512) == b"hello from a\n"

        a.settimeout(0.3)
        with pytest.raises(socket.timeout):
            a.recv(512)

        b.close()
        assert _wait_for(lambda: len(service.hub.session_manager) == 2)
    finally:
        for s in clients:
            s.close()


def test_stop_closes_clients() -> None:
    cfg = RelayRuntimeConfig(host="127.0.0.1", port=0, ask_name=False)
    svc = RelayService(cfg)
    svc.start()
    client = socket.create_connection(svc.address, timeout=2)
    try:
        assert _wait_for(lambda: len(svc.hub.session_manager) == 1)
        svc.stop()
        assert client.recv(512) == b""
    finally:
        client.close()


def test_bind_failure_is_raised() -> None:
    blocker = socket.socket()
    blocker.bind(("127.0.0.1", 0))
    blocker.listen()
    try:
        port = blocker.getsockname()[1]
        svc = RelayService(RelayRuntimeConfig(host="127.0.0.1", port=port))
        with pytest.raises(OSError):
            svc.start()
    finally:
        blocker.close()


class _FlakyListenSocket:
    """Fails one accept(), hands out one client, then shuts the listener down."""

    def __init__(self, listener: Listener, client: socket.socket) -> None:
        self.listener = listener
        self.client = client
        self.calls = 0

    def accept(self):
        self.calls += 1
        if self.calls == 1:
            raise OSError(24, "Too many open files")
        if self.calls == 2:
            return self.client, ("127.0.0.1", 50555)
        self.listener.close()
        raise OSError(9, "Bad file descriptor")

    def shutdown(self, how) -> None:
        pass

    def close(self) -> None:
        pass


def test_accept_error_is_logged_and_listener_keeps_serving(caplog) -> None:
    events: queue.Queue = queue.Queue()
    cfg = RelayRuntimeConfig(host="127.0.0.1", port=0, ask_name=False)
    listener = Listener(cfg, events)
    server_end, peer = socket.socketpair()
    flaky = _FlakyListenSocket(listener, server_end)
    listener.sock = flaky
    try:
        with caplog.at_level("ERROR", logger="trcd.transport"):
            listener.serve_forever()

        assert flaky.calls == 3
        assert "Could not accept the connection" in caplog.text

        event = events.get(timeout=2)
        assert isinstance(event, Connected)
        assert event.connection.address == ("127.0.0.1", 50555)
    finally:
        peer.close()

    assert isinstance(events.get(timeout=2), Disconnected)
