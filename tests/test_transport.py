from __future__ import annotations

import queue
import socket
import threading
import time

import pytest

from trcd.config import RelayRuntimeConfig
from trcd.connection import Connection
from trcd.constants import NAME_PROMPT
from trcd.events import Connected, Disconnected, Inbound
from trcd.transport import read_connection


@pytest.fixture()
def pair():
    ours, theirs = socket.socketpair()
    conn = Connection(ours, ("127.0.0.1", 40123), write_timeout_s=0.2)
    yield conn, theirs
    theirs.close()
    conn.release()


def _start_reader(conn: Connection, events: queue.Queue, **overrides) -> threading.Thread:
    cfg = RelayRuntimeConfig(**overrides)
    t = threading.Thread(target=read_connection, args=(conn, events, cfg), daemon=True)
    t.start()
    return t


def test_reader_emits_inbound_then_one_disconnected(pair) -> None:
    conn, peer = pair
    events: queue.Queue = queue.Queue()
    t = _start_reader(conn, events, ask_name=False)

    peer.sendall(b"hello")
    first = events.get(timeout=2)
    assert isinstance(first, Inbound)
    assert first.connection is conn
    assert first.data == b"hello"

    peer.close()
    last = events.get(timeout=2)
    assert isinstance(last, Disconnected)
    assert last.connection is conn

    t.join(2)
    assert not t.is_alive()
    assert events.empty()


def test_reader_survives_idle_read_timeouts(pair) -> None:
    conn, peer = pair
    events: queue.Queue = queue.Queue()
    _start_reader(conn, events, ask_name=False)

    time.sleep(0.5)
    peer.sendall(b"late")

    ev = events.get(timeout=2)
    assert isinstance(ev, Inbound)
    assert ev.data == b"late"


def test_reader_performs_name_handshake(pair) -> None:
    conn, peer = pair
    events: queue.Queue = queue.Queue()
    _start_reader(conn, events, ask_name=True)

    peer.settimeout(2)
    assert peer.recv(64) == NAME_PROMPT.encode("utf-8")
    peer.sendall(b"dave\n")

    ev = events.get(timeout=2)
    assert isinstance(ev, Connected)
    assert ev.connection is conn
    assert ev.display_name == b"dave\n"

    peer.sendall(b"hi")
    ev = events.get(timeout=2)
    assert isinstance(ev, Inbound)
    assert ev.data == b"hi"


def test_failed_handshake_emits_nothing(pair) -> None:
    conn, peer = pair
    events: queue.Queue = queue.Queue()
    t = _start_reader(conn, events, ask_name=True)

    peer.settimeout(2)
    peer.recv(64)
    peer.close()

    t.join(2)
    assert not t.is_alive()
    assert events.empty()
    assert conn.closed


def test_close_from_hub_wakes_reader(pair) -> None:
    conn, _peer = pair
    events: queue.Queue = queue.Queue()
    t = _start_reader(conn, events, ask_name=False)

    time.sleep(0.1)
    conn.close()

    ev = events.get(timeout=2)
    assert isinstance(ev, Disconnected)
    t.join(2)
    assert not t.is_alive()


def test_connection_identity() -> None:
    ours, theirs = socket.socketpair()
    try:
        conn = Connection(ours, ("2001:db8::5", 7000, 0, 0))
        assert conn.address == ("2001:db8::5", 7000)
        assert conn.host == "2001:db8::5"
        conn.close()
        conn.close()
        assert conn.closed
    finally:
        theirs.close()
        ours.close()
