from __future__ import annotations

import logging
import queue
import socket
import threading
import time

from .config import RelayRuntimeConfig
from .connection import Connection
from .constants import NAME_PROMPT, NAME_READ_BYTES
from .events import Connected, Disconnected, Inbound
from .util import fmt_addr, sensitive

log = logging.getLogger("trcd.transport")


def _recv(conn: Connection, n: int) -> bytes:
    # A receive timeout only means the peer is idle; the socket timeout exists
    # to bound writes.
    while True:
        try:
            return conn.recv(n)
        except socket.timeout:
            if conn.closed:
                return b""
            continue


def read_connection(
    conn: Connection, events: queue.Queue, config: RelayRuntimeConfig
) -> None:
    """
    Reader thread body for one connection.

    Emits Inbound for every non-empty read and exactly one Disconnected when
    the stream ends or fails. With ask_name enabled it first performs the
    name handshake and emits Connected itself.
    """
    safe = config.safe_mode

    if config.ask_name:
        try:
            conn.send(NAME_PROMPT.encode("utf-8"))
            raw_name = _recv(conn, NAME_READ_BYTES)
            if not raw_name:
                raise ConnectionError("connection closed before sending a name")
        except OSError as e:
            log.info(
                "Could not read name from %s: %s",
                fmt_addr(conn.address, safe),
                sensitive(e, safe),
            )
            conn.release()
            return
        events.put(Connected(conn, raw_name))

    chunk = max(1, int(config.read_chunk_bytes))
    while True:
        try:
            data = _recv(conn, chunk)
            if not data:
                raise ConnectionError("connection closed by peer")
        except OSError as e:
            log.debug(
                "Could not read from %s: %s",
                fmt_addr(conn.address, safe),
                sensitive(e, safe),
            )
            break
        events.put(Inbound(conn, data))

    events.put(Disconnected(conn))
    conn.release()


class Listener:
    """Accepts TCP connections and hands each one to a reader thread."""

    def __init__(self, config: RelayRuntimeConfig, events: queue.Queue) -> None:
        self.config = config
        self.events = events
        self.sock: socket.socket | None = None
        self._shutdown = threading.Event()

    @property
    def address(self) -> tuple[str, int] | None:
        if self.sock is None:
            return None
        name = self.sock.getsockname()
        return (str(name[0]), int(name[1]))

    def bind(self) -> None:
        """Bind and listen. Raises OSError on failure."""
        family = socket.AF_INET6 if ":" in str(self.config.host) else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.config.host, int(self.config.port)))
            sock.listen()
        except OSError:
            sock.close()
            raise
        self.sock = sock
        log.info(
            "Listening for tcp connections on %s",
            fmt_addr(self.address, self.config.safe_mode),
        )

    def serve_forever(self) -> None:
        if self.sock is None:
            self.bind()
        sock = self.sock
        if sock is None:
            raise RuntimeError("listener is not bound")

        while not self._shutdown.is_set():
            try:
                client_sock, address = sock.accept()
            except OSError as e:
                if self._shutdown.is_set():
                    break
                log.error(
                    "Could not accept the connection: %s",
                    sensitive(e, self.config.safe_mode),
                )
                time.sleep(0.1)
                continue

            self._spawn(client_sock, address)

    def _spawn(self, client_sock: socket.socket, address) -> None:
        conn = Connection(
            client_sock, address, write_timeout_s=self.config.write_timeout_s
        )
        if not self.config.ask_name:
            self.events.put(Connected(conn, None))

        t = threading.Thread(
            target=read_connection,
            args=(conn, self.events, self.config),
            name=f"trcd-reader-{conn.address[1]}",
            daemon=True,
        )
        t.start()

    def close(self) -> None:
        self._shutdown.set()
        if self.sock is None:
            return
        try:
            # Wakes a thread blocked in accept().
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        try:
            self.sock.close()
        except OSError:
            pass
