from __future__ import annotations

import socket


class Connection:
    """
    One accepted TCP stream.

    The hub only calls send() and close(). The reader thread owns recv() and
    calls release() once it has stopped reading.
    """

    def __init__(
        self,
        sock: socket.socket,
        address: tuple,
        *,
        write_timeout_s: float = 0.0,
    ) -> None:
        self.sock = sock
        self.address: tuple[str, int] = (str(address[0]), int(address[1]))
        self.closed = False
        if write_timeout_s and write_timeout_s > 0:
            # Applies to recv too; the reader treats a timeout as idle.
            sock.settimeout(float(write_timeout_s))

    @property
    def host(self) -> str:
        return self.address[0]

    def send(self, data: bytes) -> None:
        self.sock.sendall(data)

    def recv(self, n: int) -> bytes:
        return self.sock.recv(n)

    def close(self) -> None:
        # shutdown() wakes a reader blocked in recv(); the descriptor itself is
        # released by the reader.
        if self.closed:
            return
        self.closed = True
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass

    def release(self) -> None:
        self.closed = True
        try:
            self.sock.close()
        except OSError:
            pass

    def __repr__(self) -> str:
        return f"Connection({self.address[0]}:{self.address[1]})"
