from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .connection import Connection
from .constants import PLACEHOLDER_NAME


@dataclass
class ClientSession:
    connection: Connection
    last_message_at: float
    display_name: str | None = None
    strike_count: int = 0

    @property
    def name(self) -> str:
        return self.display_name or PLACEHOLDER_NAME


class SessionManager:
    """
    Registry of admitted connections, keyed by remote address.

    Only the hub thread touches this; there is no locking.
    """

    def __init__(self) -> None:
        self.log = logging.getLogger("trcd.session")
        self.sessions: dict[tuple[str, int], ClientSession] = {}

    def register(
        self, conn: Connection, *, now: float, display_name: str | None
    ) -> tuple[ClientSession, ClientSession | None]:
        """
        Create and register a session for conn.

        Returns (session, replaced) where replaced is a previous session that
        held the same address with a different connection, if any.
        """
        replaced = self.sessions.get(conn.address)
        if replaced is not None and replaced.connection is conn:
            replaced = None

        sess = ClientSession(
            connection=conn,
            last_message_at=now,
            display_name=display_name,
        )
        self.sessions[conn.address] = sess
        return sess, replaced

    def get(self, conn: Connection) -> ClientSession | None:
        """Session for conn, or None if its address belongs to another connection."""
        sess = self.sessions.get(conn.address)
        if sess is None or sess.connection is not conn:
            return None
        return sess

    def remove(self, conn: Connection) -> ClientSession | None:
        sess = self.get(conn)
        if sess is None:
            return None
        return self.sessions.pop(conn.address, None)

    def for_host(self, host: str) -> list[ClientSession]:
        return [s for addr, s in self.sessions.items() if addr[0] == host]

    def others(self, conn: Connection) -> list[ClientSession]:
        return [s for addr, s in self.sessions.items() if addr != conn.address]

    def clear_all(self) -> list[Connection]:
        """Clear all sessions and return their connections for teardown."""
        conns = [s.connection for s in self.sessions.values()]
        self.sessions.clear()
        return conns

    def __len__(self) -> int:
        return len(self.sessions)

    def get_stats(self) -> dict[str, Any]:
        total = len(self.sessions)
        named = sum(1 for s in self.sessions.values() if s.display_name)
        striked = sum(1 for s in self.sessions.values() if s.strike_count > 0)
        return {"total": total, "named": named, "striked": striked}
