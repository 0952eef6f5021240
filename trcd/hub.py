from __future__ import annotations

import logging
import queue
import time
from typing import Callable

from .bans import BanList, BanStore
from .config import RelayRuntimeConfig
from .connection import Connection
from .constants import (
    BANNED_NOTICE,
    E_ADMISSION_DENIED,
    E_DELIVERY_FAILURE,
    E_MALFORMED_PAYLOAD,
    E_PROTOCOL_VIOLATION,
    E_RATE_VIOLATION,
    ban_rejection_notice,
)
from .events import Connected, Disconnected, Event, Inbound
from .session import ClientSession, SessionManager
from .stats import StatsManager
from .util import fmt_addr, normalize_name, sensitive


class Hub:
    """
    Single consumer of the relay's event queue.

    The hub owns the session registry and the ban list. Both are only touched
    from the thread running run(), one event at a time, so neither is locked.
    Producers (the listener and connection readers) only put events.
    """

    def __init__(
        self,
        config: RelayRuntimeConfig,
        events: queue.Queue | None = None,
        *,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.config = config
        self.log = logging.getLogger("trcd.hub")
        self.events: queue.Queue = events if events is not None else queue.Queue()
        # Wall clock, so persisted ban timestamps stay meaningful across restarts.
        self._clock = clock or time.time

        self.session_manager = SessionManager()
        self.ban_list = BanList(config.ban_duration_s)
        self.stats_manager = StatsManager(self)

        self.ban_store: BanStore | None = None
        if config.ban_store_path:
            self.ban_store = BanStore(config.ban_store_path)
            self.ban_list.load(self.ban_store.load())
            if len(self.ban_list):
                self.log.info("Loaded %d ban(s) from %s", len(self.ban_list), self.ban_store.path)

    def _fmt_addr(self, conn: Connection) -> str:
        return fmt_addr(conn.address, self.config.safe_mode)

    def _fmt_host(self, host: str) -> str:
        return sensitive(host, self.config.safe_mode)

    def submit(self, event: Event) -> None:
        self.events.put(event)

    def stop(self) -> None:
        """Ask run() to return once the events queued before this are handled."""
        self.events.put(None)

    def run(self) -> None:
        self.stats_manager.set_start_time()
        while True:
            event = self.events.get()
            if event is None:
                break
            try:
                self.handle(event)
            except Exception:
                self.log.exception("Failed to handle %s", type(event).__name__)

        self._teardown()

    def handle(self, event: Event) -> None:
        if isinstance(event, Inbound):
            self._on_inbound(event.connection, event.data)
        elif isinstance(event, Connected):
            self._on_connected(event.connection, event.display_name)
        elif isinstance(event, Disconnected):
            self._on_disconnected(event.connection)
        else:
            self.log.warning("Ignoring unknown event %r", event)

    def _on_connected(self, conn: Connection, raw_name: bytes | str | None) -> None:
        now = self._clock()
        host = conn.host

        had_ban = host in self.ban_list
        remaining = self.ban_list.check(host, now)
        if remaining is not None:
            self.stats_manager.inc(E_ADMISSION_DENIED)
            self.log.info(
                "Client %s tried to connect but is banned for %.1f more seconds",
                self._fmt_host(host),
                remaining,
            )
            try:
                conn.send(ban_rejection_notice(remaining).encode("utf-8"))
            except OSError as e:
                self.log.debug(
                    "Could not send ban notice to %s: %s",
                    self._fmt_addr(conn),
                    sensitive(e, self.config.safe_mode),
                )
            conn.close()
            return

        if had_ban:
            self.log.info("Ban expired for %s", self._fmt_host(host))
            self._persist_bans()

        name = normalize_name(raw_name, self.config.name_max_chars)
        sess, replaced = self.session_manager.register(conn, now=now, display_name=name)
        if replaced is not None:
            self.log.warning(
                "Replacing stale session for %s", self._fmt_addr(replaced.connection)
            )
            replaced.connection.close()

        self.stats_manager.inc("connects")
        self.log.info("%s connected: %s", sess.name, self._fmt_host(host))

    def _on_disconnected(self, conn: Connection) -> None:
        sess = self.session_manager.remove(conn)
        if sess is None:
            self.log.debug("Disconnect for unregistered %s", self._fmt_addr(conn))
            return

        self.stats_manager.inc("disconnects")
        self.log.info("Client %s disconnected", self._fmt_addr(conn))

    def _on_inbound(self, conn: Connection, data: bytes) -> None:
        sess = self.session_manager.get(conn)
        if sess is None:
            self.stats_manager.inc(E_PROTOCOL_VIOLATION)
            self.log.info("Closing unregistered connection %s", self._fmt_addr(conn))
            conn.close()
            return

        self.stats_manager.inc("bytes_in", len(data))
        now = self._clock()

        # Rate is checked before content: a fast valid flood costs the same
        # strike as a fast invalid one.
        elapsed = max(0.0, now - sess.last_message_at)
        if elapsed < float(self.config.message_interval_s):
            self._strike(sess, E_RATE_VIOLATION, now)
            return

        try:
            text = bytes(data).decode("utf-8", "strict")
        except UnicodeDecodeError:
            self._strike(sess, E_MALFORMED_PAYLOAD, now)
            return

        sess.strike_count = 0
        sess.last_message_at = now

        if self.config.prefix_names:
            payload = f"{sess.name}: {text}".encode("utf-8")
        else:
            payload = bytes(data)
        self._broadcast(sess, payload)

    def _strike(self, sess: ClientSession, kind: str, now: float) -> None:
        sess.strike_count += 1
        self.stats_manager.inc(kind)

        if self.log.isEnabledFor(logging.DEBUG):
            self.log.debug(
                "Strike %s=%d for %s",
                kind,
                sess.strike_count,
                self._fmt_addr(sess.connection),
            )

        if sess.strike_count > int(self.config.strike_limit):
            self._ban(sess, now)

    def _ban(self, sess: ClientSession, now: float) -> None:
        host = sess.connection.host
        self.ban_list.add(host, now)
        self.stats_manager.inc("bans")
        self.log.warning(
            "Client %s got banned after %d strikes",
            self._fmt_host(host),
            sess.strike_count,
        )

        # A banned host holds no sessions, including its other connections.
        for victim in self.session_manager.for_host(host):
            conn = victim.connection
            try:
                conn.send(BANNED_NOTICE.encode("utf-8"))
            except OSError as e:
                self.log.debug(
                    "Could not send banned message to %s: %s",
                    self._fmt_addr(conn),
                    sensitive(e, self.config.safe_mode),
                )
            conn.close()
            # The reader will still report Disconnected; that becomes a no-op.
            self.session_manager.remove(conn)

        self._persist_bans()

    def _broadcast(self, sender: ClientSession, payload: bytes) -> None:
        recipients = self.session_manager.others(sender.connection)
        delivered = 0
        for rcpt in recipients:
            try:
                rcpt.connection.send(payload)
            except OSError as e:
                self.stats_manager.inc(E_DELIVERY_FAILURE)
                self.log.warning(
                    "Could not send data to %s: %s",
                    self._fmt_addr(rcpt.connection),
                    sensitive(e, self.config.safe_mode),
                )
                continue
            except Exception:
                self.stats_manager.inc(E_DELIVERY_FAILURE)
                self.log.warning(
                    "Send failed to %s bytes=%s",
                    self._fmt_addr(rcpt.connection),
                    len(payload),
                    exc_info=True,
                )
                continue
            delivered += 1
            self.stats_manager.inc("bytes_out", len(payload))

        if delivered:
            self.stats_manager.inc("msgs_forwarded")
        if self.log.isEnabledFor(logging.DEBUG):
            self.log.debug(
                "%s sent %d bytes to %d/%d client(s)",
                sender.name,
                len(payload),
                delivered,
                len(recipients),
            )

    def _persist_bans(self) -> None:
        if self.ban_store is None:
            return
        self.ban_store.save(self.ban_list.snapshot())

    def _teardown(self) -> None:
        conns = self.session_manager.clear_all()
        for conn in conns:
            conn.close()
        self.log.info("Hub stopped; closed %d connection(s)", len(conns))
