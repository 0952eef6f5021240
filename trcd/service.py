from __future__ import annotations

import logging
import queue
import signal
import threading
import time

from .config import RelayRuntimeConfig
from .hub import Hub
from .transport import Listener


class RelayService:
    def __init__(self, config: RelayRuntimeConfig) -> None:
        self.config = config
        self.log = logging.getLogger("trcd.service")

        # The only channel into the hub. Readers and the listener put events;
        # the hub thread is the sole consumer.
        self.events: queue.Queue = queue.Queue()

        self.hub = Hub(config, self.events)
        self.listener = Listener(config, self.events)

        self._shutdown = threading.Event()
        self._hub_thread: threading.Thread | None = None
        self._accept_thread: threading.Thread | None = None

    @property
    def address(self) -> tuple[str, int] | None:
        return self.listener.address

    def start(self) -> None:
        """Bind the listening socket and start the hub and accept threads.

        A bind failure raises OSError and nothing is started.
        """
        self.listener.bind()

        self.log.info(
            "Policy message_interval_s=%s ban_duration_s=%s strike_limit=%s ask_name=%s safe_mode=%s",
            self.config.message_interval_s,
            self.config.ban_duration_s,
            self.config.strike_limit,
            self.config.ask_name,
            self.config.safe_mode,
        )

        self._hub_thread = threading.Thread(
            target=self.hub.run, name="trcd-hub", daemon=True
        )
        self._hub_thread.start()

        self._accept_thread = threading.Thread(
            target=self.listener.serve_forever, name="trcd-accept", daemon=True
        )
        self._accept_thread.start()

    def run_forever(self) -> None:
        if self._hub_thread is None:
            self.start()

        signal.signal(signal.SIGINT, lambda *_: self._shutdown.set())
        signal.signal(signal.SIGTERM, lambda *_: self._shutdown.set())

        while not self._shutdown.is_set():
            time.sleep(0.25)

        self.stop()

    def stop(self, timeout: float = 5.0) -> None:
        self._shutdown.set()
        self.listener.close()

        if self._accept_thread is not None:
            self._accept_thread.join(timeout)
            self._accept_thread = None

        if self._hub_thread is not None:
            self.hub.stop()
            self._hub_thread.join(timeout)
            if self._hub_thread.is_alive():
                self.log.warning("Hub thread did not stop within %.1fs", timeout)
            self._hub_thread = None

        for line in self.hub.stats_manager.format_stats().splitlines():
            self.log.info("%s", line)
