"""Statistics tracking and reporting for the relay hub."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .hub import Hub


class StatsManager:
    """
    Lifetime counters for the hub.

    Tracks:
    - Admissions, rejections and disconnects
    - Strikes by kind and bans issued
    - Messages forwarded and failed deliveries
    - Bytes in/out
    """

    def __init__(self, hub: Hub) -> None:
        self.hub = hub

        self.started_monotonic: float | None = None

        self._counters: dict[str, int] = {
            "connects": 0,
            "disconnects": 0,
            "admission_denied": 0,
            "protocol_violation": 0,
            "rate_violation": 0,
            "malformed_payload": 0,
            "bans": 0,
            "msgs_forwarded": 0,
            "delivery_failure": 0,
            "bytes_in": 0,
            "bytes_out": 0,
        }

    def set_start_time(self) -> None:
        """Set the start time for uptime calculations."""
        self.started_monotonic = time.monotonic()

    def inc(self, key: str, delta: int = 1) -> None:
        self._counters[key] = int(self._counters.get(key, 0)) + int(delta)

    def get(self, key: str) -> int:
        return int(self._counters.get(key, 0))

    def snapshot(self) -> dict[str, int]:
        return dict(self._counters)

    def format_stats(self) -> str:
        """Format current statistics as a human-readable string."""
        from . import __version__

        now_mono = time.monotonic()
        started_mono = self.started_monotonic
        uptime_s = (now_mono - started_mono) if started_mono is not None else 0.0

        session_stats = self.hub.session_manager.get_stats()
        cfg = self.hub.config
        c = self.snapshot()

        lines: list[str] = []
        lines.append(f"trcd {__version__} stats")
        lines.append(f"uptime_s={uptime_s:.1f}")
        lines.append(
            f"clients_total={session_stats['total']} "
            f"clients_named={session_stats['named']} "
            f"clients_striked={session_stats['striked']}"
        )
        lines.append(f"bans_active={len(self.hub.ban_list)}")
        lines.append(
            f"limits: message_interval_s={cfg.message_interval_s} "
            f"ban_duration_s={cfg.ban_duration_s} "
            f"strike_limit={cfg.strike_limit}"
        )
        lines.append(
            "io: bytes_in={} bytes_out={} msgs_fwd={} delivery_failures={}".format(
                c.get("bytes_in", 0),
                c.get("bytes_out", 0),
                c.get("msgs_forwarded", 0),
                c.get("delivery_failure", 0),
            )
        )
        lines.append(
            "events: connects={} disconnects={} denied={} protocol={} rate={} malformed={} bans={}".format(
                c.get("connects", 0),
                c.get("disconnects", 0),
                c.get("admission_denied", 0),
                c.get("protocol_violation", 0),
                c.get("rate_violation", 0),
                c.get("malformed_payload", 0),
                c.get("bans", 0),
            )
        )

        return "\n".join(lines)
