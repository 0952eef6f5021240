"""Temporary host bans for the relay hub."""

from __future__ import annotations

import logging
import os

from .util import expand_path


class BanList:
    """
    Host bans with lazy expiry.

    Bans are never swept. An expired record is deleted the next time its host
    is checked.
    """

    def __init__(self, duration_s: float) -> None:
        self.duration_s = float(duration_s)
        self._banned: dict[str, float] = {}

    def check(self, host: str, now: float) -> float | None:
        """
        Return the remaining ban seconds for host, or None if it may connect.

        Deletes the record when it has expired.
        """
        banned_at = self._banned.get(host)
        if banned_at is None:
            return None

        elapsed = max(0.0, now - banned_at)
        if elapsed >= self.duration_s:
            del self._banned[host]
            return None

        return self.duration_s - elapsed

    def add(self, host: str, now: float) -> None:
        self._banned[host] = float(now)

    def banned_at(self, host: str) -> float | None:
        return self._banned.get(host)

    def load(self, records: dict[str, float]) -> None:
        self._banned = {str(h): float(t) for h, t in records.items()}

    def snapshot(self) -> dict[str, float]:
        return dict(self._banned)

    def __contains__(self, host: object) -> bool:
        return host in self._banned

    def __len__(self) -> int:
        return len(self._banned)


class BanStore:
    """Keeps a BanList on disk as a TOML [bans] table of host -> unix time."""

    def __init__(self, path: str) -> None:
        self.path = expand_path(path)
        self.log = logging.getLogger("trcd.bans")

    def load(self) -> dict[str, float]:
        if not os.path.exists(self.path):
            return {}

        from tomlkit import parse

        try:
            with open(self.path, encoding="utf-8") as f:
                doc = parse(f.read())
        except Exception as e:
            self.log.warning("Failed to parse ban store %s: %s", self.path, e)
            return {}

        bans = doc.get("bans")
        if bans is None:
            return {}
        if not isinstance(bans, dict):
            self.log.warning("Ban store %s: [bans] must be a table", self.path)
            return {}

        out: dict[str, float] = {}
        for host, ts in bans.items():
            if not isinstance(host, str) or not host.strip():
                continue
            try:
                out[host] = float(ts)
            except (TypeError, ValueError):
                continue
        return out

    def save(self, records: dict[str, float]) -> None:
        from tomlkit import comment, document, dumps, parse, table

        st = None
        try:
            st = os.stat(self.path)
        except OSError:
            st = None

        try:
            if st is not None:
                with open(self.path, encoding="utf-8") as f:
                    doc = parse(f.read())
            else:
                doc = document()
                doc.add(comment("trcd ban list: host -> unix time the ban started"))

            bans = table()
            for host in sorted(records):
                bans[host] = float(records[host])
            doc["bans"] = bans

            parent = os.path.dirname(self.path)
            if parent:
                os.makedirs(parent, exist_ok=True)

            with open(self.path, "w", encoding="utf-8") as f:
                f.write(dumps(doc))

            if st is not None:
                try:
                    os.chmod(self.path, st.st_mode)
                except Exception:
                    pass
            else:
                try:
                    os.chmod(self.path, 0o600)
                except Exception:
                    pass
        except Exception as e:
            self.log.warning("Failed to persist ban store %s: %s", self.path, e)
