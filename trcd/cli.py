from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import asdict, replace
from pathlib import Path

from .config import RelayRuntimeConfig
from .constants import (
    BAN_DURATION_S,
    DEFAULT_HOST,
    DEFAULT_PORT,
    MESSAGE_INTERVAL_S,
    STRIKE_LIMIT,
    WRITE_TIMEOUT_S,
)
from .logging_config import configure_logging
from .paths import default_ban_store_path, default_config_path, ensure_private_dir
from .service import RelayService

_LOG_KEYS = {
    "level": "log_level",
    "console": "log_console",
    "file": "log_file",
    "format": "log_format",
    "datefmt": "log_datefmt",
}

_OPTIONAL_STR_KEYS = ("ban_store_path", "log_file", "log_datefmt")


def _load_toml(path: str) -> dict:
    import tomllib

    with open(path, "rb") as f:
        data = tomllib.load(f)
    return data if isinstance(data, dict) else {}


def apply_config_data(cfg: RelayRuntimeConfig, data: dict) -> RelayRuntimeConfig:
    relay = data.get("relay")
    if isinstance(relay, dict):
        data = {**data, **relay}

    log_table = data.get("logging")
    if isinstance(log_table, dict):
        mapped = {_LOG_KEYS[k]: v for k, v in log_table.items() if k in _LOG_KEYS}
        data = {**data, **mapped}

    allowed = set(asdict(cfg).keys())
    # This identifies where the config came from; do not let the file override it.
    allowed.discard("config_path")
    updates = {k: v for k, v in data.items() if k in allowed}

    for key in _OPTIONAL_STR_KEYS:
        if key in updates and updates[key] == "":
            updates[key] = None

    return replace(cfg, **updates) if updates else cfg


def _write_default_config(config_path: str) -> None:
    cfg_dir = os.path.dirname(config_path)
    if cfg_dir:
        ensure_private_dir(Path(cfg_dir))

    ban_store_path = str(default_ban_store_path())

    content = f"""# trcd configuration (TOML)
#
# This file was created on first run.
# Edit it, then start trcd again.

[relay]

# Address to listen on for chat clients.
host = {DEFAULT_HOST!r}
port = {DEFAULT_PORT}

# Moderation policy.
#
# message_interval_s: minimum seconds between two messages from one client.
#   A faster message is dropped and counts as a strike.
# strike_limit: a client whose strikes exceed this is banned and disconnected.
#   Invalid (non UTF-8) messages also count as strikes.
# ban_duration_s: how long a banned host is refused new connections.
message_interval_s = {MESSAGE_INTERVAL_S}
strike_limit = {STRIKE_LIMIT}
ban_duration_s = {BAN_DURATION_S}

# Display names.
#
# ask_name: prompt every new client for a name before relaying its messages.
# prefix_names: relay messages as "<name>: <text>".
# Empty or invalid names become "anon".
ask_name = true
prefix_names = true
name_max_chars = 32

# Seconds a single write to a client may block (0 waits forever).
write_timeout_s = {WRITE_TIMEOUT_S}

# Replace peer addresses with [REDACTED] in log output.
safe_mode = false

# Keep bans across restarts (leave empty to keep them in memory only).
ban_store_path = {ban_store_path!r}

[logging]

# Log level for trcd.
level = "INFO"

# Log to stderr (systemd/journald friendly).
console = true

# Optional file path for logs (leave empty to disable).
file = ""

# Log format and optional date format.
format = "%(asctime)s %(levelname)s %(name)s[%(threadName)s]: %(message)s"
datefmt = ""
"""

    with open(config_path, "w", encoding="utf-8") as f:
        f.write(content)


def _ensure_first_run_files(config_path: str) -> bool:
    if os.path.exists(config_path):
        return False
    _write_default_config(config_path)
    return True


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="trcd", description="Run a TCP relay chat daemon")

    p.add_argument(
        "--config",
        default=str(default_config_path()),
        help="Path to a TOML config file (created on first run)",
    )
    p.add_argument("--host", default=None, help="Listen address (default: 0.0.0.0)")
    p.add_argument("--port", type=int, default=None, help="Listen port (default: 6969)")

    p.add_argument(
        "--message-interval",
        type=float,
        default=None,
        help="Minimum seconds between messages from one client",
    )
    p.add_argument(
        "--ban-duration", type=float, default=None, help="Ban duration in seconds"
    )
    p.add_argument(
        "--strike-limit",
        type=int,
        default=None,
        help="Strikes a client may accumulate before being banned",
    )

    p.add_argument(
        "--no-ask-name",
        action="store_true",
        help="Do not prompt new clients for a display name",
    )
    p.add_argument(
        "--no-name-prefix",
        action="store_true",
        help="Relay raw text without the sender's name",
    )

    safe = p.add_mutually_exclusive_group()
    safe.add_argument(
        "--safe-mode",
        dest="safe_mode",
        action="store_const",
        const=True,
        default=None,
        help="Redact peer addresses in logs",
    )
    safe.add_argument(
        "--no-safe-mode",
        dest="safe_mode",
        action="store_const",
        const=False,
        help="Log peer addresses",
    )

    p.add_argument(
        "--write-timeout",
        type=float,
        default=None,
        help="Seconds a write to one client may block (0 disables)",
    )
    p.add_argument(
        "--ban-store",
        default=None,
        help="TOML file to keep bans across restarts (empty disables)",
    )

    p.add_argument(
        "--log-level",
        default=None,
        help="Logging level override (DEBUG, INFO, WARNING, ERROR). Default comes from config.",
    )
    p.add_argument(
        "--log-file",
        default=None,
        help="Log file path override (empty disables file logging). Default comes from config.",
    )

    return p


def build_config(args: argparse.Namespace) -> RelayRuntimeConfig:
    config_path = str(args.config)
    cfg = RelayRuntimeConfig(config_path=config_path)
    if config_path and os.path.exists(config_path):
        cfg = apply_config_data(cfg, _load_toml(config_path))

    if args.host is not None:
        cfg = replace(cfg, host=str(args.host))
    if args.port is not None:
        cfg = replace(cfg, port=int(args.port))

    if args.message_interval is not None:
        cfg = replace(cfg, message_interval_s=float(args.message_interval))
    if args.ban_duration is not None:
        cfg = replace(cfg, ban_duration_s=float(args.ban_duration))
    if args.strike_limit is not None:
        cfg = replace(cfg, strike_limit=int(args.strike_limit))

    if args.no_ask_name:
        cfg = replace(cfg, ask_name=False)
    if args.no_name_prefix:
        cfg = replace(cfg, prefix_names=False)
    if args.safe_mode is not None:
        cfg = replace(cfg, safe_mode=bool(args.safe_mode))

    if args.write_timeout is not None:
        cfg = replace(cfg, write_timeout_s=float(args.write_timeout))
    if args.ban_store is not None:
        cfg = replace(cfg, ban_store_path=str(args.ban_store) or None)

    if args.log_level is not None:
        cfg = replace(cfg, log_level=str(args.log_level))
    if args.log_file is not None:
        cfg = replace(cfg, log_file=str(args.log_file) or None)

    return cfg


def main(argv: list[str] | None = None) -> None:
    args = _build_arg_parser().parse_args(sys.argv[1:] if argv is None else argv)

    config_path = str(args.config)
    if _ensure_first_run_files(config_path):
        print(
            "Created default trcd config. Edit it before starting:\n"
            f"- Config: {config_path}\n"
            "\nThen re-run trcd.",
            file=sys.stderr,
        )
        raise SystemExit(0)

    cfg = build_config(args)
    configure_logging(cfg, override_level=args.log_level, override_file=args.log_file)

    svc = RelayService(cfg)
    try:
        svc.start()
    except OSError as e:
        logging.getLogger("trcd").critical(
            "Could not listen on %s:%s: %s", cfg.host, cfg.port, e
        )
        raise SystemExit(1) from e
    svc.run_forever()


if __name__ == "__main__":
    main()
